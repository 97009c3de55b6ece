"""
In-memory per-session state for the closure workflow.

Each session id maps to an immutable ``SessionState``. Writers replace the
whole record while holding the session's lock, so a read-modify-write on one
session never interleaves with another writer for the same id.
"""
import threading
import zlib
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum


class ClosurePhase(str, Enum):
    NONE = "NONE"
    AWAITING_ASSISTANCE_CHECK = "AWAITING_ASSISTANCE_CHECK"
    AWAITING_CLOSE_CONFIRMATION = "AWAITING_CLOSE_CONFIRMATION"
    CLOSED = "CLOSED"


@dataclass(frozen=True)
class SessionState:
    session_id: str
    last_activity_at: datetime
    phase: ClosurePhase = ClosurePhase.NONE
    further_assistance_pending: bool = False
    further_assistance_set_at: datetime = None
    silence_checks: int = 0

    def evolve(self, **changes):
        return replace(self, **changes)


class SessionStore:
    """Session id -> SessionState table guarded by striped locks."""

    def __init__(self, stripes=64):
        self._states = {}
        self._locks = [threading.Lock() for _ in range(stripes)]

    def _lock_for(self, session_id):
        return self._locks[zlib.crc32(session_id.encode("utf-8")) % len(self._locks)]

    @contextmanager
    def locked(self, session_id):
        with self._lock_for(session_id):
            yield

    def get(self, session_id):
        return self._states.get(session_id)

    def put(self, state):
        self._states[state.session_id] = state

    def discard(self, session_id):
        self._states.pop(session_id, None)

    def snapshot(self):
        return list(self._states.items())

    def __len__(self):
        return len(self._states)
