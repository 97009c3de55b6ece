from .sessions import ClosurePhase, SessionState, SessionStore
from .utils import utcnow


class SessionActivityTracker:
    """Last-activity timestamps per session.

    Callers that combine a reset with other state changes hold
    ``store.locked(session_id)`` themselves; the plain methods lock on their own.
    """

    def __init__(self, store: SessionStore, clock=utcnow):
        self.store = store
        self.clock = clock

    def reset_activity(self, session_id):
        with self.store.locked(session_id):
            self.touch(session_id)

    def touch(self, session_id):
        """Record now as the last activity. Caller must hold the session lock."""
        now = self.clock()
        state = self.store.get(session_id)
        if state is None:
            state = SessionState(session_id=session_id, last_activity_at=now)
        else:
            state = state.evolve(last_activity_at=now, phase=ClosurePhase.NONE, silence_checks=0)
        self.store.put(state)
        return state

    def get_elapsed_silence(self, session_id, now=None):
        """Seconds since the last activity, or None if the session was never seen."""
        state = self.store.get(session_id)
        if state is None:
            return None
        now = now or self.clock()
        return max(0.0, (now - state.last_activity_at).total_seconds())
