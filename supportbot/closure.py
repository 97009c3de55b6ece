import logging
import math
from datetime import timedelta

from .activity import SessionActivityTracker
from .errors import ValidationError
from .sessions import ClosurePhase, SessionState, SessionStore
from .silence_policy import ActionType, SilenceThresholds, evaluate_silence
from .utils import utcnow

logger = logging.getLogger(__name__)


class ConversationClosureService:
    """
    Guides silent conversations toward a natural close.

    The client polls with the current silence duration; each poll may move the
    session one step along NONE -> AWAITING_ASSISTANCE_CHECK ->
    AWAITING_CLOSE_CONFIRMATION -> CLOSED. Any user activity puts the session
    back to NONE. Unknown session ids are treated as fresh sessions.
    """

    def __init__(
        self,
        thresholds=None,
        store=None,
        clock=utcnow,
        further_assistance_ttl_seconds=300,
        session_ttl_seconds=7200,
    ):
        self.thresholds = thresholds or SilenceThresholds()
        self.store = store or SessionStore()
        self.clock = clock
        self.tracker = SessionActivityTracker(self.store, clock=clock)
        self.further_assistance_ttl = timedelta(seconds=further_assistance_ttl_seconds)
        self.session_ttl = timedelta(seconds=session_ttl_seconds)

    @classmethod
    def from_config(cls, config, clock=utcnow):
        return cls(
            thresholds=SilenceThresholds.from_config(config),
            clock=clock,
            further_assistance_ttl_seconds=config["FURTHER_ASSISTANCE_TTL_SECONDS"],
            session_ttl_seconds=config["SESSION_STATE_TTL_SECONDS"],
        )

    def _get_or_create(self, session_id):
        state = self.store.get(session_id)
        if state is None:
            state = SessionState(session_id=session_id, last_activity_at=self.clock())
            self.store.put(state)
        return state

    def handle_user_silence(self, session_id, elapsed_seconds=None):
        """
        Apply the silence policy to a session.

        Args:
            session_id: Client-supplied conversation id.
            elapsed_seconds: Silence reported by the client. When omitted, the
                server-side silence since the last activity reset is used.

        A CHECK_ASSISTANCE action also sets the further-assistance flag in
        the same locked update, so the next reply is read as its answer.

        Returns:
            ClosureAction or None when no prompt is due.
        """
        if elapsed_seconds is not None:
            if not math.isfinite(elapsed_seconds):
                raise ValidationError("Silence duration must be a finite number")
            if elapsed_seconds < 0:
                raise ValidationError("Silence duration must not be negative")

        with self.store.locked(session_id):
            state = self._get_or_create(session_id)
            if elapsed_seconds is None:
                elapsed_seconds = self.tracker.get_elapsed_silence(session_id) or 0.0

            next_phase, action = evaluate_silence(elapsed_seconds, state.phase, self.thresholds)
            changes = {"phase": next_phase, "silence_checks": state.silence_checks + 1}
            if action is not None and action.action_type == ActionType.CHECK_ASSISTANCE:
                changes.update(further_assistance_pending=True, further_assistance_set_at=self.clock())
            self.store.put(state.evolve(**changes))

        if action is None:
            logger.debug("No closure action for session %s after %ss (phase %s)",
                         session_id, elapsed_seconds, next_phase.value)
        else:
            logger.info("Closure action %s for session %s after %ss",
                        action.action_type.value, session_id, elapsed_seconds)
        return action

    def set_further_assistance_context(self, session_id):
        """Mark that the last prompt asked whether the user needs anything else."""
        with self.store.locked(session_id):
            state = self._get_or_create(session_id)
            self.store.put(state.evolve(further_assistance_pending=True,
                                        further_assistance_set_at=self.clock()))
        logger.debug("Set further assistance context for session %s", session_id)

    def consume_further_assistance_context(self, session_id):
        """Read and clear the further-assistance flag. Expired flags read as False."""
        with self.store.locked(session_id):
            state = self.store.get(session_id)
            if state is None or not state.further_assistance_pending:
                return False
            self.store.put(state.evolve(further_assistance_pending=False,
                                        further_assistance_set_at=None))
            set_at = state.further_assistance_set_at
            return set_at is not None and self.clock() - set_at <= self.further_assistance_ttl

    def reset_user_activity(self, session_id):
        # the further-assistance flag survives so the reply can still be read as an answer
        with self.store.locked(session_id):
            self.tracker.touch(session_id)
        logger.debug("Reset activity for session %s", session_id)

    def mark_conversation_completed(self, session_id):
        with self.store.locked(session_id):
            state = self._get_or_create(session_id)
            self.store.put(state.evolve(phase=ClosurePhase.CLOSED, further_assistance_pending=False,
                                        further_assistance_set_at=None))
        logger.info("Conversation marked as completed for session %s", session_id)

    def get_conversation_status(self, session_id):
        state = self.store.get(session_id)
        if state is None:
            return {
                "sessionId": session_id,
                "active": False,
                "phase": ClosurePhase.NONE.value,
                "status": "No active conversation",
            }
        return {
            "sessionId": session_id,
            "active": state.phase != ClosurePhase.CLOSED,
            "phase": state.phase.value,
            "lastActivityAt": state.last_activity_at.isoformat(),
            "silenceSeconds": self.tracker.get_elapsed_silence(session_id),
            "silenceChecks": state.silence_checks,
            "furtherAssistancePending": state.further_assistance_pending,
        }

    def cleanup_old_sessions(self, max_age=None):
        """Drop session states idle for longer than max_age (a timedelta)."""
        cutoff = self.clock() - (max_age if max_age is not None else self.session_ttl)
        removed = 0
        for session_id, _ in self.store.snapshot():
            with self.store.locked(session_id):
                state = self.store.get(session_id)
                if state is not None and state.last_activity_at < cutoff:
                    self.store.discard(session_id)
                    removed += 1
        logger.debug("Cleaned up %d old conversation states", removed)
        return removed
