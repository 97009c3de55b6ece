"""
Silence policy: decides which wind-down prompt (if any) a silent session gets.

``evaluate_silence`` is a pure function of the elapsed silence and the current
closure phase. Each call advances the phase by at most one step, so a client
that polls late still walks through every prompt in order.
"""
from dataclasses import dataclass
from enum import Enum

from .sessions import ClosurePhase


class ActionType(str, Enum):
    CHECK_ASSISTANCE = "CHECK_ASSISTANCE"
    CONFIRM_CLOSE = "CONFIRM_CLOSE"
    CLOSE_CONVERSATION = "CLOSE_CONVERSATION"


PROMPTS = {
    ActionType.CHECK_ASSISTANCE: "Is there anything else I can help you with?",
    ActionType.CONFIRM_CLOSE: (
        "Thanks for chatting with me today. Before I close this conversation, "
        "could you rate your experience?"
    ),
    ActionType.CLOSE_CONVERSATION: "Thank you for using our service today. Have a great day!",
}


@dataclass(frozen=True)
class SilenceThresholds:
    first_prompt_seconds: float = 60
    close_seconds: float = 180
    final_close_seconds: float = 300

    def __post_init__(self):
        if not (0 <= self.first_prompt_seconds < self.close_seconds < self.final_close_seconds):
            raise ValueError(
                "Silence thresholds must satisfy 0 <= first_prompt < close < final_close "
                f"(got {self.first_prompt_seconds}, {self.close_seconds}, {self.final_close_seconds})"
            )

    @classmethod
    def from_config(cls, config):
        return cls(
            first_prompt_seconds=config["SILENCE_FIRST_PROMPT_SECONDS"],
            close_seconds=config["SILENCE_CLOSE_SECONDS"],
            final_close_seconds=config["SILENCE_FINAL_CLOSE_SECONDS"],
        )


@dataclass(frozen=True)
class ClosureAction:
    action_type: ActionType
    phase: ClosurePhase
    prompt_text: str
    should_request_feedback: bool = False
    should_close_conversation: bool = False
    next_check_in_seconds: float = None

    def to_dict(self):
        return {
            "actionType": self.action_type.value,
            "promptText": self.prompt_text,
            "phase": self.phase.value,
            "shouldRequestFeedback": self.should_request_feedback,
            "shouldCloseConversation": self.should_close_conversation,
            "nextCheckInSeconds": self.next_check_in_seconds,
        }


def _seconds_until(threshold, elapsed):
    return max(0.0, float(threshold) - float(elapsed))


def evaluate_silence(elapsed_seconds, phase, thresholds=SilenceThresholds()):
    """Return (next_phase, action); action is None when no prompt is due."""
    if elapsed_seconds < thresholds.first_prompt_seconds:
        return phase, None

    if phase == ClosurePhase.NONE:
        next_phase = ClosurePhase.AWAITING_ASSISTANCE_CHECK
        return next_phase, ClosureAction(
            action_type=ActionType.CHECK_ASSISTANCE,
            phase=next_phase,
            prompt_text=PROMPTS[ActionType.CHECK_ASSISTANCE],
            next_check_in_seconds=_seconds_until(thresholds.close_seconds, elapsed_seconds),
        )

    if phase == ClosurePhase.AWAITING_ASSISTANCE_CHECK and elapsed_seconds >= thresholds.close_seconds:
        next_phase = ClosurePhase.AWAITING_CLOSE_CONFIRMATION
        return next_phase, ClosureAction(
            action_type=ActionType.CONFIRM_CLOSE,
            phase=next_phase,
            prompt_text=PROMPTS[ActionType.CONFIRM_CLOSE],
            should_request_feedback=True,
            next_check_in_seconds=_seconds_until(thresholds.final_close_seconds, elapsed_seconds),
        )

    if phase == ClosurePhase.AWAITING_CLOSE_CONFIRMATION and elapsed_seconds >= thresholds.final_close_seconds:
        next_phase = ClosurePhase.CLOSED
        return next_phase, ClosureAction(
            action_type=ActionType.CLOSE_CONVERSATION,
            phase=next_phase,
            prompt_text=PROMPTS[ActionType.CLOSE_CONVERSATION],
            should_close_conversation=True,
        )

    return phase, None
