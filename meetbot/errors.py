"""Standardized end reasons and exceptions for the meeting session.

Every way a session can end is classified as a ``MeetingEndReason``. A reason
belongs to exactly one bucket:

- normal: the recording ended as expected (operator stop, inactivity, ceiling)
- failure: anything else

Usage:
    from meetbot.errors import MeetingEndReason, is_normal_end_reason

    if is_normal_end_reason(MeetingEndReason.NoAttendees):
        ...

Exceptions raised by collaborators may carry a ``reason`` attribute. State
handlers use it to classify the failure without string matching.
"""

from enum import Enum
from typing import Optional


class MeetingEndReason(str, Enum):
    """Classified cause for a session ending."""

    BotNotAccepted = "BotNotAccepted"
    BotRemoved = "BotRemoved"
    BotRemovedTooEarly = "BotRemovedTooEarly"
    TimeoutWaitingToStart = "TimeoutWaitingToStart"
    InvalidMeetingUrl = "InvalidMeetingUrl"
    LoginRequired = "LoginRequired"
    ApiRequest = "ApiRequest"
    NoAttendees = "NoAttendees"
    NoSpeaker = "NoSpeaker"
    RecordingTimeout = "RecordingTimeout"
    StreamingSetupFailed = "StreamingSetupFailed"
    Internal = "Internal"


# Reasons meaning the recording ended as expected
NORMAL_END_REASONS: frozenset[MeetingEndReason] = frozenset(
    {
        MeetingEndReason.ApiRequest,
        MeetingEndReason.NoAttendees,
        MeetingEndReason.NoSpeaker,
        MeetingEndReason.RecordingTimeout,
    }
)

# Once one of these is recorded, no other reason may replace it
PRIORITY_END_REASONS: frozenset[MeetingEndReason] = frozenset(
    {
        MeetingEndReason.ApiRequest,
        MeetingEndReason.LoginRequired,
    }
)

# Expected outcomes that are logged as warnings instead of errors
BOT_WARNING_CODES: frozenset[MeetingEndReason] = frozenset(
    {
        MeetingEndReason.BotNotAccepted,
        MeetingEndReason.TimeoutWaitingToStart,
        MeetingEndReason.ApiRequest,
        MeetingEndReason.BotRemoved,
    }
)

_DEFAULT_MESSAGES: dict[MeetingEndReason, str] = {
    MeetingEndReason.BotNotAccepted: "Bot was not accepted into the meeting",
    MeetingEndReason.BotRemoved: "Bot was removed from the meeting",
    MeetingEndReason.BotRemovedTooEarly: "Bot was removed from the meeting too early",
    MeetingEndReason.TimeoutWaitingToStart: "Timed out waiting in the waiting room",
    MeetingEndReason.InvalidMeetingUrl: "Invalid meeting URL",
    MeetingEndReason.LoginRequired: "Login is required to join this meeting",
    MeetingEndReason.ApiRequest: "Recording stopped by API request",
    MeetingEndReason.NoAttendees: "No attendees left in the meeting",
    MeetingEndReason.NoSpeaker: "No speaker detected for too long",
    MeetingEndReason.RecordingTimeout: "Maximum recording duration reached",
    MeetingEndReason.StreamingSetupFailed: "Recording or streaming failed",
    MeetingEndReason.Internal: "Internal error",
}


def get_error_message_from_code(reason: Optional[MeetingEndReason]) -> str:
    """Return the default human-readable message for a reason."""
    if reason is None:
        return "Unknown error"
    return _DEFAULT_MESSAGES.get(reason, "Unknown error")


def is_normal_end_reason(reason: Optional[MeetingEndReason]) -> bool:
    """True if the reason belongs to the normal-termination bucket."""
    return reason in NORMAL_END_REASONS


class MeetBotError(Exception):
    """Base class for meeting bot errors.

    Attributes:
        reason: End reason this error should be classified as, if known
    """

    reason: Optional[MeetingEndReason] = None

    def __init__(self, message: str = "", reason: Optional[MeetingEndReason] = None):
        super().__init__(message or get_error_message_from_code(reason or self.reason))
        if reason is not None:
            self.reason = reason


class ConfigError(MeetBotError):
    """Raised when required configuration is missing or malformed."""


class InvalidMeetingReference(MeetBotError):
    """Raised when a meeting URL cannot be parsed by the provider."""

    reason = MeetingEndReason.InvalidMeetingUrl


class BrowserSetupError(MeetBotError):
    """Raised when every browser launch attempt failed."""

    reason = MeetingEndReason.Internal

    def __init__(self, message: str, attempts: int = 0, last_error: Optional[BaseException] = None):
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error


class JoinRejectedError(MeetBotError):
    """Raised by a provider when the bot is refused entry to the meeting."""

    reason = MeetingEndReason.BotNotAccepted


class JoinCancelledError(MeetBotError):
    """Raised by a provider when the join wait is cancelled by the cancel check."""

    reason = MeetingEndReason.ApiRequest


class WaitingRoomTimeoutError(MeetBotError):
    """Raised when the bot was not admitted before the waiting-room timeout."""

    reason = MeetingEndReason.TimeoutWaitingToStart


class LoginRequiredError(MeetBotError):
    """Raised by a provider when the meeting redirects to a login page."""

    reason = MeetingEndReason.LoginRequired


class RecorderError(MeetBotError):
    """Raised or emitted when the screen recorder fails."""

    reason = MeetingEndReason.StreamingSetupFailed


class InvalidTransitionError(MeetBotError):
    """Raised when pause/resume is requested from the wrong phase."""


class SessionFailedError(MeetBotError):
    """Raised by ``start_record_meeting`` when the session ended in failure."""
