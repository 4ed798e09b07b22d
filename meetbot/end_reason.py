"""
End-Reason Registry.

Holds the single classified reason a session is ending plus an optional
human-readable error message. One registry exists per session; it is shared
by the controller, every state handler and background callbacks.

Rules:
- ApiRequest and LoginRequired are priority reasons. Once recorded, any
  attempt to classify a different reason is rejected.
- Re-setting the same reason without a message keeps a custom message that
  was recorded earlier.
- A normal-termination reason clears the error message.
- ``has_error()`` is driven by the message, not the reason.
"""

import logging
from typing import Optional

from meetbot.errors import (
    PRIORITY_END_REASONS,
    MeetingEndReason,
    get_error_message_from_code,
    is_normal_end_reason,
)

logger = logging.getLogger(__name__)


class EndReasonRegistry:
    """Write-once-preferentially classifier of why the session is ending."""

    def __init__(self):
        self._end_reason: Optional[MeetingEndReason] = None
        self._error_message: Optional[str] = None

    def _is_locked_against(self, reason: MeetingEndReason) -> bool:
        current = self._end_reason
        if current in PRIORITY_END_REASONS and reason != current:
            logger.warning(f"Ignoring end reason {reason.value}: priority reason {current.value} already set")
            return True
        return False

    def set_error(self, reason: MeetingEndReason, message: Optional[str] = None) -> bool:
        """Record a reason together with an error message.

        Args:
            reason: The classified end reason
            message: Detail message; defaults to the reason's standard message

        Returns:
            True if the registry was updated, False if the call was rejected
        """
        if self._is_locked_against(reason):
            return False

        default_message = get_error_message_from_code(reason)
        keep_custom = (
            message is None
            and reason == self._end_reason
            and self._error_message is not None
            and self._error_message != default_message
        )

        logger.info(f"Setting session error: {reason.value}")
        self._end_reason = reason
        if not keep_custom:
            self._error_message = message or default_message

        if is_normal_end_reason(reason):
            self.clear_error()
        return True

    def set_end_reason(self, reason: MeetingEndReason) -> bool:
        """Record a reason without adding an error message.

        Normal-termination reasons clear any message recorded before, so a
        normal end never surfaces as an error to the caller.

        Returns:
            True if the registry was updated, False if the call was rejected
        """
        if self._is_locked_against(reason):
            return False

        logger.info(f"Setting session end reason: {reason.value}")
        self._end_reason = reason
        if is_normal_end_reason(reason):
            logger.info(f"Clearing error state for normal termination: {reason.value}")
            self.clear_error()
        return True

    def get_end_reason(self) -> Optional[MeetingEndReason]:
        return self._end_reason

    def get_error_message(self) -> Optional[str]:
        return self._error_message

    def has_error(self) -> bool:
        """True only when an error message is present."""
        return self._error_message is not None

    def clear_error(self) -> None:
        """Drop the error message but keep the end reason."""
        self._error_message = None

    def is_stop_requested(self) -> bool:
        """True if an external actor asked to stop or authentication is required."""
        return self._end_reason in PRIORITY_END_REASONS
