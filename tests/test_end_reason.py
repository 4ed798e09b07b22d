"""Tests for meetbot/end_reason.py and meetbot/errors.py - End-reason classification."""

import pytest

from meetbot.end_reason import EndReasonRegistry
from meetbot.errors import (
    NORMAL_END_REASONS,
    BrowserSetupError,
    JoinRejectedError,
    MeetBotError,
    MeetingEndReason,
    get_error_message_from_code,
    is_normal_end_reason,
)

# ==================== Priority reasons ====================


class TestPriorityReasons:
    """ApiRequest and LoginRequired cannot be replaced once recorded."""

    @pytest.mark.parametrize("priority", [MeetingEndReason.ApiRequest, MeetingEndReason.LoginRequired])
    def test_set_error_after_priority_is_noop(self, priority):
        registry = EndReasonRegistry()
        registry.set_end_reason(priority)

        assert registry.set_error(MeetingEndReason.NoAttendees) is False
        assert registry.set_error(MeetingEndReason.Internal, "boom") is False
        assert registry.get_end_reason() == priority

    def test_set_end_reason_after_priority_is_noop(self):
        registry = EndReasonRegistry()
        registry.set_end_reason(MeetingEndReason.ApiRequest)

        assert registry.set_end_reason(MeetingEndReason.BotRemoved) is False
        assert registry.get_end_reason() == MeetingEndReason.ApiRequest

    def test_same_priority_reason_can_be_reset(self):
        registry = EndReasonRegistry()
        registry.set_error(MeetingEndReason.LoginRequired, "Sign in")

        assert registry.set_error(MeetingEndReason.LoginRequired, "Sign in again") is True
        assert registry.get_error_message() == "Sign in again"

    def test_priority_overrides_earlier_reason(self):
        registry = EndReasonRegistry()
        registry.set_error(MeetingEndReason.BotRemoved)

        assert registry.set_end_reason(MeetingEndReason.ApiRequest) is True
        assert registry.get_end_reason() == MeetingEndReason.ApiRequest

    def test_is_stop_requested(self):
        registry = EndReasonRegistry()
        assert registry.is_stop_requested() is False

        registry.set_error(MeetingEndReason.BotNotAccepted)
        assert registry.is_stop_requested() is False

        registry.set_error(MeetingEndReason.LoginRequired)
        assert registry.is_stop_requested() is True


# ==================== Messages ====================


class TestErrorMessages:
    """Message handling of set_error / set_end_reason."""

    def test_default_message(self):
        registry = EndReasonRegistry()
        registry.set_error(MeetingEndReason.BotRemoved)

        assert registry.has_error() is True
        assert registry.get_error_message() == get_error_message_from_code(MeetingEndReason.BotRemoved)

    def test_custom_message_kept_when_same_reason_reset_without_message(self):
        registry = EndReasonRegistry()
        registry.set_error(MeetingEndReason.Internal, "disk full")
        registry.set_error(MeetingEndReason.Internal)

        assert registry.get_error_message() == "disk full"

    def test_custom_message_replaced_for_different_reason(self):
        registry = EndReasonRegistry()
        registry.set_error(MeetingEndReason.Internal, "disk full")
        registry.set_error(MeetingEndReason.BotRemoved)

        assert registry.get_error_message() == get_error_message_from_code(MeetingEndReason.BotRemoved)

    @pytest.mark.parametrize("reason", sorted(NORMAL_END_REASONS, key=lambda r: r.value))
    def test_normal_reason_never_carries_message(self, reason):
        registry = EndReasonRegistry()
        registry.set_error(MeetingEndReason.StreamingSetupFailed, "audio lost")
        registry.set_error(reason, "transient detail")

        assert registry.get_end_reason() == reason
        assert registry.has_error() is False
        assert registry.get_error_message() is None

    def test_set_end_reason_failure_keeps_message(self):
        registry = EndReasonRegistry()
        registry.set_error(MeetingEndReason.Internal, "crash")
        registry.set_end_reason(MeetingEndReason.BotRemoved)

        assert registry.get_end_reason() == MeetingEndReason.BotRemoved
        assert registry.get_error_message() == "crash"

    def test_clear_error_keeps_reason(self):
        registry = EndReasonRegistry()
        registry.set_error(MeetingEndReason.BotRemoved)
        registry.clear_error()

        assert registry.has_error() is False
        assert registry.get_end_reason() == MeetingEndReason.BotRemoved


# ==================== Error types ====================


class TestErrorTypes:
    def test_exception_carries_class_reason(self):
        assert JoinRejectedError("no").reason == MeetingEndReason.BotNotAccepted

    def test_explicit_reason_overrides_class_reason(self):
        error = JoinRejectedError("stop", reason=MeetingEndReason.ApiRequest)
        assert error.reason == MeetingEndReason.ApiRequest

    def test_empty_message_uses_reason_default(self):
        error = MeetBotError(reason=MeetingEndReason.NoSpeaker)
        assert str(error) == get_error_message_from_code(MeetingEndReason.NoSpeaker)

    def test_browser_setup_error_aggregates(self):
        cause = RuntimeError("no display")
        error = BrowserSetupError("failed", attempts=3, last_error=cause)
        assert error.attempts == 3
        assert error.last_error is cause
        assert error.reason == MeetingEndReason.Internal

    def test_buckets(self):
        assert is_normal_end_reason(MeetingEndReason.ApiRequest)
        assert not is_normal_end_reason(MeetingEndReason.BotRemoved)
        assert not is_normal_end_reason(None)

    def test_unknown_code_message(self):
        assert get_error_message_from_code(None) == "Unknown error"
