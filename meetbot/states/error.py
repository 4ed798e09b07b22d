"""Error: report the classified failure, then always clean up."""

import logging

from meetbot.context import MeetingPhase, StateResult
from meetbot.errors import MeetBotError, MeetingEndReason, get_error_message_from_code
from meetbot.states.base import BaseState
from meetbot.timeouts import run_with_timeout

logger = logging.getLogger(__name__)


class ErrorState(BaseState):
    phase = MeetingPhase.ERROR

    NOTIFY_TIMEOUT = 15.0

    async def execute(self) -> StateResult:
        try:
            reason = self.registry.get_end_reason() or MeetingEndReason.Internal
            self._log_diagnostics(reason)
            self.session.snapshot_in_background(self.context.page, f"error_{reason.value}")

            try:
                self.notify(reason)
                await run_with_timeout(self.session.notifier.flush(), self.NOTIFY_TIMEOUT, "error notification")
            except Exception as e:
                logger.warning(f"[error] Failed to send error notification: {e}")

            self._log_metrics(reason)
        except Exception as e:
            logger.error(f"[error] Error handling failed: {e}", exc_info=True)

        return self.transition(MeetingPhase.CLEANUP)

    def notify(self, reason: MeetingEndReason) -> None:
        """Send the one event mapped to ``reason``."""
        events = self.events
        mapping = {
            MeetingEndReason.BotNotAccepted: events.bot_rejected,
            MeetingEndReason.BotRemoved: events.bot_removed,
            MeetingEndReason.BotRemovedTooEarly: events.bot_removed_too_early,
            MeetingEndReason.TimeoutWaitingToStart: events.waiting_room_timeout,
            MeetingEndReason.InvalidMeetingUrl: events.invalid_meeting_url,
            MeetingEndReason.ApiRequest: events.api_request_stop,
        }
        send = mapping.get(reason)
        if send is not None:
            send()
            return

        error = self.context.error
        if error is None:
            message = self.registry.get_error_message() or get_error_message_from_code(reason)
            error = MeetBotError(message, reason=reason)
        events.meeting_error(error)

    def _log_diagnostics(self, reason: MeetingEndReason) -> None:
        ctx = self.context
        logger.error(
            f"[error] Session error: reason={reason.value} "
            f"message={self.registry.get_error_message()!r} "
            f"error={ctx.error!r} page_open={ctx.page is not None} "
            f"recorder={ctx.recorder is not None} streaming={ctx.streaming is not None}"
        )

    def _log_metrics(self, reason: MeetingEndReason) -> None:
        ctx = self.context
        duration = self.now() - ctx.start_time if ctx.start_time is not None else 0.0
        logger.info(
            f"[error] Metrics: reason={reason.value} duration={duration:.1f}s "
            f"paused={ctx.total_pause_duration:.1f}s attendees={ctx.attendees_count} "
            f"first_user_joined={ctx.first_user_joined}"
        )
