"""WaitingRoom: open the meeting, start recording and wait for admission."""

import asyncio
import logging

from meetbot.context import MeetingPhase, StateResult
from meetbot.errors import (
    JoinCancelledError,
    JoinRejectedError,
    MeetingEndReason,
    WaitingRoomTimeoutError,
)
from meetbot.page_services import attach_page_logger
from meetbot.states.base import BaseState
from meetbot.timeouts import Deadline, abandon, run_with_timeout

logger = logging.getLogger(__name__)


class WaitingRoomState(BaseState):
    phase = MeetingPhase.WAITING_ROOM

    # External stop / login-required poll
    STOP_POLL_INTERVAL = 1.0
    OPEN_PAGE_TIMEOUT = 60.0

    async def execute(self) -> StateResult:
        try:
            info = self.provider.parse_meeting_url(self.config.meeting_url)
            link = self.provider.get_meeting_link(
                info.meeting_id,
                info.password,
                self.provider.DEFAULT_ROLE,
                self.config.bot_name,
                self.config.enter_message,
            )

            dialog_observer = self.session.create_dialog_observer()
            self.context.dialog_observer = dialog_observer
            dialog_observer.start()

            page = await run_with_timeout(
                self.provider.open_meeting_page(
                    self.context.browser_context, link, self.config.streaming.input_url
                ),
                self.OPEN_PAGE_TIMEOUT,
                "open meeting page",
            )
            self.context.page = page
            dialog_observer.set_page(page)
            if self.config.debug_logs:
                attach_page_logger(page)
            self.session.snapshot_in_background(page, "waiting_room_page_opened")

            await self._start_streaming()

            recorder = self.session.create_recorder()
            self.context.recorder = recorder
            await recorder.start_recording()

            self.events.in_waiting_room()
            await self._wait_for_admission(page)

            logger.info("[waitingRoom] Admitted, moving to in-call")
            return self.transition(MeetingPhase.IN_CALL)
        except Exception as e:
            reason = self.classify(e)
            self._notify_failure(reason)
            self.log_failure(reason, e)
            return self.transition(MeetingPhase.ERROR)

    async def _start_streaming(self) -> None:
        streaming = self.session.create_streaming()
        self.context.streaming = streaming
        if not await streaming.start():
            logger.warning("[waitingRoom] Audio streaming unavailable, sound activity will read as silent")

    async def _wait_for_admission(self, page) -> None:
        """Race the join handshake against the waiting-room timer and stop requests.

        Raises:
            JoinRejectedError, LoginRequiredError: from the provider
            JoinCancelledError: if a stop was requested while waiting
            WaitingRoomTimeoutError: if the timer expired before admission
        """
        admitted = False

        def on_admitted():
            nonlocal admitted
            if not admitted:
                logger.info("[waitingRoom] Admission confirmed")
            admitted = True

        join_task = asyncio.ensure_future(
            self.provider.join_meeting(page, self.registry.is_stop_requested, on_admitted)
        )
        deadline = Deadline(self.config.automatic_leave.waiting_room_timeout)

        try:
            while True:
                if join_task.done():
                    join_task.result()
                    if admitted:
                        return
                    raise JoinRejectedError("Join finished without admission")

                if self.registry.is_stop_requested():
                    stop_reason = self.registry.get_end_reason()
                    raise JoinCancelledError(f"Stop requested while waiting: {stop_reason.value}", reason=stop_reason)

                if deadline.expired:
                    if not admitted:
                        raise WaitingRoomTimeoutError(
                            f"Not admitted after {self.config.automatic_leave.waiting_room_timeout:g}s"
                        )
                    # Admitted but the provider is still configuring the view
                    logger.warning("[waitingRoom] Join still finishing after admission, proceeding")
                    return

                wait = min(self.STOP_POLL_INTERVAL, deadline.remaining())
                await asyncio.wait({join_task}, timeout=wait)
        finally:
            if not join_task.done():
                abandon(join_task)

    def _notify_failure(self, reason: MeetingEndReason) -> None:
        if reason == MeetingEndReason.BotNotAccepted:
            self.events.bot_rejected()
        elif reason == MeetingEndReason.TimeoutWaitingToStart:
            self.events.waiting_room_timeout()
        elif reason == MeetingEndReason.ApiRequest:
            self.events.api_request_stop()
