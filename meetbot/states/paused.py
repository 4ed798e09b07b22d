"""Paused: recording signals frozen until resume or stop."""

import asyncio
import logging

from meetbot.context import MeetingPhase, StateResult
from meetbot.states.base import BaseState

logger = logging.getLogger(__name__)


class PausedState(BaseState):
    phase = MeetingPhase.PAUSED

    POLL_INTERVAL = 0.25

    async def execute(self) -> StateResult:
        try:
            ctx = self.context
            ctx.take_snapshot()
            ctx.pause_start_time = self.now()
            ctx.is_paused = True
            if ctx.streaming is not None:
                ctx.streaming.pause()
            self.events.recording_paused()
            logger.info("[paused] Recording paused")

            while True:
                if ctx.resume_requested:
                    return self.transition(MeetingPhase.RESUMING)

                reason = self.registry.get_end_reason()
                if reason is not None:
                    logger.info(f"[paused] Stop while paused: {reason.value}")
                    self._close_pause()
                    self.events.call_ended()
                    return self.transition(MeetingPhase.CLEANUP)

                await asyncio.sleep(self.POLL_INTERVAL)
        except Exception as e:
            return self.fail(e)

    def _close_pause(self) -> None:
        ctx = self.context
        if ctx.pause_start_time is not None:
            ctx.total_pause_duration += self.now() - ctx.pause_start_time
        ctx.pause_start_time = None
