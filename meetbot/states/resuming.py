"""Resuming: restart the paused services and return to Recording."""

import logging

from meetbot.context import MeetingPhase, StateResult
from meetbot.states.base import BaseState
from meetbot.timeouts import run_with_timeout

logger = logging.getLogger(__name__)


class ResumingState(BaseState):
    phase = MeetingPhase.RESUMING

    async def execute(self) -> StateResult:
        try:
            await run_with_timeout(self._resume(), self.config.resume_timeout, "resume")
            return self.transition(MeetingPhase.RECORDING)
        except Exception as e:
            return self.fail(e)

    async def _resume(self) -> None:
        ctx = self.context

        if ctx.streaming is not None:
            ctx.streaming.resume()

        observer = ctx.speakers_observer
        if observer is not None:
            await observer.stop_observing()
            await observer.start_observing()

        self.events.recording_resumed()

        pause_length = 0.0
        if ctx.pause_start_time is not None:
            pause_length = self.now() - ctx.pause_start_time
            ctx.total_pause_duration += pause_length

        ctx.restore_snapshot()
        # Time spent paused does not count as silence
        if ctx.no_speaker_detected_time is not None:
            ctx.no_speaker_detected_time += pause_length

        ctx.pause_start_time = None
        ctx.is_paused = False
        ctx.resume_requested = False
        logger.info(f"[resuming] Resumed after {pause_length:.1f}s pause (total {ctx.total_pause_duration:.1f}s)")
