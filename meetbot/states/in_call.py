"""InCall: prepare the page and the speaker tracking before recording."""

import logging

from meetbot.context import MeetingPhase, StateResult
from meetbot.speakers import SpeakerManager
from meetbot.states.base import BaseState
from meetbot.timeouts import run_with_timeout

logger = logging.getLogger(__name__)


class InCallState(BaseState):
    phase = MeetingPhase.IN_CALL

    async def execute(self) -> StateResult:
        try:
            await run_with_timeout(self._setup(), self.config.setup_timeout, "in-call setup")
            return self.transition(MeetingPhase.RECORDING)
        except Exception as e:
            return self.fail(e)

    async def _setup(self) -> None:
        self.events.in_call_not_recording()

        paths = self.session.paths
        if not paths.is_initialized:
            paths.initialize_paths()

        if self.context.start_time is None:
            self.context.start_time = self.now()
        if self.context.recorder is not None:
            self.context.recorder.set_meeting_start_time(self.context.start_time)

        await self._start_html_cleaner()
        await self._start_video_fixing()
        await self.start_speakers_observer()

        self.events.in_call_recording(self.context.start_time)
        logger.info(f"[inCall] Recording started at {self.context.start_time}")

    async def _start_html_cleaner(self) -> None:
        try:
            cleaner = self.session.create_html_cleaner(self.context.page)
            await cleaner.start()
            self.context.html_cleaner = cleaner
        except Exception as e:
            logger.warning(f"[inCall] HTML cleaner failed to start, continuing: {e}")

    async def _start_video_fixing(self) -> None:
        try:
            observer = self.session.create_video_fixing_observer(self.context.page)
            if observer is None:
                return
            await observer.start_observing()
            self.context.video_fixing_observer = observer
        except Exception as e:
            logger.warning(f"[inCall] Video fixing observer failed to start, continuing: {e}")

    async def start_speakers_observer(self) -> None:
        """Start speaker tracking. Failure leaves the session without speaker signals."""
        if self.context.speaker_manager is None:
            self.context.speaker_manager = SpeakerManager(self.context, clock=self.session.clock)
        manager = self.context.speaker_manager

        try:
            observer = self.session.create_speakers_observer(self.context.page, manager.handle_speaker_update)
            await observer.start_observing()
            self.context.speakers_observer = observer
        except Exception as e:
            self.context.speakers_observer = None
            logger.warning(f"[inCall] Speakers observer unavailable, running degraded: {e}")
