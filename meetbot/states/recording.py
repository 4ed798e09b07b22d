"""
Recording: the session's steady state.

Every tick re-evaluates the end conditions, in order:

1. a reason already in the registry (stop request, recorder failure)
2. the recording duration ceiling
3. removal from the meeting, as reported by the provider
4. sound above the activity threshold resets both silence latches
5. nobody in the meeting for SILENCE_CONFIRMATION seconds
6. nobody speaking for the configured silence timeout

Any end condition closes the meeting, emits ``call_ended`` and goes to
Cleanup. Recording never exits through Error.
"""

import asyncio
import logging
from typing import Optional

from meetbot.context import MeetingPhase, StateResult
from meetbot.errors import MeetingEndReason, RecorderError
from meetbot.states.base import BaseState
from meetbot.timeouts import TimeoutExpired, run_with_timeout

logger = logging.getLogger(__name__)


class RecordingState(BaseState):
    phase = MeetingPhase.RECORDING

    CHECK_INTERVAL = 0.25
    # Continuous zero-attendee time required before leaving
    SILENCE_CONFIRMATION = 45.0
    BOT_REMOVED_CHECK_TIMEOUT = 10.0
    CLOSE_MEETING_TIMEOUT = 10.0
    CLEANER_STOP_TIMEOUT = 2.0

    async def execute(self) -> StateResult:
        recorder = self.context.recorder
        if recorder is not None:
            recorder.on("error", self._on_recorder_error)
            recorder.on("audio_warning", self._on_audio_warning)

        try:
            while True:
                reason = await self.check_end_conditions()
                if reason is not None:
                    await self.handle_meeting_end(reason)
                    return self.transition(MeetingPhase.CLEANUP)

                if self.context.is_paused:
                    logger.info("[recording] Pause requested")
                    return self.transition(MeetingPhase.PAUSED)

                await asyncio.sleep(self.CHECK_INTERVAL)
        except Exception as e:
            reason = self.classify(e)
            self.log_failure(reason, e)
            await self.handle_meeting_end(reason)
            return self.transition(MeetingPhase.CLEANUP)
        finally:
            if recorder is not None:
                recorder.off("error", self._on_recorder_error)
                recorder.off("audio_warning", self._on_audio_warning)

    # ==================== Recorder events ====================

    def _on_recorder_error(self, error) -> None:
        if not isinstance(error, BaseException):
            error = RecorderError(str(error) if error else "")
        logger.error(f"[recording] Recorder error: {error}")
        self.context.error = error
        reason = getattr(error, "reason", None) or MeetingEndReason.StreamingSetupFailed
        self.registry.set_error(reason, str(error) or None)

    def _on_audio_warning(self, warning) -> None:
        logger.warning(f"[recording] Recorder audio warning: {warning}")

    # ==================== End conditions ====================

    def _end(self, reason: MeetingEndReason) -> MeetingEndReason:
        """Classify a normal end and return the effective registry reason."""
        self.registry.set_end_reason(reason)
        return self.registry.get_end_reason() or reason

    async def check_end_conditions(self) -> Optional[MeetingEndReason]:
        now = self.now()

        existing = self.registry.get_end_reason()
        if existing is not None:
            logger.info(f"[recording] Ending with already classified reason: {existing.value}")
            return existing

        if self.recording_elapsed(now) > self.config.automatic_leave.recording_timeout:
            logger.info("[recording] Maximum recording duration reached")
            return self._end(MeetingEndReason.RecordingTimeout)

        if await self.check_bot_removed():
            if self.registry.has_error():
                return self.registry.get_end_reason()
            self.registry.set_error(MeetingEndReason.BotRemoved)
            return self.registry.get_end_reason()

        streaming = self.context.streaming
        level = streaming.get_current_sound_level() if streaming is not None else 0.0
        if level > self.config.sound_activity_threshold:
            self.context.reset_silence_latches()
            return None

        if self.check_no_attendees(now):
            logger.info("[recording] No attendees, ending")
            return self._end(MeetingEndReason.NoAttendees)

        if self.check_no_speaker(now):
            logger.info("[recording] No speaker, ending")
            return self._end(MeetingEndReason.NoSpeaker)

        return None

    def recording_elapsed(self, now: float) -> float:
        """Seconds recorded so far, pauses excluded."""
        start = self.context.start_time
        if start is None:
            return 0.0
        return now - start - self.context.total_pause_duration

    async def check_bot_removed(self) -> bool:
        page = self.context.page
        if page is None:
            return True
        try:
            return await run_with_timeout(
                self.provider.find_end_meeting(page),
                self.BOT_REMOVED_CHECK_TIMEOUT,
                "removal check",
            )
        except TimeoutExpired:
            logger.warning("[recording] Removal check timed out, treating as removed")
            return True
        except Exception as e:
            logger.warning(f"[recording] Removal check failed, assuming still in meeting: {e}")
            return False

    def check_no_attendees(self, now: float) -> bool:
        ctx = self.context

        if ctx.attendees_count > 0:
            ctx.no_attendees_since = None
            return False

        start = ctx.start_time if ctx.start_time is not None else now
        grace_elapsed = now - start > self.config.automatic_leave.noone_joined_timeout
        if not (grace_elapsed or ctx.first_user_joined):
            return False

        if ctx.no_attendees_since is None:
            ctx.no_attendees_since = now
            return False
        return now - ctx.no_attendees_since >= self.SILENCE_CONFIRMATION

    def check_no_speaker(self, now: float) -> bool:
        since = self.context.no_speaker_detected_time
        if since is None:
            return False
        return now - since > self.config.automatic_leave.silence_timeout

    # ==================== Exit ====================

    async def handle_meeting_end(self, reason: Optional[MeetingEndReason]) -> None:
        logger.info(f"[recording] Meeting ended: {reason.value if reason else 'unknown'}")

        if reason != MeetingEndReason.BotRemoved and self.context.page is not None:
            await self._restore_meeting_controls()
            try:
                await run_with_timeout(
                    self.provider.close_meeting(self.context.page),
                    self.CLOSE_MEETING_TIMEOUT,
                    "close meeting",
                )
            except Exception as e:
                logger.warning(f"[recording] Failed to close meeting: {e}")

        self.events.call_ended()

    async def _restore_meeting_controls(self) -> None:
        # The cleaner stylesheet hides the controls the leave click needs
        cleaner = self.context.html_cleaner
        if cleaner is None:
            return
        try:
            await run_with_timeout(cleaner.stop(), self.CLEANER_STOP_TIMEOUT, "stop HTML cleaner")
        except Exception as e:
            logger.warning(f"[recording] Failed to remove HTML cleaner before leaving: {e}")
