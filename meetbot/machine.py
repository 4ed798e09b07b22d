"""
Session Controller.

Drives the lifecycle state handlers until the session reaches Terminated:

    Initialization -> WaitingRoom -> InCall -> Recording <-> Paused/Resuming
                                                  |
    (any failure) -> Error -------------------> Cleanup -> Terminated

Exceptions escaping a handler are caught once here, recorded as ``Internal``
and routed to Error, so ``run()`` always returns.

Usage:
    controller = SessionController(Session(load_config()))
    await controller.run()
    if controller.was_recording_successful():
        ...
"""

import logging
from typing import Optional

from meetbot.context import MeetingPhase, ParticipantState, SessionContext
from meetbot.errors import (
    NORMAL_END_REASONS,
    InvalidTransitionError,
    MeetBotError,
    MeetingEndReason,
    SessionFailedError,
)
from meetbot.providers import MeetingProvider, get_provider
from meetbot.session import Session
from meetbot.states import get_state_instance

logger = logging.getLogger(__name__)


class SessionController:
    """Owns one session's lifecycle from Initialization to Terminated."""

    # Upper bound on handler executions outside the recording cycle
    MAX_TRANSITIONS = 1000

    # Recording, pausing and resuming may alternate for the whole meeting
    UNCOUNTED_PHASES = frozenset({MeetingPhase.RECORDING, MeetingPhase.PAUSED, MeetingPhase.RESUMING})

    # A stop request cannot rewrite the outcome once teardown has started
    STOP_IGNORED_PHASES = frozenset({MeetingPhase.ERROR, MeetingPhase.CLEANUP, MeetingPhase.TERMINATED})

    def __init__(self, session: Session, provider: Optional[MeetingProvider] = None):
        self.session = session
        config = session.config
        if provider is None:
            provider = get_provider(config.meeting_provider, config.recording_mode)
        self.context = SessionContext(provider=provider)
        self.current_phase = MeetingPhase.INITIALIZATION
        self.transitions = 0
        self.history: list[MeetingPhase] = []

    @property
    def registry(self):
        return self.session.registry

    # ==================== Main loop ====================

    async def run(self) -> None:
        """Execute handlers until Terminated. Never raises for handler faults."""
        while self.current_phase != MeetingPhase.TERMINATED:
            if self.transitions >= self.MAX_TRANSITIONS:
                await self._force_termination()
                break
            await self._step()
        logger.info(f"Session terminated after {self.transitions} transitions")

    async def _step(self) -> None:
        phase = self.current_phase
        logger.info(f"Current state: {phase.value}")
        self.history.append(phase)
        if phase not in self.UNCOUNTED_PHASES:
            self.transitions += 1

        try:
            state = get_state_instance(phase, self.context, self.session)
            result = await state.execute()
            self.current_phase = result.next_phase
            self.context = result.context
        except Exception as e:
            self._handle_error(phase, e)

    def _handle_error(self, phase: MeetingPhase, error: Exception) -> None:
        logger.error(f"Unhandled error in {phase.value}: {error}", exc_info=True)
        self.context.error = error
        self.registry.set_error(MeetingEndReason.Internal, str(error) or None)

        # Error and Cleanup must still make progress toward Terminated
        if phase == MeetingPhase.ERROR:
            self.current_phase = MeetingPhase.CLEANUP
        elif phase == MeetingPhase.CLEANUP:
            self.current_phase = MeetingPhase.TERMINATED
        else:
            self.current_phase = MeetingPhase.ERROR

    async def _force_termination(self) -> None:
        logger.error(f"Transition limit ({self.MAX_TRANSITIONS}) reached in {self.current_phase.value}, forcing cleanup")
        self.registry.set_error(MeetingEndReason.Internal, "State machine transition limit reached")
        if self.current_phase != MeetingPhase.CLEANUP:
            try:
                state = get_state_instance(MeetingPhase.CLEANUP, self.context, self.session)
                await state.execute()
            except Exception as e:
                logger.error(f"Forced cleanup failed: {e}")
        self.current_phase = MeetingPhase.TERMINATED

    async def start_record_meeting(self) -> None:
        """Run the session and raise if it ended in failure.

        Raises:
            SessionFailedError: carrying the classified reason and message
        """
        await self.run()
        error = self.get_error()
        if error is not None:
            logger.error(f"Error in start_record_meeting: {error}")
            raise SessionFailedError(str(error), reason=self.get_end_reason())

    # ==================== External control ====================

    def request_stop(self, reason: MeetingEndReason = MeetingEndReason.ApiRequest) -> None:
        """Ask the session to end; the running phase notices on its next tick."""
        if self.current_phase in self.STOP_IGNORED_PHASES or self.registry.has_error():
            logger.info(f"Ignoring stop request ({reason.value}): session already ending in {self.current_phase.value}")
            return
        logger.info(f"Stop requested with reason: {reason.value}")
        self.registry.set_end_reason(reason)

    def stop_meeting(self, reason: MeetingEndReason = MeetingEndReason.ApiRequest) -> None:
        logger.info(f"Stop meeting requested with reason: {reason.value}")
        self.request_stop(reason)

    def pause_recording(self) -> None:
        """Request a pause.

        Raises:
            InvalidTransitionError: if the session is not recording
        """
        if self.current_phase != MeetingPhase.RECORDING:
            raise InvalidTransitionError("Cannot pause: meeting is not in recording state")
        logger.info("Pause requested")
        self.context.is_paused = True

    def resume_recording(self) -> None:
        """Request a resume.

        Raises:
            InvalidTransitionError: if the session is not paused
        """
        if self.current_phase != MeetingPhase.PAUSED:
            raise InvalidTransitionError("Cannot resume: meeting is not paused")
        logger.info("Resume requested")
        self.context.resume_requested = True

    def update_participant_state(self, state: ParticipantState) -> None:
        """Overwrite participant signals; ignored outside Recording."""
        if self.current_phase != MeetingPhase.RECORDING:
            return
        ctx = self.context
        ctx.attendees_count = state.attendees_count
        if state.first_user_joined:
            ctx.first_user_joined = True
        ctx.last_speaker_time = state.last_speaker_time
        ctx.no_speaker_detected_time = state.no_speaker_detected_time

    # ==================== Queries ====================

    def is_paused(self) -> bool:
        return self.current_phase == MeetingPhase.PAUSED

    def get_pause_duration(self) -> float:
        return self.context.total_pause_duration

    def get_current_phase(self) -> MeetingPhase:
        return self.current_phase

    def get_error(self) -> Optional[MeetBotError]:
        if not self.registry.has_error():
            return None
        return MeetBotError(self.registry.get_error_message() or "Unknown error", reason=self.registry.get_end_reason())

    def get_start_time(self) -> float:
        return self.context.start_time or 0.0

    def get_end_reason(self) -> Optional[MeetingEndReason]:
        return self.registry.get_end_reason()

    def get_context(self) -> SessionContext:
        return self.context

    def was_recording_successful(self) -> bool:
        reason = self.registry.get_end_reason()
        if reason is None or self.registry.has_error():
            return False
        return reason in NORMAL_END_REASONS
