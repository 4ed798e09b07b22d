"""Lifecycle state handlers, one per MeetingPhase."""

from meetbot.context import MeetingPhase, SessionContext
from meetbot.session import Session
from meetbot.states.base import BaseState
from meetbot.states.cleanup import CleanupState
from meetbot.states.error import ErrorState
from meetbot.states.in_call import InCallState
from meetbot.states.initialization import InitializationState
from meetbot.states.paused import PausedState
from meetbot.states.recording import RecordingState
from meetbot.states.resuming import ResumingState
from meetbot.states.terminated import TerminatedState
from meetbot.states.waiting_room import WaitingRoomState

STATE_HANDLERS: dict[MeetingPhase, type[BaseState]] = {
    MeetingPhase.INITIALIZATION: InitializationState,
    MeetingPhase.WAITING_ROOM: WaitingRoomState,
    MeetingPhase.IN_CALL: InCallState,
    MeetingPhase.RECORDING: RecordingState,
    MeetingPhase.PAUSED: PausedState,
    MeetingPhase.RESUMING: ResumingState,
    MeetingPhase.ERROR: ErrorState,
    MeetingPhase.CLEANUP: CleanupState,
    MeetingPhase.TERMINATED: TerminatedState,
}


def get_state_instance(phase: MeetingPhase, context: SessionContext, session: Session) -> BaseState:
    return STATE_HANDLERS[phase](context, session)


__all__ = [
    "BaseState",
    "CleanupState",
    "ErrorState",
    "InCallState",
    "InitializationState",
    "PausedState",
    "RecordingState",
    "ResumingState",
    "STATE_HANDLERS",
    "TerminatedState",
    "WaitingRoomState",
    "get_state_instance",
]
