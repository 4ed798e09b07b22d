from meetbot.context import MeetingPhase, StateResult
from meetbot.states.base import BaseState


class TerminatedState(BaseState):
    """Absorbing final phase."""

    phase = MeetingPhase.TERMINATED

    async def execute(self) -> StateResult:
        return self.transition(MeetingPhase.TERMINATED)
