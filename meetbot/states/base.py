"""Shared behavior for lifecycle state handlers."""

import inspect
import logging
from typing import Any, Optional

from meetbot.context import MeetingPhase, SessionContext, StateResult
from meetbot.errors import BOT_WARNING_CODES, MeetingEndReason
from meetbot.session import Session

logger = logging.getLogger(__name__)


async def maybe_await(value: Any) -> Any:
    """Await ``value`` if it is awaitable; collaborators mix sync and async stops."""
    if inspect.isawaitable(value):
        return await value
    return value


class BaseState:
    """A lifecycle phase.

    ``execute`` does the phase's work and returns the next phase. Handlers
    classify their own faults; only programming errors escape to the
    controller.
    """

    phase: MeetingPhase

    def __init__(self, context: SessionContext, session: Session):
        self.context = context
        self.session = session

    @property
    def config(self):
        return self.session.config

    @property
    def registry(self):
        return self.session.registry

    @property
    def events(self):
        return self.session.events

    @property
    def provider(self):
        return self.context.provider

    def now(self) -> float:
        return self.session.clock()

    async def execute(self) -> StateResult:
        raise NotImplementedError

    def transition(self, next_phase: MeetingPhase) -> StateResult:
        return StateResult(next_phase=next_phase, context=self.context)

    def classify(self, error: BaseException, default: MeetingEndReason = MeetingEndReason.Internal) -> MeetingEndReason:
        """Record ``error`` in the registry and return the effective reason.

        A reason already in the registry wins; otherwise the error's own
        ``reason`` attribute is used, then ``default``.
        """
        self.context.error = error
        current = self.registry.get_end_reason()
        if current is not None:
            return current

        reason: Optional[MeetingEndReason] = getattr(error, "reason", None) or default
        self.registry.set_error(reason, str(error) or None)
        return self.registry.get_end_reason() or reason

    def log_failure(self, reason: MeetingEndReason, error: BaseException) -> None:
        if reason in BOT_WARNING_CODES:
            logger.warning(f"[{self.phase.value}] {reason.value}: {error}")
        else:
            logger.error(f"[{self.phase.value}] {reason.value}: {error}", exc_info=error)

    def fail(self, error: BaseException, default: MeetingEndReason = MeetingEndReason.Internal) -> StateResult:
        """Classify ``error`` and route to the Error phase."""
        reason = self.classify(error, default)
        self.log_failure(reason, error)
        return self.transition(MeetingPhase.ERROR)
