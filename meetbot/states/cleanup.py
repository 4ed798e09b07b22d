"""
Cleanup: bounded, best-effort teardown.

Order:
1. stop the dialog observer
2. stop the recorder, alone
3. capture a final DOM snapshot (not awaited)
4. stop streaming, speakers observer, HTML cleaner and video fixing
   concurrently, each under its own step timeout
5. stop branding, close the page and the browser

The whole sequence runs under ``cleanup_timeout``. Cleanup always ends in
Terminated.
"""

import logging
from typing import Any, Callable

from meetbot.context import MeetingPhase, StateResult
from meetbot.states.base import BaseState, maybe_await
from meetbot.timeouts import TimeoutExpired, gather_settled, run_with_timeout

logger = logging.getLogger(__name__)


class CleanupState(BaseState):
    phase = MeetingPhase.CLEANUP

    async def execute(self) -> StateResult:
        try:
            await run_with_timeout(self.cleanup_resources(), self.config.cleanup_timeout, "cleanup")
            logger.info("[cleanup] Cleanup completed")
        except TimeoutExpired:
            logger.error(f"[cleanup] Cleanup timed out after {self.config.cleanup_timeout:g}s, terminating anyway")
        except Exception as e:
            logger.error(f"[cleanup] Cleanup failed, terminating anyway: {e}", exc_info=True)
        return self.transition(MeetingPhase.TERMINATED)

    async def cleanup_resources(self) -> None:
        ctx = self.context

        # 1. Dialog observer
        if ctx.dialog_observer is not None:
            try:
                ctx.dialog_observer.stop()
            except Exception as e:
                logger.warning(f"[cleanup] Failed to stop dialog observer: {e}")
            ctx.dialog_observer = None

        # 2. Recorder, before anything else touches the page or audio
        await self._stop_recorder()

        # 3. Final snapshot
        self.session.snapshot_in_background(ctx.page, "cleanup_final")

        # 4. Independent services
        await gather_settled(
            self._stop_step("streaming", "streaming", lambda s: s.stop()),
            self._stop_step("speakers observer", "speakers_observer", lambda o: o.stop_observing()),
            self._stop_step("HTML cleaner", "html_cleaner", lambda c: c.stop()),
            self._stop_step("video fixing observer", "video_fixing_observer", lambda o: o.stop_observing()),
        )

        # 5. Branding and browser
        await self._close_browser_resources()

    async def _stop_recorder(self) -> None:
        recorder = self.context.recorder
        if recorder is None:
            return
        try:
            logger.info("[cleanup] Stopping recorder")
            await recorder.stop_recording()
            logger.info("[cleanup] Recorder stopped")
        except Exception as e:
            logger.error(f"[cleanup] Failed to stop recorder: {e}")

    async def _stop_step(self, name: str, attr: str, stop: Callable[[Any], Any]) -> None:
        """Stop one service under the step timeout; the handle is cleared either way."""
        handle = getattr(self.context, attr)
        if handle is None:
            return
        try:
            await run_with_timeout(maybe_await(stop(handle)), self.config.cleanup_step_timeout, f"stop {name}")
            logger.info(f"[cleanup] Stopped {name}")
        except TimeoutExpired:
            logger.warning(f"[cleanup] Stopping {name} timed out, forcing it cleared")
        except Exception as e:
            logger.warning(f"[cleanup] Failed to stop {name}: {e}")
        finally:
            setattr(self.context, attr, None)

    async def _close_browser_resources(self) -> None:
        ctx = self.context
        step_timeout = self.config.cleanup_step_timeout

        if ctx.branding is not None:
            try:
                ctx.branding.kill()
            except Exception as e:
                logger.warning(f"[cleanup] Failed to stop branding: {e}")
            ctx.branding = None

        if ctx.page is not None:
            try:
                await run_with_timeout(ctx.page.close(), step_timeout, "close page")
            except Exception as e:
                logger.warning(f"[cleanup] Failed to close page: {e}")
            ctx.page = None

        try:
            if ctx.browser is not None:
                await run_with_timeout(ctx.browser.close(), step_timeout * 5, "close browser")
            elif ctx.browser_context is not None:
                await run_with_timeout(ctx.browser_context.close(), step_timeout, "close browser context")
        except Exception as e:
            logger.warning(f"[cleanup] Failed to close browser: {e}")
        ctx.browser = None
        ctx.browser_context = None
