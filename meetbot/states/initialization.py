"""Initialization: storage, branding and browser launch."""

import asyncio
import logging
from pathlib import Path
from typing import Optional

from meetbot.context import MeetingPhase, StateResult
from meetbot.errors import BrowserSetupError, InvalidMeetingReference
from meetbot.states.base import BaseState
from meetbot.timeouts import run_with_timeout

logger = logging.getLogger(__name__)


class InitializationState(BaseState):
    phase = MeetingPhase.INITIALIZATION

    MAX_BROWSER_ATTEMPTS = 3
    # Backoff between attempts is attempt * BROWSER_RETRY_DELAY
    BROWSER_RETRY_DELAY = 5.0
    BROWSER_ATTEMPT_TIMEOUT = 60.0

    async def execute(self) -> StateResult:
        try:
            if not (self.config.meeting_url or "").strip():
                raise InvalidMeetingReference("Meeting URL is missing")

            self.session.paths.initialize_paths()

            branding_video = await self._setup_branding()
            await self._setup_browser(branding_video)

            return self.transition(MeetingPhase.WAITING_ROOM)
        except Exception as e:
            return self.fail(e)

    async def _setup_branding(self) -> Optional[Path]:
        """Generate the branding video. Failure only disables branding."""
        if not self.config.custom_branding_bot_path:
            return None
        try:
            handle = await self.session.generate_branding()
            if handle is None:
                return None
            self.context.branding = handle
            await handle.wait()
            logger.info("[initialization] Branding generated")
            return handle.output_path
        except Exception as e:
            logger.warning(f"[initialization] Branding failed, continuing without it: {e}")
            return None

    async def _setup_browser(self, branding_video: Optional[Path]) -> None:
        """Open the browser, retrying with linear backoff.

        Raises:
            BrowserSetupError: if every attempt failed
        """
        last_error: Optional[BaseException] = None

        for attempt in range(1, self.MAX_BROWSER_ATTEMPTS + 1):
            try:
                logger.info(f"[initialization] Browser setup attempt {attempt}/{self.MAX_BROWSER_ATTEMPTS}")
                browser = await run_with_timeout(
                    self.session.open_browser(branding_video),
                    self.BROWSER_ATTEMPT_TIMEOUT,
                    "browser setup",
                )
                self.context.browser = browser
                self.context.browser_context = browser.context
                logger.info("[initialization] Browser ready")
                return
            except Exception as e:
                last_error = e
                logger.warning(f"[initialization] Browser setup attempt {attempt} failed: {e}")
                if attempt < self.MAX_BROWSER_ATTEMPTS:
                    await asyncio.sleep(attempt * self.BROWSER_RETRY_DELAY)

        raise BrowserSetupError(
            f"Browser setup failed after {self.MAX_BROWSER_ATTEMPTS} attempts: {last_error}",
            attempts=self.MAX_BROWSER_ATTEMPTS,
            last_error=last_error,
        )
