"""Google Meet provider."""

import logging
import re
from typing import Any, Callable, Optional

from meetbot.errors import InvalidMeetingReference, JoinCancelledError, JoinRejectedError
from meetbot.providers.base import JOIN_POLL_INTERVAL, MeetingInfo, MeetingProvider

logger = logging.getLogger(__name__)

MEET_URL_PATTERN = re.compile(r"meet\.google\.com/([a-z]{3}-[a-z]{4}-[a-z]{3})")


class MeetProvider(MeetingProvider):
    """Joins and monitors a Google Meet meeting."""

    name = "Meet"

    # CSS selectors for Google Meet elements (may need updates as Meet UI changes)
    SELECTORS = {
        "name_input": 'input[aria-label="Your name"], input[placeholder*="name"]',
        "got_it_button": 'button:has-text("Got it")',
        "leave_button": '[aria-label*="Leave call"], [data-tooltip*="Leave"]',
        "mic_off": '[aria-label*="Turn off microphone"]',
        "camera_off": '[aria-label*="Turn off camera"]',
    }

    JOIN_BUTTON_TEXTS = ["Ask to join", "Join now", "Join anyway", "Switch here"]

    REJECTED_TEXTS = [
        "You can't join this call",
        "Someone in the call denied your request",
        "No one responded to your request to join",
    ]

    ENDED_TEXTS = [
        "You've been removed from the meeting",
        "You left the meeting",
        "The call ended because everyone left",
        "Return to home screen",
    ]

    def parse_meeting_url(self, meeting_url: str) -> MeetingInfo:
        match = MEET_URL_PATTERN.search(meeting_url or "")
        if not match:
            raise InvalidMeetingReference(f"Invalid Meet URL format: {meeting_url}")
        return MeetingInfo(meeting_id=match.group(1))

    def get_meeting_link(
        self,
        meeting_id: str,
        password: str,
        role: int,
        bot_name: str,
        enter_message: Optional[str] = None,
    ) -> str:
        self.bot_name = bot_name
        return f"https://meet.google.com/{meeting_id}"

    async def open_meeting_page(self, browser_context: Any, link: str, streaming_input: Optional[str]) -> Any:
        permissions = ["microphone", "camera"] if streaming_input else ["camera"]
        await browser_context.grant_permissions(permissions, origin="https://meet.google.com")

        page = await browser_context.new_page()
        page.set_default_timeout(self.NAVIGATION_TIMEOUT_MS)
        logger.info(f"Navigating to {link}")
        await page.goto(link, wait_until="domcontentloaded", timeout=self.NAVIGATION_TIMEOUT_MS)
        return page

    async def _prepare_join(self, page: Any, bot_name: Optional[str]) -> None:
        """Dismiss onboarding dialogs, set the display name and mute devices."""
        await self._click_first(page, [self.SELECTORS["got_it_button"]])

        if bot_name:
            try:
                name_input = await page.query_selector(self.SELECTORS["name_input"])
                if name_input:
                    await name_input.fill(bot_name)
                    logger.info(f"Entered bot name: {bot_name}")
            except Exception as e:
                logger.warning(f"Could not enter bot name: {e}")

        await self._click_first(page, [self.SELECTORS["mic_off"], self.SELECTORS["camera_off"]])

    async def _click_join_button(self, page: Any) -> bool:
        selectors = []
        for text in self.JOIN_BUTTON_TEXTS:
            selectors.append(f'button:has-text("{text}")')
            selectors.append(f'div[role="button"]:has-text("{text}")')
        return await self._click_first(page, selectors)

    async def _is_in_meeting(self, page: Any) -> bool:
        try:
            return await page.locator(self.SELECTORS["leave_button"]).count() > 0
        except Exception as e:
            logger.debug(f"In-meeting check failed: {e}")
            return False

    async def join_meeting(
        self,
        page: Any,
        cancel_check: Callable[[], bool],
        on_join_success: Callable[[], None],
    ) -> None:
        logger.info("[JOIN] Starting Meet join")
        await self._prepare_join(page, self.bot_name)

        clicked = await self._click_join_button(page)
        if not clicked:
            logger.warning("[JOIN] Join button not found, waiting for the page")

        while True:
            if cancel_check():
                raise JoinCancelledError("Join cancelled while waiting for admission")

            for text in self.REJECTED_TEXTS:
                if await self._page_has_text(page, text):
                    raise JoinRejectedError(f"Bot not accepted: {text}")

            if await self._is_in_meeting(page):
                logger.info("[JOIN] Admitted to the meeting")
                on_join_success()
                return

            if not clicked:
                clicked = await self._click_join_button(page)

            await self._sleep(JOIN_POLL_INTERVAL)

    async def find_end_meeting(self, page: Any) -> bool:
        if page is None or page.is_closed():
            return True

        for text in self.ENDED_TEXTS:
            if await self._page_has_text(page, text):
                logger.info(f"Meeting ended: {text}")
                return True

        if not await self._is_in_meeting(page):
            logger.info("No leave button found, bot removed from the meeting")
            return True
        return False

    async def close_meeting(self, page: Any) -> None:
        logger.info("Attempting to leave the meeting")
        try:
            if not await self._click_first(page, [self.SELECTORS["leave_button"]]):
                logger.warning("Could not find leave button")
        except Exception as e:
            logger.error(f"Error while trying to leave meeting: {e}")
