"""Microsoft Teams provider."""

import logging
from typing import Any, Callable, Optional
from urllib.parse import urlparse

from meetbot.errors import (
    InvalidMeetingReference,
    JoinCancelledError,
    JoinRejectedError,
    LoginRequiredError,
)
from meetbot.providers.base import JOIN_POLL_INTERVAL, MeetingInfo, MeetingProvider

logger = logging.getLogger(__name__)

TEAMS_HOSTS = ("teams.microsoft.com", "teams.live.com")


class TeamsProvider(MeetingProvider):
    """Joins and monitors a Microsoft Teams meeting."""

    name = "Teams"

    # Retries when Teams serves its light interface
    LIGHT_INTERFACE_RETRIES = 3
    LIGHT_INTERFACE_RETRY_DELAY = 0.5

    SELECTORS = {
        "name_input": 'input[placeholder="Type your name"]',
        "raise_hand": 'button#raisehands-button:has-text("Raise")',
    }

    PRE_JOIN_BUTTONS = ["Continue on this browser", "Continue without audio or video"]

    DENIED_TEXTS = ["Sorry, but you were denied access to the meeting."]

    def parse_meeting_url(self, meeting_url: str) -> MeetingInfo:
        parsed = urlparse((meeting_url or "").strip())
        if parsed.scheme not in ("http", "https") or parsed.hostname not in TEAMS_HOSTS:
            raise InvalidMeetingReference(f"Invalid Teams URL: {meeting_url}")
        # The join URL itself is the meeting identifier
        return MeetingInfo(meeting_id=meeting_url.strip())

    def get_meeting_link(
        self,
        meeting_id: str,
        password: str,
        role: int,
        bot_name: str,
        enter_message: Optional[str] = None,
    ) -> str:
        self.bot_name = bot_name
        return meeting_id

    async def open_meeting_page(self, browser_context: Any, link: str, streaming_input: Optional[str]) -> Any:
        origin = "{0.scheme}://{0.netloc}".format(urlparse(link))
        permissions = ["microphone", "camera"] if streaming_input else ["camera"]
        await browser_context.grant_permissions(permissions, origin=origin)

        for attempt in range(self.LIGHT_INTERFACE_RETRIES + 1):
            page = await browser_context.new_page()
            page.set_default_timeout(self.NAVIGATION_TIMEOUT_MS)
            await page.goto(link, wait_until="domcontentloaded", timeout=15000)

            if "light" not in page.url:
                return page
            if attempt == self.LIGHT_INTERFACE_RETRIES:
                logger.warning("Light interface persists after 3 retries, continuing anyway")
                return page

            logger.info(f"Light interface detected, retry {attempt + 1}/{self.LIGHT_INTERFACE_RETRIES}")
            await page.close()
            await self._sleep(self.LIGHT_INTERFACE_RETRY_DELAY)

    def _is_login_page(self, page: Any) -> bool:
        return "login.microsoft" in (page.url or "")

    async def _is_in_meeting(self, page: Any) -> bool:
        try:
            return await page.locator(self.SELECTORS["raise_hand"]).count() > 0
        except Exception as e:
            logger.debug(f"In-meeting check failed: {e}")
            return False

    async def _fill_bot_name(self, page: Any) -> None:
        if not self.bot_name:
            return
        try:
            name_input = await page.query_selector(self.SELECTORS["name_input"])
            if name_input:
                await name_input.fill(self.bot_name)
        except Exception as e:
            logger.warning(f"Could not enter bot name: {e}")

    async def join_meeting(
        self,
        page: Any,
        cancel_check: Callable[[], bool],
        on_join_success: Callable[[], None],
    ) -> None:
        logger.info("[JOIN] Starting Teams join")
        joined_clicked = False

        while True:
            if cancel_check():
                raise JoinCancelledError("API request to stop Teams recording")

            if self._is_login_page(page):
                raise LoginRequiredError("Teams meeting requires login")

            for text in self.DENIED_TEXTS:
                if await self._page_has_text(page, text):
                    raise JoinRejectedError("Bot not accepted into Teams meeting")

            if await self._is_in_meeting(page):
                logger.info("Successfully confirmed we are in the meeting")
                on_join_success()
                break

            if not joined_clicked:
                await self._click_first(page, [f'button:has-text("{t}")' for t in self.PRE_JOIN_BUTTONS])
                await self._fill_bot_name(page)
                joined_clicked = await self._click_first(page, ['button:has-text("Join now")'])

            await self._sleep(JOIN_POLL_INTERVAL)

        if self.recording_mode != "gallery_view":
            try:
                if await self._click_first(page, ['button:has-text("View")']):
                    await self._click_first(page, ['div:has-text("Speaker")'])
            except Exception as e:
                logger.error(f"Error handling speaker view: {e}")

    async def find_end_meeting(self, page: Any) -> bool:
        if page is None or page.is_closed():
            return True
        if self._is_login_page(page):
            return True
        if not await self._is_in_meeting(page):
            logger.info("No raise button found, bot removed from the meeting")
            return True
        return False

    async def close_meeting(self, page: Any) -> None:
        logger.info("Attempting to leave the meeting")
        try:
            if await self._click_first(page, ['button:has-text("Leave")']):
                return
            leave = page.get_by_role("button", name="Leave")
            if await leave.count() > 0:
                await leave.click()
                return
            logger.warning("Could not find leave button")
        except Exception as e:
            logger.error(f"Error while trying to leave meeting: {e}")
