"""
Meeting provider capability.

A provider knows how to turn a meeting URL into a joinable page for one web
meeting platform and how to detect that the bot is no longer in the meeting.
Exactly one provider is selected per session, by ``get_provider``.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

# Polling interval used while waiting for admission
JOIN_POLL_INTERVAL = 0.5


@dataclass
class MeetingInfo:
    """Provider-specific join parameters parsed from a meeting URL."""

    meeting_id: str
    password: str = ""


class MeetingProvider(ABC):
    """Platform adapter consumed by the state handlers."""

    name = "base"

    # Role passed to ``get_meeting_link`` (0 = attendee)
    DEFAULT_ROLE = 0

    # Page navigation timeout in milliseconds
    NAVIGATION_TIMEOUT_MS = 30000

    def __init__(self, recording_mode: str = "speaker_view"):
        self.recording_mode = recording_mode
        # Display name, remembered by get_meeting_link for the join form
        self.bot_name: Optional[str] = None

    @abstractmethod
    def parse_meeting_url(self, meeting_url: str) -> MeetingInfo:
        """Parse a raw meeting URL.

        Raises:
            InvalidMeetingReference: if the URL is malformed
        """

    @abstractmethod
    def get_meeting_link(
        self,
        meeting_id: str,
        password: str,
        role: int,
        bot_name: str,
        enter_message: Optional[str] = None,
    ) -> str:
        """Build the link the browser navigates to."""

    @abstractmethod
    async def open_meeting_page(self, browser_context: Any, link: str, streaming_input: Optional[str]) -> Any:
        """Open a page on the join link and return it."""

    @abstractmethod
    async def join_meeting(
        self,
        page: Any,
        cancel_check: Callable[[], bool],
        on_join_success: Callable[[], None],
    ) -> None:
        """Block until admitted, rejected or cancelled.

        ``on_join_success`` is called exactly once, as soon as admission is
        confirmed.

        Raises:
            JoinRejectedError: if the bot was refused entry
            JoinCancelledError: if ``cancel_check`` returned True
            LoginRequiredError: if the meeting requires authentication
        """

    @abstractmethod
    async def find_end_meeting(self, page: Any) -> bool:
        """True if the bot is no longer in the meeting."""

    @abstractmethod
    async def close_meeting(self, page: Any) -> None:
        """Leave the meeting (best-effort)."""

    # ==================== Shared helpers ====================

    async def _page_has_text(self, page: Any, text: str) -> bool:
        try:
            content = await page.content()
        except Exception as e:
            logger.debug(f"Could not read page content: {e}")
            return False
        return text in content

    async def _click_first(self, page: Any, selectors: list[str]) -> bool:
        """Click the first selector that matches an element."""
        for selector in selectors:
            try:
                locator = page.locator(selector)
                if await locator.count() > 0:
                    await locator.first.click()
                    logger.info(f"Clicked {selector}")
                    return True
            except Exception as e:
                logger.debug(f"Error clicking {selector}: {e}")
        return False

    async def _sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


def get_provider(name: str, recording_mode: str = "speaker_view") -> MeetingProvider:
    """Return the provider for a configured provider name.

    Raises:
        ValueError: if the name is unknown
    """
    from meetbot.providers.meet import MeetProvider
    from meetbot.providers.teams import TeamsProvider

    providers: dict[str, type[MeetingProvider]] = {
        "meet": MeetProvider,
        "teams": TeamsProvider,
    }
    provider_cls = providers.get((name or "").strip().lower())
    if provider_cls is None:
        raise ValueError(f"Unknown meeting provider: {name}")
    return provider_cls(recording_mode=recording_mode)
