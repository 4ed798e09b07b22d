"""Tests for meetbot/providers - Meeting platform adapters."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from meetbot.errors import (
    InvalidMeetingReference,
    JoinCancelledError,
    JoinRejectedError,
    LoginRequiredError,
    MeetingEndReason,
)
from meetbot.providers import get_provider
from meetbot.providers.meet import MeetProvider
from meetbot.providers.teams import TeamsProvider


def make_page(present=(), content="", url="https://meet.google.com/abc-defg-hij"):
    """Page mock whose locators match when the selector contains one of ``present``."""
    page = MagicMock()
    page.url = url
    page.content = AsyncMock(return_value=content)
    page.is_closed.return_value = False
    page.query_selector = AsyncMock(return_value=None)

    def locator(selector):
        loc = MagicMock()
        loc.count = AsyncMock(return_value=1 if any(p in selector for p in present) else 0)
        loc.first.click = AsyncMock()
        return loc

    page.locator.side_effect = locator
    return page


# ==================== Selection ====================


class TestGetProvider:
    @pytest.mark.parametrize("name,cls", [("Meet", MeetProvider), ("meet", MeetProvider), ("Teams", TeamsProvider)])
    def test_known(self, name, cls):
        provider = get_provider(name, "gallery_view")
        assert isinstance(provider, cls)
        assert provider.recording_mode == "gallery_view"

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown meeting provider"):
            get_provider("Zoom")


# ==================== Google Meet ====================


class TestMeetUrls:
    def test_parse(self):
        info = MeetProvider().parse_meeting_url("https://meet.google.com/abc-defg-hij?authuser=0")
        assert info.meeting_id == "abc-defg-hij"
        assert info.password == ""

    @pytest.mark.parametrize("url", ["", "https://meet.google.com/", "https://example.com/abc-defg-hij"])
    def test_invalid(self, url):
        with pytest.raises(InvalidMeetingReference) as exc_info:
            MeetProvider().parse_meeting_url(url)
        assert exc_info.value.reason == MeetingEndReason.InvalidMeetingUrl

    def test_link_remembers_bot_name(self):
        provider = MeetProvider()
        link = provider.get_meeting_link("abc-defg-hij", "", provider.DEFAULT_ROLE, "Notes Bot")
        assert link == "https://meet.google.com/abc-defg-hij"
        assert provider.bot_name == "Notes Bot"


class TestMeetJoin:
    @pytest.fixture
    def provider(self):
        provider = MeetProvider()
        provider._sleep = AsyncMock()
        return provider

    @pytest.mark.asyncio
    async def test_admitted_calls_success_once(self, provider):
        page = make_page(present=("Leave call",))
        on_success = MagicMock()

        await provider.join_meeting(page, lambda: False, on_success)

        on_success.assert_called_once()

    @pytest.mark.asyncio
    async def test_rejected(self, provider):
        page = make_page(content="Someone in the call denied your request to join")
        with pytest.raises(JoinRejectedError):
            await provider.join_meeting(page, lambda: False, MagicMock())

    @pytest.mark.asyncio
    async def test_cancelled(self, provider):
        page = make_page()
        on_success = MagicMock()
        with pytest.raises(JoinCancelledError):
            await provider.join_meeting(page, lambda: True, on_success)
        on_success.assert_not_called()


class TestMeetEndDetection:
    @pytest.mark.asyncio
    async def test_in_meeting(self):
        assert await MeetProvider().find_end_meeting(make_page(present=("Leave call",))) is False

    @pytest.mark.asyncio
    async def test_removed_text(self):
        page = make_page(present=("Leave call",), content="You've been removed from the meeting")
        assert await MeetProvider().find_end_meeting(page) is True

    @pytest.mark.asyncio
    async def test_no_leave_button(self):
        assert await MeetProvider().find_end_meeting(make_page()) is True

    @pytest.mark.asyncio
    async def test_closed_page(self):
        page = make_page()
        page.is_closed.return_value = True
        assert await MeetProvider().find_end_meeting(page) is True
        assert await MeetProvider().find_end_meeting(None) is True


# ==================== Microsoft Teams ====================


class TestTeams:
    TEAMS_URL = "https://teams.microsoft.com/l/meetup-join/19%3ameeting_abc%40thread.v2/0"

    @pytest.fixture
    def provider(self):
        provider = TeamsProvider()
        provider._sleep = AsyncMock()
        return provider

    def test_parse(self, provider):
        info = provider.parse_meeting_url(self.TEAMS_URL)
        assert info.meeting_id == self.TEAMS_URL
        assert provider.get_meeting_link(info.meeting_id, "", 0, "Bot") == self.TEAMS_URL

    @pytest.mark.parametrize("url", ["https://meet.google.com/abc-defg-hij", "teams.microsoft.com/no-scheme", ""])
    def test_invalid(self, provider, url):
        with pytest.raises(InvalidMeetingReference):
            provider.parse_meeting_url(url)

    @pytest.mark.asyncio
    async def test_login_required(self, provider):
        page = make_page(url="https://login.microsoftonline.com/common/oauth2")
        with pytest.raises(LoginRequiredError) as exc_info:
            await provider.join_meeting(page, lambda: False, MagicMock())
        assert exc_info.value.reason == MeetingEndReason.LoginRequired

    @pytest.mark.asyncio
    async def test_denied(self, provider):
        page = make_page(content="Sorry, but you were denied access to the meeting.", url=self.TEAMS_URL)
        with pytest.raises(JoinRejectedError):
            await provider.join_meeting(page, lambda: False, MagicMock())

    @pytest.mark.asyncio
    async def test_admitted(self, provider):
        page = make_page(present=("raisehands-button",), url=self.TEAMS_URL)
        on_success = MagicMock()
        await provider.join_meeting(page, lambda: False, on_success)
        on_success.assert_called_once()

    @pytest.mark.asyncio
    async def test_end_detection(self, provider):
        assert await provider.find_end_meeting(make_page(present=("raisehands-button",), url=self.TEAMS_URL)) is False
        assert await provider.find_end_meeting(make_page(url=self.TEAMS_URL)) is True
