"""Tests for meetbot/daemon.py - Entry point."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from fakes import FakeProvider

from meetbot.daemon import create_argument_parser, main, run_session
from meetbot.errors import MeetingEndReason
from meetbot.machine import SessionController


class TestRunSession:
    @pytest.mark.asyncio
    async def test_success_reports_recording_succeeded(self, config, session, transport):
        controller = MagicMock()
        controller.run = AsyncMock()
        controller.was_recording_successful.return_value = True
        controller.get_end_reason.return_value = MeetingEndReason.NoAttendees

        assert await run_session(config, session=session, controller=controller) is True

        controller.run.assert_awaited_once()
        assert transport.codes == ["joining_call", "recording_succeeded"]
        assert transport.closed is True

    @pytest.mark.asyncio
    async def test_failure_reports_recording_failed(self, config, session, transport):
        controller = SessionController(session, provider=FakeProvider(join_outcome="reject"))

        assert await run_session(config, session=session, controller=controller) is False

        assert transport.codes[0] == "joining_call"
        assert transport.codes[-1] == "recording_failed"
        assert transport.payloads[-1]["data"]["error_message"] == "Denied by host"
        assert "bot_rejected" in transport.codes


class TestMain:
    def test_verbose_flag(self):
        parser = create_argument_parser()
        assert parser.parse_args(["-v"]).verbose is True
        assert parser.parse_args([]).verbose is False

    def test_missing_config_exits_1(self, monkeypatch):
        monkeypatch.delenv("MEETING_URL", raising=False)
        monkeypatch.delenv("BOT_ID", raising=False)
        monkeypatch.delenv("MEETBOT_PARAMS_FILE", raising=False)

        assert main([]) == 1

    @pytest.mark.parametrize("succeeded,code", [(True, 0), (False, 1)])
    def test_exit_code(self, monkeypatch, tmp_path, succeeded, code):
        monkeypatch.setenv("MEETING_URL", "https://meet.google.com/abc-defg-hij")
        monkeypatch.setenv("BOT_ID", "bot-9")
        monkeypatch.setenv("MEETBOT_DATA_DIR", str(tmp_path))

        with patch("meetbot.daemon.run_session", AsyncMock(return_value=succeeded)) as run:
            assert main(["-v"]) == code

        config = run.await_args.args[0]
        assert config.bot_id == "bot-9"
