"""Tests for meetbot/config.py - Session configuration."""

import json
from pathlib import Path

import pytest

from meetbot.config import (
    MEET_PROVIDER,
    TEAMS_PROVIDER,
    AutomaticLeaveConfig,
    SessionConfig,
    detect_meeting_provider,
    load_config,
)
from meetbot.errors import ConfigError

BASE_ENV = {
    "MEETING_URL": "https://meet.google.com/abc-defg-hij",
    "BOT_ID": "bot-42",
}


class TestDefaults:
    def test_automatic_leave_defaults(self):
        leave = AutomaticLeaveConfig()
        assert leave.waiting_room_timeout == 600
        assert leave.noone_joined_timeout == 600
        assert leave.silence_timeout == 900
        assert leave.recording_timeout == 14400

    def test_session_defaults(self):
        config = SessionConfig(meeting_url="u", bot_id="b")
        assert config.cleanup_step_timeout == 3.0
        assert config.resume_timeout == 20.0
        assert config.sound_activity_threshold == 5
        assert config.streaming.audio_frequency == 24000
        assert config.webhook.url is None

    def test_recordings_dir(self, tmp_path):
        config = SessionConfig(meeting_url="u", bot_id="b", data_dir=tmp_path)
        assert config.recordings_dir == tmp_path / "b" / "recordings"


class TestProviderDetection:
    @pytest.mark.parametrize(
        "url,expected",
        [
            ("https://meet.google.com/abc-defg-hij", MEET_PROVIDER),
            ("https://teams.microsoft.com/l/meetup-join/19%3ameeting", TEAMS_PROVIDER),
            ("https://teams.live.com/meet/123", TEAMS_PROVIDER),
            ("", MEET_PROVIDER),
        ],
    )
    def test_detect(self, url, expected):
        assert detect_meeting_provider(url) == expected


class TestLoadConfig:
    def test_required_values(self):
        config = load_config(BASE_ENV)
        assert config.meeting_url == BASE_ENV["MEETING_URL"]
        assert config.bot_id == "bot-42"
        assert config.meeting_provider == MEET_PROVIDER

    @pytest.mark.parametrize("missing", ["MEETING_URL", "BOT_ID"])
    def test_missing_required(self, missing):
        env = {k: v for k, v in BASE_ENV.items() if k != missing}
        with pytest.raises(ConfigError, match=missing):
            load_config(env)

    def test_timeouts_from_env(self):
        env = {
            **BASE_ENV,
            "WAITING_ROOM_TIMEOUT": "30",
            "SILENCE_TIMEOUT": "120.5",
            "CLEANUP_STEP_TIMEOUT": "1",
            "SOUND_ACTIVITY_THRESHOLD": "12",
        }
        config = load_config(env)
        assert config.automatic_leave.waiting_room_timeout == 30
        assert config.automatic_leave.silence_timeout == 120.5
        assert config.cleanup_step_timeout == 1
        assert config.sound_activity_threshold == 12

    def test_invalid_number_names_variable(self):
        with pytest.raises(ConfigError, match="RECORDING_TIMEOUT"):
            load_config({**BASE_ENV, "RECORDING_TIMEOUT": "four hours"})

    def test_webhook_and_streaming(self):
        env = {
            **BASE_ENV,
            "BOTS_WEBHOOK_URL": "https://hooks.example.test",
            "BOTS_API_KEY": "k",
            "STREAMING_INPUT": "wss://in",
            "STREAMING_AUDIO_FREQUENCY": "16000",
        }
        config = load_config(env)
        assert config.webhook.url == "https://hooks.example.test"
        assert config.webhook.api_key == "k"
        assert config.streaming.input_url == "wss://in"
        assert config.streaming.audio_frequency == 16000

    def test_booleans_and_paths(self, tmp_path):
        env = {**BASE_ENV, "DEBUG_LOGS": "true", "HEADLESS": "0", "MEETBOT_DATA_DIR": str(tmp_path)}
        config = load_config(env)
        assert config.debug_logs is True
        assert config.headless is False
        assert config.data_dir == Path(tmp_path)

    def test_explicit_provider_wins(self):
        config = load_config({**BASE_ENV, "MEETING_PROVIDER": "Teams"})
        assert config.meeting_provider == "Teams"

    def test_teams_url_detected(self):
        config = load_config({**BASE_ENV, "MEETING_URL": "https://teams.microsoft.com/l/meetup-join/x"})
        assert config.meeting_provider == TEAMS_PROVIDER


class TestParamsFile:
    def test_file_supplies_values(self, tmp_path):
        params = tmp_path / "params.json"
        params.write_text(
            json.dumps(
                {
                    "meeting_url": "https://meet.google.com/xyz-abcd-efg",
                    "bot_id": "from-file",
                    "bot_name": "Notes",
                    "automatic_leave": {"silence_timeout": 60},
                }
            )
        )
        config = load_config({"MEETBOT_PARAMS_FILE": str(params)})
        assert config.bot_id == "from-file"
        assert config.bot_name == "Notes"
        assert config.automatic_leave.silence_timeout == 60

    def test_env_wins_over_file(self, tmp_path):
        params = tmp_path / "params.json"
        params.write_text(json.dumps({"meeting_url": "https://meet.google.com/xyz-abcd-efg", "bot_id": "file"}))
        config = load_config({"MEETBOT_PARAMS_FILE": str(params), "BOT_ID": "env"})
        assert config.bot_id == "env"

    def test_unreadable_file(self, tmp_path):
        with pytest.raises(ConfigError, match="Cannot read params file"):
            load_config({**BASE_ENV, "MEETBOT_PARAMS_FILE": str(tmp_path / "missing.json")})

    def test_non_object_file(self, tmp_path):
        params = tmp_path / "params.json"
        params.write_text("[1, 2]")
        with pytest.raises(ConfigError, match="JSON object"):
            load_config({**BASE_ENV, "MEETBOT_PARAMS_FILE": str(params)})
