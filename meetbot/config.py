"""
Meet Bot Configuration.

Centralizes all configuration for one bot session:
- Meeting parameters (URL, bot identity, provider)
- Automatic leave timeouts
- Streaming and webhook settings
- Teardown and setup bounds

Values come from environment variables. A JSON params file named by
``MEETBOT_PARAMS_FILE`` may supply the same keys (lower-case field names);
environment variables win over the file.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

from meetbot.errors import ConfigError

logger = logging.getLogger(__name__)

MEET_PROVIDER = "Meet"
TEAMS_PROVIDER = "Teams"


def detect_meeting_provider(meeting_url: str) -> str:
    """Return the provider name for a meeting URL (defaults to Meet)."""
    url = (meeting_url or "").lower()
    if "teams.microsoft.com" in url or "teams.live.com" in url:
        return TEAMS_PROVIDER
    return MEET_PROVIDER


@dataclass
class AutomaticLeaveConfig:
    """Conditions under which the bot leaves on its own (all in seconds)."""

    # Maximum time in the waiting room before giving up
    waiting_room_timeout: float = 600

    # Grace period after recording starts before "no attendees" is considered
    noone_joined_timeout: float = 600

    # Continuous silence before leaving with NoSpeaker
    silence_timeout: float = 900

    # Hard ceiling on recording duration
    recording_timeout: float = 4 * 60 * 60


@dataclass
class StreamingConfig:
    """Audio streaming configuration."""

    # Input/output endpoints for live audio streaming (optional)
    input_url: Optional[str] = None
    output_url: Optional[str] = None

    # Sample rate for streamed audio
    audio_frequency: int = 24000

    # PulseAudio source captured for sound-level telemetry
    audio_source: str = "default"


@dataclass
class WebhookConfig:
    """Lifecycle event delivery configuration."""

    url: Optional[str] = None
    api_key: Optional[str] = None
    request_timeout: float = 10.0
    max_queue: int = 100


@dataclass
class SessionConfig:
    """Main configuration for one bot session."""

    meeting_url: str
    bot_id: str
    meeting_provider: str = MEET_PROVIDER

    bot_name: str = "Recorder Bot"
    enter_message: Optional[str] = None
    custom_branding_bot_path: Optional[str] = None
    recording_mode: str = "speaker_view"

    automatic_leave: AutomaticLeaveConfig = field(default_factory=AutomaticLeaveConfig)
    streaming: StreamingConfig = field(default_factory=StreamingConfig)
    webhook: WebhookConfig = field(default_factory=WebhookConfig)

    # Sound level (0-100) above which the meeting counts as active
    sound_activity_threshold: float = 5

    # Teardown bounds
    cleanup_step_timeout: float = 3.0
    cleanup_timeout: float = 60.0

    # Setup bounds
    setup_timeout: float = 30.0
    resume_timeout: float = 20.0

    # Browser
    chrome_path: str = "/usr/bin/google-chrome"
    headless: bool = False
    display: Optional[str] = None

    # Data directories
    data_dir: Path = Path.home() / ".local/share/meetbot"

    debug_logs: bool = False

    @property
    def recordings_dir(self) -> Path:
        return self.data_dir / self.bot_id / "recordings"


# env var -> (section, field, type). Section None means top level.
_ENV_FIELDS: dict[str, tuple[Optional[str], str, type]] = {
    "MEETING_URL": (None, "meeting_url", str),
    "BOT_ID": (None, "bot_id", str),
    "MEETING_PROVIDER": (None, "meeting_provider", str),
    "BOT_NAME": (None, "bot_name", str),
    "ENTER_MESSAGE": (None, "enter_message", str),
    "CUSTOM_BRANDING_PATH": (None, "custom_branding_bot_path", str),
    "RECORDING_MODE": (None, "recording_mode", str),
    "WAITING_ROOM_TIMEOUT": ("automatic_leave", "waiting_room_timeout", float),
    "NOONE_JOINED_TIMEOUT": ("automatic_leave", "noone_joined_timeout", float),
    "SILENCE_TIMEOUT": ("automatic_leave", "silence_timeout", float),
    "RECORDING_TIMEOUT": ("automatic_leave", "recording_timeout", float),
    "SOUND_ACTIVITY_THRESHOLD": (None, "sound_activity_threshold", float),
    "CLEANUP_STEP_TIMEOUT": (None, "cleanup_step_timeout", float),
    "CLEANUP_TIMEOUT": (None, "cleanup_timeout", float),
    "SETUP_TIMEOUT": (None, "setup_timeout", float),
    "RESUME_TIMEOUT": (None, "resume_timeout", float),
    "STREAMING_INPUT": ("streaming", "input_url", str),
    "STREAMING_OUTPUT": ("streaming", "output_url", str),
    "STREAMING_AUDIO_FREQUENCY": ("streaming", "audio_frequency", int),
    "STREAMING_AUDIO_SOURCE": ("streaming", "audio_source", str),
    "BOTS_WEBHOOK_URL": ("webhook", "url", str),
    "BOTS_API_KEY": ("webhook", "api_key", str),
    "CHROME_PATH": (None, "chrome_path", str),
    "HEADLESS": (None, "headless", bool),
    "DISPLAY": (None, "display", str),
    "MEETBOT_DATA_DIR": (None, "data_dir", Path),
    "DEBUG_LOGS": (None, "debug_logs", bool),
}


def _coerce(name: str, raw: Any, kind: type) -> Any:
    if kind is bool:
        if isinstance(raw, bool):
            return raw
        return str(raw).strip().lower() in ("1", "true", "yes", "on")
    if kind is Path:
        return Path(str(raw)).expanduser()
    try:
        return kind(raw)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value for {name}: {raw!r}") from e


def _load_params_file(path: Optional[str]) -> dict[str, Any]:
    """Load the optional JSON meeting-params file."""
    if not path:
        return {}
    params_path = Path(path).expanduser()
    try:
        with open(params_path) as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot read params file {params_path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Params file {params_path} must contain a JSON object")
    return data


def load_config(env: Optional[Mapping[str, str]] = None) -> SessionConfig:
    """Build the session config from the environment.

    Args:
        env: Mapping to read instead of ``os.environ`` (used by tests)

    Returns:
        A fully populated SessionConfig

    Raises:
        ConfigError: if MEETING_URL or BOT_ID is missing, or a value is malformed
    """
    env = os.environ if env is None else env
    params = _load_params_file(env.get("MEETBOT_PARAMS_FILE"))

    values: dict[Optional[str], dict[str, Any]] = {
        None: {},
        "automatic_leave": {},
        "streaming": {},
        "webhook": {},
    }

    for env_name, (section, field_name, kind) in _ENV_FIELDS.items():
        raw = env.get(env_name)
        if raw is None or raw == "":
            source = params.get(section, {}) if section else params
            raw = source.get(field_name) if isinstance(source, dict) else None
        if raw is None or raw == "":
            continue
        values[section][field_name] = _coerce(env_name, raw, kind)

    top = values[None]
    for required in ("meeting_url", "bot_id"):
        if not str(top.get(required, "")).strip():
            raise ConfigError(f"Missing required environment variable: {required.upper()}")

    if "meeting_provider" not in top:
        top["meeting_provider"] = detect_meeting_provider(top["meeting_url"])

    config = SessionConfig(
        **top,
        automatic_leave=AutomaticLeaveConfig(**values["automatic_leave"]),
        streaming=StreamingConfig(**values["streaming"]),
        webhook=WebhookConfig(**values["webhook"]),
    )
    logger.info(f"BOT_ID: {config.bot_id} provider={config.meeting_provider}")
    return config
