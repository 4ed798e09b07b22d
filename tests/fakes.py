"""Fake collaborators for running the session lifecycle without a browser."""

import asyncio
from pathlib import Path
from typing import Any, Callable, Optional
from unittest.mock import AsyncMock, MagicMock

from meetbot.config import AutomaticLeaveConfig, SessionConfig
from meetbot.errors import (
    InvalidMeetingReference,
    JoinCancelledError,
    JoinRejectedError,
    LoginRequiredError,
)
from meetbot.providers.base import MeetingInfo, MeetingProvider
from meetbot.session import Session

MEETING_URL = "https://meet.google.com/abc-defg-hij"


def make_config(data_dir: Path, **overrides) -> SessionConfig:
    """Config with short bounds suitable for tests."""
    automatic_leave = overrides.pop("automatic_leave", None) or AutomaticLeaveConfig(waiting_room_timeout=5)
    values = dict(
        meeting_url=MEETING_URL,
        bot_id="bot-1",
        data_dir=Path(data_dir),
        automatic_leave=automatic_leave,
        cleanup_step_timeout=0.2,
        cleanup_timeout=3.0,
        setup_timeout=2.0,
        resume_timeout=2.0,
    )
    values.update(overrides)
    return SessionConfig(**values)


async def hang_forever():
    await asyncio.Event().wait()


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


class RecordingTransport:
    """Notifier transport that keeps every payload it is given."""

    def __init__(self, fail: bool = False):
        self.payloads: list[dict] = []
        self.fail = fail
        self.closed = False

    async def __call__(self, payload: dict) -> None:
        if self.fail:
            raise RuntimeError("webhook unavailable")
        self.payloads.append(payload)

    async def close(self) -> None:
        self.closed = True

    @property
    def codes(self) -> list[str]:
        return [p["data"]["status"]["code"] for p in self.payloads]


class FakePage:
    def __init__(self):
        self.close = AsyncMock()
        self.listeners: dict[str, list] = {}

    async def content(self) -> str:
        return "<html><body>meeting</body></html>"

    def is_closed(self) -> bool:
        return self.close.await_count > 0

    def on(self, event: str, handler) -> None:
        self.listeners.setdefault(event, []).append(handler)


class FakeProvider(MeetingProvider):
    """Provider whose join outcome is chosen by the test.

    join_outcome:
        "admit"  - admitted after ``admit_after`` seconds
        "never"  - waits until cancelled
        "reject" - raises JoinRejectedError
        "login"  - raises LoginRequiredError
    """

    name = "Fake"

    def __init__(self, join_outcome: str = "admit", admit_after: float = 0.0):
        super().__init__()
        self.join_outcome = join_outcome
        self.admit_after = admit_after
        self.page = FakePage()
        self.ended = False
        self.end_check_error: Optional[Exception] = None
        self.join_calls = 0
        self.admitted_calls = 0
        self.close_calls = 0

    def parse_meeting_url(self, meeting_url: str) -> MeetingInfo:
        if "invalid" in (meeting_url or ""):
            raise InvalidMeetingReference(f"Bad URL: {meeting_url}")
        return MeetingInfo(meeting_id="abc-defg-hij")

    def get_meeting_link(self, meeting_id, password, role, bot_name, enter_message=None) -> str:
        self.bot_name = bot_name
        return f"https://meet.example.test/{meeting_id}"

    async def open_meeting_page(self, browser_context: Any, link: str, streaming_input: Optional[str]) -> Any:
        return self.page

    async def join_meeting(self, page: Any, cancel_check: Callable[[], bool], on_join_success: Callable[[], None]):
        self.join_calls += 1
        if self.join_outcome == "reject":
            raise JoinRejectedError("Denied by host")
        if self.join_outcome == "login":
            raise LoginRequiredError("Sign in required")

        loop = asyncio.get_running_loop()
        admit_at = loop.time() + self.admit_after
        while self.join_outcome == "never" or loop.time() < admit_at:
            if cancel_check():
                raise JoinCancelledError("Join cancelled")
            await asyncio.sleep(0.01)

        self.admitted_calls += 1
        on_join_success()

    async def find_end_meeting(self, page: Any) -> bool:
        if self.end_check_error is not None:
            raise self.end_check_error
        return self.ended

    async def close_meeting(self, page: Any) -> None:
        self.close_calls += 1


class FakeRecorder:
    """Recorder with the real event channel and no ffmpeg."""

    def __init__(self, calls: Optional[list] = None):
        self.calls = calls if calls is not None else []
        self.listeners: dict[str, list] = {"error": [], "audio_warning": []}
        self.started = False
        self.stopped = False
        self.stop_error: Optional[Exception] = None
        self.meeting_start_time: Optional[float] = None

    def on(self, event, listener):
        self.listeners[event].append(listener)

    def off(self, event, listener):
        if listener in self.listeners[event]:
            self.listeners[event].remove(listener)

    def emit(self, event, payload=None):
        for listener in list(self.listeners[event]):
            listener(payload)

    def set_meeting_start_time(self, start_time):
        self.meeting_start_time = start_time

    async def start_recording(self):
        self.started = True

    async def stop_recording(self):
        self.calls.append("recorder")
        if self.stop_error is not None:
            raise self.stop_error
        self.stopped = True


class FakeStreaming:
    def __init__(self, calls: Optional[list] = None, level: float = 0.0):
        self.calls = calls if calls is not None else []
        self.level = level
        self.paused = False
        self.stop_hangs = False
        self.stopped = False

    async def start(self) -> bool:
        return True

    def get_current_sound_level(self) -> float:
        return 0.0 if self.paused else self.level

    def pause(self):
        self.paused = True

    def resume(self):
        self.paused = False

    async def stop(self):
        self.calls.append("streaming")
        if self.stop_hangs:
            await hang_forever()
        self.stopped = True


class FakeSpeakersObserver:
    def __init__(self, on_speakers_change=None, fail: bool = False):
        self.on_speakers_change = on_speakers_change
        self.fail = fail
        self.start_calls = 0
        self.stop_calls = 0

    async def start_observing(self):
        self.start_calls += 1
        if self.fail:
            raise RuntimeError("speaker list not found")

    async def stop_observing(self):
        self.stop_calls += 1


class FakeService:
    """Stand-in for the HTML cleaner and the video fixing observer."""

    def __init__(self, start_hangs: bool = False):
        self.start_hangs = start_hangs
        self.running = False

    async def start(self):
        if self.start_hangs:
            await hang_forever()
        self.running = True

    async def stop(self):
        self.running = False

    start_observing = start
    stop_observing = stop


class FakeBrowser:
    def __init__(self):
        self.context = MagicMock(name="browser_context")
        self.close = AsyncMock()


class FakeSession(Session):
    """Session whose service factories return fakes."""

    def __init__(self, config: SessionConfig, **kwargs):
        super().__init__(config, **kwargs)
        self.calls: list[str] = []
        self.browser_failures = 0
        self.open_browser_calls = 0
        self.speakers_fail = False
        self.html_cleaner_hangs = False
        self.recorder = FakeRecorder(self.calls)
        self.streaming = FakeStreaming(self.calls)
        self.speakers_observer: Optional[FakeSpeakersObserver] = None
        self.dialog_observer = MagicMock(name="dialog_observer")

    async def open_browser(self, branding_video=None):
        self.open_browser_calls += 1
        if self.open_browser_calls <= self.browser_failures:
            raise RuntimeError(f"launch failed ({self.open_browser_calls})")
        return FakeBrowser()

    async def generate_branding(self):
        return None

    def create_dialog_observer(self):
        return self.dialog_observer

    def create_recorder(self):
        return self.recorder

    def create_streaming(self):
        return self.streaming

    def create_speakers_observer(self, page, on_speakers_change):
        self.speakers_observer = FakeSpeakersObserver(on_speakers_change, fail=self.speakers_fail)
        return self.speakers_observer

    def create_html_cleaner(self, page):
        return FakeService(start_hangs=self.html_cleaner_hangs)

    def create_video_fixing_observer(self, page):
        return None
