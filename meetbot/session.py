"""
Per-session collaborators.

A Session bundles everything one bot session shares across its lifecycle
phases: configuration, the end-reason registry, event delivery, storage paths
and the factories that build long-lived services (browser, recorder,
streaming, observers). One Session is created per process and passed by
reference to the controller and every state handler.

Tests replace the factory methods to run the lifecycle without a browser.
"""

import asyncio
import logging
import time
from pathlib import Path
from typing import Any, Callable, Optional

from meetbot.branding import BrandingHandle, generate_branding
from meetbot.browser import BrowserSession, open_browser
from meetbot.config import MEET_PROVIDER, SessionConfig
from meetbot.end_reason import EndReasonRegistry
from meetbot.notifier import Notifier, SessionEvents, Transport
from meetbot.page_services import DialogObserver, HtmlCleaner, HtmlSnapshotService, VideoFixingObserver
from meetbot.paths import PathManager
from meetbot.recorder import ScreenRecorder
from meetbot.speakers import SpeakerData, SpeakersObserver
from meetbot.streaming import Streaming
from meetbot.timeouts import TimeoutExpired, run_with_timeout

logger = logging.getLogger(__name__)


class Session:
    """Shared collaborators of one bot session."""

    FLUSH_TIMEOUT = 15.0

    def __init__(
        self,
        config: SessionConfig,
        registry: Optional[EndReasonRegistry] = None,
        notifier: Optional[Notifier] = None,
        transport: Optional[Transport] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.config = config
        self.registry = registry or EndReasonRegistry()
        self.notifier = notifier or Notifier(config.bot_id, config.webhook, transport=transport)
        self.events = SessionEvents(self.notifier)
        self.paths = PathManager(config.data_dir, config.bot_id)
        self.snapshots = HtmlSnapshotService(self.paths.html_snapshots_dir)
        self.clock = clock or time.time
        self._background: set[asyncio.Task] = set()

    @classmethod
    def from_config(cls, config: SessionConfig, **kwargs) -> "Session":
        return cls(config, **kwargs)

    # ==================== Service factories ====================

    async def open_browser(self, branding_video: Optional[Path] = None) -> BrowserSession:
        return await open_browser(self.config, branding_video)

    async def generate_branding(self) -> Optional[BrandingHandle]:
        if not self.config.custom_branding_bot_path:
            return None
        output = self.paths.base_dir / "branding.y4m"
        return await generate_branding(self.config.custom_branding_bot_path, output)

    def create_dialog_observer(self) -> DialogObserver:
        return DialogObserver()

    def create_recorder(self) -> ScreenRecorder:
        return ScreenRecorder(
            self.paths.recording_path(),
            display=self.config.display,
            audio_source=self.config.streaming.audio_source,
        )

    def create_streaming(self) -> Streaming:
        streaming = self.config.streaming
        return Streaming(
            input_url=streaming.input_url,
            output_url=streaming.output_url,
            sample_rate=streaming.audio_frequency,
            source_name=streaming.audio_source,
        )

    def create_speakers_observer(
        self, page: Any, on_speakers_change: Callable[[list[SpeakerData]], None]
    ) -> SpeakersObserver:
        return SpeakersObserver(page, self.config.meeting_provider, self.config.bot_name, on_speakers_change)

    def create_html_cleaner(self, page: Any) -> HtmlCleaner:
        return HtmlCleaner(page, self.config.meeting_provider, self.config.recording_mode)

    def create_video_fixing_observer(self, page: Any) -> Optional[VideoFixingObserver]:
        if self.config.meeting_provider != MEET_PROVIDER or self.config.recording_mode != "speaker_view":
            return None
        return VideoFixingObserver(page)

    # ==================== Background work ====================

    def snapshot_in_background(self, page: Any, context: str) -> Optional[asyncio.Task]:
        """Capture a DOM snapshot without waiting for it."""
        if page is None:
            return None
        task = asyncio.create_task(self.snapshots.capture_snapshot(page, context))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def close(self) -> None:
        """Wait briefly for background snapshots and pending events, then release event delivery."""
        if self._background:
            await asyncio.wait(set(self._background), timeout=2.0)
        try:
            await run_with_timeout(self.notifier.flush(), self.FLUSH_TIMEOUT, "event flush")
        except TimeoutExpired:
            logger.warning(f"Pending events not delivered after {self.FLUSH_TIMEOUT:g}s, dropping them")
        await self.notifier.close()
