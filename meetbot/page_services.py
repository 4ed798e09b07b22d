"""
Services attached to the meeting page.

- DialogObserver: dismisses informational popups that would cover the video
- HtmlCleaner: hides meeting UI chrome so the recording shows only the call
- VideoFixingObserver: keeps the active speaker's tile pinned in speaker view
- HtmlSnapshotService: saves the DOM to disk at key lifecycle points
- attach_page_logger: forwards page console output to the log
"""

import asyncio
import logging
import re
import time
from pathlib import Path
from typing import Any, Optional

from meetbot.timeouts import TimeoutExpired, run_with_timeout

logger = logging.getLogger(__name__)


class DialogObserver:
    """Periodically dismisses known popups on the meeting page."""

    POLL_INTERVAL = 2.0

    DISMISS_SELECTORS = [
        'button:has-text("Got it")',
        'button:has-text("Dismiss")',
        'button:has-text("Close")',
        '[aria-label="Close dialog"]',
    ]

    def __init__(self, page: Any = None):
        self.page = page
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def set_page(self, page: Any) -> None:
        self.page = page

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self._poll_loop())
        logger.info("Dialog observer started")

    async def _poll_loop(self):
        while True:
            await asyncio.sleep(self.POLL_INTERVAL)
            if self.page is None:
                continue
            for selector in self.DISMISS_SELECTORS:
                try:
                    locator = self.page.locator(selector)
                    if await locator.count() > 0:
                        await locator.first.click()
                        logger.info(f"Dismissed dialog: {selector}")
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.debug(f"Dialog dismiss failed for {selector}: {e}")

    def stop(self) -> None:
        """Stop polling. Returns immediately."""
        if self._task and not self._task.done():
            self._task.cancel()
        self._task = None


# CSS hiding the meeting chrome, per provider
CLEANER_STYLES = {
    "Meet": """
        [role="banner"], [jscontroller="kAPMuc"] { visibility: hidden !important; }
    """,
    "Teams": """
        #teams-app-bar, [data-tid="app-bar"], [data-tid="call-controls"] { visibility: hidden !important; }
    """,
}


class HtmlCleaner:
    """Injects a stylesheet hiding meeting UI chrome."""

    STYLE_ID = "meetbot-cleaner"

    def __init__(self, page: Any, provider_name: str, recording_mode: str = "speaker_view"):
        self.page = page
        self.provider_name = provider_name
        self.recording_mode = recording_mode
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            return
        css = CLEANER_STYLES.get(self.provider_name, "")
        await self.page.evaluate(
            """([id, css]) => {
                const style = document.createElement('style');
                style.id = id;
                style.textContent = css;
                document.head.appendChild(style);
            }""",
            [self.STYLE_ID, css],
        )
        self._running = True
        logger.info(f"[HtmlCleaner] Started for {self.provider_name}")

    async def stop(self) -> None:
        if not self._running:
            return
        try:
            await self.page.evaluate(
                "(id) => { const el = document.getElementById(id); if (el) el.remove(); }",
                self.STYLE_ID,
            )
            logger.info(f"[HtmlCleaner] Stopped for {self.provider_name}")
        except Exception as e:
            logger.warning(f"Failed to stop HTML cleaner: {e}")
        finally:
            self._running = False


class VideoFixingObserver:
    """Pins the active speaker's video tile in speaker view (Meet only)."""

    CHECK_INTERVAL = 1.0

    PIN_SCRIPT = """
        () => {
            const tiles = Array.from(document.querySelectorAll('[data-participant-id]'));
            tiles.forEach(t => t.classList.remove('meetbot-fixed-video'));
            const speaking = tiles.find(t => t.querySelector('[data-is-speaking="true"]'));
            if (speaking) speaking.classList.add('meetbot-fixed-video');
        }
    """

    def __init__(self, page: Any):
        self.page = page
        self._task: Optional[asyncio.Task] = None

    @property
    def is_observing(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start_observing(self) -> None:
        if self.is_observing:
            return
        await self.page.add_style_tag(
            content=".meetbot-fixed-video { position: fixed !important; inset: 0 !important; z-index: 1000 !important; }"
        )
        self._task = asyncio.create_task(self._check_loop())
        logger.info("[VideoFixingObserver] Started")

    async def _check_loop(self):
        while True:
            await asyncio.sleep(self.CHECK_INTERVAL)
            try:
                await self.page.evaluate(self.PIN_SCRIPT)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.debug(f"Video fixing check failed: {e}")

    async def stop_observing(self) -> None:
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await asyncio.wait_for(self._task, timeout=1.0)
            except (asyncio.CancelledError, asyncio.TimeoutError):
                pass
        self._task = None


class HtmlSnapshotService:
    """Saves page HTML for post-mortem debugging. Never raises."""

    SNAPSHOT_TIMEOUT = 10.0

    def __init__(self, snapshots_dir: Path):
        self.snapshots_dir = Path(snapshots_dir)

    @staticmethod
    def generate_filename(context: str) -> str:
        safe_context = re.sub(r"[^\w.-]+", "_", context)[:100]
        return f"{int(time.time() * 1000)}_{safe_context}.html"

    async def _capture(self, page: Any, context: str) -> Path:
        html = await page.content()
        self.snapshots_dir.mkdir(parents=True, exist_ok=True)
        path = self.snapshots_dir / self.generate_filename(context)
        path.write_text(html, encoding="utf-8")
        return path

    async def capture_snapshot(self, page: Any, context: str) -> Optional[Path]:
        """Write ``page.content()`` to the snapshots directory.

        Returns:
            Path of the written file, or None if the capture failed
        """
        if page is None:
            return None
        try:
            path = await run_with_timeout(self._capture(page, context), self.SNAPSHOT_TIMEOUT, f"snapshot {context}")
            logger.debug(f"[HtmlSnapshot] Saved {path}")
            return path
        except TimeoutExpired:
            logger.warning(f"[HtmlSnapshot] Snapshot timeout after {self.SNAPSHOT_TIMEOUT:g}s for {context}")
        except Exception as e:
            logger.warning(f"[HtmlSnapshot] Failed to capture {context}: {e}")
        return None


def attach_page_logger(page: Any) -> None:
    """Forward page console messages to the log at DEBUG."""
    page_logger = logging.getLogger("meetbot.page")

    def _on_console(message):
        page_logger.debug(f"[{message.type}] {message.text}")

    page.on("console", _on_console)
