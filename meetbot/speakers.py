"""
Speaker and attendee tracking.

SpeakersObserver polls the meeting page for the participant tiles and who is
speaking. SpeakerManager turns each observation into the participant signals
on the SessionContext that the Recording phase reads:

- attendees_count (the bot itself excluded)
- first_user_joined
- last_speaker_time
- no_speaker_detected_time (latched when nobody is speaking)
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Optional

if TYPE_CHECKING:
    from meetbot.context import SessionContext

logger = logging.getLogger(__name__)


@dataclass
class SpeakerData:
    """One participant as seen on the page."""

    name: str
    is_speaking: bool = False
    timestamp: float = 0.0


# Page scripts returning [{name, isSpeaking}] for each participant tile
SPEAKER_SCRIPTS = {
    "Meet": """
        () => Array.from(document.querySelectorAll('[data-participant-id]')).map(tile => ({
            name: (tile.querySelector('[data-self-name]') || tile).getAttribute('aria-label')
                || tile.innerText.split('\\n')[0] || '',
            isSpeaking: !!tile.querySelector('[data-is-speaking="true"]'),
        }))
    """,
    "Teams": """
        () => Array.from(document.querySelectorAll('[data-tid="roster-participant"], [data-cid="calling-participant-stream"]')).map(tile => ({
            name: tile.getAttribute('aria-label') || tile.innerText.split('\\n')[0] || '',
            isSpeaking: tile.getAttribute('data-is-speaking') === 'true'
                || !!tile.querySelector('[data-tid="voice-level-stream-outline"]'),
        }))
    """,
}


class SpeakersObserver:
    """Polls the page for speakers and reports every observation."""

    MAX_START_ATTEMPTS = 3
    RETRY_DELAY = 5.0
    POLL_INTERVAL = 1.0

    def __init__(
        self,
        page: Any,
        provider_name: str,
        bot_name: str,
        on_speakers_change: Callable[[list[SpeakerData]], None],
    ):
        self.page = page
        self.provider_name = provider_name
        self.bot_name = bot_name
        self.on_speakers_change = on_speakers_change
        self._script = SPEAKER_SCRIPTS.get(provider_name, SPEAKER_SCRIPTS["Meet"])
        self._poll_task: Optional[asyncio.Task] = None

    @property
    def is_observing(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    async def _read_speakers(self) -> list[SpeakerData]:
        raw = await self.page.evaluate(self._script)
        now = time.time()
        speakers = []
        for entry in raw or []:
            name = (entry.get("name") or "").strip()
            if not name or name == self.bot_name:
                continue
            speakers.append(SpeakerData(name=name, is_speaking=bool(entry.get("isSpeaking")), timestamp=now))
        return speakers

    async def start_observing(self) -> None:
        """Start polling, retrying the first read a few times.

        Raises:
            Exception: the last error if every attempt failed
        """
        if self.is_observing:
            return

        last_error: Optional[Exception] = None
        for attempt in range(1, self.MAX_START_ATTEMPTS + 1):
            try:
                speakers = await self._read_speakers()
                break
            except Exception as e:
                last_error = e
                logger.warning(f"Speakers observer failed to start (attempt {attempt}/{self.MAX_START_ATTEMPTS}): {e}")
                if attempt < self.MAX_START_ATTEMPTS:
                    await asyncio.sleep(self.RETRY_DELAY)
        else:
            logger.error(f"Speakers observer: max retries ({self.MAX_START_ATTEMPTS}) reached, giving up")
            raise last_error

        self._publish(speakers)
        self._poll_task = asyncio.create_task(self._poll_loop())
        logger.info(f"Speakers observer started for {self.provider_name}")

    def _publish(self, speakers: list[SpeakerData]) -> None:
        # Published on every poll, changed or not
        try:
            self.on_speakers_change(speakers)
        except Exception as e:
            logger.warning(f"Speakers change callback failed: {e}")

    async def _poll_loop(self):
        while True:
            await asyncio.sleep(self.POLL_INTERVAL)
            try:
                self._publish(await self._read_speakers())
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.debug(f"Speaker poll error: {e}")

    async def stop_observing(self) -> None:
        """Stop polling. Safe to call when not started."""
        if self._poll_task and not self._poll_task.done():
            self._poll_task.cancel()
            try:
                await asyncio.wait_for(self._poll_task, timeout=2.0)
            except (asyncio.CancelledError, asyncio.TimeoutError):
                pass
        self._poll_task = None


class SpeakerManager:
    """Aggregates speaker observations into SessionContext signals."""

    def __init__(self, context: "SessionContext", clock: Optional[Callable[[], float]] = None):
        self.context = context
        self._clock = clock or time.time

    def handle_speaker_update(self, speakers: list[SpeakerData]) -> None:
        now = self._clock()
        ctx = self.context

        ctx.attendees_count = len(speakers)
        if speakers and not ctx.first_user_joined:
            logger.info("First participant joined")
            ctx.first_user_joined = True

        if any(s.is_speaking for s in speakers):
            ctx.last_speaker_time = now
            ctx.no_speaker_detected_time = None
        elif ctx.no_speaker_detected_time is None:
            ctx.no_speaker_detected_time = now
