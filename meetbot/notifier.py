"""Notifier - Lifecycle event delivery for one bot session.

Provides:
- Notifier: bounded background queue delivering events to a webhook
- WebhookTransport: httpx-based POST of one event
- SessionEvents: named lifecycle events (joining_call, call_ended, ...)

Delivery is fire-and-forget: ``send`` and ``send_once`` enqueue and return
immediately. Failures are logged, never raised. ``send_once`` delivers each
code at most once per session.

Usage:
    notifier = Notifier(bot_id, config.webhook)
    events = SessionEvents(notifier)
    events.in_waiting_room()
    ...
    await notifier.flush()
    await notifier.close()
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

import httpx

from meetbot.config import WebhookConfig

logger = logging.getLogger(__name__)

STATUS_CHANGE_EVENT = "bot.status_change"

Transport = Callable[[dict[str, Any]], Awaitable[None]]


class WebhookTransport:
    """POST event payloads to the bots webhook."""

    USER_AGENT = "meetbot/1.0"

    def __init__(self, url: str, api_key: Optional[str] = None, timeout: float = 10.0):
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None

    async def get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {"User-Agent": self.USER_AGENT}
            if self.api_key:
                headers["x-meeting-baas-api-key"] = self.api_key
            self._client = httpx.AsyncClient(headers=headers, timeout=self.timeout)
        return self._client

    async def __call__(self, payload: dict[str, Any]) -> None:
        client = await self.get_client()
        response = await client.post(self.url, json=payload)
        response.raise_for_status()

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None


class Notifier:
    """At-most-once-per-code event delivery through a bounded queue."""

    def __init__(
        self,
        bot_id: str,
        config: Optional[WebhookConfig] = None,
        transport: Optional[Transport] = None,
    ):
        self.bot_id = bot_id
        self.config = config or WebhookConfig()

        if transport is None and self.config.url:
            transport = WebhookTransport(self.config.url, self.config.api_key, self.config.request_timeout)
        self._transport = transport

        self._sent_codes: set[str] = set()
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None
        self.delivered = 0
        self.failed = 0

    @property
    def sent_codes(self) -> frozenset[str]:
        return frozenset(self._sent_codes)

    def build_payload(self, code: str, extra: Optional[dict[str, Any]] = None, event: str = STATUS_CHANGE_EVENT):
        return {
            "event": event,
            "data": {
                "bot_id": self.bot_id,
                "status": {
                    "code": code,
                    "created_at": datetime.now(timezone.utc).isoformat(),
                },
                **(extra or {}),
            },
        }

    def send_once(self, code: str, extra: Optional[dict[str, Any]] = None, event: str = STATUS_CHANGE_EVENT) -> bool:
        """Send an event unless this code was already sent.

        Returns:
            True if the event was enqueued, False if it was a duplicate or dropped
        """
        if code in self._sent_codes:
            logger.warning(f"Event {code} already sent, skipping")
            return False
        self._sent_codes.add(code)
        return self.send(code, extra, event)

    def send(self, code: str, extra: Optional[dict[str, Any]] = None, event: str = STATUS_CHANGE_EVENT) -> bool:
        """Enqueue an event for delivery. Never blocks, never raises."""
        payload = self.build_payload(code, extra, event)

        if self._transport is None:
            logger.info(f"Event {code} (no webhook configured)")
            return True

        queue = self._ensure_worker()
        try:
            queue.put_nowait(payload)
        except asyncio.QueueFull:
            logger.warning(f"Event queue full, dropping event {code}")
            return False
        return True

    def _ensure_worker(self) -> asyncio.Queue:
        if self._queue is None:
            self._queue = asyncio.Queue(maxsize=self.config.max_queue)
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._deliver_loop())
        return self._queue

    async def _deliver_loop(self):
        """Drain the queue, delivering one payload at a time."""
        while True:
            payload = await self._queue.get()
            code = payload["data"]["status"]["code"]
            try:
                await self._transport(payload)
                self.delivered += 1
                logger.info(f"Event sent: {code}")
            except Exception as e:
                self.failed += 1
                logger.warning(f"Unable to send event {code} (continuing): {e}")
            finally:
                self._queue.task_done()

    async def flush(self) -> None:
        """Wait until every queued event has been attempted."""
        if self._queue is not None and self._worker is not None and not self._worker.done():
            await self._queue.join()

    async def close(self) -> None:
        """Stop the delivery worker and release the transport."""
        if self._worker and not self._worker.done():
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
        self._worker = None

        close = getattr(self._transport, "close", None)
        if close is not None:
            await close()


class SessionEvents:
    """Named lifecycle events of a bot session."""

    def __init__(self, notifier: Notifier):
        self.notifier = notifier

    def joining_call(self):
        return self.notifier.send_once("joining_call")

    def in_waiting_room(self):
        return self.notifier.send_once("in_waiting_room")

    def in_call_not_recording(self):
        return self.notifier.send_once("in_call_not_recording")

    def in_call_recording(self, start_time: float):
        return self.notifier.send_once("in_call_recording", {"start_time": start_time})

    # Pause and resume can repeat within a session
    def recording_paused(self):
        return self.notifier.send("recording_paused")

    def recording_resumed(self):
        return self.notifier.send("recording_resumed")

    def call_ended(self):
        return self.notifier.send_once("call_ended")

    def bot_rejected(self):
        return self.notifier.send_once("bot_rejected")

    def bot_removed(self):
        return self.notifier.send_once("bot_removed")

    def bot_removed_too_early(self):
        return self.notifier.send_once("bot_removed_too_early")

    def waiting_room_timeout(self):
        return self.notifier.send_once("waiting_room_timeout")

    def invalid_meeting_url(self):
        return self.notifier.send_once("invalid_meeting_url")

    def api_request_stop(self):
        return self.notifier.send_once("api_request_stop")

    def meeting_error(self, error: BaseException):
        return self.notifier.send_once(
            "meeting_error",
            {"error_message": str(error), "error_type": type(error).__name__},
        )

    def recording_succeeded(self):
        return self.notifier.send_once("recording_succeeded")

    def recording_failed(self, error_message: str):
        logger.info(f"Recording failed: {error_message}")
        return self.notifier.send_once("recording_failed", {"error_message": error_message})
