"""
Screen Recorder.

Records the bot's X display and PulseAudio output into one file with ffmpeg.
The recorder reports problems through a small event channel:

- ``error``: the recording is lost (ffmpeg failed or exited while recording)
- ``audio_warning``: ffmpeg complained about the audio input; recording continues

Usage:
    recorder = ScreenRecorder(output_path, display=":99")
    recorder.on("error", handle_error)
    await recorder.start_recording()
    ...
    await recorder.stop_recording()
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Callable, Optional

from meetbot.errors import RecorderError

logger = logging.getLogger(__name__)

RECORDER_EVENTS = ("error", "audio_warning")


class ScreenRecorder:
    """ffmpeg-based screen and audio recorder with an event channel."""

    def __init__(
        self,
        output_path: Path,
        display: Optional[str] = None,
        audio_source: str = "default",
        frame_rate: int = 30,
        size: str = "1280x720",
        ffmpeg: str = "ffmpeg",
    ):
        self.output_path = Path(output_path)
        self.display = display or ":0"
        self.audio_source = audio_source
        self.frame_rate = frame_rate
        self.size = size
        self.ffmpeg = ffmpeg

        self._process: Optional[asyncio.subprocess.Process] = None
        self._monitor_task: Optional[asyncio.Task] = None
        self._listeners: dict[str, list[Callable[[Any], None]]] = {name: [] for name in RECORDER_EVENTS}
        self._recording = False
        self._stopping = False
        self.meeting_start_time: Optional[float] = None

    # ==================== Event channel ====================

    def on(self, event: str, listener: Callable[[Any], None]) -> None:
        if event not in self._listeners:
            raise ValueError(f"Unknown recorder event: {event}")
        self._listeners[event].append(listener)

    def off(self, event: str, listener: Callable[[Any], None]) -> None:
        listeners = self._listeners.get(event, [])
        if listener in listeners:
            listeners.remove(listener)

    def emit(self, event: str, payload: Any = None) -> None:
        for listener in list(self._listeners.get(event, [])):
            try:
                listener(payload)
            except Exception as e:
                logger.warning(f"Recorder {event} listener failed: {e}")

    # ==================== Lifecycle ====================

    def is_recording(self) -> bool:
        return self._recording

    def set_meeting_start_time(self, start_time: float) -> None:
        self.meeting_start_time = start_time

    def _build_command(self) -> list[str]:
        return [
            self.ffmpeg,
            "-y",
            "-loglevel",
            "warning",
            "-f",
            "x11grab",
            "-framerate",
            str(self.frame_rate),
            "-video_size",
            self.size,
            "-i",
            self.display,
            "-f",
            "pulse",
            "-i",
            self.audio_source,
            "-c:v",
            "libx264",
            "-preset",
            "veryfast",
            "-c:a",
            "aac",
            str(self.output_path),
        ]

    async def start_recording(self) -> None:
        """Start ffmpeg. Calling it while already recording does nothing.

        Raises:
            RecorderError: if ffmpeg could not be started
        """
        if self._recording:
            return

        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        cmd = self._build_command()
        logger.info(f"Starting recorder: {' '.join(cmd)}")

        try:
            self._process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except (OSError, ValueError) as e:
            raise RecorderError(f"Failed to start recorder: {e}") from e

        self._recording = True
        self._stopping = False
        self._monitor_task = asyncio.create_task(self._monitor())
        logger.info(f"Recorder started (PID: {self._process.pid})")

    async def _monitor(self):
        """Forward ffmpeg stderr as events and report an unexpected exit."""
        process = self._process
        try:
            while process.stderr is not None:
                line = await process.stderr.readline()
                if not line:
                    break
                text = line.decode(errors="replace").strip()
                if not text:
                    continue
                if "pulse" in text.lower() or "audio" in text.lower():
                    self.emit("audio_warning", text)
                else:
                    logger.debug(f"ffmpeg: {text}")

            returncode = await process.wait()
            if self._recording and not self._stopping:
                self._recording = False
                self.emit("error", RecorderError(f"Recorder exited unexpectedly (code {returncode})"))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Recorder monitor failed: {e}")

    async def stop_recording(self) -> None:
        """Stop ffmpeg and finalize the file. Safe to call when not started."""
        process = self._process
        self._stopping = True
        self._recording = False

        if process is not None and process.returncode is None:
            pid = process.pid
            try:
                # 'q' lets ffmpeg write the trailer
                if process.stdin is not None:
                    process.stdin.write(b"q")
                    await process.stdin.drain()
                try:
                    await asyncio.wait_for(process.wait(), timeout=5.0)
                    logger.info(f"Recorder {pid} finished gracefully")
                except asyncio.TimeoutError:
                    logger.warning(f"Recorder {pid} didn't finish, terminating...")
                    process.terminate()
                    try:
                        await asyncio.wait_for(process.wait(), timeout=2.0)
                    except asyncio.TimeoutError:
                        process.kill()
            except ProcessLookupError:
                pass
            except Exception as e:
                logger.warning(f"Error stopping recorder: {e}")

        self._process = None

        if self._monitor_task and not self._monitor_task.done():
            self._monitor_task.cancel()
            try:
                await asyncio.wait_for(self._monitor_task, timeout=1.0)
            except (asyncio.CancelledError, asyncio.TimeoutError):
                pass
        self._monitor_task = None
