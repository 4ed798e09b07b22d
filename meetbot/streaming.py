"""
Audio streaming telemetry.

Captures the meeting audio from a PulseAudio source with ``parec`` and keeps
a live sound level (0-100) that the Recording phase uses to detect activity.
Pausing keeps the capture running but freezes the level at zero.
"""

import asyncio
import logging
from typing import Optional

import numpy as np

logger = logging.getLogger(__name__)


def sound_level(samples: np.ndarray) -> float:
    """Map the RMS of float32 samples in [-1, 1] to a 0-100 level."""
    if samples.size == 0:
        return 0.0
    rms = float(np.sqrt(np.mean(np.square(samples, dtype=np.float64))))
    return float(min(100.0, rms * 100.0))


class Streaming:
    """Live audio capture reporting the current sound level."""

    def __init__(
        self,
        input_url: Optional[str] = None,
        output_url: Optional[str] = None,
        sample_rate: int = 24000,
        source_name: str = "default",
        chunk_ms: int = 100,
    ):
        self.input_url = input_url
        self.output_url = output_url
        self.sample_rate = sample_rate
        self.source_name = source_name
        self.chunk_ms = chunk_ms
        self.chunk_samples = int(sample_rate * chunk_ms / 1000)

        self._process: Optional[asyncio.subprocess.Process] = None
        self._read_task: Optional[asyncio.Task] = None
        self._running = False
        self._paused = False
        self._level = 0.0

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_paused(self) -> bool:
        return self._paused

    def get_current_sound_level(self) -> float:
        return 0.0 if self._paused else self._level

    async def start(self) -> bool:
        """Start audio capture. Returns False if capture could not start."""
        if self._running:
            return True

        cmd = [
            "parec",
            "--device",
            self.source_name,
            "--rate",
            str(self.sample_rate),
            "--channels",
            "1",
            "--format",
            "float32le",
            "--latency-msec",
            str(self.chunk_ms),
        ]
        try:
            self._process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except (OSError, ValueError) as e:
            logger.error(f"Failed to start audio capture: {e}")
            return False

        self._running = True
        self._read_task = asyncio.create_task(self._read_loop())
        logger.info(f"Audio capture started from {self.source_name}")
        return True

    async def _read_loop(self):
        """Read audio chunks from parec and update the sound level."""
        chunk_bytes = self.chunk_samples * 4  # float32

        try:
            while self._running and self._process:
                data = await self._process.stdout.read(chunk_bytes)
                if not data:
                    if self._running:
                        logger.warning("Audio capture ended unexpectedly")
                    break
                usable = len(data) - len(data) % 4
                self._level = sound_level(np.frombuffer(data[:usable], dtype=np.float32))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Audio read error: {e}")
        finally:
            self._running = False

    def pause(self) -> None:
        self._paused = True
        logger.info("Streaming paused")

    def resume(self) -> None:
        self._paused = False
        logger.info("Streaming resumed")

    async def stop(self) -> None:
        """Stop audio capture. Safe to call when not started."""
        self._running = False

        if self._read_task and not self._read_task.done():
            self._read_task.cancel()
            try:
                await asyncio.wait_for(self._read_task, timeout=1.0)
            except (asyncio.CancelledError, asyncio.TimeoutError):
                pass
        self._read_task = None

        if self._process:
            pid = self._process.pid
            try:
                self._process.terminate()
                try:
                    await asyncio.wait_for(self._process.wait(), timeout=2.0)
                except asyncio.TimeoutError:
                    logger.warning(f"Audio capture process {pid} didn't terminate, killing...")
                    self._process.kill()
            except ProcessLookupError:
                pass
            except Exception as e:
                logger.warning(f"Error stopping audio capture process: {e}")
            finally:
                self._process = None

        self._level = 0.0
