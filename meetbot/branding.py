"""Custom branding generation.

Runs the branding script that renders the bot's camera image into a .y4m
video, used as the fake camera by the browser.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

BRANDING_SCRIPT = "./generate_custom_branding.sh"


class BrandingHandle:
    """A running branding subprocess."""

    def __init__(self, process: asyncio.subprocess.Process, output_path: Path):
        self.process = process
        self.output_path = output_path
        self._stderr_task = asyncio.create_task(self._log_stderr())

    async def _log_stderr(self):
        if self.process.stderr is None:
            return
        while True:
            line = await self.process.stderr.readline()
            if not line:
                break
            logger.info(f"branding: {line.decode(errors='replace').rstrip()}")

    async def wait(self) -> int:
        returncode = await self.process.wait()
        await self._stderr_task
        return returncode

    def kill(self) -> None:
        """Kill the process if it is still running."""
        if self.process.returncode is None:
            try:
                self.process.kill()
            except ProcessLookupError:
                pass
        if not self._stderr_task.done():
            self._stderr_task.cancel()


async def generate_branding(
    custom_branding_path: str,
    output_path: Path,
    script: str = BRANDING_SCRIPT,
) -> Optional[BrandingHandle]:
    """Spawn the branding script.

    Returns:
        A handle on the process, or None if it could not be started
    """
    try:
        process = await asyncio.create_subprocess_exec(
            script,
            custom_branding_path,
            str(output_path),
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
    except (OSError, ValueError) as e:
        logger.error(f"Failed to generate branding: {e}")
        return None
    logger.info(f"Generating branding from {custom_branding_path}")
    return BrandingHandle(process, Path(output_path))
