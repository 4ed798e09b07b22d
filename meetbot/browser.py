"""
Browser launch for the meeting bot.

Uses Playwright with a persistent Chromium profile per bot:
- Fake media devices so the bot never touches real hardware
- Optional branding video (.y4m) shown as the bot's camera
- Stale profile locks from crashed runs are removed before launch
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from meetbot.config import SessionConfig

logger = logging.getLogger(__name__)

CHROME_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--disable-infobars",
    "--no-first-run",
    "--no-default-browser-check",
    "--disable-gpu-sandbox",
    "--disable-dev-shm-usage",
    "--disable-sync",
    "--password-store=basic",
    "--disable-features=SyncPromo",
    # Auto-approve media permissions for fake devices
    "--use-fake-ui-for-media-stream",
    "--use-fake-device-for-media-stream",
    "--autoplay-policy=no-user-gesture-required",
]

VIEWPORT = {"width": 1280, "height": 720}


@dataclass
class BrowserSession:
    """A running Playwright instance and its persistent context."""

    playwright: Any
    context: Any

    async def close(self) -> None:
        """Close the context, then stop Playwright."""
        if self.context is not None:
            try:
                await asyncio.wait_for(self.context.close(), timeout=10.0)
            except asyncio.TimeoutError:
                logger.warning("Timeout closing browser context")
            except Exception as e:
                logger.warning(f"Error closing browser context: {e}")
            self.context = None

        if self.playwright is not None:
            try:
                await asyncio.wait_for(self.playwright.stop(), timeout=5.0)
            except asyncio.TimeoutError:
                logger.warning("Timeout stopping playwright")
            except Exception as e:
                logger.warning(f"Error stopping playwright: {e}")
            self.playwright = None


def _remove_stale_locks(profile_dir: Path) -> None:
    for lock_file in ["SingletonCookie", "SingletonLock", "SingletonSocket"]:
        lock_path = profile_dir / lock_file
        if lock_path.exists() or lock_path.is_symlink():
            try:
                lock_path.unlink()
                logger.info(f"Removed stale lock file: {lock_file}")
            except OSError as e:
                logger.warning(f"Could not remove lock file {lock_file}: {e}")


async def open_browser(config: SessionConfig, branding_video: Optional[Path] = None) -> BrowserSession:
    """Launch Chromium with a persistent profile for this bot.

    Args:
        config: Session configuration (Chrome path, data dir, headless flag)
        branding_video: Optional .y4m file used as the fake camera

    Returns:
        The launched BrowserSession

    Raises:
        Exception: whatever Playwright raised while launching
    """
    from playwright.async_api import async_playwright

    profile_dir = config.data_dir / config.bot_id / "profile"
    profile_dir.mkdir(parents=True, exist_ok=True)
    _remove_stale_locks(profile_dir)

    args = list(CHROME_ARGS)
    if branding_video is not None and branding_video.exists():
        args.append(f"--use-file-for-fake-video-capture={branding_video}")
        logger.info(f"Using branding video as camera: {branding_video}")

    browser_env = os.environ.copy()
    if config.display:
        browser_env["DISPLAY"] = config.display

    executable = config.chrome_path if Path(config.chrome_path).exists() else None
    if executable is None:
        logger.warning(f"Chrome not found at {config.chrome_path}, using bundled Chromium")

    playwright = await async_playwright().start()
    try:
        context = await playwright.chromium.launch_persistent_context(
            user_data_dir=str(profile_dir),
            executable_path=executable,
            headless=config.headless,
            args=args,
            ignore_default_args=["--enable-automation"],
            viewport=VIEWPORT,
            env=browser_env,
        )
    except Exception:
        await playwright.stop()
        raise

    logger.info(f"Browser launched with profile {profile_dir}")
    return BrowserSession(playwright=playwright, context=context)
