"""
Meet Bot - single-session meeting recorder.

This package provides:
- A session lifecycle controller (state machine) that joins, records and leaves one meeting
- Provider adapters for Google Meet and Microsoft Teams (Playwright)
- Screen recorder, audio streaming telemetry and speaker observation services
- Webhook notification of lifecycle events
"""

__version__ = "0.1.0"
