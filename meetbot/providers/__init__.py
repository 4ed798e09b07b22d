"""Meeting platform providers."""

from meetbot.providers.base import MeetingInfo, MeetingProvider, get_provider

__all__ = ["MeetingInfo", "MeetingProvider", "get_provider"]
