"""Clients for third-party APIs the tools are built on."""

from .cache import TTLCache
from .juhe import JuheCalendarClient, JuheHoroscopeClient
from .real_estate import RealEstateService
from .searxng import SearXNGSearchClient

__all__ = [
    "JuheCalendarClient",
    "JuheHoroscopeClient",
    "RealEstateService",
    "SearXNGSearchClient",
    "TTLCache",
]
