"""Startup wiring of the builtin tools.

Tools are registered explicitly; there is no discovery. External clients
are built once from ``ExternalApisConfig`` and shared between tools (the
real-estate service reuses the search client).
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

from ..config.models import Config
from ..services.external import (
    JuheCalendarClient,
    JuheHoroscopeClient,
    RealEstateService,
    SearXNGSearchClient,
)
from ..utils.logger import get_logger
from .builtin import (
    get_datetime_tools,
    get_metaphysics_tools,
    get_real_estate_tools,
    SearchWebTool,
)
from .manager import ToolManager

logger = get_logger(__name__)


@dataclass
class ToolServices:
    """External collaborators the builtin tools need."""
    search: Any
    almanac: Any
    horoscope: Any
    real_estate: Any
    clock: Callable[[], datetime] = field(default=datetime.now)

    async def close(self) -> None:
        for client in (self.search, self.almanac, self.horoscope):
            close = getattr(client, "close", None)
            if close is None:
                continue
            try:
                await close()
            except Exception as e:
                logger.warning(
                    "Error closing external client",
                    extra={"client": type(client).__name__, "error": str(e)},
                )


def _secret(value: Any) -> Optional[str]:
    return value.get_secret_value() if value is not None else None


def build_tool_services(config: Config) -> ToolServices:
    """Create the search, Juhe and real-estate clients from configuration."""
    apis = config.external_apis
    search = SearXNGSearchClient(
        base_url=apis.searxng_url,
        timeout=apis.search_timeout,
        min_interval=apis.search_min_interval,
        cache_ttl_seconds=apis.cache_ttl_seconds,
    )
    almanac = JuheCalendarClient(_secret(apis.juhe_calendar_key), timeout=apis.juhe_timeout)
    horoscope = JuheHoroscopeClient(_secret(apis.juhe_horoscope_key), timeout=apis.juhe_timeout)
    if not almanac.configured or not horoscope.configured:
        logger.warning(
            "Juhe API key missing, almanac/horoscope tools will use fallback content",
            extra={"calendar_configured": almanac.configured,
                   "horoscope_configured": horoscope.configured},
        )
    return ToolServices(
        search=search,
        almanac=almanac,
        horoscope=horoscope,
        real_estate=RealEstateService(search),
    )


def create_default_tool_manager(
    config: Config,
    services: Optional[ToolServices] = None,
) -> ToolManager:
    """Build a ``ToolManager`` holding every builtin tool.

    Args:
        config: Application configuration
        services: Pre-built external clients (tests); built from config if None
    """
    services = services or build_tool_services(config)
    manager = ToolManager()
    manager.register_all(get_datetime_tools(services.clock))
    manager.register_all(get_metaphysics_tools(services.almanac, services.horoscope))
    manager.register(SearchWebTool(services.search))
    manager.register_all(get_real_estate_tools(services.real_estate))

    for name in config.guard.guarded_tools:
        tool = manager.get_tool(name)
        if tool is not None and not tool.guarded:
            tool.guarded = True

    logger.info("Builtin tools registered", extra=manager.get_stats())
    return manager
