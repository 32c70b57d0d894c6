"""AgentHub main application entry point."""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.middleware import ErrorHandlerMiddleware, TracingMiddleware
from .config.manager import ConfigManager
from .config.models import Config
from .orchestrator import ChatOrchestrator
from .services.conversation import ConversationService
from .services.llm import LLMRouter, ModelGateway
from .services.storage import StorageService
from .tools import ToolServices, build_tool_services, create_default_tool_manager
from .utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


@dataclass
class AppComponents:
    """Everything the routes reach through ``app.state``."""
    orchestrator: ChatOrchestrator
    conversations: ConversationService
    storage: StorageService
    llm_router: Optional[LLMRouter] = None
    tool_services: Optional[ToolServices] = None

    async def close(self) -> None:
        await self.conversations.wait_for_background()
        if self.tool_services is not None:
            await self.tool_services.close()
        if self.llm_router is not None:
            await self.llm_router.close()
        await self.storage.close()


async def build_components(config: Config) -> AppComponents:
    """Wire storage, model gateway, tools and the orchestrator from config."""
    storage = StorageService.from_config(config.storage)
    await storage.initialize()

    llm_router = LLMRouter(config.models)
    logger.info(
        "LLM router initialized",
        extra={
            "primary_model": llm_router.primary.model_id if llm_router.primary else None,
            "backup_count": len(llm_router.backups),
        },
    )
    gateway = ModelGateway(llm_router, config.generation)

    tool_services = build_tool_services(config)
    tool_manager = create_default_tool_manager(config, tool_services)

    orchestrator = ChatOrchestrator(gateway, tool_manager, config=config)
    conversations = ConversationService(storage, orchestrator)
    return AppComponents(
        orchestrator=orchestrator,
        conversations=conversations,
        storage=storage,
        llm_router=llm_router,
        tool_services=tool_services,
    )


def _attach(app: FastAPI, components: AppComponents) -> None:
    app.state.orchestrator = components.orchestrator
    app.state.conversations = components.conversations
    app.state.storage = components.storage
    app.state.llm_router = components.llm_router


def _make_lifespan(
    config: Config,
    config_manager: Optional[ConfigManager],
    components: Optional[AppComponents],
):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan manager.

        Startup sequence:
        1. Set up logging from configuration
        2. Build storage, LLM router, tools and orchestrator (or take the
           pre-built components and make sure their tables exist)
        3. Start the config watcher when configuration came from a file

        Shutdown runs the same steps in reverse.
        """
        logger.info("Starting AgentHub...")
        if components is None:
            setup_logging(config.logging)
            built = await build_components(config)
        else:
            built = components
            await built.storage.initialize()
        _attach(app, built)

        def on_config_change(new_config: Config) -> None:
            setup_logging(new_config.logging)
            logger.info("Logging reconfigured after config change")

        if config_manager is not None:
            config_manager.on_change(on_config_change)
            config_manager.start_watcher()
            logger.info("Config watcher started", extra={"config_path": str(config_manager.config_path)})
        logger.info("AgentHub started successfully")

        yield

        logger.info("Shutting down AgentHub...")
        if config_manager is not None:
            config_manager.stop_watcher()
            config_manager.remove_callback(on_config_change)
        await built.close()
        logger.info("AgentHub stopped")

    return lifespan


def create_app(
    config: Optional[Config] = None,
    components: Optional[AppComponents] = None,
) -> FastAPI:
    """Create and configure FastAPI application.

    Middleware order (last added = outermost):
    1. CORS - Allow cross-origin requests
    2. Tracing - Trace ids and request context
    3. Error Handler - Unified error responses inside the traced context

    Args:
        config: Configuration to use; loaded through ``ConfigManager`` if None
        components: Pre-built components (tests); built in the lifespan if None.
            The app closes them on shutdown either way.
    """
    config_manager: Optional[ConfigManager] = None
    if config is None:
        config_manager = ConfigManager()
        config = config_manager.config

    app = FastAPI(
        title="AgentHub",
        description="Multi-agent chat backend",
        version="0.1.0",
        lifespan=_make_lifespan(config, config_manager, components),
        docs_url="/docs" if config.server.reload else None,
        redoc_url="/redoc" if config.server.reload else None,
    )

    app.add_middleware(ErrorHandlerMiddleware, include_traceback=config.server.reload)
    app.add_middleware(TracingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Trace-ID", "X-Request-ID", "X-Response-Time"],
    )

    from .api.v1.chat import router as chat_router
    from .api.v1.health import router as health_router

    app.include_router(health_router, prefix="/api/v1", tags=["Health"])
    app.include_router(chat_router, prefix="/api/v1", tags=["Chat"])

    return app


def main() -> None:
    import uvicorn

    config = ConfigManager().config
    uvicorn.run(
        "agenthub.main:create_app",
        factory=True,
        host=config.server.host,
        port=config.server.port,
        reload=config.server.reload,
    )


if __name__ == "__main__":
    main()
