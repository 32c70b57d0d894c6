"""Structured JSON logging with automatic request-context injection.

Log level guidelines:
   - ERROR: upstream model failures, storage failures
   - WARNING: guard rejections, fallbacks, retries, failover
   - INFO: turn start/completion, session hydration, compaction, summary refresh
   - DEBUG: tool rounds, cache hits, routine initialization

Always pass contextual data through ``extra``:

    logger.info(
        "Turn completed",
        extra={"conversation_id": cid, "tool_rounds": 2},
    )

Never log API keys or full user messages (truncate to 100 chars).
"""

import functools
import inspect
import logging
import logging.handlers
import sys
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, TypeVar

import structlog
from pythonjsonlogger import jsonlogger

if TYPE_CHECKING:
    from ..config.models import LoggingConfig

F = TypeVar("F", bound=Callable[..., Any])

TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-30s | trace_id=%(trace_id)s | %(message)s"


class TraceIDFilter(logging.Filter):
    """Injects trace_id, request_id and conversation_id into log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        from ..core.context import get_current_context

        ctx = get_current_context()
        record.trace_id = ctx.trace_id if ctx else None
        record.request_id = ctx.request_id if ctx else None
        record.conversation_id = ctx.conversation_id if ctx else None
        return True


class ContextInfoProcessor:
    """Structlog processor that adds request context and module name."""

    def __call__(self, logger: Any, method_name: str, event_dict: dict) -> dict:
        from ..core.context import get_current_context

        ctx = get_current_context()
        if ctx:
            event_dict.setdefault("trace_id", ctx.trace_id)
            event_dict.setdefault("request_id", ctx.request_id)
            if ctx.conversation_id:
                event_dict.setdefault("conversation_id", ctx.conversation_id)

        event_dict["module"] = event_dict.get("logger", "unknown")
        return event_dict


def parse_size(size: str, default: int = 10 * 1024 * 1024) -> int:
    """Parse a human size string ("10MB", "512KB", "1GB") into bytes."""
    value = size.strip().upper()
    units = {"KB": 1024, "MB": 1024 ** 2, "GB": 1024 ** 3}
    for suffix, factor in units.items():
        if value.endswith(suffix):
            try:
                return int(float(value[:-2]) * factor)
            except ValueError:
                return default
    try:
        return int(value)
    except ValueError:
        return default


def setup_logging(config: "LoggingConfig") -> None:
    """Setup structured logging with JSON format and automatic trace ID injection.

    Args:
        config: Logging configuration
    """
    trace_filter = TraceIDFilter()
    handlers: list[logging.Handler] = []

    if config.format == "json":
        formatter: logging.Formatter = jsonlogger.JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s %(trace_id)s %(request_id)s %(conversation_id)s",
            rename_fields={
                "asctime": "timestamp",
                "levelname": "level",
                "name": "module",
            },
        )
    else:
        formatter = logging.Formatter(TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    if config.file:
        log_path = Path(config.file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            filename=log_path,
            maxBytes=parse_size(config.max_size),
            backupCount=config.backup_count,
            encoding="utf-8",
        )
        file_handler.addFilter(trace_filter)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if config.console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.addFilter(trace_filter)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    logging.basicConfig(
        level=getattr(logging, config.level.upper()),
        handlers=handlers,
        force=True,
    )

    processors: list[Any] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S.%f", utc=False),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        ContextInfoProcessor(),
    ]

    if config.format == "json":
        processors.append(structlog.processors.JSONRenderer(ensure_ascii=False))
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str, **kwargs: Any) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance with automatic context injection.

    Args:
        name: Logger name (typically __name__)
        **kwargs: Additional context to bind to the logger

    Returns:
        Structured logger instance
    """
    logger = structlog.get_logger(name)
    if kwargs:
        logger = logger.bind(**kwargs)
    return logger


def _preview_params(args: tuple, kwargs: dict) -> dict[str, Any]:
    preview: dict[str, Any] = {}
    if args:
        preview["args_count"] = len(args)
    if kwargs:
        preview["kwargs"] = {
            k: str(v)[:100] if isinstance(v, str) else type(v).__name__
            for k, v in kwargs.items()
        }
    return preview


def log_execution(func: F) -> F:
    """Decorator that logs function entry, exit, duration and exceptions.

    Slow calls (> 100ms) are logged at INFO, everything else at DEBUG.
    Works on both sync and async callables.

    Usage:
        @log_execution
        async def complete(self, transcript): ...
    """
    logger = get_logger(func.__module__)
    func_name = func.__qualname__

    def _log_exit(start_time: float, result: Any) -> None:
        elapsed_ms = (time.time() - start_time) * 1000
        log_method = logger.info if elapsed_ms > 100 else logger.debug
        log_method(
            f"Exiting {func_name}",
            extra={
                "event": "function_exit",
                "function": func_name,
                "duration_ms": round(elapsed_ms, 2),
                "result_type": type(result).__name__,
            },
        )

    def _log_exception(start_time: float, e: Exception) -> None:
        logger.error(
            f"Exception in {func_name}",
            extra={
                "event": "function_exception",
                "function": func_name,
                "error": str(e),
                "error_type": type(e).__name__,
                "duration_ms": round((time.time() - start_time) * 1000, 2),
            },
        )

    @functools.wraps(func)
    async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
        logger.debug(
            f"Entering {func_name}",
            extra={"event": "function_entry", "function": func_name, "params": _preview_params(args, kwargs)},
        )
        start_time = time.time()
        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            _log_exception(start_time, e)
            raise
        _log_exit(start_time, result)
        return result

    @functools.wraps(func)
    def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
        logger.debug(
            f"Entering {func_name}",
            extra={"event": "function_entry", "function": func_name, "params": _preview_params(args, kwargs)},
        )
        start_time = time.time()
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            _log_exception(start_time, e)
            raise
        _log_exit(start_time, result)
        return result

    if inspect.iscoroutinefunction(func):
        return async_wrapper  # type: ignore
    return sync_wrapper  # type: ignore
