"""LLM Router for primary/backup model routing with failover."""

import time
from collections.abc import AsyncGenerator
from typing import Any

from ...config.models import ModelConfig
from ...utils.errors import ErrorCode, UpstreamError, classify_upstream_error
from ...utils.logger import get_logger, log_execution
from .bailian_provider import BailianProvider
from .openai_provider import OpenAIProvider
from .provider import LLMProvider, LLMResponse, StreamingLLMResponse

logger = get_logger(__name__)

PROVIDER_TYPES: dict[str, type[OpenAIProvider]] = {
    "openai": OpenAIProvider,
    "custom": OpenAIProvider,
    "bailian": BailianProvider,
}


class LLMRouter:
    """Routes LLM requests to available providers with failover support.

    1. Try primary provider first
    2. On a retryable failure, fall back to backup providers by priority
    3. Client errors (bad request, tool-sequence violation, auth) propagate
       immediately since another provider would reject the same request
    """

    def __init__(
        self,
        model_configs: list[ModelConfig],
        providers: list[LLMProvider] | None = None,
    ) -> None:
        """Initialize router.

        Args:
            model_configs: Model configurations, primary first or flagged
            providers: Pre-built providers (tests); primary must come first
        """
        self._providers: dict[str, LLMProvider] = {}
        self._primary: LLMProvider | None = None
        self._backups: list[LLMProvider] = []

        if providers is not None:
            for provider in providers:
                self._providers[provider.name] = provider
            if providers:
                self._primary = providers[0]
                self._backups = sorted(providers[1:], key=lambda p: p.priority)
        else:
            self._load_providers(model_configs)

    def _load_providers(self, model_configs: list[ModelConfig]) -> None:
        for model_config in model_configs:
            provider = self._create_provider(model_config)
            if provider is None:
                continue
            self._providers[model_config.name] = provider
            if model_config.is_primary:
                self._primary = provider
            else:
                self._backups.append(provider)
            logger.info(
                "Registered LLM provider",
                extra={
                    "provider_name": model_config.name,
                    "provider_type": model_config.provider,
                    "model_id": model_config.model_id,
                    "is_primary": model_config.is_primary,
                    "priority": model_config.priority,
                },
            )

        self._backups.sort(key=lambda p: p.priority)

        if not self._primary and self._backups:
            self._primary = self._backups.pop(0)
            logger.warning(
                "Primary provider unavailable, promoting first backup",
                extra={"provider_name": self._primary.name, "backup_count": len(self._backups)},
            )

    def _create_provider(self, config: ModelConfig) -> LLMProvider | None:
        provider_cls = PROVIDER_TYPES.get(config.provider)
        if provider_cls is None:
            logger.warning(
                "Unknown provider type",
                extra={"provider_type": config.provider, "provider_name": config.name},
            )
            return None

        provider = provider_cls({
            "name": config.name,
            "model_id": config.model_id,
            "api_key": config.api_key,
            "base_url": str(config.base_url) if config.base_url else None,
            "timeout": config.timeout,
            "max_retries": config.max_retries,
            "priority": config.priority,
            "is_primary": config.is_primary,
        })
        if not provider.is_available:
            logger.warning(
                "Provider is not available (missing API key)",
                extra={"provider_name": config.name, "provider_type": config.provider},
            )
            return None
        return provider

    @property
    def primary(self) -> LLMProvider | None:
        return self._primary

    @property
    def backups(self) -> list[LLMProvider]:
        return self._backups

    def _candidates(self) -> list[LLMProvider]:
        candidates = [self._primary] + self._backups if self._primary else list(self._backups)
        if not candidates:
            raise UpstreamError("No LLM providers available", ErrorCode.MODEL_UNAVAILABLE)
        return candidates

    async def close(self) -> None:
        """Close all provider connections."""
        for provider in self._providers.values():
            try:
                await provider.close()
            except Exception as e:
                logger.warning(
                    "Error closing provider",
                    extra={"provider_name": provider.name, "error": str(e)},
                )
        logger.info("LLM router closed", extra={"provider_count": len(self._providers)})

    @log_execution
    async def chat(
        self,
        messages: list[dict[str, Any]],
        stream: bool = False,
        **kwargs: Any
    ) -> LLMResponse | AsyncGenerator[StreamingLLMResponse, None]:
        """Send chat request with automatic failover.

        Returns:
            LLMResponse, or an async generator of chunks when ``stream`` is set.
            A stream fails over only until its first chunk has arrived.

        Raises:
            UpstreamError: When the request cannot be served
        """
        if stream:
            return self._stream_with_failover(messages, kwargs)

        last_error: UpstreamError | None = None
        for provider in self._candidates():
            start_time = time.time()
            try:
                result = await provider.chat(messages, stream=False, **kwargs)
            except Exception as e:
                error = classify_upstream_error(e, provider=provider.name)
                if not self._should_fail_over(provider, error):
                    raise error from e
                last_error = error
                continue

            logger.debug(
                "Provider call succeeded",
                extra={
                    "provider_name": provider.name,
                    "latency_ms": int((time.time() - start_time) * 1000),
                    "finish_reason": result.finish_reason,
                },
            )
            return result

        assert last_error is not None
        raise last_error

    async def _stream_with_failover(
        self,
        messages: list[dict[str, Any]],
        kwargs: dict[str, Any],
    ) -> AsyncGenerator[StreamingLLMResponse, None]:
        last_error: UpstreamError | None = None
        for provider in self._candidates():
            try:
                stream = await provider.chat(messages, stream=True, **kwargs)
                first = await stream.__anext__()
            except StopAsyncIteration:
                return
            except Exception as e:
                error = classify_upstream_error(e, provider=provider.name)
                if not self._should_fail_over(provider, error):
                    raise error from e
                last_error = error
                continue

            yield first
            async for chunk in stream:
                yield chunk
            return

        assert last_error is not None
        raise last_error

    def _should_fail_over(self, provider: LLMProvider, error: UpstreamError) -> bool:
        logger.warning(
            "Provider failed",
            extra={
                "provider_name": provider.name,
                "error": error.message[:200],
                "error_code": error.code.value,
                "status_code": error.status_code,
            },
        )
        return error.is_retryable

    async def health_check(self) -> dict[str, bool]:
        """Check health of all providers."""
        results = {}
        for name, provider in self._providers.items():
            try:
                results[name] = await provider.health_check()
            except Exception as e:
                logger.warning(
                    "Health check failed for provider",
                    extra={"provider_name": name, "error": str(e)},
                )
                results[name] = False
        return results
