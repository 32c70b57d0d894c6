"""OpenAI-compatible LLM provider implementation."""

import os
from collections.abc import AsyncGenerator
from typing import Any

import httpx
from openai import AsyncOpenAI

from ...utils.errors import ErrorCode, UpstreamError, classify_upstream_error
from .provider import LLMProvider, LLMResponse, StreamingLLMResponse, ToolCallDelta


class OpenAIProvider(LLMProvider):
    """OpenAI-compatible provider.

    Supports OpenAI API and any OpenAI-compatible endpoints
    (e.g., local models, custom providers).
    """

    DEFAULT_BASE_URL = "https://api.openai.com/v1"
    API_KEY_ENV_VARS: tuple[str, ...] = ("OPENAI_API_KEY",)

    def __init__(self, config: dict[str, Any]) -> None:
        super().__init__(config)
        self._client: AsyncOpenAI | None = None
        self._api_key = self._get_api_key()
        self._base_url = config.get("base_url") or self.DEFAULT_BASE_URL

    def _get_api_key(self) -> str | None:
        """Get API key from config, falling back to the environment."""
        api_key = self.config.get("api_key")
        if api_key:
            if hasattr(api_key, "get_secret_value"):
                api_key = api_key.get_secret_value()
            if api_key:
                return str(api_key)

        for env_var in self.API_KEY_ENV_VARS:
            value = os.getenv(env_var)
            if value:
                return value
        return None

    @property
    def is_available(self) -> bool:
        return bool(self._api_key and self._base_url)

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self._api_key,
                base_url=self._base_url,
                timeout=httpx.Timeout(self.timeout),
                max_retries=self.max_retries,
            )
        return self._client

    async def chat(
        self,
        messages: list[dict[str, Any]],
        stream: bool = False,
        **kwargs: Any
    ) -> LLMResponse | AsyncGenerator[StreamingLLMResponse, None]:
        """Send chat completion request."""
        if not self.is_available:
            raise UpstreamError(
                f"Provider {self.name} is not available",
                ErrorCode.MODEL_UNAVAILABLE,
                provider=self.name,
            )

        params = {
            "model": self.model_id,
            "messages": messages,
            **{k: v for k, v in kwargs.items() if v is not None},
        }

        if stream:
            return self._chat_streaming(self._get_client(), params)
        return await self._chat_non_streaming(self._get_client(), params)

    async def _chat_non_streaming(
        self,
        client: AsyncOpenAI,
        params: dict[str, Any]
    ) -> LLMResponse:
        try:
            response = await client.chat.completions.create(**params)
        except Exception as e:
            raise classify_upstream_error(e, provider=self.name) from e

        if not response.choices:
            raise UpstreamError(
                "Provider returned no choices", ErrorCode.MODEL_UNAVAILABLE, provider=self.name
            )

        choice = response.choices[0]
        tool_calls = None
        if choice.message.tool_calls:
            tool_calls = [
                {
                    "id": tc.id,
                    "type": "function",
                    "function": {
                        "name": tc.function.name,
                        "arguments": tc.function.arguments or "",
                    },
                }
                for tc in choice.message.tool_calls
            ]

        return LLMResponse(
            content=choice.message.content or "",
            model=response.model,
            usage={
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            } if response.usage else None,
            tool_calls=tool_calls,
            finish_reason=choice.finish_reason,
        )

    async def _chat_streaming(
        self,
        client: AsyncOpenAI,
        params: dict[str, Any]
    ) -> AsyncGenerator[StreamingLLMResponse, None]:
        params["stream"] = True
        try:
            response = await client.chat.completions.create(**params)
            async for chunk in response:
                if not chunk.choices:
                    continue
                choice = chunk.choices[0]
                delta = choice.delta
                tool_deltas = [
                    ToolCallDelta(
                        index=tc.index,
                        id=tc.id,
                        name=tc.function.name if tc.function else None,
                        arguments=(tc.function.arguments or "") if tc.function else "",
                    )
                    for tc in (delta.tool_calls or [])
                ]
                yield StreamingLLMResponse(
                    content=delta.content or "",
                    is_finished=choice.finish_reason is not None,
                    model=chunk.model,
                    tool_call_deltas=tool_deltas,
                    finish_reason=choice.finish_reason,
                )
        except UpstreamError:
            raise
        except Exception as e:
            raise classify_upstream_error(e, provider=self.name) from e

    async def health_check(self) -> bool:
        if not self.is_available:
            return False
        try:
            await self._get_client().models.list()
            return True
        except Exception:
            return False

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
