"""阿里云百炼 LLM provider implementation."""

from .openai_provider import OpenAIProvider


class BailianProvider(OpenAIProvider):
    """阿里云百炼 (Bailian / DashScope) provider for Qwen models.

    百炼平台提供 OpenAI 兼容的 API，因此复用 OpenAI SDK。
    """

    DEFAULT_BASE_URL = "https://dashscope.aliyuncs.com/compatible-mode/v1"
    API_KEY_ENV_VARS = ("DASHSCOPE_API_KEY", "BAILIAN_API_KEY")
