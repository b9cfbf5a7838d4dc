"""
LLM client.

Thin wrapper over the OpenAI chat completions endpoint. Prompts live with
the job handlers that use them.
"""

from typing import Any

from portal.backend.core.config import get_app_config, get_settings
from portal.backend.core.exceptions import ExternalServiceError, ServiceNotConfiguredError
from portal.backend.core.logging import get_logger
from portal.backend.integrations.base import ExternalAPIClient

logger = get_logger(__name__)


class LLMClient(ExternalAPIClient):
    """Chat completions against an OpenAI-compatible API."""

    dependency = "openai"

    def __init__(self, **kwargs) -> None:
        config = get_app_config().integrations.openai
        self.api_key = get_settings().openai_api_key
        self.model = config.model
        self.max_tokens = config.max_tokens
        self.temperature = config.temperature
        super().__init__(
            base_url=config.base_url,
            headers={"Authorization": f"Bearer {self.api_key}"},
            **kwargs,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def complete(
        self,
        messages: list[dict[str, str]],
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> str:
        """
        Run a chat completion and return the assistant text.

        Args:
            messages: ``[{"role": "system"|"user"|"assistant", "content": ...}]``
        """
        if not self.is_configured:
            raise ServiceNotConfiguredError("AI assistant is not configured")

        payload: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "max_tokens": max_tokens or self.max_tokens,
            "temperature": self.temperature if temperature is None else temperature,
        }
        response = await self.request("POST", "/chat/completions", json=payload)
        if response.status_code >= 400:
            logger.error(
                "LLM request rejected",
                extra={"status_code": response.status_code, "model": self.model},
            )
            raise ExternalServiceError("AI provider rejected the request")

        data = response.json()
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError) as e:
            raise ExternalServiceError("AI provider returned an unexpected response") from e

        usage = data.get("usage", {})
        logger.info(
            "LLM completion",
            extra={
                "model": self.model,
                "prompt_tokens": usage.get("prompt_tokens"),
                "completion_tokens": usage.get("completion_tokens"),
            },
        )
        return (content or "").strip()
