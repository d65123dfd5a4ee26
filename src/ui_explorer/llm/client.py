"""
Chat completion client for OpenAI-compatible APIs (OpenRouter, OpenAI).

Only the request/response plumbing lives here: one system prompt and
one user prompt in, the assistant's text out. Retries and fallbacks are
the caller's business.
"""

import os

import httpx

from ui_explorer.config.settings import APILLMSettings
from ui_explorer.core.exceptions import (
    APIAuthenticationError,
    APIConnectionError,
    APILLMError,
    APIRateLimitError,
    LLMResponseError,
)
from ui_explorer.utils.logging import get_logger
from ui_explorer.utils.metrics import time_llm_call

logger = get_logger(__name__)


def _retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("retry-after")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class ChatClient:
    """
    Minimal async client for ``POST {base_url}/chat/completions``.

    Example:
        >>> client = ChatClient.from_settings(settings.api_llm)
        >>> text = await client.complete("You are terse.", "Say hi", timeout_s=10)
    """

    def __init__(
        self,
        api_key: str | None,
        settings: APILLMSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize chat client.

        Args:
            api_key: Bearer token for the API
            settings: Endpoint, model and sampling configuration
            transport: Optional httpx transport, used by tests
        """
        self.api_key = api_key
        self.settings = settings or APILLMSettings()
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: APILLMSettings) -> "ChatClient":
        """Create a client reading the API key from ``settings.api_key_env_var``."""
        return cls(os.environ.get(settings.api_key_env_var), settings)

    @property
    def endpoint(self) -> str:
        return self.settings.base_url.rstrip("/") + "/chat/completions"

    def _build_payload(self, system: str, user: str) -> dict:
        return {
            "model": self.settings.model_name,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            "temperature": self.settings.temperature,
            "max_tokens": self.settings.max_tokens,
            "response_format": {"type": "json_object"},
        }

    def _raise_for_status(self, response: httpx.Response) -> None:
        status = response.status_code
        if status < 400:
            return

        body = response.text[:200]
        details = {"status_code": status, "body": body}

        if status in (401, 403):
            raise APIAuthenticationError("API rejected credentials", details=details)
        if status == 429:
            raise APIRateLimitError(
                "API rate limit exceeded",
                retry_after=_retry_after(response),
                details=details,
            )
        if status >= 500:
            raise APIConnectionError(f"API server error: {status}", details=details)
        raise APILLMError(f"API request failed: {status}", details=details)

    async def complete(self, system: str, user: str, timeout_s: float | None = None) -> str:
        """
        Run one chat completion.

        Args:
            system: System prompt
            user: User prompt
            timeout_s: Request timeout; defaults to ``settings.timeout_seconds``

        Returns:
            Content of the first choice

        Raises:
            APIAuthenticationError: Missing or rejected API key
            APIRateLimitError: HTTP 429
            APIConnectionError: Transport failure, timeout or 5xx
            LLMResponseError: Response body has no usable content
        """
        if not self.api_key:
            raise APIAuthenticationError(
                "API key is missing",
                details={"env_var": self.settings.api_key_env_var},
            )

        timeout = timeout_s if timeout_s is not None else self.settings.timeout_seconds
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "X-Title": "UI Explorer",
        }

        try:
            with time_llm_call():
                async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                    response = await client.post(
                        self.endpoint,
                        headers=headers,
                        json=self._build_payload(system, user),
                    )
        except httpx.TimeoutException as e:
            raise APIConnectionError(
                f"API request timed out after {timeout}s",
                details={"endpoint": self.endpoint},
            ) from e
        except httpx.HTTPError as e:
            raise APIConnectionError(
                f"API request failed: {e}",
                details={"endpoint": self.endpoint},
            ) from e

        self._raise_for_status(response)

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise LLMResponseError(
                "API response has no message content",
                raw_response=response.text,
            ) from e

        if not isinstance(content, str) or not content.strip():
            raise LLMResponseError("API returned empty content", raw_response=response.text)

        logger.debug(f"Chat completion received ({len(content)} chars)")
        return content
