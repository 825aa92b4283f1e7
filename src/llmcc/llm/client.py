"""Chat-completions client for OpenAI-compatible endpoints.

One POST per call to ``{base_url}/chat/completions``. The request body is
the usual ``model``/``messages`` pair plus whatever extra fields the
caller passes (``response_format`` for strict structured output).

Failures are sorted before tenacity sees them: 401/403 become
LLMAuthError and stop at once, 429 becomes LLMRateLimitError carrying the
server's Retry-After, and 5xx or connection errors are retried with
jittered exponential backoff.
"""

from __future__ import annotations

import logging
import os
from typing import Any

import httpx
import tenacity

from llmcc.llm.errors import (
    LLMAuthError,
    LLMConfigError,
    LLMRateLimitError,
    LLMResponseError,
)

logger = logging.getLogger(__name__)

API_KEY_ENV = "LLMCC_OPENAI_API_KEY"
BASE_URL_ENV = "LLMCC_OPENAI_BASE_URL"
DEFAULT_BASE_URL = "https://api.openai.com/v1"

_TRANSIENT_STATUSES = frozenset({500, 502, 503, 504})


def _parse_retry_after(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _should_retry(exc: BaseException) -> bool:
    if isinstance(exc, LLMRateLimitError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in _TRANSIENT_STATUSES
    return isinstance(exc, (httpx.ConnectError, httpx.ConnectTimeout))


def _check_status(response: httpx.Response) -> None:
    """Map an error response to the matching exception; no-op on success."""
    status = response.status_code
    if status in (401, 403):
        raise LLMAuthError(f"Authentication failed: HTTP {status} - {response.text}")
    if status == 429:
        raise LLMRateLimitError(
            f"Rate limited: HTTP 429 - {response.text}",
            retry_after=_parse_retry_after(response.headers.get("Retry-After")),
        )
    response.raise_for_status()


class OpenAIClient:
    """Blocking chat-completions client; satisfies the LLMClient protocol.

    Example::

        with OpenAIClient(default_model="gpt-4o-mini") as client:
            reply = client.chat(messages, response_format=fmt)
            text = OpenAIClient.extract_content(reply)
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        default_model: str = "gpt-4o-mini",
        timeout: float = 120.0,
        max_retries: int = 3,
    ) -> None:
        """
        Args:
            api_key: Bearer token; ``LLMCC_OPENAI_API_KEY`` when omitted.
            base_url: Endpoint root; ``LLMCC_OPENAI_BASE_URL`` when omitted,
                else the public OpenAI API.
            default_model: Model used when chat() is given none.
            timeout: Per-request timeout in seconds.
            max_retries: Total attempts allowed for transient failures.

        Raises:
            LLMConfigError: If no API key can be found.
        """
        key = api_key or os.environ.get(API_KEY_ENV, "")
        if not key:
            raise LLMConfigError(
                f"Missing API key: pass api_key= or export {API_KEY_ENV}."
            )
        self._api_key = key
        self._base_url = (base_url or os.environ.get(BASE_URL_ENV) or DEFAULT_BASE_URL).rstrip("/")
        self._default_model = default_model
        self._max_retries = max_retries
        self._client = httpx.Client(
            timeout=timeout,
            headers={"Authorization": f"Bearer {key}"},
        )

    @property
    def endpoint(self) -> str:
        return self._base_url + "/chat/completions"

    def _retrying(self) -> tenacity.Retrying:
        return tenacity.Retrying(
            retry=tenacity.retry_if_exception(_should_retry),
            stop=tenacity.stop_after_attempt(self._max_retries),
            wait=tenacity.wait_exponential(multiplier=1, min=1, max=30)
            + tenacity.wait_random(0, 2),
            before_sleep=tenacity.before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    def chat(
        self,
        messages: list[dict[str, str]],
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        **kwargs: Any,
    ) -> dict:
        """Run one chat completion, retrying transient failures.

        Extra keyword arguments are merged into the request body as-is.

        Raises:
            LLMAuthError: On 401/403, without retrying.
            LLMRateLimitError: On 429 once attempts run out.
            LLMResponseError: If the reply has no ``choices``.
            httpx.HTTPStatusError: On any other error status.
        """
        body: dict[str, Any] = {"model": model or self._default_model, "messages": messages}
        if temperature is not None:
            body["temperature"] = temperature
        if max_tokens is not None:
            body["max_tokens"] = max_tokens
        body.update(kwargs)
        return self._retrying()(self._post, body)

    def _post(self, body: dict[str, Any]) -> dict:
        response = self._client.post(self.endpoint, json=body)
        _check_status(response)
        data = response.json()
        if "choices" not in data:
            raise LLMResponseError(f"Reply has no 'choices': {data}")
        return data

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> OpenAIClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @staticmethod
    def extract_content(response: dict) -> str:
        """Text of the first choice's message ("" when the content is null).

        Raises:
            LLMResponseError: If the reply is not shaped like a completion.
        """
        try:
            message = response["choices"][0]["message"]
        except (KeyError, IndexError, TypeError) as exc:
            raise LLMResponseError(f"Malformed completion reply: {exc}") from exc
        return message.get("content") or ""

    @staticmethod
    def extract_usage(response: dict) -> dict | None:
        return response.get("usage")
