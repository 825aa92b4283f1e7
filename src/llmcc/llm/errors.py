"""Errors raised by the chat-completions client and LLMGenerator.

They sit inside the llmcc hierarchy so callers can tell where each one
lands in a decode:

- LLMConfigError is a ConfigurationError. It comes from the client
  constructor, so it surfaces before any decode round starts.
- LLMCallError and its subclasses are GenerationErrors: one model call
  failed. Inside a DecodeLoop they use up the current round, and on the
  final round they end up as the ``last_error`` of GenerationFailedError.
"""

from __future__ import annotations

from llmcc.exceptions import ConfigurationError, GenerationError, LLMCCError


class LLMClientError(LLMCCError):
    """Common base for everything the LLM layer raises."""


class LLMConfigError(LLMClientError, ConfigurationError):
    """The client cannot be built, e.g. no API key anywhere."""


class LLMCallError(LLMClientError, GenerationError):
    """A single chat call failed after the client's own retries."""


class LLMRateLimitError(LLMCallError):
    """HTTP 429 that outlasted the client's retries.

    ``retry_after`` is the server's Retry-After in seconds, when it sent one.
    """

    def __init__(self, message: str = "Rate limited", retry_after: float | None = None) -> None:
        self.retry_after = retry_after
        if retry_after is not None:
            message = f"{message} (retry after {retry_after}s)"
        super().__init__(message)


class LLMAuthError(LLMCallError):
    """HTTP 401/403. The client does not retry these."""


class LLMResponseError(LLMCallError):
    """The reply was not a usable completion, or held no ``result`` value."""
