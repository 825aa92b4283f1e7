"""LLM client infrastructure for llmcc.

Provides an OpenAI-compatible HTTP client, the LLMClient and Generator
protocols, and LLMGenerator, the structured-output generator used by the
decode loop.
"""

from llmcc.llm.client import OpenAIClient
from llmcc.llm.errors import (
    LLMAuthError,
    LLMCallError,
    LLMClientError,
    LLMConfigError,
    LLMRateLimitError,
    LLMResponseError,
)
from llmcc.llm.generator import (
    LLMGenerator,
    build_response_format,
    build_synthesis_prompt,
)
from llmcc.llm.protocols import Generator, LLMClient

__all__ = [
    "OpenAIClient",
    "LLMClient",
    "Generator",
    "LLMGenerator",
    "build_response_format",
    "build_synthesis_prompt",
    "LLMClientError",
    "LLMCallError",
    "LLMConfigError",
    "LLMRateLimitError",
    "LLMAuthError",
    "LLMResponseError",
]
