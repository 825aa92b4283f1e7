"""LLM client and generator protocols.

LLMClient is the transport (chat completions). Generator is what the
decode loop talks to: it turns a prompt into one raw candidate.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class LLMClient(Protocol):
    """Chat-completions transport used by LLMGenerator.

    chat() returns the raw completion dict; extra keyword arguments go into
    the request body unchanged. OpenAIClient is the shipped implementation.
    """

    def chat(
        self,
        messages: list[dict[str, str]],
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        **kwargs: Any,
    ) -> dict:
        ...

    def close(self) -> None:
        ...


@runtime_checkable
class Generator(Protocol):
    """Produces one raw candidate per call.

    May raise or hang; the decode loop treats any exception as a
    generation failure for the current round and bounds the wait with
    its deadline. Implementations used with ``decode_batch`` must be safe
    to call from several threads.
    """

    def generate(
        self,
        prompt: str,
        *,
        is_repair_round: bool = False,
        model: str | None = None,
        temperature: float | None = None,
    ) -> Any:
        """Return a candidate for *prompt*.

        Args:
            prompt: Opaque prompt text.
            is_repair_round: True on every round after the first, so the
                generator can ask the model to fix its previous output.
            model: Model requested by the decode options.
            temperature: Sampling temperature requested by the decode options.
        """
        ...
