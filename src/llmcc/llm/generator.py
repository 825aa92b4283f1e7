"""Chat-completion backed Generator.

LLMGenerator asks an OpenAI-compatible model for structured output: the
contract's output schema is wrapped as ``{"result": <schema>}`` and sent
as a strict ``json_schema`` response format. The ``result`` field of the
JSON reply is the candidate.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from llmcc.llm.errors import LLMResponseError
from llmcc.llm.protocols import LLMClient

if TYPE_CHECKING:
    from llmcc.models.contract import Contract

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a precise code synthesis assistant. Generate output that "
    "strictly adheres to the provided JSON schema and contract specifications."
)
REPAIR_SUFFIX = " REPAIR MODE: Fix the previous output to meet all requirements."

RESPONSE_FORMAT_NAME = "synthesized_output"


def build_response_format(output_schema: dict | None) -> dict:
    """Wrap an output schema in the strict structured-output envelope."""
    return {
        "type": "json_schema",
        "json_schema": {
            "name": RESPONSE_FORMAT_NAME,
            "strict": True,
            "schema": {
                "type": "object",
                "properties": {"result": output_schema or {}},
                "required": ["result"],
                "additionalProperties": False,
            },
        },
    }


def build_synthesis_prompt(contract: Contract, context: str = "") -> str:
    """Default user prompt for a contract: its fields plus optional source context."""
    body = json.dumps(
        contract.model_dump(mode="json", exclude_none=True), indent=2
    )
    parts = [f"SYNTHESIZE:{contract.name}", "", f"Contract: {body}"]
    if context:
        parts += ["", "Source context:", context]
    parts += [
        "",
        "Generate a valid output for the function that satisfies the "
        "contract schema and invariants.",
    ]
    return "\n".join(parts) + "\n"


def _default_extract(response: dict) -> str:
    try:
        return response["choices"][0]["message"].get("content") or ""
    except (KeyError, IndexError, TypeError, AttributeError) as exc:
        raise LLMResponseError(f"Cannot extract content from response: {exc}") from exc


class LLMGenerator:
    """Generator that calls a chat model with JSON-schema structured output.

    Model and temperature arrive per call (DecodeLoop passes the values from
    DecodeOptions). When a direct caller leaves them out, the client's
    default model is used and no temperature is sent.
    """

    decode_mode = "json_schema+strict"

    def __init__(
        self,
        client: LLMClient,
        *,
        output_schema: dict | None = None,
        max_tokens: int | None = None,
    ) -> None:
        self._client = client
        self._response_format = build_response_format(output_schema)
        self._max_tokens = max_tokens

    def build_messages(self, prompt: str, *, is_repair_round: bool) -> list[dict[str, str]]:
        system = SYSTEM_PROMPT + (REPAIR_SUFFIX if is_repair_round else "")
        return [
            {"role": "system", "content": system},
            {"role": "user", "content": prompt},
        ]

    def generate(
        self,
        prompt: str,
        *,
        is_repair_round: bool = False,
        model: str | None = None,
        temperature: float | None = None,
    ) -> Any:
        """Call the model once and return the ``result`` value of its reply.

        Raises:
            LLMResponseError: If the reply is not JSON or lacks ``result``.
            LLMClientError: On transport failures from the client.
        """
        response = self._client.chat(
            self.build_messages(prompt, is_repair_round=is_repair_round),
            model=model,
            temperature=temperature,
            max_tokens=self._max_tokens,
            response_format=self._response_format,
        )
        extract = getattr(self._client, "extract_content", None) or _default_extract
        content = extract(response)
        if not content:
            raise LLMResponseError("Empty response from model")

        try:
            parsed = json.loads(content)
        except json.JSONDecodeError as exc:
            raise LLMResponseError(f"Model reply is not JSON: {exc}") from exc
        if not isinstance(parsed, dict) or "result" not in parsed:
            raise LLMResponseError("Model reply has no 'result' field")

        logger.debug("Generated candidate (repair_round=%s)", is_repair_round)
        return parsed["result"]
