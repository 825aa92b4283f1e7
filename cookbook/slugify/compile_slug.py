"""Compile a Slug

Run the decode loop for the slugify_title contract. With
LLMCC_OPENAI_API_KEY set, candidates come from the chat model; without
it, a scripted generator stands in so the repair path can be seen offline.

Demonstrates: load_contract(), DecodeLoop, DecodeOptions, LLMGenerator,
              load_repair_config(), result.verification.describe()
"""

import os
from pathlib import Path

from dotenv import load_dotenv

from llmcc import DecodeLoop, DecodeOptions, load_contract, load_repair_config
from llmcc.engine.schema import load_schema
from llmcc.llm import LLMGenerator, OpenAIClient, build_synthesis_prompt

load_dotenv()

HERE = Path(__file__).parent


class ScriptedGenerator:
    """Replays fixed candidates: a bad slug first, then a clean one."""

    def __init__(self, candidates):
        self._candidates = list(candidates)

    def generate(self, prompt, *, is_repair_round=False, model=None, temperature=None):
        return self._candidates.pop(0) if len(self._candidates) > 1 else self._candidates[0]


def main():
    contract = load_contract(HERE / "slugify.contract.yaml")
    schema = load_schema(contract.output_schema, HERE)
    repairer = load_repair_config(HERE / "slugify.repairs.yaml").build_repairer()
    options = DecodeOptions(max_repairs=2, schema_base_dir=str(HERE))
    prompt = build_synthesis_prompt(contract, "Title: API v2.0 -- Release Notes")

    if os.environ.get("LLMCC_OPENAI_API_KEY"):
        with OpenAIClient() as client:
            loop = DecodeLoop(LLMGenerator(client, output_schema=schema), repairer=repairer)
            result = loop.decode(prompt, contract, options, schema=schema)
    else:
        loop = DecodeLoop(ScriptedGenerator(["api_v2.0 release notes!!"]), repairer=repairer)
        result = loop.decode(prompt, contract, options, schema=schema)

    print(f"valid={result.valid} repairs={result.repairs_attempted} rounds={result.rounds}")
    print(f"output={result.output!r}")
    for line in result.history:
        print(f"  {line}")
    for violation in result.verification.describe():
        print(f"  violation: {violation}")


if __name__ == "__main__":
    main()
