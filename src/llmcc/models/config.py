"""Configuration models for llmcc.

DecodeOptions carries every setting a decode loop needs. Nothing inside
the core reads process environment: API keys, model names and deadlines
all arrive through these options or through client constructor arguments.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_TEMPERATURE = 0.2
DEFAULT_MAX_REPAIRS = 3


class DecodeOptions(BaseModel):
    """Per-call options for a decode loop.

    Attributes:
        max_repairs: Round budget. The loop runs at most max_repairs + 1
            generation rounds and performs at most max_repairs repairs.
        temperature: Sampling temperature forwarded to the generator.
        model: Model identifier forwarded to the generator.
        deadline_s: Wall-clock budget for the whole loop in seconds.
            None disables the deadline.
        schema_base_dir: Directory that ``ref://`` schema locators are
            resolved against. None means the current working directory.
    """

    model_config = {"frozen": True}

    max_repairs: int = Field(default=DEFAULT_MAX_REPAIRS, ge=0)
    temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0.0, le=2.0)
    model: str = DEFAULT_MODEL
    deadline_s: Optional[float] = Field(default=None, gt=0)
    schema_base_dir: Optional[str] = None
