"""llmcc: contract-checked decoding for LLM outputs.

Public API re-exports for convenient access::

    from llmcc import DecodeLoop, DecodeOptions, load_contract

The CLI lives in llmcc.cli and is never imported from here.
"""

from llmcc._version import __version__
from llmcc.decode import (
    CompiledContract,
    DecodeLoop,
    DecodeRequest,
    DecodeState,
    compile_contract,
    decode,
    decode_batch,
)
from llmcc.engine.hashing import canonical_json, format_spec_id, hash_spec
from llmcc.engine.invariants import (
    InvariantCheck,
    InvariantEvaluator,
    evaluate_invariants,
)
from llmcc.engine.repair import (
    RepairCategory,
    RepairConfig,
    Repairer,
    RepairRegistry,
    RepairRule,
    load_repair_config,
)
from llmcc.engine.schema import SchemaCheck, SchemaValidator, load_schema
from llmcc.exceptions import (
    ConfigurationError,
    ContractError,
    DecodeTimeoutError,
    GenerationError,
    GenerationFailedError,
    LLMCCError,
    RepairConfigError,
    SchemaError,
)
from llmcc.models.config import DecodeOptions
from llmcc.models.contract import Contract, Counterexample, load_contract
from llmcc.models.verdict import (
    DecodeResult,
    ModelInfo,
    ValidationVerdict,
    Violation,
)

__all__ = [
    "__version__",
    # Decode loop
    "DecodeLoop",
    "DecodeState",
    "DecodeRequest",
    "CompiledContract",
    "compile_contract",
    "decode",
    "decode_batch",
    # Contracts and options
    "Contract",
    "Counterexample",
    "load_contract",
    "DecodeOptions",
    # Results
    "DecodeResult",
    "ModelInfo",
    "ValidationVerdict",
    "Violation",
    # Validators
    "SchemaValidator",
    "SchemaCheck",
    "load_schema",
    "InvariantEvaluator",
    "InvariantCheck",
    "evaluate_invariants",
    # Repair
    "Repairer",
    "RepairRule",
    "RepairCategory",
    "RepairConfig",
    "RepairRegistry",
    "load_repair_config",
    # Hashing
    "canonical_json",
    "hash_spec",
    "format_spec_id",
    # Exceptions
    "LLMCCError",
    "ConfigurationError",
    "ContractError",
    "SchemaError",
    "RepairConfigError",
    "GenerationError",
    "GenerationFailedError",
    "DecodeTimeoutError",
]
