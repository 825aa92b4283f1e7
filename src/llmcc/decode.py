"""The decode-verify-repair loop.

DecodeLoop turns an unreliable Generator into a value that satisfies a
Contract, or gives up deterministically after a fixed budget::

    GENERATING -> VALIDATING -> ACCEPTED
                             -> REPAIRING -> VALIDATING -> ACCEPTED
                                                        -> GENERATING (next round)
                             -> EXHAUSTED

Budget policy: a single round counter covers both kinds of attempt. Each
round is one generation followed by at most one repair, and repairs only
happen in non-final rounds, so ``repairs_attempted <= max_repairs`` and at
most ``max_repairs + 1`` generator calls are made.

Only configuration errors, a generation failure on the final round and a
passed deadline are raised. Every validation outcome, including running
out of rounds, comes back as a DecodeResult; callers check ``valid``.
"""

from __future__ import annotations

import enum
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Sequence

from llmcc.engine.hashing import hash_spec
from llmcc.engine.invariants import InvariantEvaluator
from llmcc.engine.repair import Repairer, RepairRegistry
from llmcc.engine.schema import SchemaValidator, load_schema
from llmcc.exceptions import (
    ContractError,
    DecodeTimeoutError,
    GenerationError,
    GenerationFailedError,
)
from llmcc.models.config import DecodeOptions
from llmcc.models.contract import Contract
from llmcc.models.verdict import DecodeResult, ModelInfo, ValidationVerdict

if TYPE_CHECKING:
    from llmcc.llm.protocols import Generator

logger = logging.getLogger(__name__)


class DecodeState(str, enum.Enum):
    """States of the decode loop. ACCEPTED and EXHAUSTED are terminal."""

    GENERATING = "generating"
    VALIDATING = "validating"
    REPAIRING = "repairing"
    ACCEPTED = "accepted"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class CompiledContract:
    """Validators built once per decode call and reused every round."""

    contract: Contract
    schema_validator: SchemaValidator
    evaluator: InvariantEvaluator
    spec_hash: str

    def validate(self, candidate: Any) -> ValidationVerdict:
        """Run schema and invariant checks against one candidate."""
        schema_check = self.schema_validator(candidate)
        invariant_check = self.evaluator.evaluate(candidate)
        return ValidationVerdict(
            schema_pass=schema_check.passed,
            invariants_pass=invariant_check.valid,
            violations=schema_check.errors + invariant_check.violations,
        )


def compile_contract(
    contract: Contract | dict,
    *,
    schema: dict | bool | None = None,
    schema_base_dir: str | None = None,
) -> CompiledContract:
    """Check a contract and compile its validators.

    Args:
        contract: Contract, or a mapping with contract fields.
        schema: Output schema to use instead of loading
            ``contract.output_schema``.
        schema_base_dir: Base directory for ``ref://`` locators.

    Raises:
        ContractError: If the contract is malformed.
        SchemaError: If the schema is missing or invalid.
    """
    if isinstance(contract, dict):
        contract = Contract.from_dict(contract)
    elif not isinstance(contract, Contract):
        raise ContractError(
            f"Expected a Contract, got {type(contract).__name__}"
        )

    if schema is None and contract.output_schema:
        schema = load_schema(contract.output_schema, schema_base_dir)

    spec_hash = hash_spec(contract)
    if contract.spec_hash and contract.spec_hash != spec_hash:
        logger.warning(
            "Contract %s declares spec_hash %s but its fields hash to %s",
            contract.name, contract.spec_hash, spec_hash,
        )

    return CompiledContract(
        contract=contract,
        schema_validator=SchemaValidator(schema),
        evaluator=InvariantEvaluator(contract.invariants),
        spec_hash=spec_hash,
    )


class DecodeLoop:
    """Drives Generator -> validators -> Repairer across bounded rounds.

    The loop holds no per-call state, so one instance can serve many
    independent decode() calls, concurrently if the generator allows it.

    Usage::

        loop = DecodeLoop(LLMGenerator(client, output_schema=schema))
        result = loop.decode(prompt, contract, DecodeOptions(max_repairs=2))
        if not result.valid:
            print(result.verification.describe())
    """

    def __init__(
        self,
        generator: Generator,
        *,
        repairer: Repairer | None = None,
        registry: RepairRegistry | None = None,
    ) -> None:
        self._generator = generator
        self._repairer = repairer
        self._registry = registry or RepairRegistry()

    @property
    def generator(self) -> Generator:
        return self._generator

    def decode(
        self,
        prompt: str,
        contract: Contract | dict,
        options: DecodeOptions | None = None,
        *,
        schema: dict | bool | None = None,
    ) -> DecodeResult:
        """Run the loop to a terminal state.

        Raises:
            ContractError, SchemaError: Before any generator call, if the
                contract or its schema is malformed.
            GenerationFailedError: If generation fails on the final round.
            DecodeTimeoutError: If ``options.deadline_s`` passes first.
        """
        options = options or DecodeOptions()
        started = time.monotonic()
        compiled = compile_contract(
            contract, schema=schema, schema_base_dir=options.schema_base_dir
        )
        repairer = self._repairer or self._registry.resolve(
            compiled.schema_validator.schema, compiled.contract.invariants
        )
        deadline_at = started + options.deadline_s if options.deadline_s else None
        model_info = ModelInfo(
            model=options.model,
            temperature=options.temperature,
            decode_mode=getattr(self._generator, "decode_mode", "custom"),
        )

        executor = ThreadPoolExecutor(max_workers=1) if deadline_at is not None else None
        try:
            return self._run(
                prompt, compiled, repairer, options, model_info,
                started=started, deadline_at=deadline_at, executor=executor,
            )
        finally:
            if executor is not None:
                executor.shutdown(wait=False, cancel_futures=True)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _run(
        self,
        prompt: str,
        compiled: CompiledContract,
        repairer: Repairer,
        options: DecodeOptions,
        model_info: ModelInfo,
        *,
        started: float,
        deadline_at: float | None,
        executor: ThreadPoolExecutor | None,
    ) -> DecodeResult:
        name = compiled.contract.name
        max_repairs = options.max_repairs
        repairs = 0
        history: list[str] = []
        candidate: Any = None
        verdict: ValidationVerdict | None = None
        rounds = 0

        def finish(state: DecodeState, output: Any, final: ValidationVerdict) -> DecodeResult:
            latency_ms = int((time.monotonic() - started) * 1000)
            logger.info(
                "Decode %s %s after %d round(s), %d repair(s), %dms",
                name, state.value, rounds, repairs, latency_ms,
            )
            return DecodeResult(
                output=output,
                valid=state is DecodeState.ACCEPTED,
                repairs_attempted=repairs,
                verification=final,
                spec_hash=compiled.spec_hash,
                latency_ms=latency_ms,
                model_info=model_info,
                rounds=rounds,
                history=tuple(history),
            )

        for round_index in range(max_repairs + 1):
            rounds = round_index + 1
            is_final = round_index == max_repairs

            logger.debug("%s round %d: %s", name, round_index, DecodeState.GENERATING.value)
            try:
                candidate = self._generate(
                    prompt,
                    options,
                    is_repair_round=round_index > 0,
                    started=started,
                    deadline_at=deadline_at,
                    executor=executor,
                )
            except GenerationError as exc:
                history.append(f"round {round_index}: generation failed: {exc}")
                logger.warning("%s round %d: generation failed: %s", name, round_index, exc)
                if is_final:
                    raise GenerationFailedError(rounds, exc.__cause__ or exc) from exc
                continue

            logger.debug("%s round %d: %s", name, round_index, DecodeState.VALIDATING.value)
            verdict = compiled.validate(candidate)
            if verdict.passed:
                history.append(f"round {round_index}: accepted")
                return finish(DecodeState.ACCEPTED, candidate, verdict)

            if is_final:
                history.append(
                    f"round {round_index}: rejected ({len(verdict.violations)} violation(s))"
                )
                break

            logger.debug("%s round %d: %s", name, round_index, DecodeState.REPAIRING.value)
            repaired = repairer.repair(candidate, verdict.violations)
            if repaired is candidate or repaired == candidate:
                history.append(f"round {round_index}: rejected, no repair applicable")
                continue

            repairs += 1
            repaired_verdict = compiled.validate(repaired)
            if repaired_verdict.passed:
                history.append(f"round {round_index}: repaired and accepted")
                return finish(DecodeState.ACCEPTED, repaired, repaired_verdict)
            history.append(f"round {round_index}: repair did not satisfy contract")
            candidate, verdict = repaired, repaired_verdict

        # The final round either raised or produced a verdict.
        return finish(DecodeState.EXHAUSTED, candidate, verdict)  # type: ignore[arg-type]

    def _generate(
        self,
        prompt: str,
        options: DecodeOptions,
        *,
        is_repair_round: bool,
        started: float,
        deadline_at: float | None,
        executor: ThreadPoolExecutor | None,
    ) -> Any:
        """Call the generator once, wrapping its failures as GenerationError."""
        kwargs = {
            "is_repair_round": is_repair_round,
            "model": options.model,
            "temperature": options.temperature,
        }
        if deadline_at is None or executor is None:
            try:
                return self._generator.generate(prompt, **kwargs)
            except Exception as exc:
                raise GenerationError(str(exc) or type(exc).__name__) from exc

        remaining = deadline_at - time.monotonic()
        if remaining <= 0:
            raise DecodeTimeoutError(
                options.deadline_s or 0.0, int((time.monotonic() - started) * 1000)
            )

        future = executor.submit(self._generator.generate, prompt, **kwargs)
        try:
            return future.result(timeout=remaining)
        except FutureTimeoutError as exc:
            if not future.done():
                future.cancel()
                raise DecodeTimeoutError(
                    options.deadline_s or 0.0, int((time.monotonic() - started) * 1000)
                ) from None
            raise GenerationError(str(exc) or type(exc).__name__) from exc
        except Exception as exc:
            raise GenerationError(str(exc) or type(exc).__name__) from exc


def decode(
    prompt: str,
    contract: Contract | dict,
    generator: Generator,
    options: DecodeOptions | None = None,
    *,
    repairer: Repairer | None = None,
    schema: dict | bool | None = None,
) -> DecodeResult:
    """One-shot convenience wrapper around DecodeLoop.decode()."""
    return DecodeLoop(generator, repairer=repairer).decode(
        prompt, contract, options, schema=schema
    )


@dataclass(frozen=True)
class DecodeRequest:
    """One entry of a decode_batch() call."""

    prompt: str
    contract: Contract
    options: DecodeOptions | None = None
    schema: dict | bool | None = None


def decode_batch(
    loop: DecodeLoop,
    requests: Sequence[DecodeRequest],
    *,
    max_workers: int = 4,
) -> list[DecodeResult]:
    """Run independent decode loops concurrently.

    Results come back in request order. The first exception raised by any
    loop propagates once all submitted loops have finished.
    """
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = [
            pool.submit(loop.decode, r.prompt, r.contract, r.options, schema=r.schema)
            for r in requests
        ]
        return [f.result() for f in futures]
