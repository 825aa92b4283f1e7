"""llmcc exception hierarchy.

All llmcc-specific exceptions inherit from LLMCCError.

Only configuration errors, final-round generation failures and deadline
overruns are raised out of a decode loop. Validation failures are reported
as data on DecodeResult, never as exceptions.
"""


class LLMCCError(Exception):
    """Base exception for all llmcc errors."""


class ConfigurationError(LLMCCError):
    """Raised for fatal configuration problems. Never retried."""


class ContractError(ConfigurationError):
    """Raised when a contract is missing required fields or cannot be loaded."""


class SchemaError(ConfigurationError):
    """Raised when a JSON Schema is missing, unreadable or structurally invalid."""

    def __init__(self, message: str, locator: str | None = None) -> None:
        self.locator = locator
        if locator:
            message = f"{message} ({locator})"
        super().__init__(message)


class RepairConfigError(ConfigurationError):
    """Raised when a repair configuration file is malformed."""


class GenerationError(LLMCCError):
    """A single generator call failed or returned an unusable value.

    Retryable: the decode loop moves on to the next round.
    """

    def __init__(self, message: str, round_index: int | None = None) -> None:
        self.round_index = round_index
        super().__init__(message)


class GenerationFailedError(GenerationError):
    """Generation failed on the final round of a decode loop."""

    def __init__(self, rounds: int, last_error: BaseException) -> None:
        self.rounds = rounds
        self.last_error = last_error
        super().__init__(
            f"Decode failed after {rounds} generation round(s): {last_error}",
            round_index=rounds - 1,
        )


class DecodeTimeoutError(LLMCCError):
    """The caller-supplied deadline passed before the loop reached a verdict."""

    def __init__(self, deadline_s: float, elapsed_ms: int) -> None:
        self.deadline_s = deadline_s
        self.elapsed_ms = elapsed_ms
        super().__init__(
            f"Decode deadline of {deadline_s}s exceeded after {elapsed_ms}ms"
        )
