"""Request/result value types passed between the gateway and the invoker."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

PIN_MASK = "****"
FALLBACK_ERROR_MESSAGE = "Error running backend"
TIMEOUT_MESSAGE = "Backend timed out"
CANCELLED_MESSAGE = "Backend cancelled"


class Operation(str, Enum):
    ENCRYPT = "encrypt"
    DECRYPT = "decrypt"


class FailureKind(str, Enum):
    LAUNCH_FAILED = "launch_failed"
    RUNTIME_FAILURE = "runtime_failure"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True)
class VaultRequest:
    """One encrypt/decrypt action. Lives only for the duration of one backend run."""

    operation: Operation
    input_path: str
    output_path: str
    pin: str = field(repr=False)

    def argv(self) -> list[str]:
        """Backend argument vector: ``<operation> <input> <output> <pin>``."""
        return [self.operation.value, self.input_path, self.output_path, self.pin]

    def masked_argv(self) -> list[str]:
        return [self.operation.value, self.input_path, self.output_path, PIN_MASK]


@dataclass(frozen=True, slots=True)
class VaultResult:
    ok: bool
    message: str
    kind: FailureKind | None = None

    @classmethod
    def success(cls, message: str) -> VaultResult:
        return cls(True, message, None)

    @classmethod
    def failure(cls, kind: FailureKind, message: str) -> VaultResult:
        return cls(False, message, kind)

    @property
    def kind_name(self) -> str:
        return self.kind.value if self.kind is not None else "success"
