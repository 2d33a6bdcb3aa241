"""
Operation result type.

Best-effort operations (registration, purchase attribution) must never block
the caller, while anything gating a purchase is strict. OperationResult makes
that visible in signatures instead of burying it in try/except blocks:

- OK: operation completed (possibly as a deliberate no-op, see `reason`)
- RECOVERABLE_FAILURE: failure was logged, caller is unaffected
- FATAL_FAILURE: failure must reach the caller; unwrap() re-raises it
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class Outcome(str, Enum):
    OK = "ok"
    RECOVERABLE_FAILURE = "recoverable_failure"
    FATAL_FAILURE = "fatal_failure"


@dataclass(frozen=True)
class OperationResult:
    """Outcome of an SDK operation plus its value or error."""
    outcome: Outcome
    value: Any = None
    error: Optional[BaseException] = None
    reason: Optional[str] = None

    @classmethod
    def ok(cls, value: Any = None, reason: Optional[str] = None) -> "OperationResult":
        return cls(outcome=Outcome.OK, value=value, reason=reason)

    @classmethod
    def recoverable(cls, error: BaseException, reason: str) -> "OperationResult":
        return cls(outcome=Outcome.RECOVERABLE_FAILURE, error=error, reason=reason)

    @classmethod
    def fatal(cls, error: BaseException, reason: Optional[str] = None) -> "OperationResult":
        return cls(outcome=Outcome.FATAL_FAILURE, error=error, reason=reason)

    @property
    def is_ok(self) -> bool:
        return self.outcome is Outcome.OK

    @property
    def is_fatal(self) -> bool:
        return self.outcome is Outcome.FATAL_FAILURE

    def unwrap(self) -> Any:
        """
        Return the value, raising the error of a fatal result.

        Recoverable failures unwrap to None: the caller is not supposed to
        be affected by them.
        """
        if self.is_fatal:
            raise self.error
        return self.value
