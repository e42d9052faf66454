"""Exception hierarchy for the cap table engine.

Nothing here is raised from inside a single transaction's processing.
These errors are reserved for whole-batch failures (an empty log, a strict
replay whose back-references do not resolve) and for parsing raw log
records into typed transactions.
"""

from typing import Any, Optional


class CapTableEngineError(Exception):
    """Base exception for all cap table engine errors.

    Includes an error_code for API responses and extra context.
    """

    error_code: str = "CAPTABLE_ERROR"

    def __init__(
        self,
        message: str,
        *,
        error_code: Optional[str] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.error_code,
            "message": self.message,
            "context": self.context,
        }


class EmptyTransactionLogError(CapTableEngineError):
    """Raised when a batch operation is given no transactions at all."""

    error_code = "EMPTY_TRANSACTION_LOG"

    def __init__(self, issuer_id: Optional[str] = None) -> None:
        super().__init__(
            "No transactions to replay",
            context={"issuer_id": issuer_id} if issuer_id else {},
        )


class UnresolvedReferenceError(CapTableEngineError):
    """Raised by strict replay when back-references fail to resolve.

    Carries every failed check so the caller can report them all at once.
    """

    error_code = "UNRESOLVED_REFERENCES"

    def __init__(self, failures: list[Any]) -> None:
        self.failures = failures
        errors = [error for check in failures for error in check.errors]
        super().__init__(
            f"{len(failures)} transaction(s) reference unknown entities or securities",
            context={"errors": errors},
        )


class UnsupportedTransactionError(CapTableEngineError):
    """Raised when a raw log record matches no known transaction type."""

    error_code = "UNSUPPORTED_TRANSACTION"

    def __init__(self, object_type: Optional[str], detail: str = "") -> None:
        message = f"Unsupported transaction type: {object_type}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message, context={"object_type": object_type})
