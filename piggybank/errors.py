"""
Domain exceptions.

Components raise these; the orchestrator turns ValidationError and
DeductionNotFoundError into Rejection results so callers never have to
catch them. LedgerConsistencyError means storage returned something
impossible and the chain must be rebuilt.
"""

from typing import Optional

from piggybank.models.results import (
    Rejection,
    RejectionKind,
    ValidationIssue,
    ValidationResult,
)


class PiggyBankError(Exception):
    """Base exception for ledger operations."""
    pass


class ValidationError(PiggyBankError):
    """Input rejected before anything was written."""

    def __init__(
        self,
        code: str,
        message: str,
        issues: Optional[list[ValidationIssue]] = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.issues = issues or []

    @classmethod
    def from_result(cls, result: ValidationResult) -> "ValidationError":
        issue = result.first_error
        if issue is None:
            raise ValueError("Cannot build a ValidationError from a passing result")
        return cls(issue.issue_type, issue.message, list(result.issues))

    def to_rejection(self) -> Rejection:
        return Rejection(
            kind=RejectionKind.VALIDATION,
            code=self.code,
            message=self.message,
            issues=self.issues,
        )


class DeductionNotFoundError(PiggyBankError):
    """A cash-out id that does not (or no longer) exist."""

    code = "deduction_not_found"

    def __init__(self, deduction_id):
        super().__init__(f"Cash-out {deduction_id} not found")
        self.deduction_id = deduction_id

    def to_rejection(self) -> Rejection:
        return Rejection(
            kind=RejectionKind.NOT_FOUND,
            code=self.code,
            message=str(self),
        )


class LedgerConsistencyError(PiggyBankError):
    """Storage returned an ordering that cannot happen in a healthy ledger."""
    pass
