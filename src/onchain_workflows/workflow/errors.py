"""Domain errors raised while building, serializing and submitting workflows."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .validator import ValidationReport


class WorkflowErrorCode(str, Enum):
    INVALID_SERIALIZED_DATA = "INVALID_SERIALIZED_DATA"
    INVALID_CHAIN_ID = "INVALID_CHAIN_ID"
    INVALID_BIGINT = "INVALID_BIGINT"
    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    INVALID_JOB = "INVALID_JOB"
    INVALID_STEP = "INVALID_STEP"
    INVALID_TRIGGER = "INVALID_TRIGGER"
    INVALID_WORKFLOW_FIELD = "INVALID_WORKFLOW_FIELD"


class WorkflowError(ValueError):
    """Base class for all workflow errors.

    Carries a stable `code` for programmatic handling and optional `details`
    (for example the list of schema violations).
    """

    code: WorkflowErrorCode = WorkflowErrorCode.VALIDATION_FAILED

    def __init__(self, message: str, *, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class InvalidJob(WorkflowError):
    code = WorkflowErrorCode.INVALID_JOB


class InvalidStep(InvalidJob):
    code = WorkflowErrorCode.INVALID_STEP


class InvalidTrigger(WorkflowError):
    code = WorkflowErrorCode.INVALID_TRIGGER


class InvalidWorkflowField(WorkflowError):
    code = WorkflowErrorCode.INVALID_WORKFLOW_FIELD


class InvalidSerializedData(WorkflowError):
    """Raised when a document fails structural schema validation.

    `errors` holds every violation reported by the schema, not just the first one.
    """

    code = WorkflowErrorCode.INVALID_SERIALIZED_DATA

    def __init__(self, message: str, *, errors: list[dict[str, Any]]) -> None:
        super().__init__(message, details=errors)
        self.errors = errors


class InvalidBigInt(WorkflowError):
    code = WorkflowErrorCode.INVALID_BIGINT


class UnsupportedChain(WorkflowError):
    code = WorkflowErrorCode.INVALID_CHAIN_ID

    def __init__(self, chain_id: int) -> None:
        super().__init__(f"Unsupported chain ID: {chain_id}", details={"chain_id": chain_id})
        self.chain_id = chain_id


class WorkflowValidationFailed(WorkflowError):
    """Raised when a workflow is rejected by the validator before submission."""

    code = WorkflowErrorCode.VALIDATION_FAILED

    def __init__(self, report: ValidationReport) -> None:
        super().__init__(report.status.message, details=report.errors)
        self.report = report
