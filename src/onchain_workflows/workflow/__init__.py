"""Workflow domain model.

This package provides:
- value types for steps, triggers, jobs and workflows, plus fluent builders
- ABI signature parsing and argument coercion
- the policy scope a delegated executor needs for each job
- serialization to and from portable workflow documents
- validation, submission and concurrent execution
"""

from onchain_workflows.workflow.builders import JobBuilder, WorkflowBuilder
from onchain_workflows.workflow.errors import (
    InvalidBigInt,
    InvalidJob,
    InvalidSerializedData,
    InvalidStep,
    InvalidTrigger,
    InvalidWorkflowField,
    UnsupportedChain,
    WorkflowError,
    WorkflowErrorCode,
    WorkflowValidationFailed,
)
from onchain_workflows.workflow.serializer import deserialize, serialize
from onchain_workflows.workflow.types import (
    Account,
    ConditionOperator,
    CronTrigger,
    EventTrigger,
    Job,
    OnchainCondition,
    OnchainTrigger,
    Step,
    Trigger,
    Workflow,
)
from onchain_workflows.workflow.validator import (
    ValidationReport,
    ValidatorStatus,
    validate_workflow,
)

__all__ = [
    "Account",
    "ConditionOperator",
    "CronTrigger",
    "EventTrigger",
    "InvalidBigInt",
    "InvalidJob",
    "InvalidSerializedData",
    "InvalidStep",
    "InvalidTrigger",
    "InvalidWorkflowField",
    "Job",
    "JobBuilder",
    "OnchainCondition",
    "OnchainTrigger",
    "Step",
    "Trigger",
    "UnsupportedChain",
    "ValidationReport",
    "ValidatorStatus",
    "Workflow",
    "WorkflowBuilder",
    "WorkflowError",
    "WorkflowErrorCode",
    "WorkflowValidationFailed",
    "deserialize",
    "serialize",
    "validate_workflow",
]
