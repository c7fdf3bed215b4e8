"""Wire models for serialized workflow documents.

Field names are camelCase on the wire and snake_case in Python. Numeric amounts
travel as decimal strings; timestamps as integer epoch seconds.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, PositiveInt
from pydantic.alias_generators import to_camel

ADDRESS_REGEX = r"^0x[a-fA-F0-9]{40}$"

Address = Annotated[str, Field(pattern=ADDRESS_REGEX)]
OperatorName = Literal[
    "EQUAL",
    "GREATER_THAN",
    "LESS_THAN",
    "GREATER_THAN_OR_EQUAL",
    "LESS_THAN_OR_EQUAL",
    "NOT_EQUAL",
    "ONE_OF",
]


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class StepDocument(WireModel):
    target: Address
    signature: str = ""
    args: list[Any] = Field(default_factory=list)
    value: str = "0"


class JobDocument(WireModel):
    id: str = Field(min_length=1)
    chain_id: PositiveInt
    steps: list[StepDocument] = Field(min_length=1)
    session: str


class CronParams(WireModel):
    schedule: str = Field(min_length=1)


class EventParams(WireModel):
    signature: str = Field(min_length=1)
    contract_address: Address
    chain_id: PositiveInt
    filter: dict[str, str] | None = None


class ConditionDocument(WireModel):
    operator: OperatorName
    value: str


class OnchainParams(WireModel):
    target: Address
    signature: str = Field(min_length=1)
    args: list[Any] = Field(default_factory=list)
    value: str | None = None
    chain_id: PositiveInt
    condition: ConditionDocument | None = None


class CronTriggerDocument(WireModel):
    type: Literal["cron"] = "cron"
    params: CronParams


class EventTriggerDocument(WireModel):
    type: Literal["event"] = "event"
    params: EventParams


class OnchainTriggerDocument(WireModel):
    type: Literal["onchain"] = "onchain"
    params: OnchainParams


TriggerDocument = Annotated[
    CronTriggerDocument | EventTriggerDocument | OnchainTriggerDocument,
    Field(discriminator="type"),
]


class WorkflowBody(WireModel):
    owner: Address
    triggers: list[TriggerDocument] = Field(default_factory=list)
    jobs: list[JobDocument] = Field(min_length=1)
    count: PositiveInt | None = None
    valid_after: PositiveInt | None = None
    valid_until: PositiveInt | None = None
    interval: PositiveInt | None = None


class DocumentMetadata(WireModel):
    created_at: PositiveInt
    version: str


class WorkflowDocument(WireModel):
    """A workflow as stored and shared: body plus creation metadata."""

    workflow: WorkflowBody
    metadata: DocumentMetadata

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
