"""Canonical shape of a persisted agent run.

Run documents were written by several schema versions. NormalizedRunRecord is
the one shape the rest of the engine reads; flowcore.runs.normalizer builds it
from whatever was stored. Unknown keys survive as pydantic extras.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

RunStatus = Literal["success", "error", "running"]

RUN_STATUSES: frozenset[str] = frozenset({"success", "error", "running"})

RUN_RECORD_TYPE = "workflow_run"


class ValidationIssue(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    path: str = ""
    message: str = ""


class SchemaValidationResult(BaseModel):
    """verdict of validating the parsed output against the agent's schema."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    success: bool
    issues: list[ValidationIssue] = Field(default_factory=list)


class NormalizedRunRecord(BaseModel):
    """A run record after schema drift has been absorbed."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    type: Literal["workflow_run"] = RUN_RECORD_TYPE
    id: str

    # identity; workflow_id may be blank on legacy records
    workflow_id: str = ""
    node_id: str = ""
    agent_id: str = ""
    agent_definition_id: str = ""
    agent_definition_updated_at: str | None = None
    agent_definition_version_hash: str | None = None

    status: RunStatus = "error"
    started_at: str | None = None
    finished_at: str | None = None
    executed_at: str | None = None  # finished_at, else started_at
    duration_ms: float | None = None
    model: str | None = None

    # output stages
    llm_raw_output: str | None = None
    parsed_output: Any = None
    final_output: Any = None
    output: Any = None  # first of final/parsed/legacy output
    presentation: Any = None  # UI-ready projection

    schema_validation: SchemaValidationResult | None = None
    semantic_validation: dict[str, Any] | None = None

    output_kind: str | None = None
    output_schema_ref: str | None = None

    execution_context_summary: dict[str, Any] | None = None
    input_summary: dict[str, Any] | None = None

    error: str | None = None

    def primary_output(self) -> Any:
        """The artifact to show: final, then parsed, then legacy output."""
        for candidate in (self.final_output, self.parsed_output, self.output):
            if candidate is not None:
                return candidate
        return None

    def has_output(self) -> bool:
        return self.primary_output() is not None
