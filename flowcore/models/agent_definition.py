"""Data model for agent definitions.

Agent definitions (prompt + output schema) are owned elsewhere. The engine
only reads the identity and the declared output kind, which the run
evaluator uses as a fallback when a run does not say what it produced.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class AgentDefinition(BaseModel):
    """an externally owned prompt/schema definition referenced by agent nodes."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",  # prompts, checklists, view contracts pass through untouched
    )

    id: str
    name: str = ""
    description: str = ""
    output_kind: str | None = None  # e.g. "lp_structure"
    output_schema_ref: str | None = None  # e.g. "LpStructurePayloadSchema"
    output_schema: str | None = None  # oldest spelling of the kind
    updated_at: str | None = None
