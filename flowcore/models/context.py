"""Models for the assembled agent input.

A ContextPacket is one upstream node's contribution; an ExecutionContext is
the full ordered bundle handed to the agent invocation layer. Packet content
is carried verbatim. Only InputsPreview holds shortened text.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from flowcore.models.workflow import NodeType

CONTEXT_MODEL_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True)

PacketKind = Literal[
    "intent",
    "product",
    "persona",
    "kb_item",
    "workflow_run_ref",
    "agent_output",
]


class ContextPacket(BaseModel):
    """one upstream node's payload, normalized for the agent call."""

    model_config = CONTEXT_MODEL_CONFIG

    id: str
    node_id: str
    node_type: NodeType
    kind: PacketKind
    title: str
    content: Any  # verbatim payload, never truncated
    evidence_refs: list[str] | None = None
    created_at: str | None = None


class EdgeRef(BaseModel):
    """an edge as recorded in the context trace."""

    model_config = ConfigDict(populate_by_name=True)

    from_node: str = Field(alias="from")
    to: str


class ContextTrace(BaseModel):
    """audit record of how a context was assembled."""

    model_config = CONTEXT_MODEL_CONFIG

    ordered_node_ids: list[str]
    edges_used: list[EdgeRef]
    merged_at: str


class InputFull(BaseModel):
    """lossless projection of a packet for the agent call."""

    model_config = CONTEXT_MODEL_CONFIG

    kind: PacketKind
    ref_id: str | None = None
    payload_raw: Any
    payload_structured: Any = None
    source_title: str | None = None
    created_at: str | None = None


class PreviewCounts(BaseModel):
    model_config = CONTEXT_MODEL_CONFIG

    kb_items: int = 0
    personas: int = 0
    products: int = 0
    intent: int = 0
    agent_outputs: int = 0
    workflow_run_refs: int = 0


class PreviewHighlight(BaseModel):
    model_config = CONTEXT_MODEL_CONFIG

    kind: PacketKind
    title: str
    preview: str  # one line, length-capped


class CharCounts(BaseModel):
    model_config = CONTEXT_MODEL_CONFIG

    total: int = 0
    by_kind: dict[str, int] = Field(default_factory=dict)


class InputsPreview(BaseModel):
    """Display-only projection. This is the one place text is shortened."""

    model_config = CONTEXT_MODEL_CONFIG

    counts: PreviewCounts
    highlights: list[PreviewHighlight]
    char_counts: CharCounts
    estimated_tokens: int = 0


class KnowledgeEntry(BaseModel):
    model_config = CONTEXT_MODEL_CONFIG

    kind: str
    id: str
    title: str | None = None
    payload: Any = None


class RunOutputInput(BaseModel):
    """output of a referenced prior run, keyed under ExecutionContext.inputs."""

    model_config = CONTEXT_MODEL_CONFIG

    kind: Literal["workflow_run_output"] = "workflow_run_output"
    run_id: str
    output: Any


class ExecutionContext(BaseModel):
    """Everything one agent invocation receives, in priority order."""

    model_config = CONTEXT_MODEL_CONFIG

    agent_node_id: str
    packets: list[ContextPacket] = Field(default_factory=list)
    inputs_full: list[InputFull] = Field(default_factory=list)
    inputs_preview: InputsPreview | None = None
    trace: ContextTrace | None = None

    # convenience aggregates for older consumers
    product: dict[str, Any] | None = None
    persona: dict[str, Any] | None = None
    knowledge: list[KnowledgeEntry] = Field(default_factory=list)
    intent: dict[str, Any] | None = None

    inputs: dict[str, RunOutputInput] = Field(default_factory=dict)
    referenced_kb_item_ids: list[str] = Field(default_factory=list)
    referenced_run_ids: list[str] = Field(default_factory=list)


class ProductSummary(BaseModel):
    model_config = CONTEXT_MODEL_CONFIG

    name: str | None = None
    category: str | None = None


class PersonaSummary(BaseModel):
    model_config = CONTEXT_MODEL_CONFIG

    id: str
    title: str | None = None


class ExecutionContextSummary(BaseModel):
    """Compact description of a context, stored on run records as inputSummary."""

    model_config = CONTEXT_MODEL_CONFIG

    product_summary: ProductSummary | None = None
    persona_summary: PersonaSummary | None = None
    knowledge_count: int = 0
    knowledge_counts_by_kind: dict[str, int] = Field(default_factory=dict)
    used_kb_item_ids: list[str] = Field(default_factory=list)
    referenced_run_ids: list[str] = Field(default_factory=list)
