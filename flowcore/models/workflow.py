"""Data model for workflow graphs.

A workflow is a DAG of input nodes (product, persona, knowledge, intent)
feeding agent nodes. Graph entities are immutable values: mutation helpers in
flowcore.graph.mutations return new Workflow objects instead of editing these.

JSON uses camelCase keys (fromNodeId, agentDefinitionId, ...); attributes are
snake_case. Either spelling is accepted on input.
"""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

GRAPH_MODEL_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    frozen=True,
)

NodeType = Literal["input", "agent"]
InputNodeKind = Literal["product", "persona", "knowledge", "intent"]
InputDataKind = Literal["product", "persona", "kb_item", "workflow_run_ref", "intent"]
AgentStatus = Literal["idle", "running", "success", "error"]

# data kind each node kind carries; any node kind may instead reference a run
NODE_KIND_INPUT_KINDS: dict[str, str] = {
    "product": "product",
    "persona": "persona",
    "knowledge": "kb_item",
    "intent": "intent",
}


class Position(BaseModel):
    """canvas coordinates, layout only."""

    model_config = GRAPH_MODEL_CONFIG

    x: float = 0.0
    y: float = 0.0


class IntentPayload(BaseModel):
    """Goal framing stored inline on an intent node (never in the record store)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="allow",
    )

    goal: str
    success_criteria: str
    background: str | None = None
    target_situation: str | None = None
    constraints: str | None = None
    tone: str | None = None


class InputNodeData(BaseModel):
    """What an input node points at."""

    model_config = GRAPH_MODEL_CONFIG

    input_kind: InputDataKind
    ref_id: str | None = None  # product / persona / kb item / run id
    ref_kind: str | None = None  # e.g. "market_insight" for kb items
    title: str | None = None
    intent_payload: IntentPayload | None = None  # intent nodes only


class InputNode(BaseModel):
    """a node that supplies data to agents."""

    model_config = GRAPH_MODEL_CONFIG

    id: str
    type: Literal["input"] = "input"
    kind: InputNodeKind
    label: str = ""
    position: Position = Field(default_factory=Position)
    data: InputNodeData | None = None

    # legacy: used only when data is absent
    reference_id: str | None = None
    notes: str | None = None

    @model_validator(mode="after")
    def _check_data_kind(self) -> "InputNode":
        if self.data is None or self.data.input_kind == "workflow_run_ref":
            return self
        expected = NODE_KIND_INPUT_KINDS[self.kind]
        if self.data.input_kind != expected:
            raise ValueError(
                f"{self.kind} node cannot carry {self.data.input_kind!r} data (expected {expected!r})"
            )
        return self

    @property
    def ref_id(self) -> str | None:
        """The referenced record id, preferring data over the legacy field."""
        if self.data is not None and self.data.ref_id:
            return self.data.ref_id
        return self.reference_id


class AgentNodeData(BaseModel):
    """Mutable-by-replacement run status of an agent node."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="allow",  # executionStep, executionLogs, selectedLpRunId ...
    )

    agent_id: str | None = None
    name: str | None = None
    last_run_id: str | None = None
    status: AgentStatus = "idle"
    last_error: str | None = None


class ExecutionResult(BaseModel):
    """Last output kept on the node itself (older schema, still read)."""

    model_config = GRAPH_MODEL_CONFIG

    output: Any = None
    executed_at: str | None = None
    error: str | None = None


class AgentNode(BaseModel):
    """a node that invokes a language model through an agent definition."""

    model_config = GRAPH_MODEL_CONFIG

    id: str
    type: Literal["agent"] = "agent"
    agent_definition_id: str
    label: str = ""
    position: Position = Field(default_factory=Position)
    data: AgentNodeData = Field(default_factory=AgentNodeData)
    execution_result: ExecutionResult | None = None


WorkflowNode = Annotated[InputNode | AgentNode, Field(discriminator="type")]


class Connection(BaseModel):
    """a directed edge: from_node_id feeds into to_node_id."""

    model_config = GRAPH_MODEL_CONFIG

    id: str
    from_node_id: str
    to_node_id: str


class Workflow(BaseModel):
    """A user's workflow graph: nodes plus the connections among them."""

    model_config = GRAPH_MODEL_CONFIG

    id: str
    name: str
    description: str = ""
    nodes: tuple[WorkflowNode, ...] = ()
    connections: tuple[Connection, ...] = ()
    created_at: str
    updated_at: str
    is_active: bool = False

    def get_node(self, node_id: str) -> InputNode | AgentNode | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def node_ids(self) -> list[str]:
        return [node.id for node in self.nodes]

    def agent_node_ids(self) -> list[str]:
        return [node.id for node in self.nodes if node.type == "agent"]
