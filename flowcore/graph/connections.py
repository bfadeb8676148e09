"""Type-pair rules for connecting two nodes.

Inputs always sit upstream of agents: input->input, input->agent and
agent->agent are legal, agent->input is not.
"""

from dataclasses import dataclass

from flowcore.models.workflow import Workflow

REASON_SELF_LOOP = "a node cannot be connected to itself"
REASON_NODE_NOT_FOUND = "node not found"
REASON_AGENT_TO_INPUT = (
    "connections from an agent node to an input node are not allowed "
    "(they would seed cycles; inputs must stay upstream of agents)"
)
REASON_PATTERN = "this connection pattern is not allowed"

ALLOWED_TYPE_PAIRS: frozenset[tuple[str, str]] = frozenset({
    ("input", "input"),
    ("input", "agent"),
    ("agent", "agent"),
})


@dataclass(frozen=True)
class ConnectionCheck:
    """Outcome of can_connect. reason is set only when allowed is False."""

    allowed: bool
    reason: str | None = None


def can_connect(workflow: Workflow, from_node_id: str, to_node_id: str) -> ConnectionCheck:
    """Decide whether an edge from_node_id -> to_node_id is legal by node types.

    Looks only at the two referenced nodes; acyclicity is checked separately
    by flowcore.graph.cycles.has_cycle. Never raises.
    """
    if from_node_id == to_node_id:
        return ConnectionCheck(allowed=False, reason=REASON_SELF_LOOP)

    from_node = workflow.get_node(from_node_id)
    to_node = workflow.get_node(to_node_id)
    if from_node is None or to_node is None:
        return ConnectionCheck(allowed=False, reason=REASON_NODE_NOT_FOUND)

    if from_node.type == "agent" and to_node.type == "input":
        return ConnectionCheck(allowed=False, reason=REASON_AGENT_TO_INPUT)

    if (from_node.type, to_node.type) in ALLOWED_TYPE_PAIRS:
        return ConnectionCheck(allowed=True)

    return ConnectionCheck(allowed=False, reason=REASON_PATTERN)
