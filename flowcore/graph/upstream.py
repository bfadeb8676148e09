"""Backward walk from an agent node to everything that feeds it."""

from dataclasses import dataclass, field

from flowcore.models.workflow import AgentNode, Connection, InputNode, Workflow


@dataclass(frozen=True)
class UpstreamSet:
    """Transitive ancestors of a target node and the edges among them.

    nodes excludes the target itself and is in first-encounter order
    (ancestors before descendants); edges includes edges into the target.
    """

    target_node_id: str
    nodes: list[InputNode | AgentNode] = field(default_factory=list)
    edges: list[Connection] = field(default_factory=list)

    @property
    def node_ids(self) -> list[str]:
        return [node.id for node in self.nodes]


def _incoming(workflow: Workflow) -> dict[str, list[str]]:
    incoming: dict[str, list[str]] = {}
    for conn in workflow.connections:
        incoming.setdefault(conn.to_node_id, []).append(conn.from_node_id)
    return incoming


def collect_upstream(workflow: Workflow, target_node_id: str) -> UpstreamSet:
    """Collect every node that reaches target_node_id, any number of hops.

    Uses an explicit stack with a visited set local to this call, so a graph
    that (incorrectly) contains a cycle still terminates. Edge ids pointing at
    nodes that no longer exist are skipped.
    """
    incoming = _incoming(workflow)
    visited: set[str] = {target_node_id}
    collected: list[str] = []

    # post-order walk: a node is emitted after all of its own parents
    stack: list[tuple[str, int]] = [(target_node_id, 0)]
    while stack:
        node_id, cursor = stack.pop()
        parents = incoming.get(node_id, [])
        if cursor < len(parents):
            stack.append((node_id, cursor + 1))
            parent_id = parents[cursor]
            if parent_id not in visited and workflow.get_node(parent_id) is not None:
                visited.add(parent_id)
                stack.append((parent_id, 0))
            continue
        if node_id != target_node_id:
            collected.append(node_id)

    nodes = [workflow.get_node(node_id) for node_id in collected]
    relevant = set(collected) | {target_node_id}
    edges = [
        conn
        for conn in workflow.connections
        if conn.from_node_id in relevant and conn.to_node_id in relevant
    ]
    return UpstreamSet(
        target_node_id=target_node_id,
        nodes=[node for node in nodes if node is not None],
        edges=edges,
    )
