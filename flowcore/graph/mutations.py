"""Graph mutations as pure functions.

Every function takes a Workflow and returns a new one; the input is never
modified, so a reader holding the old snapshot never sees a half-applied
change. The caller decides when to publish/persist the new snapshot.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from flowcore.errors import (
    ConnectionNotFoundError,
    NodeNotFoundError,
    WorkflowValidationError,
)
from flowcore.graph.connections import can_connect
from flowcore.graph.cycles import REASON_CYCLE, has_cycle, is_acyclic
from flowcore.models.workflow import AgentNode, Connection, InputNode, Workflow
from flowcore.utils.identifiers import (
    generate_connection_id,
    generate_node_id,
    generate_workflow_id,
    utc_timestamp,
)

logger = logging.getLogger(__name__)

REASON_DUPLICATE = "this connection already exists"

# fields a node update may never change
_IMMUTABLE_NODE_FIELDS = frozenset({"id", "type"})


@dataclass(frozen=True)
class ConnectionResult:
    """Outcome of add_connection.

    On rejection, workflow is the unchanged input and reason says why.
    """

    workflow: Workflow
    allowed: bool
    reason: str | None = None
    connection: Connection | None = None


def _touch(workflow: Workflow, now: str | None, **changes: Any) -> Workflow:
    changes["updated_at"] = now or utc_timestamp()
    return workflow.model_copy(update=changes)


def create_workflow(
    name: str,
    description: str = "",
    workflow_id: str | None = None,
    now: str | None = None,
) -> Workflow:
    """Create an empty workflow."""
    now = now or utc_timestamp()
    return Workflow(
        id=workflow_id or generate_workflow_id(),
        name=name,
        description=description,
        created_at=now,
        updated_at=now,
    )


def add_node(workflow: Workflow, node: InputNode | AgentNode, now: str | None = None) -> Workflow:
    if workflow.get_node(node.id) is not None:
        raise WorkflowValidationError([f"duplicate node id: {node.id}"])
    return _touch(workflow, now, nodes=(*workflow.nodes, node))


def _field_names(model_cls: type[InputNode] | type[AgentNode]) -> dict[str, str]:
    """map both attribute names and camelCase aliases to attribute names."""
    names: dict[str, str] = {}
    for name, info in model_cls.model_fields.items():
        names[name] = name
        if info.alias:
            names[info.alias] = name
    return names


def update_node(
    workflow: Workflow,
    node_id: str,
    updates: Mapping[str, Any],
    now: str | None = None,
) -> Workflow:
    """Replace fields of one node. Keys may be snake_case or camelCase.

    id and type are fixed for the life of a node and are ignored here.
    """
    node = workflow.get_node(node_id)
    if node is None:
        raise NodeNotFoundError(node_id)

    node_cls = type(node)
    names = _field_names(node_cls)
    merged = node.model_dump()
    for key, value in updates.items():
        name = names.get(key)
        if name is None or name in _IMMUTABLE_NODE_FIELDS:
            continue
        merged[name] = value
    updated = node_cls.model_validate(merged)

    nodes = tuple(updated if n.id == node_id else n for n in workflow.nodes)
    return _touch(workflow, now, nodes=nodes)


def delete_node(workflow: Workflow, node_id: str, now: str | None = None) -> Workflow:
    """Remove a node and every connection touching it."""
    if workflow.get_node(node_id) is None:
        raise NodeNotFoundError(node_id)
    nodes = tuple(n for n in workflow.nodes if n.id != node_id)
    connections = tuple(
        conn
        for conn in workflow.connections
        if conn.from_node_id != node_id and conn.to_node_id != node_id
    )
    return _touch(workflow, now, nodes=nodes, connections=connections)


def add_connection(
    workflow: Workflow,
    from_node_id: str,
    to_node_id: str,
    connection_id: str | None = None,
    now: str | None = None,
) -> ConnectionResult:
    """Add an edge if it passes the type rules, keeps the graph acyclic and is new."""
    check = can_connect(workflow, from_node_id, to_node_id)
    if not check.allowed:
        logger.info("connection %s -> %s rejected: %s", from_node_id, to_node_id, check.reason)
        return ConnectionResult(workflow=workflow, allowed=False, reason=check.reason)

    if has_cycle(workflow, from_node_id, to_node_id):
        logger.info("connection %s -> %s rejected: cycle", from_node_id, to_node_id)
        return ConnectionResult(workflow=workflow, allowed=False, reason=REASON_CYCLE)

    for conn in workflow.connections:
        if conn.from_node_id == from_node_id and conn.to_node_id == to_node_id:
            return ConnectionResult(workflow=workflow, allowed=False, reason=REASON_DUPLICATE)

    connection = Connection(
        id=connection_id or generate_connection_id(),
        from_node_id=from_node_id,
        to_node_id=to_node_id,
    )
    updated = _touch(workflow, now, connections=(*workflow.connections, connection))
    return ConnectionResult(workflow=updated, allowed=True, connection=connection)


def delete_connection(workflow: Workflow, connection_id: str, now: str | None = None) -> Workflow:
    if not any(conn.id == connection_id for conn in workflow.connections):
        raise ConnectionNotFoundError(connection_id)
    connections = tuple(conn for conn in workflow.connections if conn.id != connection_id)
    return _touch(workflow, now, connections=connections)


def duplicate_workflow(
    workflow: Workflow,
    name: str | None = None,
    now: str | None = None,
) -> Workflow:
    """Copy a workflow under fresh ids, remapping connections onto the new nodes."""
    now = now or utc_timestamp()
    id_map = {node.id: generate_node_id(node.type) for node in workflow.nodes}
    nodes = tuple(node.model_copy(update={"id": id_map[node.id]}) for node in workflow.nodes)
    connections = tuple(
        Connection(
            id=generate_connection_id(),
            from_node_id=id_map[conn.from_node_id],
            to_node_id=id_map[conn.to_node_id],
        )
        for conn in workflow.connections
        if conn.from_node_id in id_map and conn.to_node_id in id_map
    )
    return Workflow(
        id=generate_workflow_id(),
        name=name or f"{workflow.name} (copy)",
        description=workflow.description,
        nodes=nodes,
        connections=connections,
        created_at=now,
        updated_at=now,
        is_active=False,
    )


def validate_workflow(workflow: Workflow) -> list[str]:
    """List structural problems of a whole workflow (empty when valid).

    Used when a full graph is written at once instead of edge by edge.
    """
    problems: list[str] = []

    seen_nodes: set[str] = set()
    for node in workflow.nodes:
        if node.id in seen_nodes:
            problems.append(f"duplicate node id: {node.id}")
        seen_nodes.add(node.id)

    seen_connections: set[str] = set()
    seen_pairs: set[tuple[str, str]] = set()
    for conn in workflow.connections:
        label = f"{conn.from_node_id} -> {conn.to_node_id}"
        if conn.id in seen_connections:
            problems.append(f"duplicate connection id: {conn.id}")
        seen_connections.add(conn.id)
        if conn.from_node_id not in seen_nodes or conn.to_node_id not in seen_nodes:
            problems.append(f"dangling connection {conn.id}: {label}")
            continue
        pair = (conn.from_node_id, conn.to_node_id)
        if pair in seen_pairs:
            problems.append(f"duplicate connection: {label}")
        seen_pairs.add(pair)
        check = can_connect(workflow, conn.from_node_id, conn.to_node_id)
        if not check.allowed:
            problems.append(f"illegal connection {label}: {check.reason}")

    if not is_acyclic(workflow):
        problems.append("workflow contains a cycle; the graph must remain a DAG")

    return problems
