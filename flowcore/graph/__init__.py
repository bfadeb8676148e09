"""Graph rules and algorithms: connection legality, acyclicity, ordering."""

from flowcore.graph.connections import ConnectionCheck, can_connect
from flowcore.graph.cycles import contains_cycle, has_cycle, is_acyclic
from flowcore.graph.mutations import (
    ConnectionResult,
    add_connection,
    add_node,
    create_workflow,
    delete_connection,
    delete_node,
    duplicate_workflow,
    update_node,
    validate_workflow,
)
from flowcore.graph.ordering import topo_sort, topo_sort_ids
from flowcore.graph.upstream import UpstreamSet, collect_upstream

__all__ = [
    # connection rules
    "ConnectionCheck",
    "can_connect",
    # acyclicity
    "contains_cycle",
    "has_cycle",
    "is_acyclic",
    # ordering
    "topo_sort",
    "topo_sort_ids",
    # upstream walk
    "UpstreamSet",
    "collect_upstream",
    # mutations
    "ConnectionResult",
    "add_connection",
    "add_node",
    "create_workflow",
    "delete_connection",
    "delete_node",
    "duplicate_workflow",
    "update_node",
    "validate_workflow",
]
