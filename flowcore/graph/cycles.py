"""Cycle detection for workflow graphs.

A proposed edge is tested against the hypothetical edge set (existing edges
plus the proposal) with a depth-first search from every node, tracking the
current recursion stack. Reaching a node that is still on the stack means a
back edge, i.e. a directed cycle.
"""

from collections.abc import Iterable, Sequence

from flowcore.models.workflow import Workflow

REASON_CYCLE = "this connection would create a cycle; the graph must remain a DAG"


def _adjacency(
    node_ids: Sequence[str],
    edges: Iterable[tuple[str, str]],
) -> dict[str, list[str]]:
    adjacency: dict[str, list[str]] = {node_id: [] for node_id in node_ids}
    for source, target in edges:
        adjacency.setdefault(source, []).append(target)
        adjacency.setdefault(target, [])
    return adjacency


def contains_cycle(node_ids: Sequence[str], edges: Iterable[tuple[str, str]]) -> bool:
    """Return True if the directed graph (node_ids, edges) has a cycle.

    Edge endpoints missing from node_ids are still walked, so dangling edges
    cannot hide a cycle.
    """
    adjacency = _adjacency(node_ids, edges)
    visited: set[str] = set()

    for root in adjacency:
        if root in visited:
            continue
        # iterative dfs: each frame is (node, iterator over its successors)
        on_stack: set[str] = {root}
        visited.add(root)
        stack = [(root, iter(adjacency[root]))]
        while stack:
            node_id, successors = stack[-1]
            advanced = False
            for successor in successors:
                if successor in on_stack:
                    return True
                if successor not in visited:
                    visited.add(successor)
                    on_stack.add(successor)
                    stack.append((successor, iter(adjacency[successor])))
                    advanced = True
                    break
            if not advanced:
                stack.pop()
                on_stack.discard(node_id)

    return False


def has_cycle(workflow: Workflow, from_node_id: str, to_node_id: str) -> bool:
    """Would adding from_node_id -> to_node_id create a directed cycle?"""
    edges = [(conn.from_node_id, conn.to_node_id) for conn in workflow.connections]
    edges.append((from_node_id, to_node_id))
    return contains_cycle(workflow.node_ids(), edges)


def is_acyclic(workflow: Workflow) -> bool:
    """True when the workflow's current connections form a DAG."""
    edges = [(conn.from_node_id, conn.to_node_id) for conn in workflow.connections]
    return not contains_cycle(workflow.node_ids(), edges)
