"""Deterministic topological ordering (Kahn's algorithm).

Among nodes that are ready at the same time, the one listed first in the
input wins, so the same graph always yields the same order.
"""

import heapq
import logging
from collections.abc import Iterable, Sequence

from flowcore.models.workflow import AgentNode, Connection, InputNode

logger = logging.getLogger(__name__)


def topo_sort_ids(node_ids: Sequence[str], edges: Iterable[tuple[str, str]]) -> list[str]:
    """Order node_ids so every edge points forward.

    Edges with an endpoint outside node_ids are ignored. Nodes caught in a
    cycle never reach in-degree zero and are left out (with a warning).
    """
    position: dict[str, int] = {}
    for index, node_id in enumerate(node_ids):
        position.setdefault(node_id, index)

    indegree = {node_id: 0 for node_id in position}
    successors: dict[str, list[str]] = {node_id: [] for node_id in position}
    for source, target in edges:
        if source not in position or target not in position:
            continue
        successors[source].append(target)
        indegree[target] += 1

    ready = [position[node_id] for node_id, degree in indegree.items() if degree == 0]
    heapq.heapify(ready)
    by_position = {index: node_id for node_id, index in position.items()}

    ordered: list[str] = []
    while ready:
        node_id = by_position[heapq.heappop(ready)]
        ordered.append(node_id)
        for successor in successors[node_id]:
            indegree[successor] -= 1
            if indegree[successor] == 0:
                heapq.heappush(ready, position[successor])

    if len(ordered) != len(position):
        emitted = set(ordered)
        skipped = [node_id for node_id in position if node_id not in emitted]
        logger.warning("topological sort skipped nodes on a cycle: %s", skipped)

    return ordered


def topo_sort(
    nodes: Sequence[InputNode | AgentNode],
    edges: Iterable[Connection],
) -> list[str]:
    """Topologically order the given nodes under the given edges."""
    return topo_sort_ids(
        [node.id for node in nodes],
        [(edge.from_node_id, edge.to_node_id) for edge in edges],
    )
