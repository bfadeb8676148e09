"""Tests for deterministic topological ordering and upstream collection."""

from flowcore.graph.ordering import topo_sort, topo_sort_ids
from flowcore.graph.upstream import collect_upstream
from flowcore.models.workflow import AgentNode, Connection, InputNode, Workflow


def _make_workflow(nodes, edges=()) -> Workflow:
    return Workflow(
        id="wf-1",
        name="test",
        nodes=tuple(nodes),
        connections=tuple(
            Connection(id=f"c-{source}-{target}", from_node_id=source, to_node_id=target)
            for source, target in edges
        ),
        created_at="2024-01-01T00:00:00+00:00",
        updated_at="2024-01-01T00:00:00+00:00",
    )


class TestTopoSort:
    """Test Kahn's algorithm with stable tie-breaking."""

    def test_respects_edges(self):
        order = topo_sort_ids(["c", "b", "a"], [("a", "b"), ("b", "c")])
        assert order == ["a", "b", "c"]

    def test_ties_broken_by_input_order(self):
        """Independent nodes come out in the order they were given."""
        assert topo_sort_ids(["x", "y", "z"], []) == ["x", "y", "z"]
        assert topo_sort_ids(["z", "y", "x"], []) == ["z", "y", "x"]

    def test_ready_nodes_ordered_by_position_not_arrival(self):
        """A node unlocked later but listed earlier still wins the next tie."""
        # a unlocks c; b is ready from the start; c is listed before b
        order = topo_sort_ids(["a", "c", "b"], [("a", "c")])
        assert order == ["a", "c", "b"]

    def test_deterministic(self):
        node_ids = ["k", "i", "p", "agent"]
        edges = [("k", "agent"), ("i", "agent"), ("p", "agent")]
        assert topo_sort_ids(node_ids, edges) == topo_sort_ids(node_ids, edges)

    def test_ignores_edges_outside_subset(self):
        order = topo_sort_ids(["a", "b"], [("a", "b"), ("outside", "a")])
        assert order == ["a", "b"]

    def test_cycle_members_left_out(self):
        order = topo_sort_ids(["a", "b", "c"], [("b", "c"), ("c", "b")])
        assert order == ["a"]

    def test_topo_sort_on_models(self):
        nodes = [AgentNode(id="agent", agent_definition_id="d"), InputNode(id="p", kind="product")]
        edges = [Connection(id="c1", from_node_id="p", to_node_id="agent")]
        assert topo_sort(nodes, edges) == ["p", "agent"]


class TestCollectUpstream:
    """Test the backward walk from an agent node."""

    def test_direct_inputs(self):
        """Both inputs wired into the agent are collected."""
        wf = _make_workflow(
            [InputNode(id="intent", kind="intent"), InputNode(id="p", kind="product"),
             AgentNode(id="Agent1", agent_definition_id="d")],
            [("intent", "Agent1"), ("p", "Agent1")],
        )
        upstream = collect_upstream(wf, "Agent1")
        assert sorted(upstream.node_ids) == ["intent", "p"]
        assert len(upstream.edges) == 2

    def test_transitive_ancestors(self):
        """Ancestors any number of hops away come before their descendants."""
        wf = _make_workflow(
            [InputNode(id="k", kind="knowledge"), AgentNode(id="a1", agent_definition_id="d"),
             AgentNode(id="a2", agent_definition_id="d")],
            [("k", "a1"), ("a1", "a2")],
        )
        upstream = collect_upstream(wf, "a2")
        assert upstream.node_ids == ["k", "a1"]

    def test_shared_ancestor_collected_once(self):
        wf = _make_workflow(
            [InputNode(id="p", kind="product"), AgentNode(id="a1", agent_definition_id="d"),
             AgentNode(id="a2", agent_definition_id="d"), AgentNode(id="t", agent_definition_id="d")],
            [("p", "a1"), ("p", "a2"), ("a1", "t"), ("a2", "t")],
        )
        upstream = collect_upstream(wf, "t")
        assert upstream.node_ids.count("p") == 1
        assert set(upstream.node_ids) == {"p", "a1", "a2"}

    def test_no_upstream(self):
        """An agent with nothing wired in yields an empty set."""
        wf = _make_workflow([AgentNode(id="a", agent_definition_id="d")])
        upstream = collect_upstream(wf, "a")
        assert upstream.nodes == []
        assert upstream.edges == []

    def test_downstream_and_unrelated_nodes_excluded(self):
        wf = _make_workflow(
            [InputNode(id="p", kind="product"), InputNode(id="other", kind="persona"),
             AgentNode(id="a", agent_definition_id="d"), AgentNode(id="after", agent_definition_id="d")],
            [("p", "a"), ("a", "after")],
        )
        upstream = collect_upstream(wf, "a")
        assert upstream.node_ids == ["p"]
        assert [(e.from_node_id, e.to_node_id) for e in upstream.edges] == [("p", "a")]

    def test_terminates_on_cyclic_data(self):
        """Stored data that (wrongly) contains a cycle still terminates."""
        wf = _make_workflow(
            [AgentNode(id="a", agent_definition_id="d"), AgentNode(id="b", agent_definition_id="d"),
             AgentNode(id="t", agent_definition_id="d")],
            [("a", "b"), ("b", "a"), ("b", "t")],
        )
        upstream = collect_upstream(wf, "t")
        assert set(upstream.node_ids) == {"a", "b"}

    def test_dangling_edge_skipped(self):
        wf = _make_workflow([AgentNode(id="a", agent_definition_id="d")], [("deleted", "a")])
        assert collect_upstream(wf, "a").nodes == []
