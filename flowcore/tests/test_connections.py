"""Tests for connection legality and cycle prevention."""

from flowcore.graph.connections import (
    REASON_AGENT_TO_INPUT,
    REASON_NODE_NOT_FOUND,
    REASON_SELF_LOOP,
    can_connect,
)
from flowcore.graph.cycles import contains_cycle, has_cycle, is_acyclic
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


def _input(node_id: str, kind: str = "product") -> InputNode:
    return InputNode(id=node_id, kind=kind)


def _agent(node_id: str) -> AgentNode:
    return AgentNode(id=node_id, agent_definition_id="def-1")


class TestCanConnect:
    """Test the type-pair rules."""

    def test_input_to_agent_allowed(self):
        """input -> agent is the normal wiring."""
        wf = _make_workflow([_input("p"), _agent("a")])
        check = can_connect(wf, "p", "a")
        assert check.allowed
        assert check.reason is None

    def test_input_to_input_allowed(self):
        wf = _make_workflow([_input("p"), _input("k", "knowledge")])
        assert can_connect(wf, "p", "k").allowed

    def test_agent_to_agent_allowed(self):
        wf = _make_workflow([_agent("a1"), _agent("a2")])
        assert can_connect(wf, "a1", "a2").allowed

    def test_agent_to_input_rejected(self):
        """agent -> input is refused with a 'not allowed' reason."""
        wf = _make_workflow([_input("p"), _agent("a")])
        check = can_connect(wf, "a", "p")
        assert not check.allowed
        assert check.reason == REASON_AGENT_TO_INPUT
        assert "not allowed" in check.reason

    def test_self_loop_rejected(self):
        wf = _make_workflow([_agent("a")])
        check = can_connect(wf, "a", "a")
        assert not check.allowed
        assert check.reason == REASON_SELF_LOOP

    def test_missing_node_rejected(self):
        """Unknown node ids are a rejection, not an exception."""
        wf = _make_workflow([_agent("a")])
        check = can_connect(wf, "ghost", "a")
        assert not check.allowed
        assert check.reason == REASON_NODE_NOT_FOUND

    def test_does_not_touch_edges(self):
        """can_connect is a predicate; the workflow is unchanged."""
        wf = _make_workflow([_input("p"), _agent("a")], [("p", "a")])
        before = wf.model_dump()
        can_connect(wf, "a", "p")
        assert wf.model_dump() == before


class TestCycleDetection:
    """Test cycle detection on hypothetical edge sets."""

    def test_chain_stays_acyclic(self):
        wf = _make_workflow([_agent("a"), _agent("b"), _agent("c")], [("a", "b")])
        assert not has_cycle(wf, "b", "c")

    def test_closing_edge_detected(self):
        """a -> b -> c plus c -> a is a cycle."""
        wf = _make_workflow([_agent("a"), _agent("b"), _agent("c")], [("a", "b"), ("b", "c")])
        assert has_cycle(wf, "c", "a")

    def test_two_node_cycle_detected(self):
        wf = _make_workflow([_agent("a"), _agent("b")], [("a", "b")])
        assert has_cycle(wf, "b", "a")

    def test_diamond_is_not_a_cycle(self):
        """Two paths to the same node are fine."""
        wf = _make_workflow(
            [_input("i"), _agent("a"), _agent("b"), _agent("c")],
            [("i", "a"), ("i", "b"), ("a", "c")],
        )
        assert not has_cycle(wf, "b", "c")

    def test_disconnected_component_cycle(self):
        """A cycle anywhere in the graph counts, not just around the new edge."""
        assert contains_cycle(["x", "y", "z"], [("x", "y"), ("y", "x")])

    def test_is_acyclic(self):
        wf = _make_workflow([_agent("a"), _agent("b")], [("a", "b")])
        assert is_acyclic(wf)

    def test_long_chain_does_not_recurse(self):
        """The search is iterative, so deep graphs are fine."""
        node_ids = [f"n{i}" for i in range(5000)]
        edges = list(zip(node_ids, node_ids[1:]))
        assert not contains_cycle(node_ids, edges)
        assert contains_cycle(node_ids, [*edges, (node_ids[-1], node_ids[0])])
