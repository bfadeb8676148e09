"""Tests for graph mutations (new snapshots, never in-place edits)."""

import pytest
from pydantic import ValidationError

from flowcore.errors import ConnectionNotFoundError, NodeNotFoundError, WorkflowValidationError
from flowcore.graph.connections import REASON_AGENT_TO_INPUT
from flowcore.graph.cycles import REASON_CYCLE, contains_cycle
from flowcore.graph.mutations import (
    REASON_DUPLICATE,
    add_connection,
    add_node,
    create_workflow,
    delete_connection,
    delete_node,
    duplicate_workflow,
    update_node,
    validate_workflow,
)
from flowcore.models.workflow import AgentNode, Connection, InputNode, InputNodeData, Workflow

NOW = "2024-05-01T00:00:00+00:00"


def _make_workflow() -> Workflow:
    wf = create_workflow("campaign", workflow_id="wf-1", now="2024-01-01T00:00:00+00:00")
    for node in (
        InputNode(id="p", kind="product"),
        InputNode(id="k", kind="knowledge"),
        AgentNode(id="a1", agent_definition_id="lp-agent"),
        AgentNode(id="a2", agent_definition_id="banner-agent"),
    ):
        wf = add_node(wf, node)
    return wf


def _connect(wf: Workflow, *pairs) -> Workflow:
    for source, target in pairs:
        result = add_connection(wf, source, target)
        assert result.allowed, result.reason
        wf = result.workflow
    return wf


class TestCreateAndAddNode:
    def test_create_empty(self):
        wf = create_workflow("campaign", "desc")
        assert wf.id.startswith("workflow-")
        assert wf.nodes == ()
        assert wf.connections == ()
        assert wf.created_at == wf.updated_at

    def test_add_node_returns_new_snapshot(self):
        """The original workflow is left as it was."""
        wf = create_workflow("campaign")
        updated = add_node(wf, InputNode(id="p", kind="product"), now=NOW)
        assert wf.nodes == ()
        assert updated.node_ids() == ["p"]
        assert updated.updated_at == NOW

    def test_duplicate_node_id_rejected(self):
        wf = _make_workflow()
        with pytest.raises(WorkflowValidationError):
            add_node(wf, InputNode(id="p", kind="persona"))


class TestAddConnection:
    def test_legal_connection_added(self):
        wf = _make_workflow()
        result = add_connection(wf, "p", "a1", connection_id="c1")
        assert result.allowed
        assert result.connection == Connection(id="c1", from_node_id="p", to_node_id="a1")
        assert result.workflow.connections == (result.connection,)
        assert wf.connections == ()

    def test_agent_to_input_rejected_without_change(self):
        wf = _connect(_make_workflow(), ("p", "a1"))
        result = add_connection(wf, "a1", "p")
        assert not result.allowed
        assert result.reason == REASON_AGENT_TO_INPUT
        assert result.workflow is wf

    def test_cycle_rejected_and_graph_unchanged(self):
        """A cycle attempt leaves the graph byte-identical."""
        wf = _connect(_make_workflow(), ("a1", "a2"))
        before = wf.model_dump_json()
        result = add_connection(wf, "a2", "a1")
        assert not result.allowed
        assert result.reason == REASON_CYCLE
        assert "DAG" in result.reason
        assert result.workflow.model_dump_json() == before

    def test_duplicate_rejected(self):
        wf = _connect(_make_workflow(), ("p", "a1"))
        result = add_connection(wf, "p", "a1")
        assert not result.allowed
        assert result.reason == REASON_DUPLICATE

    def test_any_sequence_stays_acyclic(self):
        """Whatever is attempted, accepted edges never form a cycle."""
        wf = _make_workflow()
        attempts = [
            ("p", "a1"), ("a1", "a2"), ("a2", "a1"), ("k", "p"), ("p", "k"),
            ("a2", "k"), ("k", "a2"), ("a1", "a1"), ("a2", "p"), ("k", "a1"),
        ]
        for source, target in attempts:
            wf = add_connection(wf, source, target).workflow
            edges = [(c.from_node_id, c.to_node_id) for c in wf.connections]
            assert not contains_cycle(wf.node_ids(), edges)


class TestUpdateAndDelete:
    def test_update_node_label(self):
        wf = _make_workflow()
        updated = update_node(wf, "a1", {"label": "LP draft"})
        assert updated.get_node("a1").label == "LP draft"
        assert wf.get_node("a1").label == ""

    def test_update_accepts_camel_case_and_ignores_id(self):
        wf = _make_workflow()
        updated = update_node(wf, "a1", {"agentDefinitionId": "other", "id": "renamed"})
        node = updated.get_node("a1")
        assert node.agent_definition_id == "other"
        assert updated.get_node("renamed") is None

    def test_update_missing_node(self):
        with pytest.raises(NodeNotFoundError):
            update_node(_make_workflow(), "ghost", {"label": "x"})

    def test_delete_node_cascades(self):
        """No connection referencing a deleted node survives."""
        wf = _connect(_make_workflow(), ("p", "a1"), ("k", "a1"), ("a1", "a2"))
        updated = delete_node(wf, "a1")
        assert updated.get_node("a1") is None
        for conn in updated.connections:
            assert "a1" not in (conn.from_node_id, conn.to_node_id)
        assert updated.connections == ()

    def test_delete_missing_node(self):
        with pytest.raises(NodeNotFoundError):
            delete_node(_make_workflow(), "ghost")

    def test_delete_connection(self):
        wf = add_connection(_make_workflow(), "p", "a1", connection_id="c1").workflow
        assert delete_connection(wf, "c1").connections == ()
        with pytest.raises(ConnectionNotFoundError):
            delete_connection(wf, "c2")


class TestDuplicateAndValidate:
    def test_duplicate_remaps_connections(self):
        wf = _connect(_make_workflow(), ("p", "a1"), ("a1", "a2"))
        copy = duplicate_workflow(wf)
        assert copy.id != wf.id
        assert copy.name == "campaign (copy)"
        assert not set(copy.node_ids()) & set(wf.node_ids())
        copy_ids = set(copy.node_ids())
        for conn in copy.connections:
            assert conn.from_node_id in copy_ids
            assert conn.to_node_id in copy_ids
        assert len(copy.connections) == 2

    def test_valid_workflow_has_no_problems(self):
        wf = _connect(_make_workflow(), ("p", "a1"), ("a1", "a2"))
        assert validate_workflow(wf) == []

    def test_reports_problems(self):
        wf = _make_workflow().model_copy(update={
            "connections": (
                Connection(id="c1", from_node_id="a1", to_node_id="p"),
                Connection(id="c2", from_node_id="ghost", to_node_id="a1"),
                Connection(id="c3", from_node_id="a1", to_node_id="a2"),
                Connection(id="c4", from_node_id="a2", to_node_id="a1"),
            ),
        })
        problems = validate_workflow(wf)
        assert any("illegal connection" in p for p in problems)
        assert any("dangling" in p for p in problems)
        assert any("cycle" in p for p in problems)


class TestInputNodeDataKind:
    @pytest.mark.parametrize("kind,input_kind", [
        ("product", "product"),
        ("persona", "persona"),
        ("knowledge", "kb_item"),
        ("knowledge", "workflow_run_ref"),
        ("product", "workflow_run_ref"),
    ])
    def test_matching_pairs_accepted(self, kind, input_kind):
        node = InputNode(id="n", kind=kind, data=InputNodeData(input_kind=input_kind, ref_id="r"))
        assert node.data.input_kind == input_kind

    @pytest.mark.parametrize("kind,input_kind", [
        ("product", "persona"),
        ("knowledge", "product"),
        ("persona", "kb_item"),
        ("intent", "product"),
    ])
    def test_contradictory_pairs_rejected(self, kind, input_kind):
        with pytest.raises(ValidationError):
            InputNode(id="n", kind=kind, data=InputNodeData(input_kind=input_kind, ref_id="r"))

    def test_update_cannot_introduce_contradiction(self):
        """update_node rebuilds the node, so the same check applies."""
        wf = add_node(
            _make_workflow(),
            InputNode(id="per", kind="persona", data=InputNodeData(input_kind="persona", ref_id="PER1")),
        )
        with pytest.raises(ValidationError):
            update_node(wf, "per", {"data": {"inputKind": "product", "refId": "P1"}})
