"""Tests for run record normalization."""

import logging

import pytest

from flowcore.models.run_record import NormalizedRunRecord
from flowcore.runs.normalizer import (
    field,
    first_non_null,
    normalize_run,
    normalize_run_for_save,
)

LP_OUTPUT = {"sections": [{"id": "hero"}], "questionCoverage": []}


def _make_kb_item(**payload) -> dict:
    return {
        "kb_id": "run-1",
        "type": "workflow_run",
        "created_at": "2024-03-01T10:00:00+00:00",
        "payload": {"type": "workflow_run", **payload},
    }


RAW_VARIANTS = [
    pytest.param(_make_kb_item(finalOutput=LP_OUTPUT, workflowId="wf-1", agentNodeId="a1",
                               agentId="lp-agent", status="success"), id="current"),
    pytest.param(_make_kb_item(output=LP_OUTPUT, nodeId="a1", executedAt="2024-03-02T00:00:00Z",
                               status="success"), id="legacy-output"),
    pytest.param(_make_kb_item(llmRawOutput="{broken json", status="error", lastError="parse failed"),
                 id="raw-only"),
    pytest.param(_make_kb_item(parsedOutput=LP_OUTPUT, zodValidationResult={
        "success": False, "issues": [{"path": ["sections", 0], "message": "Required"}],
    }, customField={"kept": True}), id="zod-issues"),
    pytest.param({"type": "workflow_run", "id": "flat-1", "presentation": {"view": 1},
                  "status": "running", "startedAt": "2024-03-03T00:00:00Z", "durationMs": 1200},
                 id="flat"),
    pytest.param(_make_kb_item(finalOutput="", parsedOutput=LP_OUTPUT, status="bogus",
                               startedAt=12345, error={"message": "bad"}), id="garbled-fields"),
]


class TestFirstNonNull:
    def test_first_present_wins(self):
        record = {"agentNodeId": None, "nodeId": "n1"}
        assert first_non_null([field("agentNodeId"), field("nodeId")], record) == "n1"

    def test_empty_string_skipped(self):
        assert first_non_null([field("a"), field("b")], {"a": "", "b": "x"}) == "x"

    def test_snake_case_spelling_accepted(self):
        assert field("workflowId")({"workflow_id": "wf"}) == "wf"

    def test_nothing_found(self):
        assert first_non_null([field("a")], {}) is None


class TestNormalizeRun:
    def test_current_schema(self):
        run = normalize_run(_make_kb_item(
            finalOutput=LP_OUTPUT, workflowId="wf-1", agentNodeId="a1", agentId="lp-agent",
            status="success", finishedAt="2024-03-01T10:05:00+00:00",
        ))
        assert run.id == "run-1"
        assert run.workflow_id == "wf-1"
        assert run.node_id == "a1"
        assert run.agent_id == "lp-agent"
        assert run.agent_definition_id == "lp-agent"
        assert run.output == LP_OUTPUT
        assert run.started_at == "2024-03-01T10:00:00+00:00"
        assert run.executed_at == "2024-03-01T10:05:00+00:00"

    def test_output_priority(self):
        run = normalize_run(_make_kb_item(finalOutput={"f": 1}, parsedOutput={"p": 1}, output={"o": 1}))
        assert run.output == {"f": 1}
        run = normalize_run(_make_kb_item(parsedOutput={"p": 1}, output={"o": 1}))
        assert run.output == {"p": 1}
        assert run.final_output is None

    def test_missing_workflow_id_tolerated(self):
        run = normalize_run(_make_kb_item(output=LP_OUTPUT, nodeId="a1"))
        assert run.workflow_id == ""
        assert run.node_id == "a1"

    def test_wrong_type_is_none(self):
        assert normalize_run({"kb_id": "x", "payload": {"type": "persona", "finalOutput": {}}}) is None
        assert normalize_run({"id": "x", "finalOutput": {}}) is None

    def test_no_payload_is_none(self):
        assert normalize_run(_make_kb_item(status="success", workflowId="wf-1")) is None
        assert normalize_run({"kb_id": "x", "payload": None}) is None

    def test_non_mapping_is_none(self):
        assert normalize_run(["not", "a", "run"]) is None

    def test_unknown_fields_pass_through(self):
        run = normalize_run(_make_kb_item(finalOutput=LP_OUTPUT, customField={"kept": True}))
        assert run.model_extra["customField"] == {"kept": True}
        assert run.model_dump(by_alias=True)["customField"] == {"kept": True}

    def test_invalid_status_falls_back_to_error(self):
        run = normalize_run(_make_kb_item(finalOutput=LP_OUTPUT, status="done"))
        assert run.status == "error"

    def test_error_taken_from_last_error_on_failure(self):
        run = normalize_run(_make_kb_item(llmRawOutput="oops", status="error", lastError="timeout"))
        assert run.error == "timeout"

    def test_schema_validation_aliases(self):
        run = normalize_run(_make_kb_item(parsedOutput=LP_OUTPUT, zodValidationResult={
            "success": False, "issues": [{"path": ["sections", 0], "message": "Required"}],
        }))
        assert run.schema_validation.success is False
        assert run.schema_validation.issues[0].path == "sections.0"

    @pytest.mark.parametrize("issues", [5, True, "Required", {"path": "x"}])
    def test_malformed_issues_dropped(self, issues):
        """Issues that are not a list are ignored, the verdict is kept."""
        run = normalize_run(_make_kb_item(finalOutput=LP_OUTPUT, schemaValidation={"success": False, "issues": issues}))
        assert run.schema_validation.success is False
        assert run.schema_validation.issues == []

    def test_missing_schema_validation_stays_none(self):
        run = normalize_run(_make_kb_item(finalOutput=LP_OUTPUT))
        assert run.schema_validation is None

    def test_success_without_finished_uses_executed(self):
        run = normalize_run(_make_kb_item(finalOutput=LP_OUTPUT, status="success",
                                          executedAt="2024-03-02T00:00:00Z"))
        assert run.finished_at == "2024-03-02T00:00:00Z"
        assert run.executed_at == "2024-03-02T00:00:00Z"


class TestIdempotence:
    @pytest.mark.parametrize("raw", RAW_VARIANTS)
    def test_normalize_twice_is_stable(self, raw):
        """normalize(normalize(x)) == normalize(x)."""
        once = normalize_run(raw)
        assert once is not None
        twice = normalize_run(once)
        assert twice == once
        assert normalize_run(once.model_dump(by_alias=True)) == once

    def test_id_less_document_gets_stable_id(self):
        """A document without any id normalizes to the same record every time."""
        raw = {"type": "workflow_run", "finalOutput": {"a": 1}, "status": "success"}
        first = normalize_run(raw)
        second = normalize_run(dict(raw))
        assert first.id
        assert first == second
        assert normalize_run({**raw, "finalOutput": {"a": 2}}).id != first.id

    def test_returns_model(self):
        assert isinstance(normalize_run(_make_kb_item(finalOutput=LP_OUTPUT)), NormalizedRunRecord)


class TestNormalizeForSave:
    def test_canonical_document(self):
        doc = normalize_run_for_save({
            "workflowId": "wf-1",
            "agentNodeId": "a1",
            "agentDefinitionId": "lp-agent",
            "status": "success",
            "parsedOutput": LP_OUTPUT,
            "startedAt": "2024-03-01T10:00:00Z",
        })
        assert doc["type"] == "workflow_run"
        assert doc["agentId"] == "lp-agent"
        assert doc["finalOutput"] == LP_OUTPUT
        assert doc["output"] == LP_OUTPUT
        assert doc["finishedAt"] is not None
        assert doc["executedAt"] == doc["finishedAt"]
        assert doc["id"]

    def test_failed_run_has_no_finish(self):
        doc = normalize_run_for_save({"workflowId": "wf-1", "agentNodeId": "a1", "status": "error",
                                      "startedAt": "2024-03-01T10:00:00Z"})
        assert doc["finishedAt"] is None
        assert doc["executedAt"] == "2024-03-01T10:00:00Z"

    def test_missing_identity_logged(self, caplog):
        with caplog.at_level(logging.ERROR):
            doc = normalize_run_for_save({"finalOutput": {"x": 1}, "status": "success"})
        assert doc["workflowId"] == ""
        assert doc["agentNodeId"] == ""
        assert "workflowId" in caplog.text
        assert "agentNodeId" in caplog.text

    def test_saved_document_normalizes(self):
        doc = normalize_run_for_save({"workflowId": "wf-1", "agentNodeId": "a1", "finalOutput": LP_OUTPUT,
                                      "status": "success"})
        run = normalize_run(doc)
        assert run.id == doc["id"]
        assert run.node_id == "a1"
        assert run.final_output == LP_OUTPUT
