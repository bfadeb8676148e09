"""API routes for agent run records.

Runs are stored in the records table under kind "workflow_run", so an input
node referencing a run resolves it like any other record.
"""

import logging

from fastapi import APIRouter, HTTPException, Query

from flowcore.context.resolver import ResolvedRecord
from flowcore.graph.mutations import update_node
from flowcore.models.run_record import RUN_RECORD_TYPE, NormalizedRunRecord, RunStatus
from flowcore.runs.listing import OutputListingEntry, build_output_listing, list_runs
from flowcore.runs.normalizer import normalize_run, normalize_run_for_save
from server.agent_db import list_definitions as db_list_definitions
from server.record_db import (
    get_record as db_get_record,
    list_record_payloads as db_list_record_payloads,
    upsert_record as db_upsert_record,
)
from server.workflow_db import get_workflow as db_get_workflow, upsert_workflow as db_upsert_workflow

logger = logging.getLogger(__name__)

router = APIRouter()


def _record_on_agent_node(document: dict) -> None:
    """reflect a saved run on its agent node (status, last run, last output)."""
    workflow = db_get_workflow(document["workflowId"]) if document["workflowId"] else None
    if workflow is None:
        return
    node = workflow.get_node(document["agentNodeId"])
    if node is None or node.type != "agent":
        logger.warning(
            "run %s names agent node %s, which is not in workflow %s",
            document["id"],
            document["agentNodeId"],
            workflow.id,
        )
        return
    data = {
        **node.data.model_dump(by_alias=True),
        "lastRunId": document["id"],
        "status": document["status"],
        "lastError": document["error"],
    }
    execution_result = {
        "output": document["finalOutput"],
        "executedAt": document["executedAt"],
        "error": document["error"],
    }
    updated = update_node(workflow, node.id, {"data": data, "executionResult": execution_result})
    db_upsert_workflow(updated)


@router.post("/runs")
def save_run(payload: dict) -> dict:
    """normalize and store the outcome of one agent invocation."""
    document = normalize_run_for_save(payload)
    db_upsert_record(
        ResolvedRecord(
            id=document["id"],
            kind=RUN_RECORD_TYPE,
            title=payload.get("title"),
            payload=document,
            created_at=document["startedAt"],
        )
    )
    _record_on_agent_node(document)
    return document


@router.get("/runs/{run_id}")
def get_run(run_id: str) -> NormalizedRunRecord:
    record = db_get_record(RUN_RECORD_TYPE, run_id)
    run = None
    if record and record.kind == RUN_RECORD_TYPE:
        run = normalize_run({"kb_id": record.id, "payload": record.payload, "created_at": record.created_at})
    if run is None:
        raise HTTPException(status_code=404, detail=f"Run not found: {run_id}")
    return run


@router.get("/workflows/{workflow_id}/runs")
def list_workflow_runs(
    workflow_id: str,
    agent_node_id: str | None = Query(default=None, alias="agentNodeId"),
    status: RunStatus | None = None,
    include_all_statuses: bool = Query(default=False, alias="includeAllStatuses"),
) -> list[NormalizedRunRecord]:
    """run history of a workflow, optionally narrowed to one agent node."""
    return list_runs(
        db_list_record_payloads(RUN_RECORD_TYPE),
        workflow_id=workflow_id,
        agent_node_id=agent_node_id,
        status=status,
        include_all_statuses=include_all_statuses,
    )


@router.get("/workflows/{workflow_id}/outputs")
def list_workflow_outputs(
    workflow_id: str,
    show_all_statuses: bool = Query(default=False, alias="showAllStatuses"),
) -> list[OutputListingEntry]:
    """runs worth showing in a workflow's output list, with trust labels."""
    workflow = db_get_workflow(workflow_id)
    if not workflow:
        raise HTTPException(status_code=404, detail=f"Workflow not found: {workflow_id}")
    definitions = {definition.id: definition for definition in db_list_definitions()}
    return build_output_listing(
        db_list_record_payloads(RUN_RECORD_TYPE),
        workflow,
        show_all_statuses=show_all_statuses,
        agent_definitions=definitions,
    )
