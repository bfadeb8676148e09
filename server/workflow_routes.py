"""API routes for workflow graphs: CRUD, node/edge edits and context preview."""

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from flowcore.context.builder import build_execution_context, summarize_context
from flowcore.errors import (
    ConnectionNotFoundError,
    FlowcoreError,
    NodeNotFoundError,
    WorkflowValidationError,
)
from flowcore.graph.mutations import (
    add_connection,
    add_node,
    create_workflow,
    delete_connection,
    delete_node,
    duplicate_workflow,
    update_node,
    validate_workflow,
)
from flowcore.graph.ordering import topo_sort
from flowcore.graph.upstream import collect_upstream
from flowcore.models.context import ExecutionContext, ExecutionContextSummary
from flowcore.models.workflow import Connection, Workflow, WorkflowNode
from flowcore.utils.identifiers import generate_node_id, utc_timestamp
from server.record_db import SqliteRecordResolver
from server.workflow_db import (
    delete_workflow as db_delete_workflow,
    get_workflow as db_get_workflow,
    list_workflows as db_list_workflows,
    upsert_workflow as db_upsert_workflow,
)

router = APIRouter()

_node_adapter: TypeAdapter = TypeAdapter(WorkflowNode)

REQUEST_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateWorkflowRequest(BaseModel):
    """request body for creating an empty workflow."""

    model_config = REQUEST_CONFIG

    name: str
    description: str = ""


class UpsertWorkflowRequest(BaseModel):
    """request body for writing a whole workflow graph at once."""

    model_config = REQUEST_CONFIG

    name: str
    description: str = ""
    nodes: list[WorkflowNode] = Field(default_factory=list)
    connections: list[Connection] = Field(default_factory=list)
    is_active: bool = False


class DuplicateWorkflowRequest(BaseModel):
    model_config = REQUEST_CONFIG

    name: str | None = None


class ConnectionRequest(BaseModel):
    model_config = REQUEST_CONFIG

    from_node_id: str
    to_node_id: str


class ConnectionCheckResponse(BaseModel):
    model_config = REQUEST_CONFIG

    allowed: bool
    reason: str | None = None


class UpstreamResponse(BaseModel):
    model_config = REQUEST_CONFIG

    target_node_id: str
    nodes: list[WorkflowNode]
    edges: list[Connection]
    ordered_node_ids: list[str]


class ContextResponse(BaseModel):
    model_config = REQUEST_CONFIG

    context: ExecutionContext
    summary: ExecutionContextSummary


def _http_error(error: FlowcoreError) -> HTTPException:
    if isinstance(error, (NodeNotFoundError, ConnectionNotFoundError)):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, WorkflowValidationError):
        return HTTPException(status_code=422, detail=error.problems)
    return HTTPException(status_code=400, detail=str(error))


def _load(workflow_id: str) -> Workflow:
    workflow = db_get_workflow(workflow_id)
    if not workflow:
        raise HTTPException(status_code=404, detail=f"Workflow not found: {workflow_id}")
    return workflow


@router.get("/workflows")
def list_workflows() -> list[Workflow]:
    """list all workflows, most recently edited first."""
    return db_list_workflows()


@router.post("/workflows")
def create_new_workflow(request: CreateWorkflowRequest) -> Workflow:
    workflow = create_workflow(request.name, request.description)
    db_upsert_workflow(workflow)
    return workflow


@router.get("/workflows/{workflow_id}")
def get_workflow(workflow_id: str) -> Workflow:
    return _load(workflow_id)


@router.put("/workflows/{workflow_id}")
def upsert_workflow(workflow_id: str, request: UpsertWorkflowRequest) -> Workflow:
    """create or replace a whole workflow graph.

    The graph is checked as a whole (dangling or illegal edges, duplicate
    ids, cycles); any problem rejects the write with 422.
    """
    now = utc_timestamp()
    existing = db_get_workflow(workflow_id)
    workflow = Workflow(
        id=workflow_id,
        name=request.name,
        description=request.description,
        nodes=tuple(request.nodes),
        connections=tuple(request.connections),
        created_at=existing.created_at if existing else now,
        updated_at=now,
        is_active=request.is_active,
    )
    problems = validate_workflow(workflow)
    if problems:
        raise HTTPException(status_code=422, detail=problems)
    db_upsert_workflow(workflow)
    return workflow


@router.delete("/workflows/{workflow_id}")
def delete_workflow(workflow_id: str) -> dict:
    _load(workflow_id)
    db_delete_workflow(workflow_id)
    return {"deleted": workflow_id}


@router.post("/workflows/{workflow_id}/duplicate")
def duplicate(workflow_id: str, request: DuplicateWorkflowRequest | None = None) -> Workflow:
    """copy a workflow with fresh node and connection ids."""
    copy = duplicate_workflow(_load(workflow_id), name=request.name if request else None)
    db_upsert_workflow(copy)
    return copy


@router.post("/workflows/{workflow_id}/nodes")
def create_node(workflow_id: str, payload: dict) -> Workflow:
    """add an input or agent node; an id is generated when none is given."""
    workflow = _load(workflow_id)
    if not payload.get("id"):
        payload = {**payload, "id": generate_node_id(str(payload.get("type", "node")))}
    try:
        node = _node_adapter.validate_python(payload)
        updated = add_node(workflow, node)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False)) from e
    except FlowcoreError as e:
        raise _http_error(e) from e
    db_upsert_workflow(updated)
    return updated


@router.patch("/workflows/{workflow_id}/nodes/{node_id}")
def patch_node(workflow_id: str, node_id: str, updates: dict) -> Workflow:
    workflow = _load(workflow_id)
    try:
        updated = update_node(workflow, node_id, updates)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False)) from e
    except FlowcoreError as e:
        raise _http_error(e) from e
    db_upsert_workflow(updated)
    return updated


@router.delete("/workflows/{workflow_id}/nodes/{node_id}")
def remove_node(workflow_id: str, node_id: str) -> Workflow:
    """delete a node together with every connection touching it."""
    try:
        updated = delete_node(_load(workflow_id), node_id)
    except FlowcoreError as e:
        raise _http_error(e) from e
    db_upsert_workflow(updated)
    return updated


@router.post("/workflows/{workflow_id}/connections/check")
def check_connection(workflow_id: str, request: ConnectionRequest) -> ConnectionCheckResponse:
    """say whether a connection would be accepted, without adding it."""
    result = add_connection(_load(workflow_id), request.from_node_id, request.to_node_id)
    return ConnectionCheckResponse(allowed=result.allowed, reason=result.reason)


@router.post("/workflows/{workflow_id}/connections")
def create_connection(workflow_id: str, request: ConnectionRequest) -> Connection:
    result = add_connection(_load(workflow_id), request.from_node_id, request.to_node_id)
    if not result.allowed:
        raise HTTPException(status_code=409, detail=result.reason)
    db_upsert_workflow(result.workflow)
    return result.connection


@router.delete("/workflows/{workflow_id}/connections/{connection_id}")
def remove_connection(workflow_id: str, connection_id: str) -> Workflow:
    try:
        updated = delete_connection(_load(workflow_id), connection_id)
    except FlowcoreError as e:
        raise _http_error(e) from e
    db_upsert_workflow(updated)
    return updated


def _agent_node_or_404(workflow: Workflow, node_id: str):
    node = workflow.get_node(node_id)
    if node is None or node.type != "agent":
        raise HTTPException(status_code=404, detail=f"Agent node not found: {node_id}")
    return node


@router.get("/workflows/{workflow_id}/agents/{node_id}/upstream")
def get_upstream(workflow_id: str, node_id: str) -> UpstreamResponse:
    """everything feeding an agent node, in topological order."""
    workflow = _load(workflow_id)
    agent_node = _agent_node_or_404(workflow, node_id)
    upstream = collect_upstream(workflow, node_id)
    return UpstreamResponse(
        target_node_id=node_id,
        nodes=upstream.nodes,
        edges=upstream.edges,
        ordered_node_ids=topo_sort([*upstream.nodes, agent_node], upstream.edges),
    )


@router.get("/workflows/{workflow_id}/agents/{node_id}/context")
async def get_context(workflow_id: str, node_id: str) -> ContextResponse:
    """the execution context an agent node would receive if run now."""
    workflow = _load(workflow_id)
    _agent_node_or_404(workflow, node_id)
    context = await build_execution_context(workflow, node_id, SqliteRecordResolver())
    return ContextResponse(context=context, summary=summarize_context(context))
