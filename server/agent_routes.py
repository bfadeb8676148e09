"""API routes for agent definitions."""

from fastapi import APIRouter, HTTPException
from pydantic import ValidationError

from flowcore.models.agent_definition import AgentDefinition
from flowcore.utils.identifiers import utc_timestamp
from server.agent_db import (
    delete_definition as db_delete_definition,
    get_definition as db_get_definition,
    list_definitions as db_list_definitions,
    upsert_definition as db_upsert_definition,
)

router = APIRouter()


@router.get("/agent-definitions")
def list_definitions() -> list[AgentDefinition]:
    return db_list_definitions()


@router.get("/agent-definitions/{definition_id}")
def get_definition(definition_id: str) -> AgentDefinition:
    definition = db_get_definition(definition_id)
    if not definition:
        raise HTTPException(status_code=404, detail=f"Agent definition not found: {definition_id}")
    return definition


@router.put("/agent-definitions/{definition_id}")
def upsert_definition(definition_id: str, body: dict) -> AgentDefinition:
    """create or replace an agent definition.

    Prompt text and other keys the engine does not read are stored as-is.
    """
    try:
        definition = AgentDefinition.model_validate(
            {**body, "id": definition_id, "updatedAt": utc_timestamp()}
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False)) from e
    db_upsert_definition(definition)
    return definition


@router.delete("/agent-definitions/{definition_id}")
def delete_definition(definition_id: str) -> dict:
    if not db_get_definition(definition_id):
        raise HTTPException(status_code=404, detail=f"Agent definition not found: {definition_id}")
    db_delete_definition(definition_id)
    return {"deleted": definition_id}
