"""API routes for external records that input nodes reference."""

from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from flowcore.context.resolver import ResolvedRecord
from flowcore.utils.identifiers import utc_timestamp
from server.record_db import (
    delete_record as db_delete_record,
    get_record as db_get_record,
    list_records as db_list_records,
    upsert_record as db_upsert_record,
)

router = APIRouter()


class UpsertRecordRequest(BaseModel):
    """request body for storing a product, persona or knowledge item."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str | None = None
    payload: Any = None
    created_at: str | None = None


@router.get("/records/{kind}")
def list_records(kind: str) -> list[ResolvedRecord]:
    """list stored records of one kind, newest first."""
    return db_list_records(kind)


@router.get("/records/{kind}/{ref_id}")
def get_record(kind: str, ref_id: str) -> ResolvedRecord:
    record = db_get_record(kind, ref_id)
    if not record:
        raise HTTPException(status_code=404, detail=f"Record not found: {kind}/{ref_id}")
    return record


@router.put("/records/{kind}/{ref_id}")
def upsert_record(kind: str, ref_id: str, request: UpsertRecordRequest) -> ResolvedRecord:
    """create or replace a record; createdAt is kept from the stored copy when omitted."""
    existing = db_get_record(kind, ref_id)
    record = ResolvedRecord(
        id=ref_id,
        kind=kind,
        title=request.title,
        payload=request.payload,
        created_at=request.created_at or (existing.created_at if existing else utc_timestamp()),
    )
    db_upsert_record(record)
    return record


@router.delete("/records/{kind}/{ref_id}")
def delete_record(kind: str, ref_id: str) -> dict:
    if not db_get_record(kind, ref_id):
        raise HTTPException(status_code=404, detail=f"Record not found: {kind}/{ref_id}")
    db_delete_record(kind, ref_id)
    return {"deleted": ref_id}
