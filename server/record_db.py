"""SQLite storage for external records (products, personas, knowledge items, runs).

Records are keyed by (store, id): products have their own store, everything
else shares the knowledge-base store, matching flowcore's record_store().
"""

from flowcore.context.resolver import ResolvedRecord, record_store
from server import db


def init_db() -> None:
    with db.connect() as conn:
        conn.execute(
            """
            create table if not exists records (
                store text not null,
                record_id text not null,
                kind text not null,
                record_json text not null,
                created_at text,
                primary key (store, record_id)
            )
            """
        )
        conn.execute("create index if not exists idx_records_kind on records(kind)")
        conn.commit()


def upsert_record(record: ResolvedRecord) -> None:
    """insert or update a record."""
    with db.connect() as conn:
        conn.execute(
            """
            insert into records (store, record_id, kind, record_json, created_at)
            values (?, ?, ?, ?, ?)
            on conflict(store, record_id) do update set
                kind = excluded.kind,
                record_json = excluded.record_json,
                created_at = excluded.created_at
            """,
            (
                record_store(record.kind),
                record.id,
                record.kind,
                record.model_dump_json(by_alias=True),
                record.created_at,
            ),
        )
        conn.commit()


def get_record(kind: str, record_id: str) -> ResolvedRecord | None:
    """look up a record in the store that kind belongs to."""
    with db.connect() as conn:
        row = conn.execute(
            "select record_json from records where store = ? and record_id = ?",
            (record_store(kind), record_id),
        ).fetchone()
    if not row:
        return None
    return ResolvedRecord.model_validate_json(row["record_json"])


def list_records(kind: str) -> list[ResolvedRecord]:
    with db.connect() as conn:
        rows = conn.execute(
            "select record_json from records where kind = ? order by created_at desc",
            (kind,),
        ).fetchall()
    return [ResolvedRecord.model_validate_json(row["record_json"]) for row in rows]


def list_record_payloads(kind: str) -> list[dict]:
    """raw stored documents of one kind, as {kb_id, payload, created_at} items."""
    return [
        {"kb_id": record.id, "payload": record.payload, "created_at": record.created_at}
        for record in list_records(kind)
        if isinstance(record.payload, dict)
    ]


def delete_record(kind: str, record_id: str) -> None:
    with db.connect() as conn:
        conn.execute(
            "delete from records where store = ? and record_id = ?",
            (record_store(kind), record_id),
        )
        conn.commit()


class SqliteRecordResolver:
    """RecordResolver over the records table."""

    async def resolve(self, kind: str, ref_id: str) -> ResolvedRecord | None:
        return get_record(kind, ref_id)
