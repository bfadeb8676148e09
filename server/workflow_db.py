"""SQLite storage for workflow graphs."""

from flowcore.models.workflow import Workflow
from server import db


def init_db() -> None:
    with db.connect() as conn:
        conn.execute(
            """
            create table if not exists workflows (
                workflow_id text primary key,
                workflow_json text not null,
                name text not null,
                created_at text not null,
                updated_at text not null
            )
            """
        )
        conn.commit()


def upsert_workflow(workflow: Workflow) -> None:
    """insert or replace the stored snapshot of a workflow."""
    with db.connect() as conn:
        conn.execute(
            """
            insert into workflows (workflow_id, workflow_json, name, created_at, updated_at)
            values (?, ?, ?, ?, ?)
            on conflict(workflow_id) do update set
                workflow_json = excluded.workflow_json,
                name = excluded.name,
                updated_at = excluded.updated_at
            """,
            (
                workflow.id,
                workflow.model_dump_json(by_alias=True),
                workflow.name,
                workflow.created_at,
                workflow.updated_at,
            ),
        )
        conn.commit()


def get_workflow(workflow_id: str) -> Workflow | None:
    with db.connect() as conn:
        row = conn.execute(
            "select workflow_json from workflows where workflow_id = ?",
            (workflow_id,),
        ).fetchone()
    if not row:
        return None
    return Workflow.model_validate_json(row["workflow_json"])


def list_workflows() -> list[Workflow]:
    with db.connect() as conn:
        rows = conn.execute(
            "select workflow_json from workflows order by updated_at desc"
        ).fetchall()
    return [Workflow.model_validate_json(row["workflow_json"]) for row in rows]


def delete_workflow(workflow_id: str) -> None:
    with db.connect() as conn:
        conn.execute("delete from workflows where workflow_id = ?", (workflow_id,))
        conn.commit()
