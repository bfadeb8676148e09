"""SQLite storage for agent definitions."""

from flowcore.models.agent_definition import AgentDefinition
from server import db


def init_db() -> None:
    with db.connect() as conn:
        conn.execute(
            """
            create table if not exists agent_definitions (
                agent_definition_id text primary key,
                definition_json text not null,
                output_kind text,
                updated_at text
            )
            """
        )
        conn.commit()


def upsert_definition(definition: AgentDefinition) -> None:
    """insert or update an agent definition."""
    with db.connect() as conn:
        conn.execute(
            """
            insert into agent_definitions (agent_definition_id, definition_json, output_kind, updated_at)
            values (?, ?, ?, ?)
            on conflict(agent_definition_id) do update set
                definition_json = excluded.definition_json,
                output_kind = excluded.output_kind,
                updated_at = excluded.updated_at
            """,
            (
                definition.id,
                definition.model_dump_json(by_alias=True),
                definition.output_kind,
                definition.updated_at,
            ),
        )
        conn.commit()


def get_definition(definition_id: str) -> AgentDefinition | None:
    with db.connect() as conn:
        row = conn.execute(
            "select definition_json from agent_definitions where agent_definition_id = ?",
            (definition_id,),
        ).fetchone()
    if not row:
        return None
    return AgentDefinition.model_validate_json(row["definition_json"])


def list_definitions() -> list[AgentDefinition]:
    with db.connect() as conn:
        rows = conn.execute(
            "select definition_json from agent_definitions order by agent_definition_id"
        ).fetchall()
    return [AgentDefinition.model_validate_json(row["definition_json"]) for row in rows]


def delete_definition(definition_id: str) -> None:
    with db.connect() as conn:
        conn.execute(
            "delete from agent_definitions where agent_definition_id = ?",
            (definition_id,),
        )
        conn.commit()
