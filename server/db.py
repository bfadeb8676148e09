"""database location and initialization helpers."""

import os
import sqlite3
from pathlib import Path

DEFAULT_DB_PATH = Path(__file__).parent / "data" / "flowcore.db"
DB_PATH = Path(os.getenv("FLOWCORE_DB_PATH", str(DEFAULT_DB_PATH)))


def connect() -> sqlite3.Connection:
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(DB_PATH)
    conn.row_factory = sqlite3.Row
    return conn


def init_all() -> None:
    """initialize all sqlite tables."""
    # imported here: the storage modules import this one for connect()
    from server.agent_db import init_db as init_agent_db
    from server.record_db import init_db as init_record_db
    from server.workflow_db import init_db as init_workflow_db

    init_workflow_db()
    init_record_db()
    init_agent_db()
