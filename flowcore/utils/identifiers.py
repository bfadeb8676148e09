"""ID generation and timestamp utilities."""

import uuid
from datetime import datetime, timezone


def generate_workflow_id() -> str:
    """Generate a unique workflow ID."""
    return f"workflow-{uuid.uuid4()}"


def generate_node_id(node_type: str) -> str:
    """Generate a node ID prefixed with the node type ("input" or "agent")."""
    return f"{node_type}-{uuid.uuid4()}"


def generate_connection_id() -> str:
    """Generate a unique connection (edge) ID."""
    return f"conn-{uuid.uuid4()}"


def generate_run_id() -> str:
    """Generate a unique run record ID (UUID4)."""
    return str(uuid.uuid4())


RUN_ID_NAMESPACE = uuid.UUID("6f1c7f1e-4b52-4a8e-9d3c-0e2a6f5b9a41")


def derive_run_id(document_text: str) -> str:
    """Stable run ID (UUID5) for a stored document that never had one."""
    return str(uuid.uuid5(RUN_ID_NAMESPACE, document_text))


def packet_id_for(node_id: str) -> str:
    """Context packets are keyed by the node they came from."""
    return f"packet-{node_id}"


def utc_timestamp() -> str:
    """Generate an ISO8601 UTC timestamp."""
    return datetime.now(timezone.utc).isoformat()
