"""Utility functions for flowcore."""

from flowcore.utils.identifiers import (
    generate_connection_id,
    generate_node_id,
    generate_run_id,
    generate_workflow_id,
    packet_id_for,
    utc_timestamp,
)

__all__ = [
    "generate_connection_id",
    "generate_node_id",
    "generate_run_id",
    "generate_workflow_id",
    "packet_id_for",
    "utc_timestamp",
]
