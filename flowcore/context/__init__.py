"""Execution context assembly: record resolution, packets and the final bundle."""

from flowcore.context.builder import (
    build_execution_context,
    estimate_token_count,
    preview_text,
    summarize_context,
)
from flowcore.context.packets import KIND_PRIORITY, SourcedPacket, assemble_packets, sort_packets
from flowcore.context.resolver import (
    HttpRecordResolver,
    InMemoryRecordResolver,
    RecordResolver,
    ResolvedRecord,
    record_store,
)

__all__ = [
    "HttpRecordResolver",
    "InMemoryRecordResolver",
    "KIND_PRIORITY",
    "RecordResolver",
    "ResolvedRecord",
    "SourcedPacket",
    "assemble_packets",
    "build_execution_context",
    "estimate_token_count",
    "preview_text",
    "record_store",
    "sort_packets",
    "summarize_context",
]
