"""flowcore - workflow graph execution engine for marketing-planning agents."""

from flowcore.models.agent_definition import AgentDefinition
from flowcore.models.context import (
    ContextPacket,
    ExecutionContext,
    ExecutionContextSummary,
)
from flowcore.models.run_record import NormalizedRunRecord
from flowcore.models.workflow import (
    AgentNode,
    Connection,
    InputNode,
    IntentPayload,
    Workflow,
)
from flowcore.graph import (
    add_connection,
    can_connect,
    collect_upstream,
    has_cycle,
    topo_sort,
)
from flowcore.context import (
    HttpRecordResolver,
    InMemoryRecordResolver,
    ResolvedRecord,
    build_execution_context,
    summarize_context,
)
from flowcore.runs import (
    evaluate_for_listing,
    evaluate_for_planning,
    normalize_run,
)

__all__ = [
    # Graph model
    "AgentNode",
    "Connection",
    "InputNode",
    "IntentPayload",
    "Workflow",
    "AgentDefinition",
    # Graph rules
    "add_connection",
    "can_connect",
    "collect_upstream",
    "has_cycle",
    "topo_sort",
    # Context assembly
    "ContextPacket",
    "ExecutionContext",
    "ExecutionContextSummary",
    "HttpRecordResolver",
    "InMemoryRecordResolver",
    "ResolvedRecord",
    "build_execution_context",
    "summarize_context",
    # Run records
    "NormalizedRunRecord",
    "evaluate_for_listing",
    "evaluate_for_planning",
    "normalize_run",
]
