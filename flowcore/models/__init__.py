"""Core data models for flowcore."""

from flowcore.models.agent_definition import AgentDefinition
from flowcore.models.context import (
    ContextPacket,
    ContextTrace,
    EdgeRef,
    ExecutionContext,
    ExecutionContextSummary,
    InputFull,
    InputsPreview,
    KnowledgeEntry,
    PacketKind,
)
from flowcore.models.run_record import (
    NormalizedRunRecord,
    RunStatus,
    SchemaValidationResult,
    ValidationIssue,
)
from flowcore.models.workflow import (
    AgentNode,
    AgentNodeData,
    Connection,
    ExecutionResult,
    InputNode,
    InputNodeData,
    IntentPayload,
    Position,
    Workflow,
    WorkflowNode,
)

__all__ = [
    # graph
    "AgentNode",
    "AgentNodeData",
    "Connection",
    "ExecutionResult",
    "InputNode",
    "InputNodeData",
    "IntentPayload",
    "Position",
    "Workflow",
    "WorkflowNode",
    # agent definitions
    "AgentDefinition",
    # execution context
    "ContextPacket",
    "ContextTrace",
    "EdgeRef",
    "ExecutionContext",
    "ExecutionContextSummary",
    "InputFull",
    "InputsPreview",
    "KnowledgeEntry",
    "PacketKind",
    # run records
    "NormalizedRunRecord",
    "RunStatus",
    "SchemaValidationResult",
    "ValidationIssue",
]
