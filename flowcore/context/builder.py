"""Build the ExecutionContext handed to one agent invocation.

build_execution_context collects the target's upstream subgraph, orders it
topologically, assembles priority-sorted packets and derives the lossless
(inputs_full) and display-only (inputs_preview) projections. Given the same
graph and the same record snapshot it returns the same packets in the same
order; the only clock read is `now`, which callers may pin.
"""

import json
import logging
import math
import re
from collections.abc import Mapping, Sequence
from typing import Any

from flowcore.config import (
    CONTEXT_TOKEN_WARN_THRESHOLD,
    PREVIEW_MAX_CHARS,
    PREVIEW_VALUE_MAX_CHARS,
)
from flowcore.context.packets import SourcedPacket, assemble_packets
from flowcore.context.resolver import RecordResolver
from flowcore.errors import AgentNodeNotFoundError
from flowcore.graph.ordering import topo_sort
from flowcore.graph.upstream import collect_upstream
from flowcore.models.context import (
    CharCounts,
    ContextPacket,
    ContextTrace,
    EdgeRef,
    ExecutionContext,
    ExecutionContextSummary,
    InputFull,
    InputsPreview,
    KnowledgeEntry,
    PersonaSummary,
    PreviewCounts,
    PreviewHighlight,
    ProductSummary,
    RunOutputInput,
)
from flowcore.models.workflow import Workflow
from flowcore.utils.identifiers import utc_timestamp

logger = logging.getLogger(__name__)

# knowledge entries are presented in this order, unknown kinds last
KNOWLEDGE_KIND_ORDER: dict[str, int] = {
    "banner_insight": 1,
    "market_insight": 2,
    "strategy_option": 3,
    "planning_hook": 4,
    "banner_auto_layout": 5,
}

# hiragana, katakana and CJK ideographs
_CJK_PATTERN = re.compile(r"[\u3040-\u309f\u30a0-\u30ff\u4e00-\u9faf]")


def estimate_token_count(text: str) -> int:
    """Rough token estimate: about 2 CJK characters or 4 other characters per token."""
    if not text:
        return 0
    cjk = len(_CJK_PATTERN.findall(text))
    other = len(text) - cjk
    return math.ceil(cjk / 2) + math.ceil(other / 4)


def content_text(content: Any) -> str:
    """Serialized form of packet content, used for size accounting only."""
    if isinstance(content, str):
        return content
    return json.dumps(
        content if content is not None else {},
        ensure_ascii=False,
        separators=(",", ":"),
        default=str,
    )


def _value_text(value: Any) -> str:
    return value if isinstance(value, str) else content_text(value)


def preview_text(
    content: Any,
    max_chars: int = PREVIEW_MAX_CHARS,
    value_max_chars: int = PREVIEW_VALUE_MAX_CHARS,
) -> str:
    """One display line for a packet. The only place content is shortened."""
    if isinstance(content, str):
        return content[:max_chars] + "..." if len(content) > max_chars else content
    if isinstance(content, Mapping):
        if not content:
            return "(empty object)"
        first_key = next(iter(content))
        return f"{first_key}: {_value_text(content[first_key])[:value_max_chars]}..."
    if isinstance(content, Sequence) and not isinstance(content, (bytes, bytearray)):
        if not content:
            return "(empty list)"
        return f"0: {_value_text(content[0])[:value_max_chars]}..."
    if content is None or content == "":
        return "(empty)"
    return str(content)


def build_inputs_full(packets: Sequence[ContextPacket]) -> list[InputFull]:
    return [
        InputFull(
            kind=packet.kind,
            ref_id=packet.evidence_refs[0] if packet.evidence_refs else None,
            payload_raw=packet.content,
            payload_structured=packet.content,
            source_title=packet.title,
            created_at=packet.created_at,
        )
        for packet in packets
    ]


def build_inputs_preview(packets: Sequence[ContextPacket]) -> InputsPreview:
    """Counts, one-line highlights and size figures for display and budgeting."""
    kinds = [packet.kind for packet in packets]
    counts = PreviewCounts(
        kb_items=kinds.count("kb_item"),
        personas=kinds.count("persona"),
        products=kinds.count("product"),
        intent=kinds.count("intent"),
        agent_outputs=kinds.count("agent_output"),
        workflow_run_refs=kinds.count("workflow_run_ref"),
    )
    highlights = [
        PreviewHighlight(kind=packet.kind, title=packet.title, preview=preview_text(packet.content))
        for packet in packets
    ]

    total = 0
    tokens = 0
    by_kind: dict[str, int] = {}
    for packet in packets:
        text = content_text(packet.content)
        total += len(text)
        by_kind[packet.kind] = by_kind.get(packet.kind, 0) + len(text)
        tokens += estimate_token_count(text)

    return InputsPreview(
        counts=counts,
        highlights=highlights,
        char_counts=CharCounts(total=total, by_kind=by_kind),
        estimated_tokens=tokens,
    )


def _product_aggregate(item: SourcedPacket) -> dict[str, Any]:
    content = item.packet.content if isinstance(item.packet.content, Mapping) else {}
    return {
        "id": item.record.id if item.record else None,
        "name": content.get("name"),
        "category": content.get("category"),
        "description": content.get("description"),
    }


def _persona_aggregate(item: SourcedPacket) -> dict[str, Any]:
    content = item.packet.content if isinstance(item.packet.content, Mapping) else {}
    return {"id": item.record.id if item.record else None, **content}


def _knowledge_entry(item: SourcedPacket) -> KnowledgeEntry:
    record = item.record
    ref_kind = None
    if item.node.type == "input" and item.node.data is not None:
        ref_kind = item.node.data.ref_kind
    return KnowledgeEntry(
        kind=ref_kind or (record.kind if record else "kb_item"),
        id=record.id if record else item.packet.node_id,
        title=record.title if record else item.packet.title,
        payload=item.packet.content,
    )


def _apply_aggregates(context: ExecutionContext, sourced: Sequence[SourcedPacket]) -> None:
    """Fill the convenience fields older consumers read."""
    knowledge: list[KnowledgeEntry] = []
    for item in sourced:
        packet = item.packet
        if packet.kind == "intent" and context.intent is None:
            context.intent = packet.content
        elif packet.kind == "product" and context.product is None:
            context.product = _product_aggregate(item)
        elif packet.kind == "persona":
            if context.persona is None:
                context.persona = _persona_aggregate(item)
            context.referenced_kb_item_ids.append(item.record.id)
        elif packet.kind == "kb_item":
            knowledge.append(_knowledge_entry(item))
            context.referenced_kb_item_ids.append(item.record.id)
        elif packet.kind == "workflow_run_ref":
            run_id = item.record.id
            context.inputs[f"workflow_run_{run_id}"] = RunOutputInput(run_id=run_id, output=packet.content)
            context.referenced_run_ids.append(run_id)
            context.referenced_kb_item_ids.append(run_id)

    knowledge.sort(key=lambda entry: KNOWLEDGE_KIND_ORDER.get(entry.kind, 999))
    context.knowledge = knowledge


async def build_execution_context(
    workflow: Workflow,
    agent_node_id: str,
    resolver: RecordResolver,
    now: str | None = None,
) -> ExecutionContext:
    """Assemble everything the agent at agent_node_id receives.

    Args:
        workflow: graph snapshot to read (never modified)
        agent_node_id: id of the agent node about to run
        resolver: source of product/persona/knowledge/run records
        now: timestamp used for the trace and for packets without one

    Raises:
        AgentNodeNotFoundError: agent_node_id is not an agent node of workflow
    """
    agent_node = workflow.get_node(agent_node_id)
    if agent_node is None or agent_node.type != "agent":
        raise AgentNodeNotFoundError(agent_node_id)
    now = now or utc_timestamp()

    upstream = collect_upstream(workflow, agent_node_id)
    ordered_node_ids = topo_sort([*upstream.nodes, agent_node], upstream.edges)
    sourced = await assemble_packets(workflow, ordered_node_ids, agent_node_id, resolver, now=now)
    packets = [item.packet for item in sourced]

    context = ExecutionContext(
        agent_node_id=agent_node_id,
        packets=packets,
        inputs_full=build_inputs_full(packets),
        inputs_preview=build_inputs_preview(packets),
        trace=ContextTrace(
            ordered_node_ids=ordered_node_ids,
            edges_used=[EdgeRef(from_node=e.from_node_id, to=e.to_node_id) for e in upstream.edges],
            merged_at=now,
        ),
    )
    _apply_aggregates(context, sourced)

    if logger.isEnabledFor(logging.DEBUG):
        for item in context.inputs_full:
            logger.debug(
                "context input kind=%s ref=%s size=%d",
                item.kind,
                item.ref_id or "N/A",
                len(content_text(item.payload_raw)),
            )

    tokens = context.inputs_preview.estimated_tokens
    if tokens > CONTEXT_TOKEN_WARN_THRESHOLD:
        logger.warning(
            "context for agent %s is very large (about %d tokens); nothing was truncated",
            agent_node_id,
            tokens,
        )

    return context


def summarize_context(context: ExecutionContext) -> ExecutionContextSummary:
    """Compact description of a context, stored on run records as inputSummary."""
    product_summary = None
    if context.product is not None:
        product_summary = ProductSummary(
            name=context.product.get("name"),
            category=context.product.get("category"),
        )

    persona_summary = None
    if context.persona is not None and context.persona.get("id"):
        title = next((p.title for p in context.packets if p.kind == "persona"), None)
        persona_summary = PersonaSummary(id=context.persona["id"], title=title)

    counts_by_kind: dict[str, int] = {}
    for entry in context.knowledge:
        counts_by_kind[entry.kind] = counts_by_kind.get(entry.kind, 0) + 1

    return ExecutionContextSummary(
        product_summary=product_summary,
        persona_summary=persona_summary,
        knowledge_count=len(context.knowledge),
        knowledge_counts_by_kind=counts_by_kind,
        used_kb_item_ids=list(context.referenced_kb_item_ids),
        referenced_run_ids=list(context.referenced_run_ids),
    )
