"""Turn upstream nodes into context packets and put them in semantic order.

The agent sees goal framing first, then product facts, persona, supporting
knowledge, referenced runs and finally upstream agent output, whatever order
the nodes were wired in. Within one kind, topological order is kept.

Packet content is the source payload verbatim (deep-copied, never trimmed).
A node whose record cannot be resolved is skipped with a warning; the rest
of the assembly carries on.
"""

import copy
import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass

from flowcore.context.resolver import RecordResolver, ResolvedRecord
from flowcore.models.context import ContextPacket
from flowcore.models.workflow import AgentNode, InputNode, Workflow
from flowcore.utils.identifiers import packet_id_for, utc_timestamp

logger = logging.getLogger(__name__)

KIND_PRIORITY: dict[str, int] = {
    "intent": 1,
    "product": 2,
    "persona": 3,
    "kb_item": 4,
    "workflow_run_ref": 5,
    "agent_output": 6,
}
UNKNOWN_PRIORITY = 999

DEFAULT_INTENT_TITLE = "Intent"
DEFAULT_AGENT_OUTPUT_TITLE = "Intermediate output"


@dataclass(frozen=True)
class SourcedPacket:
    """A packet together with the node and record it was built from."""

    packet: ContextPacket
    node: InputNode | AgentNode
    record: ResolvedRecord | None = None


def packet_sort_key(ordered_node_ids: Sequence[str]) -> Callable[[ContextPacket], tuple[int, int]]:
    position = {node_id: index for index, node_id in enumerate(ordered_node_ids)}

    def key(packet: ContextPacket) -> tuple[int, int]:
        return (
            KIND_PRIORITY.get(packet.kind, UNKNOWN_PRIORITY),
            position.get(packet.node_id, len(position)),
        )

    return key


def sort_packets(packets: Sequence[ContextPacket], ordered_node_ids: Sequence[str]) -> list[ContextPacket]:
    """Order packets by kind priority, then by topological position."""
    return sorted(packets, key=packet_sort_key(ordered_node_ids))


def _record_packet(
    node: InputNode,
    kind: str,
    record: ResolvedRecord,
    content: object,
    now: str,
    title: str | None = None,
) -> SourcedPacket:
    packet = ContextPacket(
        id=packet_id_for(node.id),
        node_id=node.id,
        node_type="input",
        kind=kind,
        title=title or record.title or node.label,
        content=content,
        evidence_refs=[record.id],
        created_at=record.created_at or now,
    )
    return SourcedPacket(packet=packet, node=node, record=record)


def _run_output(record: ResolvedRecord) -> object | None:
    if not isinstance(record.payload, Mapping):
        return None
    final_output = record.payload.get("finalOutput")
    if final_output is None:
        final_output = record.payload.get("output")  # runs saved before finalOutput existed
    return final_output


async def _input_packet(node: InputNode, resolver: RecordResolver, now: str) -> SourcedPacket | None:
    data = node.data

    if node.kind == "intent" and (data is None or data.input_kind != "workflow_run_ref"):
        if data is None or data.intent_payload is None:
            logger.warning("intent node %s has no intent payload; skipped", node.id)
            return None
        packet = ContextPacket(
            id=packet_id_for(node.id),
            node_id=node.id,
            node_type="input",
            kind="intent",
            title=node.label or DEFAULT_INTENT_TITLE,
            content=data.intent_payload.model_dump(by_alias=True, exclude_unset=True),
            created_at=now,
        )
        return SourcedPacket(packet=packet, node=node)

    ref_id = node.ref_id
    if not ref_id:
        logger.warning("%s node %s has no reference; skipped", node.kind, node.id)
        return None

    # a run reference is recognised by its data kind, whatever the node kind says
    if data is not None and data.input_kind == "workflow_run_ref":
        record = await resolver.resolve("workflow_run", ref_id)
        if record is None or record.kind != "workflow_run":
            logger.warning("workflow run %s for node %s not found; skipped", ref_id, node.id)
            return None
        output = _run_output(record)
        if output is None:
            logger.warning("workflow run %s has no output; node %s skipped", ref_id, node.id)
            return None
        return _record_packet(node, "workflow_run_ref", record, copy.deepcopy(output), now)

    if node.kind == "product":
        record = await resolver.resolve("product", ref_id)
        if record is None:
            logger.warning("product %s for node %s not found; skipped", ref_id, node.id)
            return None
        name = record.payload.get("name") if isinstance(record.payload, Mapping) else None
        return _record_packet(
            node, "product", record, copy.deepcopy(record.payload), now, title=record.title or name
        )

    if node.kind == "persona":
        record = await resolver.resolve("persona", ref_id)
        if record is None or record.kind != "persona":
            logger.warning("persona %s for node %s not found; skipped", ref_id, node.id)
            return None
        return _record_packet(node, "persona", record, copy.deepcopy(record.payload), now)

    if node.kind == "knowledge":
        record = await resolver.resolve("kb_item", ref_id)
        if record is None:
            logger.warning("knowledge item %s for node %s not found; skipped", ref_id, node.id)
            return None
        return _record_packet(node, "kb_item", record, copy.deepcopy(record.payload), now)

    logger.warning("input node %s has unrecognized kind %r; skipped", node.id, node.kind)
    return None


def _agent_packet(node: AgentNode, now: str) -> SourcedPacket | None:
    result = node.execution_result
    if result is None or result.output is None:
        logger.debug("upstream agent %s has no output yet", node.id)
        return None
    packet = ContextPacket(
        id=packet_id_for(node.id),
        node_id=node.id,
        node_type="agent",
        kind="agent_output",
        title=node.label or DEFAULT_AGENT_OUTPUT_TITLE,
        content=copy.deepcopy(result.output),
        created_at=result.executed_at or now,
    )
    return SourcedPacket(packet=packet, node=node)


async def assemble_packets(
    workflow: Workflow,
    ordered_node_ids: Sequence[str],
    target_node_id: str,
    resolver: RecordResolver,
    now: str | None = None,
) -> list[SourcedPacket]:
    """Build one packet per usable upstream node, in priority order.

    Records are resolved one node at a time, in topological order.
    """
    now = now or utc_timestamp()
    sourced: list[SourcedPacket] = []
    for node_id in ordered_node_ids:
        if node_id == target_node_id:
            continue
        node = workflow.get_node(node_id)
        if node is None:
            continue
        if node.type == "input":
            item = await _input_packet(node, resolver, now)
        else:
            item = _agent_packet(node, now)
        if item is not None:
            sourced.append(item)

    key = packet_sort_key(ordered_node_ids)
    return sorted(sourced, key=lambda item: key(item.packet))
