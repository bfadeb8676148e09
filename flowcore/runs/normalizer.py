"""Absorb schema drift in persisted run records.

Run documents were written by several schema versions: some are knowledge
base items wrapping the run (`{kb_id, payload: {...}, created_at}`), some are
flat run documents; fields were renamed along the way (agentNodeId/nodeId,
zodValidationResult/schemaValidation, ...). Every fallback is an ordered list
of extractors passed to first_non_null, so the precedence of each field can
be read off one line.

normalize_run(normalize_run(x)) == normalize_run(x) for every x that
normalizes. Nothing here raises on a malformed document; a document that is
not a run, or has no output of any kind, normalizes to None.
"""

import json
import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from pydantic.alias_generators import to_snake

from flowcore.models.context import ExecutionContextSummary
from flowcore.models.run_record import (
    RUN_RECORD_TYPE,
    RUN_STATUSES,
    NormalizedRunRecord,
    SchemaValidationResult,
    ValidationIssue,
)
from flowcore.utils.identifiers import derive_run_id, generate_run_id, utc_timestamp

logger = logging.getLogger(__name__)

Extractor = Callable[[Mapping[str, Any]], Any]


def first_non_null(extractors: Iterable[Extractor], record: Any) -> Any:
    """Return the first extracted value that is neither None nor an empty string."""
    for extract in extractors:
        value = extract(record)
        if value is not None and value != "":
            return value
    return None


def field(name: str) -> Extractor:
    """Extractor for a camelCase key, also accepting its snake_case spelling."""
    snake = to_snake(name)

    def extract(source: Mapping[str, Any]) -> Any:
        value = source.get(name)
        if value is None and snake != name:
            value = source.get(snake)
        return value

    return extract


def text_field(name: str) -> Extractor:
    """Like field, but yields None for anything that is not a non-empty string."""
    extract = field(name)
    return lambda source: _text(extract(source))


# fallback chains, earliest wins
WORKFLOW_ID = [field("workflowId")]
NODE_ID = [field("agentNodeId"), field("nodeId")]
AGENT_ID = [field("agentId"), field("agentDefinitionId")]
AGENT_DEFINITION_ID = [field("agentDefinitionId"), field("agentId")]
RUN_ID = [field("id"), field("runId")]
FINAL_OUTPUT = [field("finalOutput")]
PARSED_OUTPUT = [field("parsedOutput")]
LEGACY_OUTPUT = [field("output")]
SCHEMA_VALIDATION = [
    field("schemaValidation"),
    field("schemaValidationResult"),
    field("zodValidationResult"),
]
SEMANTIC_VALIDATION = [field("semanticValidation"), field("semanticValidationResult")]
EXECUTION_CONTEXT_SUMMARY = [field("executionContextSummary"), field("inputSummary")]
INPUT_SUMMARY = [field("inputSummary"), field("executionContextSummary")]

# keys read by the chains above that are not fields of NormalizedRunRecord
_ALIAS_KEYS = {
    "agentNodeId",
    "runId",
    "kbId",
    "schemaValidationResult",
    "zodValidationResult",
    "semanticValidationResult",
    "lastError",
}
_KNOWN_KEYS = frozenset(
    {name for name in NormalizedRunRecord.model_fields}
    | {info.alias for info in NormalizedRunRecord.model_fields.values() if info.alias}
    | _ALIAS_KEYS
    | {to_snake(key) for key in _ALIAS_KEYS}
)


def _text(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def _mapping(value: Any) -> dict[str, Any] | None:
    return dict(value) if isinstance(value, Mapping) else None


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def _error_text(value: Any) -> str | None:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping) and isinstance(value.get("message"), str):
        return value["message"]
    return str(value)


def _schema_validation(value: Any) -> SchemaValidationResult | None:
    """Coerce a stored validation verdict; anything without a boolean success is dropped."""
    if isinstance(value, SchemaValidationResult):
        return value
    if not isinstance(value, Mapping) or not isinstance(value.get("success"), bool):
        return None
    issues = []
    raw_issues = value.get("issues")
    if not isinstance(raw_issues, (list, tuple)):
        raw_issues = []
    for issue in raw_issues:
        if not isinstance(issue, Mapping):
            continue
        path = issue.get("path", "")
        if isinstance(path, (list, tuple)):
            path = ".".join(str(part) for part in path)
        issues.append(ValidationIssue(path=str(path), message=str(issue.get("message", ""))))
    extras = {key: item for key, item in value.items() if key not in ("success", "issues")}
    return SchemaValidationResult(success=value["success"], issues=issues, **extras)


def _document_text(payload: Mapping[str, Any]) -> str:
    """Canonical text of a document, the same for equal documents."""
    try:
        return json.dumps(payload, sort_keys=True, default=str)
    except (TypeError, ValueError):
        # mixed-type keys cannot be sorted, circular values cannot be dumped
        return repr(sorted((repr(key), repr(value)) for key, value in payload.items()))


def _unwrap(raw: Mapping[str, Any]) -> tuple[Mapping[str, Any], str | None, str | None]:
    """Split a stored document into (payload, envelope id, envelope created_at)."""
    payload = raw.get("payload")
    is_wrapped = "kb_id" in raw or (
        isinstance(payload, Mapping) and payload.get("type") == RUN_RECORD_TYPE
    )
    if is_wrapped:
        if not isinstance(payload, Mapping):
            return {}, _text(raw.get("kb_id")), None
        return payload, _text(raw.get("kb_id")), _text(raw.get("created_at"))
    return raw, None, None


def normalize_run(raw: Mapping[str, Any] | NormalizedRunRecord) -> NormalizedRunRecord | None:
    """Coerce a stored run document into a NormalizedRunRecord.

    Returns None when the document is not a workflow run or when it carries
    no output at all (final, parsed, legacy, raw model text or presentation).
    Unknown payload keys are carried over as extras.
    """
    if isinstance(raw, NormalizedRunRecord):
        raw = raw.model_dump(by_alias=True)
    if not isinstance(raw, Mapping):
        return None

    payload, envelope_id, envelope_created_at = _unwrap(raw)
    if payload.get("type") != RUN_RECORD_TYPE:
        logger.debug("not a workflow run document: type=%r", payload.get("type"))
        return None

    final_output = first_non_null(FINAL_OUTPUT, payload)
    parsed_output = first_non_null(PARSED_OUTPUT, payload)
    output = first_non_null([lambda _: final_output, lambda _: parsed_output, *LEGACY_OUTPUT], payload)
    llm_raw_output = first_non_null([field("llmRawOutput")], payload)
    if llm_raw_output is not None and not isinstance(llm_raw_output, str):
        llm_raw_output = str(llm_raw_output)
    presentation = first_non_null([field("presentation")], payload)
    if all(v is None for v in (final_output, parsed_output, output, llm_raw_output, presentation)):
        logger.debug("run document %s has no output of any kind", envelope_id or payload.get("id"))
        return None

    status = payload.get("status")
    if not isinstance(status, str) or status not in RUN_STATUSES:
        status = "error"
    succeeded = status == "success"

    started_at = first_non_null(
        [
            text_field("startedAt"),
            text_field("executedAt"),
            lambda _: envelope_created_at,
            text_field("finishedAt"),
        ],
        payload,
    )
    finished_at = first_non_null(
        [
            text_field("finishedAt"),
            lambda p: text_field("executedAt")(p) if succeeded else None,
            lambda _: started_at if succeeded else None,
        ],
        payload,
    )
    executed_at = finished_at or started_at

    run_id = envelope_id or _text(first_non_null(RUN_ID, payload))
    if run_id is None:
        run_id = derive_run_id(_document_text(payload))
        logger.debug("run document without id; derived %s", run_id)

    extras = {key: value for key, value in payload.items() if key not in _KNOWN_KEYS and key != "kb_id"}

    return NormalizedRunRecord(
        id=run_id,
        workflow_id=_text(first_non_null(WORKFLOW_ID, payload)) or "",
        node_id=_text(first_non_null(NODE_ID, payload)) or "",
        agent_id=_text(first_non_null(AGENT_ID, payload)) or "",
        agent_definition_id=_text(first_non_null(AGENT_DEFINITION_ID, payload)) or "",
        agent_definition_updated_at=_text(field("agentDefinitionUpdatedAt")(payload)),
        agent_definition_version_hash=_text(field("agentDefinitionVersionHash")(payload)),
        status=status,
        started_at=started_at,
        finished_at=finished_at,
        executed_at=executed_at,
        duration_ms=_number(field("durationMs")(payload)),
        model=_text(field("model")(payload)),
        llm_raw_output=llm_raw_output,
        parsed_output=parsed_output,
        final_output=final_output,
        output=output,
        presentation=presentation,
        schema_validation=_schema_validation(first_non_null(SCHEMA_VALIDATION, payload)),
        semantic_validation=_mapping(first_non_null(SEMANTIC_VALIDATION, payload)),
        output_kind=_text(field("outputKind")(payload)),
        output_schema_ref=_text(field("outputSchemaRef")(payload)),
        execution_context_summary=_mapping(first_non_null(EXECUTION_CONTEXT_SUMMARY, payload)),
        input_summary=_mapping(first_non_null(INPUT_SUMMARY, payload)),
        error=_error_text(
            first_non_null(
                [field("error"), lambda p: field("lastError")(p) if status == "error" else None],
                payload,
            )
        ),
        **extras,
    )


def normalize_run_for_save(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Canonical document to persist for a finished (or failed) agent run.

    Missing workflowId/agentNodeId is logged as an error but still saved, so
    the run can be rescued later by the listing evaluator.
    """
    now = utc_timestamp()
    status = payload.get("status")
    if not isinstance(status, str) or status not in RUN_STATUSES:
        status = "error"

    started_at = first_non_null([field("startedAt"), field("executedAt")], payload) or now
    finished_at = first_non_null([field("finishedAt")], payload)
    if finished_at is None and status == "success":
        finished_at = first_non_null([field("executedAt")], payload) or now
    executed_at = finished_at or started_at

    final_output = first_non_null([*FINAL_OUTPUT, *PARSED_OUTPUT, *LEGACY_OUTPUT], payload)

    workflow_id = first_non_null(WORKFLOW_ID, payload)
    agent_node_id = first_non_null(NODE_ID, payload)
    if not workflow_id:
        logger.error("saving run without workflowId (agentNodeId=%s)", agent_node_id)
    if not agent_node_id:
        logger.error("saving run without agentNodeId (workflowId=%s)", workflow_id)

    input_summary = first_non_null(INPUT_SUMMARY, payload)
    if input_summary is None:
        input_summary = ExecutionContextSummary().model_dump(by_alias=True)

    return {
        "type": RUN_RECORD_TYPE,
        "id": first_non_null(RUN_ID, payload) or generate_run_id(),
        "workflowId": workflow_id or "",
        "agentNodeId": agent_node_id or "",
        "agentId": first_non_null(AGENT_ID, payload) or "",
        # timing
        "executedAt": executed_at,
        "startedAt": started_at,
        "finishedAt": finished_at,
        "durationMs": field("durationMs")(payload),
        "model": field("model")(payload),
        # agent definition identity
        "agentDefinitionId": first_non_null(AGENT_DEFINITION_ID, payload) or "",
        "agentDefinitionUpdatedAt": field("agentDefinitionUpdatedAt")(payload),
        "agentDefinitionVersionHash": field("agentDefinitionVersionHash")(payload),
        "outputKind": field("outputKind")(payload),
        "outputSchemaRef": field("outputSchemaRef")(payload),
        # inputs
        "inputsSnapshot": field("inputsSnapshot")(payload),
        "inputSummary": input_summary,
        # outputs, every stage
        "llmRawOutput": field("llmRawOutput")(payload),
        "parsedOutput": first_non_null(PARSED_OUTPUT, payload),
        "schemaValidation": first_non_null(SCHEMA_VALIDATION, payload),
        "semanticValidation": first_non_null(SEMANTIC_VALIDATION, payload),
        "finalOutput": final_output,
        "presentation": field("presentation")(payload),
        "output": final_output,
        "status": status,
        "error": _error_text(field("error")(payload)),
    }
