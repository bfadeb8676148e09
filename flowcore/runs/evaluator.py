"""Decide whether a run shows up in a workflow's output list, and how much to trust it.

evaluate_for_listing gates visibility and always answers with a reason code
instead of raising. evaluate_for_planning never hides anything: it only
labels a run for people deciding whether to build on it.
"""

import logging
from collections.abc import Mapping
from typing import Any, Literal, NamedTuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel, to_snake

from flowcore.models.agent_definition import AgentDefinition
from flowcore.models.run_record import NormalizedRunRecord
from flowcore.models.workflow import Workflow
from flowcore.runs.normalizer import first_non_null, normalize_run

logger = logging.getLogger(__name__)

# listing reason codes
WORKFLOW_MISMATCH = "WORKFLOW_MISMATCH"
MISSING_WORKFLOWID = "MISSING_WORKFLOWID"
MISSING_WORKFLOWID_BUT_INFERRED = "MISSING_WORKFLOWID_BUT_INFERRED"
MISSING_AGENT = "MISSING_AGENT"
NO_OUTPUT = "NO_OUTPUT"
STATUS_FILTERED = "STATUS_FILTERED"
UNKNOWN_OUTPUT_KIND = "UNKNOWN_OUTPUT_KIND"
NOT_A_RUN = "NOT_A_RUN"

UNKNOWN_KIND = "unknown"
SUPPORTED_OUTPUT_KINDS = frozenset({"lp_structure", "banner_structure"})

SCHEMA_REF_KINDS: dict[str, str] = {
    "LpStructurePayloadSchema": "lp_structure",
    "BannerStructurePayloadSchema": "banner_structure",
}

LOW_INPUT_QUALITY = 60

BadgeTone = Literal["green", "orange", "red", "gray"]


class ListingEvaluation(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    include: bool
    reason: str | None = None
    inferred_output_kind: str | None = None
    inferred_workflow_id: str | None = None


class PlanningEvaluation(BaseModel):
    """Presentation label for a run. Never used to hide a run."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    status_label: str
    trust_label: str
    reasons: list[str] = Field(default_factory=list)
    badge_tone: BadgeTone = "gray"
    available: bool = False
    input_quality_score: int = 0


def schema_ref_to_kind(schema_ref: str | None) -> str | None:
    """Map a schema name like "LpStructurePayloadSchema" to its kind tag."""
    if not schema_ref:
        return None
    if schema_ref in SCHEMA_REF_KINDS:
        return SCHEMA_REF_KINDS[schema_ref]
    suffix = "PayloadSchema"
    if schema_ref.endswith(suffix) and len(schema_ref) > len(suffix):
        return to_snake(schema_ref[: -len(suffix)])
    return None


def _embedded_kind(output: Any) -> str | None:
    if not isinstance(output, Mapping):
        return None
    kind = output.get("outputKind", output.get("output_kind"))
    return kind if isinstance(kind, str) and kind else None


def _sniff_kind(output: Any) -> str | None:
    """Guess the kind from characteristic fields of the artifact."""
    if not isinstance(output, Mapping):
        return None
    if isinstance(output.get("sections"), list) and ("questionCoverage" in output or "questions" in output):
        return "lp_structure"
    if "banners" in output or "bannerIdeas" in output:
        return "banner_structure"
    return None


class _KindSources(NamedTuple):
    run: NormalizedRunRecord
    definition: AgentDefinition | None


# earlier sources win: stored values first, structural guessing last
OUTPUT_KIND_CHAIN = [
    lambda s: s.run.output_kind,
    lambda s: schema_ref_to_kind(s.run.output_schema_ref),
    lambda s: _embedded_kind(s.run.primary_output()),
    lambda s: s.definition.output_kind if s.definition else None,
    lambda s: schema_ref_to_kind(s.definition.output_schema_ref) if s.definition else None,
    lambda s: s.definition.output_schema if s.definition else None,
    lambda s: _sniff_kind(s.run.primary_output()),
]


def infer_output_kind(run: NormalizedRunRecord, agent_definition: AgentDefinition | None = None) -> str:
    return first_non_null(OUTPUT_KIND_CHAIN, _KindSources(run, agent_definition)) or UNKNOWN_KIND


def evaluate_for_listing(
    run: NormalizedRunRecord | Mapping[str, Any],
    workflow: Workflow,
    show_all_statuses: bool = False,
    agent_definition: AgentDefinition | None = None,
) -> ListingEvaluation:
    """Decide whether a run belongs in workflow's output list.

    First match wins: workflow identity (with rescue through the agent node
    id), agent identity, output presence, status filter, output kind.
    """
    if not isinstance(run, NormalizedRunRecord):
        normalized = normalize_run(run) if isinstance(run, Mapping) else None
        if normalized is None:
            return ListingEvaluation(include=False, reason=NOT_A_RUN)
        run = normalized

    belongs_by_node = bool(run.node_id) and run.node_id in workflow.agent_node_ids()
    if not run.workflow_id:
        if belongs_by_node:
            return ListingEvaluation(
                include=True,
                reason=MISSING_WORKFLOWID_BUT_INFERRED,
                inferred_workflow_id=workflow.id,
            )
        return ListingEvaluation(include=False, reason=MISSING_WORKFLOWID)

    if run.workflow_id != workflow.id:
        if belongs_by_node:
            # stale workflowId, e.g. a run saved before the workflow was duplicated
            return ListingEvaluation(include=True, reason=WORKFLOW_MISMATCH, inferred_workflow_id=workflow.id)
        return ListingEvaluation(include=False, reason=WORKFLOW_MISMATCH)

    if not run.agent_id and not run.agent_definition_id:
        return ListingEvaluation(include=False, reason=MISSING_AGENT)

    if not run.has_output():
        return ListingEvaluation(include=False, reason=NO_OUTPUT)

    kind = infer_output_kind(run, agent_definition)

    if not show_all_statuses and run.status != "success":
        return ListingEvaluation(include=False, reason=STATUS_FILTERED, inferred_output_kind=kind)

    if kind not in SUPPORTED_OUTPUT_KINDS:
        # shown anyway so the odd run is visible instead of silently missing
        return ListingEvaluation(include=True, reason=UNKNOWN_OUTPUT_KIND, inferred_output_kind=kind)

    return ListingEvaluation(include=True, inferred_output_kind=kind)


def _summary_value(summary: Mapping[str, Any], name: str) -> Any:
    value = summary.get(name)
    return summary.get(to_snake(name)) if value is None else value


def _count(value: Any) -> int:
    return value if isinstance(value, int) and not isinstance(value, bool) else 0


def input_quality_score(input_summary: Mapping[str, Any] | None) -> int:
    """Score 0-100 for how well-fed a run was.

    20 points each for a product name, a persona and any used knowledge item;
    up to 40 more for the amount of supporting knowledge.
    """
    if not isinstance(input_summary, Mapping):
        return 0

    score = 0
    product = _summary_value(input_summary, "productSummary")
    if isinstance(product, Mapping) and product.get("name"):
        score += 20
    persona = _summary_value(input_summary, "personaSummary")
    if isinstance(persona, Mapping) and persona.get("id"):
        score += 20
    used = _summary_value(input_summary, "usedKbItemIds")
    if isinstance(used, list) and used:
        score += 20

    knowledge_count = _summary_value(input_summary, "knowledgeCount")
    if not isinstance(knowledge_count, int) or isinstance(knowledge_count, bool):
        # summaries written before knowledgeCount existed
        knowledge_count = sum(
            _count(_summary_value(input_summary, name))
            for name in (
                "bannerInsightsCount",
                "marketInsightsCount",
                "strategyOptionsCount",
                "planningHooksCount",
            )
        )
    if knowledge_count >= 10:
        score += 40
    elif knowledge_count >= 5:
        score += 30
    elif knowledge_count >= 2:
        score += 20
    elif knowledge_count >= 1:
        score += 10

    return min(score, 100)


def _low_quality_reason(score: int) -> str:
    return f"Input quality score is low ({score}/100), quality warning"


def _validation_error_reason(run: NormalizedRunRecord) -> str | None:
    validation = run.schema_validation
    if validation is None or not validation.model_extra:
        return None
    error = validation.model_extra.get("error")
    if error is None:
        return None
    message = error.get("message") if isinstance(error, Mapping) else error
    return f"Validation error: {message or 'unknown'}"


def evaluate_for_planning(run: NormalizedRunRecord) -> PlanningEvaluation:
    """Label a run for planning decisions.

    A UI-ready presentation keeps a run available even when schema
    validation failed; a failed validation or a low input score only
    downgrades the label.
    """
    has_presentation = bool(run.presentation)
    score = input_quality_score(run.input_summary)
    low_quality = score < LOW_INPUT_QUALITY
    reasons: list[str] = []

    if run.status == "error":
        reasons.append("Run status is error")
        if has_presentation:
            reasons.append("Presentation available (displayable)")
        return PlanningEvaluation(
            status_label="Error",
            trust_label="Run failed (re-run required)",
            reasons=reasons,
            badge_tone="red",
            available=has_presentation,
            input_quality_score=score,
        )

    has_final = bool(run.final_output)
    has_parsed = bool(run.parsed_output)
    has_raw = bool(run.llm_raw_output)
    if not (has_final or has_parsed or has_raw or has_presentation):
        return PlanningEvaluation(
            status_label="Not generated",
            trust_label="Not generated (no run output)",
            reasons=["No output data"],
            badge_tone="gray",
            input_quality_score=score,
        )

    validated = run.schema_validation is not None and run.schema_validation.success
    failed = run.schema_validation is not None and not run.schema_validation.success
    validation_error = _validation_error_reason(run)

    if has_presentation:
        reasons.append("Presentation available (structured for display)")
        if validated:
            trust_label, tone = "Usable for planning", "green"
            reasons.append("Schema validated (format OK)")
        elif failed:
            trust_label, tone = "Usable for planning (validation failed)", "orange"
            reasons.append("Schema validation failed (quality warning)")
            if validation_error:
                reasons.append(validation_error)
        else:
            trust_label, tone = "Usable for planning", "green"
            reasons.append("Schema validation not run")
        if low_quality:
            reasons.append(_low_quality_reason(score))
        return PlanningEvaluation(
            status_label="Generated",
            trust_label=trust_label,
            reasons=reasons,
            badge_tone=tone,
            available=True,
            input_quality_score=score,
        )

    available = False
    if has_final and validated:
        status_label, trust_label, tone, available = "Generated", "Usable for planning", "green", True
        reasons += ["Artifact saved", "Schema validated (format OK)"]
        if low_quality:
            trust_label = "Usable for planning (check input quality)"
            reasons.append(_low_quality_reason(score))
    elif has_parsed and failed:
        status_label, trust_label, tone, available = (
            "Validation failed",
            "Regeneration recommended (validation failed)",
            "orange",
            True,
        )
        reasons.append("Schema validation failed (quality warning)")
        if validation_error:
            reasons.append(validation_error)
    elif has_final:
        status_label, trust_label, tone, available = (
            "Generated",
            "Usable for planning (not validated)",
            "green",
            True,
        )
        reasons += ["Artifact saved", "Schema validation not run"]
    elif has_parsed:
        status_label, trust_label, tone = (
            "Generated but not saved",
            "Inputs may be insufficient (check inputs before re-running)",
            "orange",
        )
        reasons.append("Parsed but not saved")
        if low_quality:
            reasons.append(_low_quality_reason(score))
    elif has_raw:
        status_label, trust_label, tone = (
            "Not generated (parse failed)",
            "Regeneration recommended (parse failed)",
            "orange",
        )
        reasons.append("Model responded but the response could not be parsed")
    else:
        status_label, trust_label, tone = "Needs review", "Needs review", "gray"
        reasons.append("State is unclear")

    return PlanningEvaluation(
        status_label=status_label,
        trust_label=trust_label,
        reasons=reasons,
        badge_tone=tone,
        available=available,
        input_quality_score=score,
    )
