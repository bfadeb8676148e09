"""Run history and output listings over stored run documents."""

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from flowcore.models.agent_definition import AgentDefinition
from flowcore.models.run_record import NormalizedRunRecord, RunStatus
from flowcore.models.workflow import Workflow
from flowcore.runs.evaluator import (
    ListingEvaluation,
    PlanningEvaluation,
    evaluate_for_listing,
    evaluate_for_planning,
)
from flowcore.runs.normalizer import normalize_run

logger = logging.getLogger(__name__)


class OutputListingEntry(BaseModel):
    """One visible run with the reasoning behind its visibility and label."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    run: NormalizedRunRecord
    evaluation: ListingEvaluation
    planning: PlanningEvaluation


def _normalize_all(items: Iterable[Mapping[str, Any]]) -> list[NormalizedRunRecord]:
    runs = []
    for item in items:
        run = normalize_run(item)
        if run is not None:
            runs.append(run)
    return runs


def list_runs(
    items: Iterable[Mapping[str, Any]],
    workflow_id: str | None = None,
    agent_node_id: str | None = None,
    status: RunStatus | None = None,
    include_all_statuses: bool = False,
) -> list[NormalizedRunRecord]:
    """Normalize stored run documents and filter them.

    Documents that do not normalize are dropped silently. The status filter
    applies only when status is given and include_all_statuses is off.
    """
    runs = _normalize_all(items)
    if workflow_id:
        runs = [run for run in runs if run.workflow_id == workflow_id]
    if agent_node_id:
        runs = [run for run in runs if run.node_id == agent_node_id]
    if status and not include_all_statuses:
        runs = [run for run in runs if run.status == status]
    return runs


def build_output_listing(
    items: Iterable[Mapping[str, Any]],
    workflow: Workflow,
    show_all_statuses: bool = False,
    agent_definitions: Mapping[str, AgentDefinition] | None = None,
) -> list[OutputListingEntry]:
    """Runs that belong in workflow's output list, newest first."""
    agent_definitions = agent_definitions or {}
    entries: list[OutputListingEntry] = []
    excluded: dict[str, int] = {}

    for run in _normalize_all(items):
        definition = agent_definitions.get(run.agent_definition_id) or agent_definitions.get(run.agent_id)
        evaluation = evaluate_for_listing(
            run,
            workflow,
            show_all_statuses=show_all_statuses,
            agent_definition=definition,
        )
        if not evaluation.include:
            excluded[evaluation.reason or ""] = excluded.get(evaluation.reason or "", 0) + 1
            continue
        entries.append(
            OutputListingEntry(run=run, evaluation=evaluation, planning=evaluate_for_planning(run))
        )

    if excluded:
        logger.debug("output listing for %s excluded runs: %s", workflow.id, excluded)

    entries.sort(key=lambda entry: entry.run.executed_at or "", reverse=True)
    return entries
