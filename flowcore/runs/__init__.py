"""Run records after execution: normalization, listing and evaluation."""

from flowcore.runs.evaluator import (
    ListingEvaluation,
    PlanningEvaluation,
    evaluate_for_listing,
    evaluate_for_planning,
    infer_output_kind,
    input_quality_score,
)
from flowcore.runs.listing import OutputListingEntry, build_output_listing, list_runs
from flowcore.runs.normalizer import first_non_null, normalize_run, normalize_run_for_save

__all__ = [
    "ListingEvaluation",
    "OutputListingEntry",
    "PlanningEvaluation",
    "build_output_listing",
    "evaluate_for_listing",
    "evaluate_for_planning",
    "first_non_null",
    "infer_output_kind",
    "input_quality_score",
    "list_runs",
    "normalize_run",
    "normalize_run_for_save",
]
