"""LangGraph workflow for repairing a batch of failing tests."""

import operator
from collections.abc import Callable
from dataclasses import replace
from typing import Annotated, TypedDict

from langgraph.graph import END, StateGraph

from ..healing.classifier import FailureClassifier
from ..healing.repair import RepairEngine
from ..models import FailureCategory, RepairResult, TestFailure


class HealingState(TypedDict, total=False):
    """State for the healing workflow."""

    # Input
    failures: list[TestFailure]
    apply: bool

    # Processing state
    current_index: int
    current_failure: TestFailure | None
    current_result: RepairResult | None

    # Output
    outcomes: Annotated[list[tuple[TestFailure, RepairResult]], operator.add]
    needs_review: Annotated[list[TestFailure], operator.add]
    verified: Annotated[list[str], operator.add]

    # Control
    complete: bool


def collect_failures(state: HealingState) -> dict:
    """Initialize processing of failures."""
    if state["failures"]:
        return {"current_index": 0, "current_failure": state["failures"][0], "complete": False}
    return {"complete": True, "current_failure": None}


def next_failure(state: HealingState) -> dict:
    """Move to next failure in the queue."""
    next_idx = state["current_index"] + 1
    if next_idx >= len(state["failures"]):
        return {"complete": True, "current_failure": None, "current_result": None}
    return {"current_index": next_idx, "current_failure": state["failures"][next_idx], "current_result": None}


def is_complete(state: HealingState) -> str:
    """Check if all failures have been processed."""
    if state.get("complete"):
        return END
    return "classify"


def is_repairable(state: HealingState) -> str:
    failure = state["current_failure"]
    if failure is None or failure.failure_type is FailureCategory.UNKNOWN:
        return "review"
    return "repair"


def should_verify(state: HealingState) -> str:
    result = state.get("current_result")
    if state.get("apply") and result is not None and result.success:
        return "verify"
    return "next"


def build_healing_graph(
    engine: RepairEngine,
    classifier: FailureClassifier | None = None,
    verify: Callable[[TestFailure], bool] | None = None,
):
    """
    Build the LangGraph workflow: collect -> classify -> repair -> (verify) -> next.

    Args:
        engine: Repair engine that owns the repair history
        classifier: Re-classifies each failure from its error text
        verify: Optional re-run of a repaired test; only used when applying
    """
    classifier = classifier or FailureClassifier()

    def classify_failure(state: HealingState) -> dict:
        failure = state["current_failure"]
        category = classifier.classify(failure.error)
        if category is not failure.failure_type:
            failure = replace(failure, failure_type=category)
        return {"current_failure": failure}

    def repair_failure(state: HealingState) -> dict:
        failure = state["current_failure"]
        result = engine.repair_file(failure, write=bool(state.get("apply")))
        return {"current_result": result, "outcomes": [(failure, result)]}

    def mark_for_review(state: HealingState) -> dict:
        return {"needs_review": [state["current_failure"]]}

    def verify_repair(state: HealingState) -> dict:
        failure = state["current_failure"]
        if verify is not None and verify(failure):
            return {"verified": [failure.test]}
        return {}

    graph = StateGraph(HealingState)

    # Add nodes
    graph.add_node("collect", collect_failures)
    graph.add_node("classify", classify_failure)
    graph.add_node("repair", repair_failure)
    graph.add_node("review", mark_for_review)
    graph.add_node("verify", verify_repair)
    graph.add_node("next", next_failure)

    # Add edges
    graph.set_entry_point("collect")
    graph.add_conditional_edges("collect", is_complete)
    graph.add_conditional_edges("classify", is_repairable, {"repair": "repair", "review": "review"})
    graph.add_conditional_edges("repair", should_verify, {"verify": "verify", "next": "next"})
    graph.add_edge("verify", "next")
    graph.add_edge("review", "next")
    graph.add_conditional_edges("next", is_complete)

    return graph.compile()


def run_healing(
    failures: list[TestFailure],
    engine: RepairEngine,
    apply: bool = False,
    classifier: FailureClassifier | None = None,
    verify: Callable[[TestFailure], bool] | None = None,
) -> HealingState:
    """Run the healing workflow over ``failures`` and return its final state."""
    workflow = build_healing_graph(engine, classifier, verify)
    initial: HealingState = {
        "failures": list(failures),
        "apply": apply,
        "current_index": 0,
        "current_failure": None,
        "current_result": None,
        "outcomes": [],
        "needs_review": [],
        "verified": [],
        "complete": False,
    }
    # Each failure visits at most four nodes
    return workflow.invoke(initial, {"recursion_limit": 5 * len(failures) + 10})
