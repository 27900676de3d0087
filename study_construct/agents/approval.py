"""Approval Gate - the human checkpoint between research and generation."""

from typing import Callable

from study_construct.models.events import EventKind
from study_construct.models.quiz import FactSet
from study_construct.progress import ProgressReporter

Reviewer = Callable[[FactSet], bool]


def auto_approve(facts: FactSet) -> bool:
    """Reviewer that accepts every fact set (non-interactive runs)."""
    return True


class ApprovalGate:
    """
    Show a fact set to a reviewer and return their decision.

    The gate holds no state and never inspects the facts; it only forks the
    control flow. ``False`` is an intentional abort, not an error.
    """

    name = "ApprovalGate"

    def __init__(self, reviewer: Reviewer = auto_approve) -> None:
        self.reviewer = reviewer

    def review(self, facts: FactSet, reporter: ProgressReporter | None = None) -> bool:
        """Ask the reviewer whether generation may proceed."""
        reporter = reporter or ProgressReporter()
        reporter.emit(
            self.name, EventKind.INFO, f"Awaiting approval of {len(facts)} fact(s)."
        )
        approved = bool(self.reviewer(facts))
        reporter.emit(
            self.name,
            EventKind.INFO,
            "Facts approved." if approved else "Facts rejected; stopping before generation.",
        )
        return approved
