"""LangGraph state for the generation stage."""

import operator
from typing import Annotated, Any, TypedDict

from study_construct.models.quiz import FactSet, GenerationTask, Question


class GenerationState(TypedDict):
    """Shared state of the generation graph.

    ``outcomes`` is appended to by every parallel branch; the other keys are
    written once.
    """

    facts: FactSet
    tasks: list[GenerationTask]
    outcomes: Annotated[list[dict[str, Any]], operator.add]
    questions: list[Question]
    failed_tasks: list[str]
    degraded: bool


class TaskState(TypedDict):
    """Input of a single generation branch."""

    task: GenerationTask


def create_generation_state(facts: FactSet, tasks: list[GenerationTask]) -> GenerationState:
    """
    Create the initial state for the generation graph.

    Args:
        facts: Approved fact set
        tasks: Planned generation tasks in dispatch order

    Returns:
        Initial GenerationState
    """
    return GenerationState(
        facts=facts,
        tasks=list(tasks),
        outcomes=[],
        questions=[],
        failed_tasks=[],
        degraded=False,
    )
