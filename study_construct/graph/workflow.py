"""LangGraph workflow for the parallel generation stage."""

from dataclasses import dataclass, field
from typing import Any

from langgraph.graph import END, START, StateGraph
from langgraph.types import Send

from study_construct.agents.generator import build_fallback_questions, run_generation_task
from study_construct.exceptions import (
    BackendError,
    EmptyResponseError,
    PipelineAllTasksFailedError,
    RecoveryError,
)
from study_construct.graph.state import GenerationState, TaskState, create_generation_state
from study_construct.llm.client import ModelClient
from study_construct.models.events import EventKind
from study_construct.models.quiz import FactSet, GenerationTask, Question
from study_construct.progress import ProgressReporter

# Failures that only cost the task its contribution; anything else is fatal
TASK_LOCAL_ERRORS = (BackendError, EmptyResponseError, RecoveryError)


@dataclass
class GenerationResult:
    """Merged output of the generation stage."""

    questions: list[Question] = field(default_factory=list)
    failed_tasks: list[str] = field(default_factory=list)
    degraded: bool = False


def dispatch_tasks(state: GenerationState) -> list[Send]:
    """
    Fan out: one branch per generation task.

    Args:
        state: Generation state holding the planned tasks

    Returns:
        A Send per task, all executed in the same step
    """
    return [Send("generate_task", {"task": task}) for task in state["tasks"]]


def merge_outcomes(outcomes: list[dict[str, Any]]) -> tuple[list[Question], list[str]]:
    """
    Fan in: concatenate task contributions in dispatch order.

    Completion order is irrelevant; outcomes are sorted by task index. A
    failed task contributes nothing.

    Returns:
        (questions, labels of failed tasks)

    Raises:
        PipelineAllTasksFailedError: every task failed
    """
    ordered = sorted(outcomes, key=lambda outcome: outcome["index"])
    failures = [outcome for outcome in ordered if outcome["error"] is not None]
    if ordered and len(failures) == len(ordered):
        raise PipelineAllTasksFailedError(failures)

    questions = [q for outcome in ordered for q in outcome["questions"]]
    return questions, [failure["label"] for failure in failures]


def create_generation_workflow(
    client: ModelClient, reporter: ProgressReporter
) -> StateGraph:
    """
    Create the LangGraph workflow for parallel question generation.

    The workflow follows this structure:
    1. START - dispatch one ``generate_task`` branch per GenerationTask
    2. generate_task - model call + response recovery, failures captured
    3. merge - join all branches and concatenate in dispatch order

    Returns:
        StateGraph ready to compile
    """

    def generate_task(state: TaskState) -> dict[str, Any]:
        task: GenerationTask = state["task"]
        outcome = {"index": task.index, "label": task.label, "questions": [], "error": None}
        try:
            result = run_generation_task(client, task, reporter)
            outcome["questions"] = result.questions
        except TASK_LOCAL_ERRORS as e:
            outcome["error"] = str(e)
            reporter.emit(
                f"Examiner[{task.label}]",
                EventKind.ERROR,
                f"Task failed, contributing no questions: {e}",
            )
        return {"outcomes": [outcome]}

    def merge(state: GenerationState) -> dict[str, Any]:
        try:
            questions, failed = merge_outcomes(state["outcomes"])
            degraded = False
        except PipelineAllTasksFailedError as e:
            reporter.emit("Generation", EventKind.ERROR, f"{e}; returning fallback quiz.")
            questions = build_fallback_questions()
            failed = [failure["label"] for failure in e.failures]
            degraded = True
        return {"questions": questions, "failed_tasks": failed, "degraded": degraded}

    workflow = StateGraph(GenerationState)

    workflow.add_node("generate_task", generate_task)
    workflow.add_node("merge", merge)

    # Start -> one branch per task
    workflow.add_conditional_edges(START, dispatch_tasks, ["generate_task"])

    # All branches -> Merge -> End
    workflow.add_edge("generate_task", "merge")
    workflow.add_edge("merge", END)

    return workflow


class ParallelGenerationStage:
    """Run every generation task concurrently and merge the results."""

    name = "Generation"

    def __init__(
        self,
        client: ModelClient,
        reporter: ProgressReporter | None = None,
        max_concurrency: int = 8,
    ) -> None:
        self.client = client
        self.reporter = reporter or ProgressReporter()
        self.max_concurrency = max_concurrency

    def run(self, facts: FactSet, tasks: list[GenerationTask]) -> GenerationResult:
        """
        Execute all tasks and join on them.

        Always returns a displayable result: if every task fails the result
        holds the single fallback question and ``degraded`` is set.
        """
        if not tasks:
            raise ValueError("At least one generation task is required")

        self.reporter.emit(
            self.name,
            EventKind.INFO,
            f"Dispatching {len(tasks)} generation task(s) in parallel.",
        )
        graph = create_generation_workflow(self.client, self.reporter).compile()
        final_state = graph.invoke(
            create_generation_state(facts, tasks),
            config={"max_concurrency": self.max_concurrency},
        )
        return GenerationResult(
            questions=final_state["questions"],
            failed_tasks=final_state["failed_tasks"],
            degraded=final_state["degraded"],
        )
