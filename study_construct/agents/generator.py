"""Examiner Agents - generate quiz questions of given kinds from approved facts."""

from typing import Mapping, Sequence

from study_construct.agents.recovery import RecoveryResult, recover_questions
from study_construct.llm.client import ModelClient
from study_construct.models.events import EventKind
from study_construct.models.quiz import (
    FactSet,
    GenerationTask,
    MultipleChoiceQuestion,
    Question,
    QuestionKind,
)
from study_construct.progress import ProgressReporter

FALLBACK_QUESTION_TEXT = "Error generating questions. Please try again."

# Wire-format example for each kind, shown to the model verbatim
KIND_EXAMPLES: dict[QuestionKind, str] = {
    QuestionKind.MULTIPLE_CHOICE: """{
    "type": "multiple-choice",
    "question": "Question text?",
    "options": ["A", "B", "C", "D"],
    "correctIndex": 0,
    "explanation": "Why option A is correct."
}""",
    QuestionKind.TRUE_FALSE: """{
    "type": "true-false",
    "question": "Statement to verify.",
    "correctAnswer": true,
    "explanation": "Why the statement is true."
}""",
    QuestionKind.FILL_BLANK: """{
    "type": "fill-blank",
    "question": "Text with _____ blank.",
    "correctAnswer": "answer",
    "acceptableAnswers": ["answer", "Answer"],
    "caseSensitive": false
}""",
    QuestionKind.MATCHING: """{
    "type": "matching",
    "question": "Match each term with its definition.",
    "pairs": [{"left": "Term 1", "right": "Definition 1"}, {"left": "Term 2", "right": "Definition 2"}]
}""",
    QuestionKind.ORDERING: """{
    "type": "ordering",
    "question": "Put these events in chronological order.",
    "items": ["Second", "First", "Third"],
    "correctOrder": [1, 0, 2]
}""",
}

KIND_RULES: dict[QuestionKind, str] = {
    QuestionKind.MULTIPLE_CHOICE: "exactly 4 options, only ONE correct, plausible distractors",
    QuestionKind.TRUE_FALSE: "a single clear statement that is either true or false",
    QuestionKind.FILL_BLANK: "mark the blank with _____ and list every acceptable answer",
    QuestionKind.MATCHING: "at least 3 pairs; every left item has exactly one right item",
    QuestionKind.ORDERING: "at least 3 items; correctOrder lists item indices in the right order",
}


def build_generation_prompt(facts: FactSet, count_per_kind: Mapping[QuestionKind, int]) -> str:
    """
    Create the examiner prompt for one generation task.

    Args:
        facts: Approved facts the questions must be based on
        count_per_kind: How many questions of each kind to write

    Returns:
        Prompt text asking for a bare JSON array
    """
    total = sum(count_per_kind.values())
    wanted = "\n".join(
        f"- {count} {kind.value} question(s): {KIND_RULES[kind]}"
        for kind, count in count_per_kind.items()
    )
    examples = ",\n".join(KIND_EXAMPLES[kind] for kind in count_per_kind)

    return f"""You are an Examiner, a strict professor creating quiz questions.
Base every question ONLY on these facts:
{facts.as_numbered_text()}

Create exactly {total} question(s):
{wanted}

Output a valid JSON array (no markdown, no commentary) using this format:
[
{examples}
]"""


def normalize_question_counts(
    question_counts: Mapping[str, int] | Mapping[QuestionKind, int],
) -> dict[QuestionKind, int]:
    """Convert a kind->count mapping to QuestionKind keys, dropping zero counts."""
    counts: dict[QuestionKind, int] = {}
    for kind, count in question_counts.items():
        counts[QuestionKind(kind)] = int(count)
    return {kind: count for kind, count in counts.items() if count > 0}


def plan_generation_tasks(
    facts: FactSet,
    question_counts: Mapping[str, int] | Mapping[QuestionKind, int],
    partition: Sequence[Sequence[QuestionKind]] | None = None,
) -> list[GenerationTask]:
    """
    Split generation into independent tasks, one group of kinds per task.

    Without an explicit partition every kind gets its own task, in the order
    of ``question_counts``.

    Raises:
        ValueError: unknown kind, overlapping groups, or a counted kind that
            no group covers
    """
    counts = normalize_question_counts(question_counts)
    if not counts:
        raise ValueError("No question kinds requested")

    groups = [list(group) for group in partition] if partition else [[k] for k in counts]

    seen: set[QuestionKind] = set()
    for group in groups:
        for kind in group:
            kind = QuestionKind(kind)
            if kind in seen:
                raise ValueError(f"Question kind {kind.value} appears in more than one task")
            seen.add(kind)

    uncovered = set(counts) - seen
    if uncovered:
        names = ", ".join(sorted(k.value for k in uncovered))
        raise ValueError(f"No generation task covers: {names}")

    tasks = []
    for group in groups:
        kinds = [QuestionKind(k) for k in group if QuestionKind(k) in counts]
        if not kinds:
            continue
        count_per_kind = {kind: counts[kind] for kind in kinds}
        tasks.append(
            GenerationTask(
                index=len(tasks),
                question_kinds=kinds,
                count_per_kind=count_per_kind,
                prompt=build_generation_prompt(facts, count_per_kind),
            )
        )
    return tasks


def run_generation_task(
    client: ModelClient,
    task: GenerationTask,
    reporter: ProgressReporter | None = None,
) -> RecoveryResult:
    """
    Run one generation task: a single model call followed by recovery.

    Errors (backend failures, RecoveryError) propagate; the stage decides
    what a failed task means.
    """
    reporter = reporter or ProgressReporter()
    source = f"Examiner[{task.label}]"

    reporter.emit(
        source,
        EventKind.ACTION,
        f"Generating {task.total_questions} {task.label} question(s)...",
    )
    raw = client.generate(task.prompt)
    result = recover_questions(raw)

    message = f"Generated {len(result.questions)} question(s)."
    if result.dropped:
        message += f" Dropped {len(result.dropped)} malformed entr(y/ies)."
    reporter.emit(source, EventKind.RESPONSE, message)
    return result


def build_fallback_questions() -> list[Question]:
    """
    The degraded quiz returned when every generation task failed.

    The single diagnostic question deliberately has one option, so it is
    built without validation.
    """
    return [
        MultipleChoiceQuestion.model_construct(
            question=FALLBACK_QUESTION_TEXT,
            options=["Retry"],
            correct_index=0,
        )
    ]
