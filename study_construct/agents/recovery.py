"""Response Recovery - pull structured questions out of free-form model text."""

import json
import re
from dataclasses import dataclass, field
from typing import Any

from loguru import logger
from pydantic import ValidationError

from study_construct.exceptions import RecoveryError
from study_construct.models.quiz import (
    QUESTION_MODELS,
    Question,
    detect_question_kind,
)

CODE_FENCE_RE = re.compile(r"```[ \t]*(?:json)?", re.IGNORECASE)
ARRAY_OF_OBJECTS_RE = re.compile(r"\[\s*\{[\s\S]*\}\s*\]")
TRAILING_COMMA_RE = re.compile(r",\s*([\]}])")

# Diagnostics carry only the start of the raw text
EXCERPT_LENGTH = 150


@dataclass
class RecoveryResult:
    """Questions that passed their kind's checks, plus why others were dropped."""

    questions: list[Question] = field(default_factory=list)
    dropped: list[str] = field(default_factory=list)


def excerpt(raw: str) -> str:
    """First EXCERPT_LENGTH characters of the raw text."""
    return raw[:EXCERPT_LENGTH]


def strip_code_fences(text: str) -> str:
    """Remove Markdown code-fence markers, keeping what was inside them."""
    return CODE_FENCE_RE.sub("", text)


def slice_outer_array(text: str) -> str:
    """Cut from the first ``[`` to the last ``]`` when both exist."""
    start = text.find("[")
    end = text.rfind("]")
    if start != -1 and end > start:
        return text[start : end + 1]
    return text


def _normalize_smart_quotes(text: str) -> str:
    return (
        text.replace("“", '"')
        .replace("”", '"')
        .replace("‘", "'")
        .replace("’", "'")
    )


def _loads_lenient(candidate: str) -> Any:
    """json.loads, retried once after fixing smart quotes and trailing commas."""
    try:
        return json.loads(candidate)
    except json.JSONDecodeError:
        repaired = TRAILING_COMMA_RE.sub(r"\1", _normalize_smart_quotes(candidate))
        if repaired == candidate:
            raise
        return json.loads(repaired)


def extract_json_array(raw: str) -> list[Any]:
    """
    Locate and parse the JSON array inside a model response.

    Steps: strip code fences, trim, slice between the outermost brackets,
    parse; on failure search the slice for an array-of-objects and parse
    that instead.

    Args:
        raw: Raw model output

    Returns:
        The parsed array

    Raises:
        RecoveryError: if no array can be parsed
    """
    text = strip_code_fences(raw or "").strip()
    sliced = slice_outer_array(text)

    parsed: Any = None
    try:
        parsed = _loads_lenient(sliced)
    except json.JSONDecodeError:
        parsed = None

    if not isinstance(parsed, list):
        match = ARRAY_OF_OBJECTS_RE.search(sliced)
        if match:
            try:
                parsed = _loads_lenient(match.group(0))
            except json.JSONDecodeError:
                parsed = None

    if not isinstance(parsed, list):
        raise RecoveryError(
            f"Failed to parse a JSON array. Raw output start: {excerpt(raw or '')}",
            excerpt=excerpt(raw or ""),
        )
    return parsed


def validate_question(entry: Any) -> tuple[Question | None, str | None]:
    """
    Check one entry against its kind's structural contract.

    Returns:
        (question, None) when valid, (None, reason) when the entry is dropped
    """
    if not isinstance(entry, dict):
        return None, f"entry is {type(entry).__name__}, not an object"

    kind = detect_question_kind(entry)
    if kind is None:
        return None, f"unrecognized question type {entry.get('type')!r}"

    model = QUESTION_MODELS[kind]
    try:
        question = model.model_validate({**entry, "type": kind.value})
    except ValidationError as e:
        return None, f"invalid {kind.value}: {e.error_count()} error(s)"
    return question, None


def recover_questions(raw: str) -> RecoveryResult:
    """
    Recover every structurally valid question from a model response.

    Malformed entries are dropped one by one; at least one valid question
    makes the recovery a (partial) success.

    Raises:
        RecoveryError: no array found, or no entry survived validation
    """
    entries = extract_json_array(raw)
    result = RecoveryResult()

    for position, entry in enumerate(entries):
        question, reason = validate_question(entry)
        if question is None:
            result.dropped.append(f"#{position}: {reason}")
            continue
        result.questions.append(question)

    if result.dropped:
        logger.debug(f"Dropped {len(result.dropped)} malformed question(s): {result.dropped}")

    if not result.questions:
        raise RecoveryError(
            f"No structurally valid questions among {len(entries)} entries. "
            f"Raw output start: {excerpt(raw)}",
            excerpt=excerpt(raw),
        )
    return result


def parse_questions(raw: str) -> list[Question]:
    """Shorthand for ``recover_questions(raw).questions``."""
    return recover_questions(raw).questions
