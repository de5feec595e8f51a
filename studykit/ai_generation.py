"""Question generation through the ``generate-form`` and screening edge functions."""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence

import requests

from studykit.errors import GenerationError, ValidationError
from studykit.questions import Question, ScreeningQuestion, questions_from_payload, screening_questions_from_payload

logger = logging.getLogger(__name__)

FORM_FUNCTION = "generate-form"
SCREENING_FUNCTION = "generate-screening-questions"

MIN_QUESTION_COUNT = 1
MAX_QUESTION_COUNT = 20
DEFAULT_QUESTION_COUNT = 5


def parse_question_count(value: Any) -> int:
    """Return ``value`` as a question count between 1 and 20.

    Raises
    ------
    ValidationError
        Keyed ``count`` when the value is not a whole number or is out of range.
    """

    message = f"Question count must be between {MIN_QUESTION_COUNT} and {MAX_QUESTION_COUNT}"
    if isinstance(value, bool):
        raise ValidationError({"count": message})
    if isinstance(value, int):
        count = value
    else:
        try:
            count = int(str(value).strip())
        except ValueError:
            raise ValidationError({"count": message}) from None
    if not MIN_QUESTION_COUNT <= count <= MAX_QUESTION_COUNT:
        raise ValidationError({"count": message})
    return count


def _invoke(functions, name: str, body: dict) -> List[Any]:
    try:
        status, payload = functions.invoke(name, body)
    except requests.RequestException as exc:
        logger.exception("Calling %s failed", name)
        raise GenerationError(f"Failed to reach the question generator: {exc}") from exc

    error = payload.get("error") if isinstance(payload, dict) else None
    if not 200 <= status < 300:
        logger.warning("%s returned status %s: %s", name, status, error)
        raise GenerationError(str(error or f"Question generator returned status {status}"))
    if error:
        logger.warning("%s reported an error: %s", name, error)
        raise GenerationError(str(error))

    questions = payload.get("questions") if isinstance(payload, dict) else None
    if not isinstance(questions, list) or not questions:
        raise GenerationError("Invalid response format from AI service")
    return questions


def generate_form_questions(
    functions,
    title: str,
    description: str,
    count: Any,
) -> List[Question]:
    """Ask the generator for ``count`` questions about a study.

    The title and count are checked before any request is made.
    """

    title = (title or "").strip()
    if not title:
        raise ValidationError({"title": "Please enter a title for your study"})
    question_count = parse_question_count(count)

    raw = _invoke(
        functions,
        FORM_FUNCTION,
        {"title": title, "description": (description or "").strip(), "questionCount": question_count},
    )
    questions = questions_from_payload(raw)
    if not questions:
        raise GenerationError("Invalid response format from AI service")
    logger.info("Generated %s form questions", len(questions))
    return questions


def generate_screening_questions(
    functions,
    study_description: str,
    category: str = "",
    requirements: Optional[Sequence[str]] = None,
) -> List[ScreeningQuestion]:
    if not (study_description or "").strip():
        raise ValidationError({"description": "Add a study description first"})
    raw = _invoke(
        functions,
        SCREENING_FUNCTION,
        {
            "studyDescription": study_description.strip(),
            "category": category or None,
            "requirements": list(requirements or []),
        },
    )
    questions = screening_questions_from_payload(raw)
    if not questions:
        raise GenerationError("Invalid response format from AI service")
    return questions


__all__ = [
    "DEFAULT_QUESTION_COUNT",
    "MAX_QUESTION_COUNT",
    "MIN_QUESTION_COUNT",
    "generate_form_questions",
    "generate_screening_questions",
    "parse_question_count",
]
