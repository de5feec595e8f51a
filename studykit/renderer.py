"""Generic rendering of typed questions.

``describe_question`` and ``describe_screening_question`` turn a question into
a :class:`ControlSpec`, a widget-independent description of the input to show.
They match every declared type explicitly and return ``None`` for any other
type, which the Streamlit layer treats as "render nothing".
``render_control`` draws a spec with Streamlit widgets and records the answer.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

import streamlit as st

from studykit.questions import (
    SLIDER_DEFAULT_MAX,
    SLIDER_DEFAULT_MIN,
    SLIDER_DEFAULT_STEP,
    FormQuestionType,
    Question,
    ScreeningQuestion,
    ScreeningQuestionType,
)

YES_NO_OPTIONS: Tuple[str, str] = ("yes", "no")
TEXT_PLACEHOLDER = "Type your answer..."
SELECT_PLACEHOLDER = "Select an option"
IMAGE_HINT = "Images only"
FILE_HINT = "Any file type"


class ControlKind(str, Enum):
    """Input controls the renderer knows how to draw."""

    TEXT_INPUT = "text_input"
    SINGLE_CHOICE = "single_choice"
    MULTI_CHOICE = "multi_choice"
    SELECT = "select"
    DATE_PICKER = "date_picker"
    SLIDER = "slider"
    NUMBER_INPUT = "number_input"
    UPLOAD = "upload"
    YES_NO = "yes_no"


@dataclass(frozen=True)
class ControlSpec:
    """Everything needed to draw one question's input."""

    key: str
    kind: ControlKind
    label: str
    required: bool = False
    placeholder: Optional[str] = None
    options: Tuple[str, ...] = ()
    min: Optional[float] = None
    max: Optional[float] = None
    step: Optional[float] = None
    hint: Optional[str] = None

    @property
    def display_label(self) -> str:
        return f"{self.label}{' *' if self.required else ''}"


def _range(minimum: Optional[float], maximum: Optional[float], step: Optional[float]) -> Tuple[float, float, float]:
    return (
        SLIDER_DEFAULT_MIN if minimum is None else minimum,
        SLIDER_DEFAULT_MAX if maximum is None else maximum,
        SLIDER_DEFAULT_STEP if step is None else step,
    )


def describe_question(question: Question) -> Optional[ControlSpec]:
    """Return the control for a form question, or ``None`` for unknown types."""

    base = {"key": question.id, "label": question.label, "required": question.required}
    question_type = question.type

    if question_type is FormQuestionType.TEXT:
        return ControlSpec(
            kind=ControlKind.TEXT_INPUT,
            placeholder=question.placeholder or TEXT_PLACEHOLDER,
            **base,
        )
    if question_type is FormQuestionType.RADIO:
        return ControlSpec(kind=ControlKind.SINGLE_CHOICE, options=question.options, **base)
    if question_type is FormQuestionType.CHECKBOX:
        return ControlSpec(kind=ControlKind.MULTI_CHOICE, options=question.options, **base)
    if question_type is FormQuestionType.DROPDOWN:
        return ControlSpec(
            kind=ControlKind.SELECT,
            options=question.options,
            placeholder=question.placeholder or SELECT_PLACEHOLDER,
            **base,
        )
    if question_type is FormQuestionType.DATE:
        return ControlSpec(kind=ControlKind.DATE_PICKER, **base)
    if question_type is FormQuestionType.SLIDER:
        minimum, maximum, step = _range(question.min, question.max, question.step)
        return ControlSpec(kind=ControlKind.SLIDER, min=minimum, max=maximum, step=step, **base)
    if question_type is FormQuestionType.FILE:
        return ControlSpec(kind=ControlKind.UPLOAD, hint=FILE_HINT, **base)
    if question_type is FormQuestionType.IMAGE:
        return ControlSpec(kind=ControlKind.UPLOAD, hint=IMAGE_HINT, **base)
    if question_type is FormQuestionType.YESNO:
        return ControlSpec(kind=ControlKind.YES_NO, options=YES_NO_OPTIONS, **base)
    return None


def describe_screening_question(question: ScreeningQuestion) -> Optional[ControlSpec]:
    """Return the control for a screening question, or ``None`` for unknown types."""

    base = {"key": question.id, "label": question.question, "required": question.required}
    question_type = question.type

    if question_type is ScreeningQuestionType.TEXT:
        return ControlSpec(kind=ControlKind.TEXT_INPUT, placeholder=TEXT_PLACEHOLDER, **base)
    if question_type is ScreeningQuestionType.MULTIPLE_CHOICE:
        return ControlSpec(kind=ControlKind.SINGLE_CHOICE, options=question.options, **base)
    if question_type is ScreeningQuestionType.CHECKBOX:
        return ControlSpec(kind=ControlKind.MULTI_CHOICE, options=question.options, **base)
    if question_type is ScreeningQuestionType.YES_NO:
        return ControlSpec(kind=ControlKind.YES_NO, options=YES_NO_OPTIONS, **base)
    if question_type is ScreeningQuestionType.NUMBER:
        return ControlSpec(kind=ControlKind.NUMBER_INPUT, **base)
    if question_type is ScreeningQuestionType.SLIDER:
        minimum, maximum, step = _range(None, None, None)
        return ControlSpec(kind=ControlKind.SLIDER, min=minimum, max=maximum, step=step, **base)
    if question_type is ScreeningQuestionType.DATE:
        return ControlSpec(kind=ControlKind.DATE_PICKER, **base)
    return None


def describe_questions(questions: Iterable[Question]) -> List[ControlSpec]:
    """Return controls for ``questions`` in order, dropping unknown types."""

    specs = (describe_question(question) for question in questions)
    return [spec for spec in specs if spec is not None]


def answer_is_missing(value: Any) -> bool:
    """Return ``True`` when ``value`` does not count as an answer."""

    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set)):
        return not value
    return False


def validate_answers(specs: Iterable[ControlSpec], answers: Dict[str, Any]) -> Dict[str, str]:
    """Return a message for every required control without an answer."""

    errors: Dict[str, str] = {}
    for spec in specs:
        if spec.required and answer_is_missing(answers.get(spec.key)):
            errors[spec.key] = f"'{spec.label}' is required"
    return errors


def _numeric(value: float, *, as_int: bool) -> float:
    return int(value) if as_int else float(value)


def render_control(
    spec: Optional[ControlSpec],
    answers: Dict[str, Any],
    *,
    prefix: str = "",
    disabled: bool = False,
    error: Optional[str] = None,
) -> None:
    """Draw ``spec`` and store the respondent's answer in ``answers``."""

    if spec is None:
        return

    widget_key = f"answer_{prefix}_{spec.key}" if prefix else f"answer_{spec.key}"
    label = spec.display_label
    kind = spec.kind

    if kind is ControlKind.TEXT_INPUT:
        answers[spec.key] = st.text_input(
            label, key=widget_key, placeholder=spec.placeholder, disabled=disabled
        )
    elif kind is ControlKind.SINGLE_CHOICE:
        if not spec.options:
            st.warning(f"Question '{spec.label}' has no options configured.")
            return
        answers[spec.key] = st.radio(
            label, list(spec.options), index=None, key=widget_key, disabled=disabled
        )
    elif kind is ControlKind.MULTI_CHOICE:
        st.markdown(f"**{label}**")
        selected = []
        for index, option in enumerate(spec.options):
            if st.checkbox(option, key=f"{widget_key}_{index}", disabled=disabled):
                selected.append(option)
        answers[spec.key] = selected
    elif kind is ControlKind.SELECT:
        answers[spec.key] = st.selectbox(
            label,
            options=list(spec.options),
            index=None,
            placeholder=spec.placeholder,
            key=widget_key,
            disabled=disabled,
        )
    elif kind is ControlKind.DATE_PICKER:
        picked = st.date_input(label, value=None, key=widget_key, disabled=disabled)
        answers[spec.key] = picked.isoformat() if isinstance(picked, date) else None
    elif kind is ControlKind.SLIDER:
        as_int = all(float(value).is_integer() for value in (spec.min, spec.max, spec.step))
        minimum = _numeric(spec.min, as_int=as_int)
        answers[spec.key] = st.slider(
            label,
            min_value=minimum,
            max_value=_numeric(spec.max, as_int=as_int),
            value=minimum,
            step=_numeric(spec.step, as_int=as_int),
            key=widget_key,
            disabled=disabled,
        )
    elif kind is ControlKind.NUMBER_INPUT:
        answers[spec.key] = st.number_input(label, value=None, key=widget_key, disabled=disabled)
    elif kind is ControlKind.UPLOAD:
        uploaded = st.file_uploader(label, key=widget_key, disabled=disabled)
        if spec.hint:
            st.caption(spec.hint)
        answers[spec.key] = getattr(uploaded, "name", None)
    elif kind is ControlKind.YES_NO:
        answers[spec.key] = st.radio(
            label,
            list(YES_NO_OPTIONS),
            index=None,
            key=widget_key,
            format_func=str.title,
            horizontal=True,
            disabled=disabled,
        )

    if error:
        st.error(error)


__all__ = [
    "ControlKind",
    "ControlSpec",
    "answer_is_missing",
    "describe_question",
    "describe_questions",
    "describe_screening_question",
    "render_control",
    "validate_answers",
]
