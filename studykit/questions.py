"""Typed question models for study screening questions and standalone forms.

Both families are tagged on their ``type`` field. Known types are enum members;
a type string the application does not recognise (for example one returned by
the question generator) is kept as a plain ``str`` so it survives a round trip
to storage and falls through to the renderer's "render nothing" arm.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple, Type, TypeVar, Union

DEFAULT_SCREENING_TEXT = "Untitled question"
COPY_SUFFIX = " (Copy)"

SLIDER_DEFAULT_MIN = 0
SLIDER_DEFAULT_MAX = 100
SLIDER_DEFAULT_STEP = 1


class FormQuestionType(str, Enum):
    """Input types available to questions inside a form."""

    TEXT = "text"
    RADIO = "radio"
    CHECKBOX = "checkbox"
    DROPDOWN = "dropdown"
    DATE = "date"
    SLIDER = "slider"
    FILE = "file"
    IMAGE = "image"
    YESNO = "yesno"


class ScreeningQuestionType(str, Enum):
    """Input types available to screening questions on paid studies."""

    TEXT = "text"
    MULTIPLE_CHOICE = "multiple_choice"
    CHECKBOX = "checkbox"
    YES_NO = "yes_no"
    NUMBER = "number"
    SLIDER = "slider"
    DATE = "date"


FORM_QUESTION_TYPE_LABELS: Dict[FormQuestionType, str] = {
    FormQuestionType.TEXT: "Text",
    FormQuestionType.RADIO: "Radio",
    FormQuestionType.CHECKBOX: "Checkbox",
    FormQuestionType.DROPDOWN: "Dropdown",
    FormQuestionType.DATE: "Date",
    FormQuestionType.SLIDER: "Slider",
    FormQuestionType.FILE: "File Upload",
    FormQuestionType.IMAGE: "Image Upload",
    FormQuestionType.YESNO: "Yes/No",
}

SCREENING_QUESTION_TYPE_LABELS: Dict[ScreeningQuestionType, str] = {
    ScreeningQuestionType.TEXT: "Text",
    ScreeningQuestionType.MULTIPLE_CHOICE: "Multiple Choice",
    ScreeningQuestionType.CHECKBOX: "Checkbox",
    ScreeningQuestionType.YES_NO: "Yes/No",
    ScreeningQuestionType.NUMBER: "Number",
    ScreeningQuestionType.SLIDER: "Slider",
    ScreeningQuestionType.DATE: "Date",
}

FORM_OPTION_TYPES: FrozenSet[FormQuestionType] = frozenset(
    {FormQuestionType.RADIO, FormQuestionType.CHECKBOX, FormQuestionType.DROPDOWN}
)
FORM_PLACEHOLDER_TYPES: FrozenSet[FormQuestionType] = frozenset(
    {FormQuestionType.TEXT, FormQuestionType.DROPDOWN}
)
SCREENING_OPTION_TYPES: FrozenSet[ScreeningQuestionType] = frozenset(
    {ScreeningQuestionType.MULTIPLE_CHOICE, ScreeningQuestionType.CHECKBOX}
)

E = TypeVar("E", bound=Enum)
FormTypeValue = Union[FormQuestionType, str]
ScreeningTypeValue = Union[ScreeningQuestionType, str]


def coerce_type(value: Any, enum_cls: Type[E]) -> Union[E, str]:
    """Return the ``enum_cls`` member for ``value`` or the cleaned raw string."""

    if isinstance(value, enum_cls):
        return value
    text = str(value or "").strip()
    try:
        return enum_cls(text)
    except ValueError:
        return text


def type_value(question_type: Union[Enum, str]) -> str:
    """Return the string stored for ``question_type``."""

    return question_type.value if isinstance(question_type, Enum) else str(question_type)


def new_question_id(prefix: str = "q") -> str:
    """Return a fresh identity for a question."""

    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def _clean_text(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    if value is None:
        return ""
    return str(value).strip()


def clean_options(values: Any) -> Tuple[str, ...]:
    """Return trimmed, non-empty option strings from ``values`` in order."""

    if isinstance(values, str) or not isinstance(values, Iterable):
        return ()
    cleaned: List[str] = []
    for item in values:
        text = _clean_text(item)
        if text:
            cleaned.append(text)
    return tuple(cleaned)


def parse_options_text(raw: str) -> Tuple[str, ...]:
    """Split a comma separated string into options."""

    return clean_options(raw.split(",")) if raw else ()


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str) and value.strip():
        try:
            number = float(value)
        except ValueError:
            return None
        return int(number) if number.is_integer() else number
    return None


@dataclass(frozen=True)
class Question:
    """A single prompt inside a form."""

    id: str
    type: FormTypeValue = FormQuestionType.TEXT
    label: str = ""
    required: bool = False
    placeholder: Optional[str] = None
    options: Tuple[str, ...] = ()
    min: Optional[float] = None
    max: Optional[float] = None
    step: Optional[float] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", coerce_type(self.type, FormQuestionType))
        object.__setattr__(self, "options", clean_options(self.options))

    @property
    def uses_options(self) -> bool:
        return self.type in FORM_OPTION_TYPES

    @property
    def uses_range(self) -> bool:
        return self.type is FormQuestionType.SLIDER

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Question":
        """Build a question from a stored or generated mapping."""

        identifier = _clean_text(payload.get("id")) or new_question_id()
        placeholder = _clean_text(payload.get("placeholder")) or None
        return cls(
            id=identifier,
            type=coerce_type(payload.get("type"), FormQuestionType),
            label=_clean_text(payload.get("label")),
            required=bool(payload.get("required")),
            placeholder=placeholder,
            options=clean_options(payload.get("options")),
            min=_as_number(payload.get("min")),
            max=_as_number(payload.get("max")),
            step=_as_number(payload.get("step")),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Return the JSON shape stored in ``forms.questions``.

        Fields that the question's type does not consume are omitted. Unknown
        types keep every populated field so nothing is lost.
        """

        known = isinstance(self.type, FormQuestionType)
        payload: Dict[str, Any] = {
            "id": self.id,
            "type": type_value(self.type),
            "label": self.label,
            "required": self.required,
        }
        if self.placeholder and (not known or self.type in FORM_PLACEHOLDER_TYPES):
            payload["placeholder"] = self.placeholder
        if self.options and (not known or self.uses_options):
            payload["options"] = list(self.options)
        if not known or self.uses_range:
            for name in ("min", "max", "step"):
                value = getattr(self, name)
                if value is not None:
                    payload[name] = value
        return payload

    def updated(self, **changes: Any) -> "Question":
        """Return a copy with only ``changes`` applied."""

        return replace(self, **changes)


@dataclass(frozen=True)
class ScreeningQuestion:
    """A qualification question attached to a paid study."""

    id: str
    question: str = DEFAULT_SCREENING_TEXT
    type: ScreeningTypeValue = ScreeningQuestionType.TEXT
    options: Tuple[str, ...] = ()
    # Stored and edited only; nothing evaluates answers against it.
    disqualifying_answers: Tuple[str, ...] = field(default=())
    required: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", coerce_type(self.type, ScreeningQuestionType))
        object.__setattr__(self, "options", clean_options(self.options))
        object.__setattr__(self, "disqualifying_answers", clean_options(self.disqualifying_answers))

    @property
    def uses_options(self) -> bool:
        return self.type in SCREENING_OPTION_TYPES

    @classmethod
    def default(cls) -> "ScreeningQuestion":
        """Return the placeholder question used to seed and add questions."""

        return cls(id=new_question_id("question"))

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ScreeningQuestion":
        identifier = _clean_text(payload.get("id")) or new_question_id("question")
        return cls(
            id=identifier,
            question=_clean_text(payload.get("question")) or DEFAULT_SCREENING_TEXT,
            type=coerce_type(payload.get("type"), ScreeningQuestionType),
            options=clean_options(payload.get("options")),
            disqualifying_answers=clean_options(payload.get("disqualifying_answers")),
            required=bool(payload.get("required")),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Return the JSON shape embedded in ``studies.screening_questions``."""

        payload: Dict[str, Any] = {
            "id": self.id,
            "question": self.question,
            "type": type_value(self.type),
            "required": self.required,
        }
        if self.options and (self.uses_options or not isinstance(self.type, ScreeningQuestionType)):
            payload["options"] = list(self.options)
        if self.disqualifying_answers:
            payload["disqualifying_answers"] = list(self.disqualifying_answers)
        return payload

    def updated(self, **changes: Any) -> "ScreeningQuestion":
        return replace(self, **changes)

    def duplicate(self) -> "ScreeningQuestion":
        """Return a copy with a new identity and the copy suffix on its text."""

        return replace(self, id=new_question_id("question"), question=f"{self.question}{COPY_SUFFIX}")


def questions_from_payload(payload: Any) -> List[Question]:
    """Return form questions from a stored list, skipping non-mapping entries."""

    if not isinstance(payload, list):
        return []
    return [Question.from_dict(item) for item in payload if isinstance(item, Mapping)]


def screening_questions_from_payload(payload: Any) -> List[ScreeningQuestion]:
    """Return screening questions from a stored list."""

    if not isinstance(payload, list):
        return []
    return [ScreeningQuestion.from_dict(item) for item in payload if isinstance(item, Mapping)]


__all__ = [
    "COPY_SUFFIX",
    "DEFAULT_SCREENING_TEXT",
    "FORM_OPTION_TYPES",
    "FORM_QUESTION_TYPE_LABELS",
    "FormQuestionType",
    "Question",
    "SCREENING_OPTION_TYPES",
    "SCREENING_QUESTION_TYPE_LABELS",
    "ScreeningQuestion",
    "ScreeningQuestionType",
    "clean_options",
    "coerce_type",
    "new_question_id",
    "parse_options_text",
    "questions_from_payload",
    "screening_questions_from_payload",
    "type_value",
]
