"""The multi-step study wizard.

Position 0 is type selection. Once a :class:`StudyType` is chosen the wizard
follows that type's track, and the type cannot be changed for the rest of the
draft's life. Positions ``1..len(track)`` index into the track.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from studykit import question_list
from studykit.auth import Session, require_user
from studykit.errors import PersistenceError
from studykit.questions import ScreeningQuestion
from studykit.stores import StudyStore
from studykit.study import (
    LOCATION_LABELS,
    PAYMENT_SCHEDULE_LABELS,
    Study,
    StudyStatus,
    StudyType,
    infer_study_type,
    transition_status,
)

logger = logging.getLogger(__name__)


class WizardStep(str, Enum):
    BASIC_INFO = "Basic Info"
    SCREENING_QUESTIONS = "Screening Questions"
    PAYMENT_SCHEDULE = "Payment & Schedule"
    REVIEW = "Review & Publish"


TRACKS: Dict[StudyType, Tuple[WizardStep, ...]] = {
    StudyType.PAID: (
        WizardStep.BASIC_INFO,
        WizardStep.SCREENING_QUESTIONS,
        WizardStep.PAYMENT_SCHEDULE,
        WizardStep.REVIEW,
    ),
    StudyType.FREE: (
        WizardStep.BASIC_INFO,
        WizardStep.REVIEW,
    ),
}


@dataclass(frozen=True)
class Unsaved:
    """A draft that has never been written."""


@dataclass(frozen=True)
class Saved:
    """A draft with a row in the ``studies`` table."""

    identity: str


DraftState = Union[Unsaved, Saved]


def save_draft_row(
    state: DraftState,
    store: StudyStore,
    researcher_id: str,
    payload: Dict[str, Any],
) -> Saved:
    """Write ``payload`` and return the resulting :class:`Saved` state.

    An unsaved draft is inserted and adopts the identity the store returns;
    a saved one is updated in place.
    """

    if isinstance(state, Saved):
        store.update(state.identity, researcher_id, payload)
        return state
    row = store.insert(payload)
    identity = str(row.get("id") or "")
    if not identity:
        raise PersistenceError("Failed to save study: the new row has no id.")
    return Saved(identity)


def validate_basic_info(study: Study, study_type: Optional[StudyType]) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    if not study.title.strip():
        errors["title"] = "Study title is required"
    if not study.description.strip():
        errors["description"] = "Study description is required"
    if not study.category:
        errors["category"] = "Category is required"
    if study_type is StudyType.PAID and not study.compensation > 0:
        errors["compensation"] = "Valid compensation amount is required"
    if not study.duration > 0:
        errors["duration"] = "Valid duration is required"
    if not study.participants_needed > 0:
        errors["participants_needed"] = "Valid number of participants is required"
    if not study.deadline:
        errors["deadline"] = "Application deadline is required"
    return errors


def validate_screening_questions(study: Study) -> Dict[str, str]:
    if not study.screening_questions:
        return {"screening_questions": "At least one screening question is required"}
    return {}


def screening_option_errors(study: Study) -> Dict[str, str]:
    """Return an error for every choice question that has no options."""

    return {
        f"screening_questions.{question.id}.options": f"'{question.question}' needs at least one option"
        for question in study.screening_questions
        if question.uses_options and not question.options
    }


class StudyWizard:
    """State of one wizard page view over a single study draft."""

    def __init__(
        self,
        study: Study,
        store: StudyStore,
        session: Optional[Session],
        study_type: Optional[StudyType] = None,
    ) -> None:
        self.study = study
        self.store = store
        self.session = session
        self.study_type: Optional[StudyType] = None
        self.position = 0
        self.errors: Dict[str, str] = {}
        self.draft: DraftState = Saved(study.id) if study.id else Unsaved()
        self.published = False
        self.busy = False
        if study_type is not None:
            self.choose_type(study_type)

    @classmethod
    def for_loaded_study(cls, study: Study, store: StudyStore, session: Optional[Session]) -> "StudyWizard":
        """Open a stored study, skipping type selection when its type is evident."""

        return cls(study, store, session, study_type=infer_study_type(study))

    # navigation -------------------------------------------------------------

    @property
    def steps(self) -> Tuple[WizardStep, ...]:
        return TRACKS[self.study_type] if self.study_type else ()

    @property
    def step_count(self) -> int:
        return len(self.steps)

    @property
    def current_step(self) -> Optional[WizardStep]:
        """The step at the current position, ``None`` during type selection."""

        if self.position == 0 or self.study_type is None:
            return None
        return self.steps[self.position - 1]

    @property
    def on_last_step(self) -> bool:
        return self.study_type is not None and self.position == self.step_count

    def choose_type(self, study_type: StudyType) -> None:
        """Fix the study type and move to the first step."""

        if self.study_type is not None:
            raise ValueError("The study type has already been chosen.")
        self.study_type = StudyType(study_type)
        self.study.apply_type(self.study_type)
        self._go_to(1)

    def _go_to(self, position: int) -> None:
        self.position = position
        if self.current_step is WizardStep.SCREENING_QUESTIONS and not self.study.screening_questions:
            self.study.screening_questions = [ScreeningQuestion.default()]

    def validate_step(self, position: int) -> Dict[str, str]:
        """Return the field errors of the step at ``position`` and keep them on ``errors``."""

        step = self.steps[position - 1] if 1 <= position <= self.step_count else None
        if step is WizardStep.BASIC_INFO:
            errors = validate_basic_info(self.study, self.study_type)
        elif step is WizardStep.SCREENING_QUESTIONS:
            errors = validate_screening_questions(self.study)
        else:
            errors = {}
        self.errors = errors
        return errors

    def next(self) -> bool:
        """Advance one step if the current step validates."""

        if self.study_type is None or self.validate_step(self.position):
            return False
        self._go_to(min(self.step_count, self.position + 1))
        return True

    def previous(self) -> None:
        if self.study_type is None:
            return
        self._go_to(max(1, self.position - 1))

    # screening questions ----------------------------------------------------

    def add_screening_question(self) -> ScreeningQuestion:
        question = ScreeningQuestion.default()
        self.study.screening_questions = question_list.append_item(self.study.screening_questions, question)
        return question

    def update_screening_question(self, question_id: str, **changes: Any) -> None:
        self.study.screening_questions = question_list.update_item(
            self.study.screening_questions, question_id, **changes
        )

    def delete_screening_question(self, question_id: str) -> None:
        self.study.screening_questions = question_list.delete_item(self.study.screening_questions, question_id)

    def duplicate_screening_question(self, question_id: str) -> None:
        self.study.screening_questions = question_list.duplicate_item(
            self.study.screening_questions, question_id
        )

    def shift_screening_question(self, question_id: str, offset: int) -> None:
        self.study.screening_questions = question_list.move_by_offset(
            self.study.screening_questions, question_id, offset
        )

    def replace_screening_questions(self, questions: List[ScreeningQuestion]) -> None:
        self.study.screening_questions = list(questions)

    # persistence ------------------------------------------------------------

    def save_draft(self) -> str:
        """Persist the study as it is, without validation, and return its id.

        Raises :class:`PersistenceError` with the wizard state untouched when
        the write fails.
        """

        user = require_user(self.session)
        self.study.researcher_id = user.id
        self.busy = True
        try:
            self.draft = save_draft_row(self.draft, self.store, user.id, self.study.draft_payload())
        finally:
            self.busy = False
        self.study.id = self.draft.identity
        logger.info("Saved draft study %s", self.study.id)
        return self.study.id

    def publish(self) -> bool:
        """Validate every step and write the study as active.

        Returns ``False`` and leaves the position alone when any step fails;
        ``errors`` then holds the first failing step's messages. A study whose
        status cannot become active, or a choice screening question without
        options, is refused the same way.
        """

        user = require_user(self.session)
        if self.study_type is None:
            return False
        try:
            transition_status(self.study.status, StudyStatus.ACTIVE)
        except ValueError as exc:
            self.errors = {"status": str(exc)}
            return False
        for position in range(1, self.step_count + 1):
            if self.validate_step(position):
                return False
        if self.study_type is StudyType.PAID:
            option_errors = screening_option_errors(self.study)
            if option_errors:
                self.errors = option_errors
                return False

        self.study.researcher_id = user.id
        payload = self.study.publish_payload(self.study_type)
        self.busy = True
        try:
            self.draft = save_draft_row(self.draft, self.store, user.id, payload)
        finally:
            self.busy = False

        self.study.id = self.draft.identity
        self.study.apply_type(self.study_type)
        if self.study_type is StudyType.FREE:
            self.study.payment_schedule = None
        self.study.status = StudyStatus.ACTIVE
        self.published = True
        logger.info("Published study %s", self.study.id)
        return True

    # review -----------------------------------------------------------------

    def review_lines(self) -> List[Tuple[str, str]]:
        """Return ``(label, value)`` pairs summarising the study for the review step."""

        study = self.study
        lines: List[Tuple[str, str]] = [
            ("Title", study.title or "-"),
            ("Category", study.category or "-"),
        ]
        if self.study_type is StudyType.PAID:
            lines.append(("Compensation", f"${study.compensation:g}"))
        lines.extend(
            [
                ("Duration", f"{study.duration} minutes"),
                ("Participants", str(study.participants_needed)),
                ("Location", LOCATION_LABELS[study.location]),
                ("Deadline", study.deadline or "-"),
            ]
        )
        if self.study_type is StudyType.PAID:
            lines.append(("Screening questions", str(len(study.screening_questions))))
            if study.payment_schedule is not None:
                lines.append(("Payment schedule", PAYMENT_SCHEDULE_LABELS[study.payment_schedule]))
            lines.append(("Auto-approve", "Yes" if study.auto_approve else "No"))
        return lines


__all__ = [
    "DraftState",
    "Saved",
    "StudyWizard",
    "TRACKS",
    "Unsaved",
    "WizardStep",
    "save_draft_row",
    "screening_option_errors",
    "validate_basic_info",
    "validate_screening_questions",
]
