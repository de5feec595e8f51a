"""In-memory state of the form builder page."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from studykit import question_list
from studykit.ai_generation import DEFAULT_QUESTION_COUNT, generate_form_questions
from studykit.auth import Session
from studykit.errors import ValidationError
from studykit.questions import FormQuestionType, Question, new_question_id
from studykit.stores import Form, FormStore


@dataclass
class FormBuilder:
    """Title, description and the ordered question list of a form being built."""

    study_id: str
    title: str = ""
    description: str = ""
    question_count: str = str(DEFAULT_QUESTION_COUNT)
    questions: List[Question] = field(default_factory=list)
    saved_form: Optional[Form] = None

    def generate(self, functions) -> List[Question]:
        """Replace the question list with generated questions."""

        self.questions = generate_form_questions(
            functions, self.title, self.description, self.question_count
        )
        return self.questions

    def add_question(
        self,
        question_type: FormQuestionType = FormQuestionType.TEXT,
        label: str = "",
        **fields: Any,
    ) -> Question:
        question = Question(id=new_question_id(), type=question_type, label=label, **fields)
        self.questions = question_list.append_item(self.questions, question)
        return question

    def update_question(self, question_id: str, **changes: Any) -> None:
        self.questions = question_list.update_item(self.questions, question_id, **changes)

    def delete_question(self, question_id: str) -> None:
        self.questions = question_list.delete_item(self.questions, question_id)

    def shift_question(self, question_id: str, offset: int) -> None:
        self.questions = question_list.move_by_offset(self.questions, question_id, offset)

    def validate(self) -> Dict[str, str]:
        errors: Dict[str, str] = {}
        if not self.title.strip():
            errors["title"] = "Please enter a form title"
        if not self.questions:
            errors["questions"] = "Please add at least one question"
        return errors

    def save(self, store: FormStore, session: Optional[Session]) -> Form:
        """Persist the form once; raises :class:`ValidationError` when incomplete."""

        errors = self.validate()
        if errors:
            raise ValidationError(errors)
        self.saved_form = store.create(
            session,
            self.study_id,
            self.title.strip(),
            self.description.strip(),
            list(self.questions),
        )
        return self.saved_form


__all__ = ["FormBuilder"]
