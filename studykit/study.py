"""The Study record edited by the wizard and stored in the ``studies`` table."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from studykit.questions import ScreeningQuestion, screening_questions_from_payload

PLACEHOLDER_TITLE = "Untitled Study"

STUDY_CATEGORIES: List[str] = [
    "UX Research",
    "Market Research",
    "Healthcare",
    "Finance",
    "Technology",
    "Education",
    "Psychology",
    "Product Testing",
]


class StudyType(str, Enum):
    PAID = "paid"
    FREE = "free"


class StudyLocation(str, Enum):
    REMOTE = "remote"
    IN_PERSON = "in-person"
    HYBRID = "hybrid"


class PaymentSchedule(str, Enum):
    IMMEDIATE = "immediate"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class StudyStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"
    PAUSED = "paused"


LOCATION_LABELS: Dict[StudyLocation, str] = {
    StudyLocation.REMOTE: "Remote (Online)",
    StudyLocation.IN_PERSON: "In-Person",
    StudyLocation.HYBRID: "Hybrid",
}

PAYMENT_SCHEDULE_LABELS: Dict[PaymentSchedule, str] = {
    PaymentSchedule.IMMEDIATE: "Immediate (After completion)",
    PaymentSchedule.WEEKLY: "Weekly batch",
    PaymentSchedule.MONTHLY: "Monthly batch",
}

_ALLOWED_TRANSITIONS = {
    (StudyStatus.DRAFT, StudyStatus.ACTIVE),
}


def _enum_or_default(enum_cls, value, default):
    try:
        return enum_cls(value)
    except ValueError:
        return default


def _as_number(value: Any) -> float:
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, (int, float)):
        return value
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0


def _as_int(value: Any) -> int:
    return int(_as_number(value))


def _as_date_text(value: Any) -> str:
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str):
        return value.strip()
    return ""


@dataclass
class Study:
    """A researcher's study, either a draft or published."""

    id: str = ""
    researcher_id: str = ""
    title: str = ""
    description: str = ""
    category: str = ""
    compensation: float = 0
    duration: int = 0
    location: StudyLocation = StudyLocation.REMOTE
    participants_needed: int = 0
    deadline: str = ""
    requirements: List[str] = field(default_factory=list)
    screening_questions: List[ScreeningQuestion] = field(default_factory=list)
    auto_approve: bool = False
    payment_schedule: Optional[PaymentSchedule] = PaymentSchedule.IMMEDIATE
    status: StudyStatus = StudyStatus.DRAFT
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Study":
        """Build a study from a ``studies`` row, tolerating nulls."""

        requirements = row.get("requirements")
        schedule = row.get("payment_schedule")
        return cls(
            id=str(row.get("id") or ""),
            researcher_id=str(row.get("researcher_id") or ""),
            title=str(row.get("title") or ""),
            description=str(row.get("description") or ""),
            category=str(row.get("category") or ""),
            compensation=_as_number(row.get("compensation")),
            duration=_as_int(row.get("duration")),
            location=_enum_or_default(StudyLocation, row.get("location"), StudyLocation.REMOTE),
            participants_needed=_as_int(row.get("participants_needed")),
            deadline=_as_date_text(row.get("deadline")),
            requirements=[str(item) for item in requirements] if isinstance(requirements, list) else [],
            screening_questions=screening_questions_from_payload(row.get("screening_questions")),
            auto_approve=bool(row.get("auto_approve")),
            payment_schedule=(
                _enum_or_default(PaymentSchedule, schedule, PaymentSchedule.IMMEDIATE)
                if schedule is not None
                else None
            ),
            status=_enum_or_default(StudyStatus, row.get("status"), StudyStatus.DRAFT),
            created_at=str(row.get("created_at") or ""),
            updated_at=str(row.get("updated_at") or ""),
        )

    def apply_type(self, study_type: StudyType) -> None:
        """Force the fields a free study may not carry."""

        if study_type is StudyType.FREE:
            self.compensation = 0
            self.screening_questions = []

    def add_requirement(self, text: str) -> bool:
        """Append a trimmed requirement; blank input is ignored."""

        cleaned = (text or "").strip()
        if not cleaned:
            return False
        self.requirements = [*self.requirements, cleaned]
        return True

    def remove_requirement(self, index: int) -> None:
        self.requirements = [item for position, item in enumerate(self.requirements) if position != index]

    def draft_payload(self) -> Dict[str, Any]:
        """Return the row written by "save draft"."""

        return {
            "researcher_id": self.researcher_id,
            "title": self.title or PLACEHOLDER_TITLE,
            "description": self.description,
            "category": self.category,
            "compensation": self.compensation or None,
            "duration": self.duration or None,
            "location": self.location.value,
            "participants_needed": self.participants_needed or None,
            "deadline": self.deadline or None,
            "requirements": list(self.requirements),
            "screening_questions": [question.to_dict() for question in self.screening_questions],
            "auto_approve": self.auto_approve,
            "payment_schedule": self.payment_schedule.value if self.payment_schedule else None,
            "status": self.status.value,
        }

    def publish_payload(self, study_type: StudyType) -> Dict[str, Any]:
        """Return the row written on publish, with free-study fields cleared."""

        paid = study_type is StudyType.PAID
        status = transition_status(self.status, StudyStatus.ACTIVE)
        return {
            "researcher_id": self.researcher_id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "compensation": self.compensation if paid else 0,
            "duration": self.duration,
            "location": self.location.value,
            "participants_needed": self.participants_needed,
            "deadline": self.deadline,
            "requirements": list(self.requirements),
            "screening_questions": (
                [question.to_dict() for question in self.screening_questions] if paid else []
            ),
            "auto_approve": self.auto_approve,
            "payment_schedule": (
                self.payment_schedule.value if paid and self.payment_schedule else None
            ),
            "status": status.value,
        }


def transition_status(current: StudyStatus, target: StudyStatus) -> StudyStatus:
    """Return ``target`` if the lifecycle allows moving there from ``current``."""

    if current is target or (current, target) in _ALLOWED_TRANSITIONS:
        return target
    raise ValueError(f"A {current.value} study cannot become {target.value}.")


def infer_study_type(study: Study) -> Optional[StudyType]:
    """Return the type a stored study evidently has, or ``None`` to ask the researcher.

    A draft with no compensation and no screening questions may be a paid study
    saved early, so only published rows are taken to be free.
    """

    if study.compensation > 0 or study.screening_questions:
        return StudyType.PAID
    if study.status is not StudyStatus.DRAFT:
        return StudyType.FREE
    return None


__all__ = [
    "LOCATION_LABELS",
    "PAYMENT_SCHEDULE_LABELS",
    "PLACEHOLDER_TITLE",
    "PaymentSchedule",
    "STUDY_CATEGORIES",
    "Study",
    "StudyLocation",
    "StudyStatus",
    "StudyType",
    "infer_study_type",
    "transition_status",
]
