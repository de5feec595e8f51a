"""Persistence for studies, forms, responses and uploaded study data.

Each store wraps one table (and, for uploads, the blob store) from either the
Supabase backend or the local JSON backend; both expose the same
``insert``/``update``/``select``/``delete``/``count`` calls. Backend failures
are logged and re-raised as :class:`PersistenceError`.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional

import requests

from studykit.auth import Session, require_user
from studykit.errors import PersistenceError, ValidationError
from studykit.local_backend import utc_timestamp
from studykit.questions import Question, questions_from_payload
from studykit.study import PLACEHOLDER_TITLE, Study, StudyStatus

logger = logging.getLogger(__name__)

STUDIES_TABLE = "studies"
FORMS_TABLE = "forms"
RESPONSES_TABLE = "form_responses"
UPLOADS_TABLE = "study_data_uploads"

MAX_UPLOAD_BYTES = 10 * 1024 * 1024


@contextmanager
def _persistence(action: str) -> Iterator[None]:
    try:
        yield
    except (requests.RequestException, OSError, ValueError) as exc:
        logger.exception("Failed to %s", action)
        raise PersistenceError(f"Failed to {action}: {exc}") from exc


class StudyStore:
    """Rows of the ``studies`` table."""

    def __init__(self, table) -> None:
        self.table = table

    def get(self, study_id: str, researcher_id: str) -> Optional[Study]:
        """Return the study owned by ``researcher_id`` or ``None``."""

        with _persistence("load study"):
            rows = self.table.select({"id": study_id, "researcher_id": researcher_id}, limit=1)
        return Study.from_row(rows[0]) if rows else None

    def create_placeholder(self, session: Optional[Session]) -> Study:
        """Insert the "Untitled Study" draft a new wizard visit starts from."""

        user = require_user(session)
        with _persistence("create study"):
            row = self.table.insert(
                {
                    "researcher_id": user.id,
                    "title": PLACEHOLDER_TITLE,
                    "status": StudyStatus.DRAFT.value,
                }
            )
        return Study.from_row(row)

    def insert(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        with _persistence("save study"):
            return self.table.insert(dict(payload))

    def update(self, study_id: str, researcher_id: str, payload: Mapping[str, Any]) -> List[Dict[str, Any]]:
        values = {**payload, "updated_at": utc_timestamp()}
        with _persistence("save study"):
            return self.table.update({"id": study_id, "researcher_id": researcher_id}, values)

    def list_for_researcher(self, session: Optional[Session]) -> List[Study]:
        """Return the signed-in researcher's studies, newest first."""

        user = require_user(session)
        with _persistence("load studies"):
            rows = self.table.select(
                {"researcher_id": user.id}, order="created_at", descending=True
            )
        return [Study.from_row(row) for row in rows]

    def list_active(self) -> List[Study]:
        with _persistence("load studies"):
            rows = self.table.select(
                {"status": StudyStatus.ACTIVE.value}, order="created_at", descending=True
            )
        return [Study.from_row(row) for row in rows]


@dataclass
class Form:
    """A saved form attached to a study."""

    id: str
    study_id: str
    title: str
    description: str = ""
    questions: List[Question] = field(default_factory=list)
    created_at: str = ""

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Form":
        return cls(
            id=str(row.get("id") or ""),
            study_id=str(row.get("study_id") or ""),
            title=str(row.get("title") or ""),
            description=str(row.get("description") or ""),
            questions=questions_from_payload(row.get("questions")),
            created_at=str(row.get("created_at") or ""),
        )


class FormStore:
    """Rows of the ``forms`` table."""

    def __init__(self, table) -> None:
        self.table = table

    def create(
        self,
        session: Optional[Session],
        study_id: str,
        title: str,
        description: str,
        questions: List[Question],
    ) -> Form:
        require_user(session)
        payload = {
            "study_id": study_id,
            "title": title,
            "description": description,
            "questions": [question.to_dict() for question in questions],
        }
        with _persistence("save form"):
            row = self.table.insert(payload)
        return Form.from_row(row)

    def get(self, form_id: str) -> Optional[Form]:
        with _persistence("load form"):
            rows = self.table.select({"id": form_id}, limit=1)
        return Form.from_row(rows[0]) if rows else None

    def list_for_study(self, study_id: str) -> List[Form]:
        with _persistence("load forms"):
            rows = self.table.select({"study_id": study_id}, order="created_at", descending=True)
        return [Form.from_row(row) for row in rows]


class ResponseStore:
    """Rows of the ``form_responses`` table."""

    def __init__(self, table) -> None:
        self.table = table

    def submit(
        self,
        form: Form,
        answers: Mapping[str, Any],
        *,
        participant_name: str = "",
        participant_email: str = "",
    ) -> Dict[str, Any]:
        """Store ``answers`` as an opaque question id to answer mapping."""

        payload = {
            "study_id": form.study_id,
            "form_id": form.id,
            "participant_name": participant_name.strip() or None,
            "participant_email": participant_email.strip() or None,
            "response_data": dict(answers),
            "submitted_at": utc_timestamp(),
        }
        with _persistence("submit response"):
            return self.table.insert(payload)

    def list_for_study(self, study_id: str) -> List[Dict[str, Any]]:
        with _persistence("load responses"):
            return self.table.select({"study_id": study_id}, order="submitted_at")

    def count_for_study(self, study_id: str) -> int:
        with _persistence("count responses"):
            return self.table.count({"study_id": study_id})


def count_rows(data: bytes) -> int:
    """Return the number of data rows in a CSV payload, excluding the header."""

    text = data.decode("utf-8", errors="replace")
    lines = [line for line in text.splitlines() if line.strip()]
    return max(len(lines) - 1, 0)


def upload_path(study_id: str, file_name: str, *, now_ms: Optional[int] = None) -> str:
    """Return the storage path for an uploaded file."""

    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{study_id}/{stamp}-{file_name}"


class UploadStore:
    """CSV study data: a blob per file plus a ``study_data_uploads`` row."""

    def __init__(self, table, blobs) -> None:
        self.table = table
        self.blobs = blobs

    def upload_csv(
        self,
        session: Optional[Session],
        study_id: str,
        file_name: str,
        data: bytes,
        description: str = "",
    ) -> Dict[str, Any]:
        user = require_user(session)
        if not file_name.lower().endswith(".csv"):
            raise ValidationError({"file": "Please select a CSV file"})
        if len(data) > MAX_UPLOAD_BYTES:
            raise ValidationError({"file": "File size must be less than 10MB"})

        path = upload_path(study_id, file_name)
        with _persistence("upload file"):
            self.blobs.upload(path, data, "text/csv")
            return self.table.insert(
                {
                    "study_id": study_id,
                    "researcher_id": user.id,
                    "file_name": file_name,
                    "file_path": path,
                    "file_size": len(data),
                    "row_count": count_rows(data),
                    "description": description.strip() or None,
                    "upload_date": utc_timestamp(),
                }
            )

    def list_for_study(self, study_id: str) -> List[Dict[str, Any]]:
        with _persistence("load uploads"):
            return self.table.select({"study_id": study_id}, order="upload_date", descending=True)

    def download(self, upload: Mapping[str, Any]) -> bytes:
        with _persistence("download file"):
            return self.blobs.download(str(upload["file_path"]))

    def delete(self, upload: Mapping[str, Any]) -> None:
        """Remove the blob first, then its row."""

        with _persistence("delete file"):
            self.blobs.remove(str(upload["file_path"]))
            self.table.delete({"id": upload["id"]})


__all__ = [
    "Form",
    "FormStore",
    "MAX_UPLOAD_BYTES",
    "ResponseStore",
    "StudyStore",
    "UploadStore",
    "count_rows",
    "upload_path",
]
