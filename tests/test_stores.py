"""Tests for the stores over the local JSON backend."""

from __future__ import annotations

import pytest
import requests

from conftest import FailingTable
from studykit.errors import AuthRequiredError, PersistenceError, ValidationError
from studykit.local_backend import LocalBlobStore, LocalTable
from studykit.questions import FormQuestionType, Question
from studykit.stores import (
    MAX_UPLOAD_BYTES,
    FormStore,
    ResponseStore,
    StudyStore,
    UploadStore,
    count_rows,
    upload_path,
)
from studykit.study import PLACEHOLDER_TITLE, StudyStatus


def test_placeholder_study_is_persisted_immediately(study_store, studies_table, session):
    """A new wizard visit writes an "Untitled Study" draft at once."""

    study = study_store.create_placeholder(session)

    assert study.id
    assert study.title == PLACEHOLDER_TITLE
    assert study.status is StudyStatus.DRAFT
    assert studies_table.count() == 1
    assert study_store.get(study.id, session.user.id) == study


def test_get_is_scoped_to_the_owner(study_store, session):
    """Studies are only returned to their owner."""

    study = study_store.create_placeholder(session)

    assert study_store.get(study.id, "someone-else") is None
    assert study_store.get(study.id, session.user.id).id == study.id


def test_list_for_researcher_is_newest_first(studies_table, session):
    """A researcher's studies are listed newest first."""

    store = StudyStore(studies_table)
    studies_table.insert({"researcher_id": session.user.id, "title": "Old", "created_at": "2024-01-01T00:00:00"})
    studies_table.insert({"researcher_id": session.user.id, "title": "New", "created_at": "2024-06-01T00:00:00"})
    studies_table.insert({"researcher_id": "other", "title": "Theirs", "created_at": "2024-07-01T00:00:00"})

    assert [study.title for study in store.list_for_researcher(session)] == ["New", "Old"]


def test_list_for_researcher_requires_session(study_store):
    """Listing studies needs a signed-in researcher."""

    with pytest.raises(AuthRequiredError):
        study_store.list_for_researcher(None)


def test_list_active_only_returns_published(studies_table):
    """Only active studies are listed for participants."""

    store = StudyStore(studies_table)
    studies_table.insert({"title": "Draft", "status": "draft"})
    studies_table.insert({"title": "Live", "status": "active"})

    assert [study.title for study in store.list_active()] == ["Live"]


def test_backend_errors_become_persistence_errors(session):
    """Backend HTTP errors surface as persistence errors."""

    store = StudyStore(FailingTable(requests.HTTPError("500 Server Error")))

    with pytest.raises(PersistenceError, match="load studies"):
        store.list_active()


def test_form_store_round_trip(tmp_path, session):
    """Saved forms read back with the same questions."""

    store = FormStore(LocalTable(tmp_path, "forms"))
    questions = [
        Question(id="q1", type=FormQuestionType.DROPDOWN, label="Roast", options=("Light", "Dark")),
        Question(id="q2", type=FormQuestionType.DATE, label="Last cup"),
    ]

    form = store.create(session, "study-1", "Coffee form", "", questions)

    assert store.get(form.id).questions == questions
    assert [item.id for item in store.list_for_study("study-1")] == [form.id]
    assert store.get("missing") is None


def test_form_store_requires_session(tmp_path):
    """Saving a form needs a signed-in researcher."""

    with pytest.raises(AuthRequiredError):
        FormStore(LocalTable(tmp_path, "forms")).create(None, "s", "t", "", [])


def test_responses_are_stored_and_counted(tmp_path, session):
    """Responses are stored in order and counted per study."""

    forms = FormStore(LocalTable(tmp_path, "forms"))
    responses = ResponseStore(LocalTable(tmp_path, "form_responses", timestamp_fields=()))
    form = forms.create(session, "study-1", "Coffee form", "", [Question(id="q1", label="Name")])

    responses.submit(form, {"q1": "Ada"}, participant_name=" Ada ", participant_email="ada@example.com")
    responses.submit(form, {"q1": "Grace"})

    rows = responses.list_for_study("study-1")
    assert [row["response_data"] for row in rows] == [{"q1": "Ada"}, {"q1": "Grace"}]
    assert rows[0]["participant_name"] == "Ada"
    assert rows[1]["participant_email"] is None
    assert responses.count_for_study("study-1") == 2
    assert responses.count_for_study("other") == 0


def test_count_rows_ignores_blank_lines_and_header():
    """Row counts skip the header and blank lines."""

    assert count_rows(b"a,b\n1,2\n\n3,4\n   \n") == 2
    assert count_rows(b"header\n") == 0
    assert count_rows(b"") == 0


def test_upload_path_is_uniqued_by_timestamp():
    """Upload paths are prefixed with a millisecond timestamp."""

    assert upload_path("study-1", "data.csv", now_ms=1700000000000) == "study-1/1700000000000-data.csv"


@pytest.fixture
def upload_store(tmp_path) -> UploadStore:
    return UploadStore(
        LocalTable(tmp_path, "study_data_uploads", timestamp_fields=()),
        LocalBlobStore(tmp_path / "uploads"),
    )


def test_upload_list_download_delete(upload_store, session):
    """Uploads can be listed, downloaded and deleted."""

    data = b"name,cups\nada,2\ngrace,3\n"

    record = upload_store.upload_csv(session, "study-1", "coffee.csv", data, "Pilot")

    assert record["row_count"] == 2
    assert record["file_size"] == len(data)
    assert record["researcher_id"] == session.user.id
    assert record["file_path"].startswith("study-1/")
    assert record["file_path"].endswith("-coffee.csv")
    assert upload_store.list_for_study("study-1") == [record]
    assert upload_store.download(record) == data

    upload_store.delete(record)

    assert upload_store.list_for_study("study-1") == []
    with pytest.raises(PersistenceError):
        upload_store.download(record)


@pytest.mark.parametrize(
    ("file_name", "size"),
    [("notes.txt", 10), ("data.csv", MAX_UPLOAD_BYTES + 1)],
)
def test_upload_policy_is_checked_before_storage(upload_store, session, file_name, size):
    """Non-CSV and oversized files are refused before storage."""

    with pytest.raises(ValidationError) as excinfo:
        upload_store.upload_csv(session, "study-1", file_name, b"x" * size)

    assert "file" in excinfo.value.errors
    assert upload_store.list_for_study("study-1") == []


def test_delete_removes_blob_before_row(session):
    """Deleting an upload removes the file before its row."""

    order = []

    class DummyBlobs:
        def remove(self, path):
            order.append(("blob", path))

    class DummyTable:
        def delete(self, filters):
            order.append(("row", filters["id"]))

    UploadStore(DummyTable(), DummyBlobs()).delete({"id": "u1", "file_path": "s/1-a.csv"})

    assert order == [("blob", "s/1-a.csv"), ("row", "u1")]
