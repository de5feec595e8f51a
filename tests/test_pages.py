"""Tests for the page-level handlers that report outcomes through Streamlit."""

from __future__ import annotations

from types import SimpleNamespace

import pytest
import requests
import streamlit as st

import Home
import studykit.app_state as app_state
from conftest import FailingTable, load_page
from studykit.forms import FormBuilder
from studykit.questions import FormQuestionType, Question, ScreeningQuestion, ScreeningQuestionType
from studykit.stores import StudyStore
from studykit.navigation import NAV_PARAMS_STATE_KEY, RESPOND_PAGE
from studykit.study import Study, StudyLocation, StudyStatus, StudyType
from studykit.wizard import StudyWizard

SIGN_IN = load_page("01_Sign_In.py")
DASHBOARD = load_page("02_Dashboard.py")
WIZARD = load_page("03_Study_Wizard.py")
FORM_BUILDER = load_page("04_Form_Builder.py")
RESPOND = load_page("05_Respond.py")


@pytest.fixture
def services(monkeypatch, tmp_path):
    monkeypatch.setattr(app_state, "data_directory", lambda: tmp_path)
    return app_state.build_services(settings={})


def test_sign_in_requires_credentials(services, captured_messages):
    """Sign-in without credentials shows an error."""

    assert SIGN_IN.handle_sign_in(services.auth, "  ", "secret") is False
    assert captured_messages["error"] == ["Enter your email and password."]


def test_sign_up_then_sign_in(services, captured_messages):
    """A new account can sign in straight away."""

    assert SIGN_IN.handle_sign_up(services.auth, "ada@example.com", "secret", "Ada") is True
    assert SIGN_IN.handle_sign_in(services.auth, "ada@example.com", "secret") is True
    assert captured_messages["success"] == ["Account created.", "Successfully signed in!"]


def test_sign_in_reports_bad_password(services, captured_messages):
    """A wrong password shows the provider's message."""

    services.auth.sign_up("ada@example.com", "secret", "Ada")

    assert SIGN_IN.handle_sign_in(services.auth, "ada@example.com", "wrong") is False
    assert captured_messages["error"] == ["Invalid login credentials"]


def test_dashboard_stats_and_table():
    """Dashboard totals and the study table reflect the studies."""

    studies = [
        Study(id="a", title="Live", status=StudyStatus.ACTIVE, participants_needed=10, created_at="2024-05-01T10:00:00"),
        Study(id="b", title="Draft", status=StudyStatus.DRAFT, participants_needed=3, created_at="2024-04-01T10:00:00"),
    ]

    stats = DASHBOARD.dashboard_stats(studies)
    frame = DASHBOARD.study_table(studies, {"a": 4})

    assert stats == {"total_studies": 2, "active_studies": 1, "draft_studies": 1, "participants_needed": 13}
    assert list(frame.columns) == list(DASHBOARD.TABLE_COLUMNS)
    assert frame["Responses"].tolist() == [4, 0]
    assert frame["Created"].tolist() == ["2024-05-01", "2024-04-01"]


def test_response_counts_fall_back_to_zero(services):
    """A failing response count shows as zero."""

    services.responses.table = FailingTable(requests.ConnectionError("offline"))

    assert DASHBOARD.load_response_counts(services, [Study(id="a")]) == {"a": 0}


def test_upload_requires_a_csv_file(services, session, captured_messages):
    """Missing and non-CSV files are refused with a message."""

    text_file = SimpleNamespace(name="notes.txt", getvalue=lambda: b"hello")

    assert DASHBOARD.handle_upload(services, session, "s1", None, "") is False
    assert DASHBOARD.handle_upload(services, session, "s1", text_file, "") is False
    assert captured_messages["error"] == ["Please select a file to upload", "Please select a CSV file"]


def test_upload_and_delete_csv(services, session, captured_messages):
    """An uploaded CSV is listed, then deleted with a toast."""

    csv_file = SimpleNamespace(name="coffee.csv", getvalue=lambda: b"name\nada\ngrace\n")

    assert DASHBOARD.handle_upload(services, session, "s1", csv_file, "Pilot") is True
    upload = services.uploads.list_for_study("s1")[0]
    assert DASHBOARD.handle_delete_upload(services, upload) is True

    assert captured_messages["success"] == ["Uploaded coffee.csv (2 rows)."]
    assert captured_messages["toast"] == ["File deleted"]
    assert services.uploads.list_for_study("s1") == []


def test_uploads_table_reports_kilobytes():
    """The uploads table shows sizes in kilobytes."""

    frame = DASHBOARD.uploads_table(
        [{"file_name": "a.csv", "row_count": 2, "file_size": 2048, "description": "", "upload_date": "2024-01-01"}]
    )

    assert frame.loc[0, "Size (KB)"] == 2.0
    assert frame.loc[0, "File"] == "a.csv"


def test_failed_draft_save_is_reported(session, captured_messages):
    """A failed draft save shows an error and leaves the wizard usable."""

    table = FailingTable(requests.HTTPError("503 Service Unavailable"))
    wizard = StudyWizard(Study(title="Coffee"), StudyStore(table), session, study_type=StudyType.FREE)

    assert WIZARD.handle_save_draft(wizard) is False
    assert captured_messages["error"][0].startswith("Error saving draft:")
    assert wizard.busy is False
    assert wizard.study.title == "Coffee"
    assert table.calls == ["insert"]


def test_draft_save_is_confirmed(study_store, session, captured_messages):
    """A successful draft save is confirmed with a toast."""

    wizard = StudyWizard(Study(title="Coffee"), study_store, session, study_type=StudyType.FREE)

    assert WIZARD.handle_save_draft(wizard) is True
    assert captured_messages["toast"] == ["Draft saved successfully"]
    assert study_store.get(wizard.study.id, session.user.id).title == "Coffee"


def test_publish_incomplete_study_is_refused(study_store, session, captured_messages):
    """Publishing an incomplete study shows the general message."""

    wizard = StudyWizard(Study(), study_store, session, study_type=StudyType.FREE)

    assert WIZARD.handle_publish(wizard) is False
    assert captured_messages["error"] == ["Please complete all required fields before publishing"]
    assert wizard.published is False


def test_next_reports_validation_errors(study_store, session, captured_messages):
    """Advancing past an invalid step shows an error and stays put."""

    wizard = StudyWizard(Study(), study_store, session, study_type=StudyType.PAID)

    assert WIZARD.handle_next(wizard) is False
    assert wizard.position == 1
    assert captured_messages["error"] == ["Please fix validation errors before continuing"]


def test_screening_generation_needs_supabase(services, study_store, session, captured_messages):
    """Screening generation is disabled without edge functions."""

    wizard = StudyWizard(Study(description="A coffee study"), study_store, session, study_type=StudyType.PAID)
    before = list(wizard.study.screening_questions)

    WIZARD.handle_generate_screening(services, wizard)

    assert captured_messages["error"] == ["Question generation needs Supabase to be configured."]
    assert wizard.study.screening_questions == before


def test_form_generation_needs_supabase(services, captured_messages):
    """Form generation is disabled without edge functions."""

    builder = FormBuilder(study_id="s1", title="Coffee")

    assert FORM_BUILDER.handle_generate(services, builder) is False
    assert captured_messages["error"] == ["Question generation needs Supabase to be configured."]


def test_form_save_reports_every_problem(services, session, captured_messages):
    """Saving an empty form lists each problem."""

    builder = FormBuilder(study_id="s1")

    assert FORM_BUILDER.handle_save(services, session, builder) is False
    assert captured_messages["error"] == ["Please enter a form title", "Please add at least one question"]


def test_form_save_success(services, session, captured_messages):
    """A complete form is saved and confirmed."""

    builder = FormBuilder(study_id="s1", title="Coffee form")
    builder.add_question(FormQuestionType.TEXT, "Name")

    assert FORM_BUILDER.handle_save(services, session, builder) is True
    assert captured_messages["success"] == ["Form 'Coffee form' saved."]
    assert [form.title for form in services.forms.list_for_study("s1")] == ["Coffee form"]


@pytest.fixture
def coffee_form(services, session):
    questions = [Question(id="q1", type=FormQuestionType.TEXT, label="Favourite roast", required=True)]
    return services.forms.create(session, "s1", "Coffee form", "", questions)


def test_participant_details_are_checked():
    """Participants must give a name and a valid email."""

    assert RESPOND.participant_errors("", "nope") == {
        "participant_name": "Name is required",
        "participant_email": "A valid email is required",
    }
    assert RESPOND.participant_errors("Ada", "ada@example.com") == {}


def test_submit_rejects_missing_answers(services, coffee_form, captured_messages):
    """Blank required answers are refused and nothing is stored."""

    assert RESPOND.handle_submit(services, coffee_form, {"q1": "  "}, "Ada", "ada@example.com") is False
    assert captured_messages["error"] == ["'Favourite roast' is required"]
    assert services.responses.count_for_study("s1") == 0


def test_submit_stores_response(services, coffee_form, captured_messages):
    """A valid response is stored against the form."""

    assert RESPOND.handle_submit(services, coffee_form, {"q1": "Dark"}, "Ada", "ada@example.com") is True

    rows = services.responses.list_for_study("s1")
    assert captured_messages["error"] == []
    assert rows[0]["response_data"] == {"q1": "Dark"}
    assert rows[0]["form_id"] == coffee_form.id


def test_home_study_rows_describe_compensation():
    """Home rows show paid compensation or "Free"."""

    rows = Home.study_rows(
        [
            Study(title="Paid", compensation=12.5, duration=30, location=StudyLocation.IN_PERSON),
            Study(title="Volunteer"),
        ]
    )

    assert rows[0]["Compensation"] == "$12.5"
    assert rows[0]["Location"] == "In-Person"
    assert rows[1]["Compensation"] == "Free"
    assert rows[1]["Duration (min)"] is None


def test_home_reports_unknown_paths(session_state, captured_messages):
    """Unknown ``?path=`` links show a not-found error."""

    st.query_params["path"] = "/nowhere"

    assert Home._follow_path_param() is True
    assert captured_messages["error"] == ["404 · Page not found"]


def test_home_forwards_thank_you_links(monkeypatch, session_state):
    """Thank-you links open the respond page with the thank-you flag."""

    opened = []
    monkeypatch.setattr(st, "switch_page", lambda page, **kwargs: opened.append((page, kwargs)), raising=False)
    st.query_params["path"] = "/study/s1/form/f1/thank-you"

    assert Home._follow_path_param() is True
    assert opened == [(RESPOND_PAGE, {"query_params": {"study": "s1", "form": "f1", "thank_you": "1"}})]
    assert session_state[NAV_PARAMS_STATE_KEY]["form"] == "f1"


def test_home_renders_itself_for_the_root_path(session_state):
    """The root path renders Home itself."""

    st.query_params["path"] = "/"

    assert Home._follow_path_param() is False


def test_publish_of_paused_study_is_reported(study_store, session, captured_messages):
    """A paused study opened for editing is refused with its status message."""

    study = Study(
        title="Coffee",
        description="short survey",
        category="Market Research",
        duration=10,
        participants_needed=5,
        deadline="2025-01-01",
        status=StudyStatus.PAUSED,
    )
    wizard = StudyWizard.for_loaded_study(study, study_store, session)

    assert WIZARD.handle_publish(wizard) is False
    assert captured_messages["error"] == ["A paused study cannot become active."]


def test_publish_reports_choice_questions_without_options(study_store, session, captured_messages):
    """Every option-less choice question is listed after the general message."""

    study = Study(
        title="Coffee",
        description="short survey",
        category="Market Research",
        compensation=20,
        duration=10,
        participants_needed=5,
        deadline="2025-01-01",
        screening_questions=[ScreeningQuestion(id="sq1", question="Roast?", type=ScreeningQuestionType.CHECKBOX)],
    )
    wizard = StudyWizard(study, study_store, session, study_type=StudyType.PAID)

    assert WIZARD.handle_publish(wizard) is False
    assert captured_messages["error"] == [
        "Please complete all required fields before publishing",
        "'Roast?' needs at least one option",
    ]


def test_unknown_screening_type_survives_unrelated_edits():
    """Editing the text of an unknown-type question leaves its stored type alone."""

    question = ScreeningQuestion(id="sq1", question="Describe your day", type="essay")
    shown = ScreeningQuestionType.TEXT

    assert WIZARD.screening_question_changes(question, "Describe your day", shown, shown, (), False) == {}
    assert WIZARD.screening_question_changes(question, "Your morning", shown, shown, (), False) == {
        "question": "Your morning"
    }
    assert WIZARD.screening_question_changes(
        question, "Describe your day", shown, ScreeningQuestionType.CHECKBOX, ("A",), False
    ) == {"type": ScreeningQuestionType.CHECKBOX, "options": ("A",)}
