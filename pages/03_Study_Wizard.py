"""Create or edit a study step by step and publish it."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, Optional

import streamlit as st

from studykit.ai_generation import generate_screening_questions
from studykit.app_state import WIZARD_STATE_KEY, Services, get_services, require_session_or_redirect
from studykit.auth import Session
from studykit.errors import AuthRequiredError, GenerationError, PersistenceError, ValidationError
from studykit.navigation import DASHBOARD_PAGE, NAV_PARAMS_STATE_KEY, get_query_param, switch_to
from studykit.questions import (
    SCREENING_QUESTION_TYPE_LABELS,
    ScreeningQuestion,
    ScreeningQuestionType,
    parse_options_text,
)
from studykit.renderer import describe_screening_question, render_control
from studykit.study import (
    LOCATION_LABELS,
    PAYMENT_SCHEDULE_LABELS,
    STUDY_CATEGORIES,
    PaymentSchedule,
    Study,
    StudyLocation,
    StudyType,
)
from studykit.ui_theme import apply_app_theme, page_header, section_card, step_indicator
from studykit.wizard import StudyWizard, WizardStep

logger = logging.getLogger(__name__)

REQUIREMENT_INPUT_KEY = "wizard_new_requirement"


def load_wizard(services: Services, session: Session, study_id: Optional[str]) -> StudyWizard:
    """Open the wizard for ``study_id``, creating a placeholder draft when needed."""

    study: Optional[Study] = None
    if study_id and study_id != "new":
        study = services.studies.get(study_id, session.user.id)
    if study is None:
        study = services.studies.create_placeholder(session)
        st.session_state[NAV_PARAMS_STATE_KEY] = {"study": study.id}
        st.query_params["study"] = study.id
        return StudyWizard(study, services.studies, session)
    return StudyWizard.for_loaded_study(study, services.studies, session)


def handle_save_draft(wizard: StudyWizard) -> bool:
    """Save the draft and report the outcome."""

    try:
        wizard.save_draft()
    except (AuthRequiredError, PersistenceError) as exc:
        st.error(f"Error saving draft: {exc}")
        return False
    st.toast("Draft saved successfully")
    return True


def handle_publish(wizard: StudyWizard) -> bool:
    """Publish the study; returns ``True`` once it is live."""

    try:
        published = wizard.publish()
    except (AuthRequiredError, PersistenceError) as exc:
        st.error(f"Error publishing study: {exc}")
        return False
    if not published:
        st.error(wizard.errors.get("status") or "Please complete all required fields before publishing")
        for name, message in wizard.errors.items():
            if name.startswith("screening_questions."):
                st.error(message)
        return False
    st.success("Study published successfully")
    return True


def handle_next(wizard: StudyWizard) -> bool:
    if wizard.next():
        return True
    st.error("Please fix validation errors before continuing")
    return False


def handle_generate_screening(services: Services, wizard: StudyWizard) -> None:
    if services.functions is None:
        st.error("Question generation needs Supabase to be configured.")
        return
    study = wizard.study
    try:
        questions = generate_screening_questions(
            services.functions, study.description, study.category, study.requirements
        )
    except ValidationError as exc:
        for message in exc.errors.values():
            st.error(message)
        return
    except GenerationError as exc:
        st.error(str(exc))
        return
    wizard.replace_screening_questions(questions)
    st.toast(f"Generated {len(questions)} screening questions")


def screening_question_changes(
    question: ScreeningQuestion,
    text: str,
    shown_type: ScreeningQuestionType,
    picked_type: ScreeningQuestionType,
    options,
    required: bool,
) -> Dict[str, Any]:
    """Return the fields the researcher actually edited.

    The type is only written when the selection moved away from the type shown,
    so a stored type the app does not know survives an unrelated edit.
    """

    edited: Dict[str, Any] = {"question": text, "options": tuple(options), "required": required}
    if picked_type is not shown_type:
        edited["type"] = picked_type
    return {name: value for name, value in edited.items() if getattr(question, name) != value}


def _field_error(wizard: StudyWizard, name: str) -> None:
    message = wizard.errors.get(name)
    if message:
        st.caption(f":red[{message}]")


def _parse_date(value: str) -> Optional[date]:
    try:
        return date.fromisoformat(value) if value else None
    except ValueError:
        return None


def _render_type_selection(wizard: StudyWizard) -> None:
    section_card("What kind of study is this?", "The type cannot be changed later.")
    col_paid, col_free = st.columns(2)
    with col_paid:
        st.markdown("**Paid study**  \nCompensate participants and screen applicants.")
        if st.button("Create paid study", type="primary", use_container_width=True):
            wizard.choose_type(StudyType.PAID)
            st.rerun()
    with col_free:
        st.markdown("**Free study**  \nVolunteer participation, no screening.")
        if st.button("Create free study", use_container_width=True):
            wizard.choose_type(StudyType.FREE)
            st.rerun()


def _render_basic_info(wizard: StudyWizard) -> None:
    study = wizard.study
    key = study.id or "new"
    section_card("Basic information")

    col_title, col_category = st.columns(2)
    with col_title:
        study.title = st.text_input("Study title", value=study.title, key=f"title_{key}")
        _field_error(wizard, "title")
    with col_category:
        categories = [""] + STUDY_CATEGORIES
        if study.category and study.category not in categories:
            categories.append(study.category)
        study.category = st.selectbox(
            "Category",
            categories,
            index=categories.index(study.category),
            format_func=lambda value: value or "Select a category",
            key=f"category_{key}",
        )
        _field_error(wizard, "category")

    study.description = st.text_area("Description", value=study.description, key=f"description_{key}")
    _field_error(wizard, "description")

    columns = st.columns(3 if wizard.study_type is StudyType.PAID else 2)
    if wizard.study_type is StudyType.PAID:
        with columns[-3]:
            study.compensation = st.number_input(
                "Compensation ($)", min_value=0.0, value=float(study.compensation), key=f"compensation_{key}"
            )
            _field_error(wizard, "compensation")
    with columns[-2]:
        study.duration = int(
            st.number_input("Duration (minutes)", min_value=0, value=int(study.duration), key=f"duration_{key}")
        )
        _field_error(wizard, "duration")
    with columns[-1]:
        study.participants_needed = int(
            st.number_input(
                "Participants needed",
                min_value=0,
                value=int(study.participants_needed),
                key=f"participants_{key}",
            )
        )
        _field_error(wizard, "participants_needed")

    col_location, col_deadline = st.columns(2)
    with col_location:
        locations = list(StudyLocation)
        study.location = st.selectbox(
            "Location",
            locations,
            index=locations.index(study.location),
            format_func=LOCATION_LABELS.get,
            key=f"location_{key}",
        )
    with col_deadline:
        picked = st.date_input(
            "Application deadline", value=_parse_date(study.deadline), key=f"deadline_{key}"
        )
        study.deadline = picked.isoformat() if isinstance(picked, date) else ""
        _field_error(wizard, "deadline")

    st.markdown("**Requirements**")
    for index, requirement in enumerate(study.requirements):
        col_text, col_remove = st.columns([6, 1])
        col_text.write(f"• {requirement}")
        if col_remove.button("Remove", key=f"remove_requirement_{key}_{index}"):
            study.remove_requirement(index)
            st.rerun()
    col_new, col_add = st.columns([6, 1])
    new_requirement = col_new.text_input(
        "Add a requirement", key=REQUIREMENT_INPUT_KEY, label_visibility="collapsed"
    )
    if col_add.button("Add", key=f"add_requirement_{key}"):
        study.add_requirement(new_requirement)
        st.rerun()


def _render_screening_question(wizard: StudyWizard, question: ScreeningQuestion, index: int, total: int) -> None:
    qid = question.id
    with st.expander(f"{index + 1}. {question.question}", expanded=index == total - 1):
        text = st.text_input("Question", value=question.question, key=f"sq_text_{qid}")
        types = list(ScreeningQuestionType)
        current_type = question.type if question.type in types else ScreeningQuestionType.TEXT
        question_type = st.selectbox(
            "Type",
            types,
            index=types.index(current_type),
            format_func=SCREENING_QUESTION_TYPE_LABELS.get,
            key=f"sq_type_{qid}",
        )
        options = question.options
        if question_type in (ScreeningQuestionType.MULTIPLE_CHOICE, ScreeningQuestionType.CHECKBOX):
            options = parse_options_text(
                st.text_input("Options (comma separated)", value=", ".join(question.options), key=f"sq_options_{qid}")
            )
            if not options:
                st.caption(":red[Add at least one option]")
        required = st.checkbox("Required", value=question.required, key=f"sq_required_{qid}")
        changes = screening_question_changes(question, text, current_type, question_type, options, required)
        if changes:
            wizard.update_screening_question(qid, **changes)

        col_up, col_down, col_copy, col_delete = st.columns(4)
        if col_up.button("Move up", key=f"sq_up_{qid}", disabled=index == 0):
            wizard.shift_screening_question(qid, -1)
            st.rerun()
        if col_down.button("Move down", key=f"sq_down_{qid}", disabled=index == total - 1):
            wizard.shift_screening_question(qid, 1)
            st.rerun()
        if col_copy.button("Duplicate", key=f"sq_copy_{qid}"):
            wizard.duplicate_screening_question(qid)
            st.rerun()
        if col_delete.button("Delete", key=f"sq_delete_{qid}"):
            wizard.delete_screening_question(qid)
            st.rerun()


def _render_screening(services: Services, wizard: StudyWizard) -> None:
    section_card("Screening questions", "Applicants answer these before joining the study.")
    questions = wizard.study.screening_questions
    for index, question in enumerate(questions):
        _render_screening_question(wizard, question, index, len(questions))
    _field_error(wizard, "screening_questions")

    col_add, col_generate = st.columns(2)
    if col_add.button("Add question", use_container_width=True):
        wizard.add_screening_question()
        st.rerun()
    if col_generate.button("Generate with AI", use_container_width=True, disabled=services.functions is None):
        with st.spinner("Generating questions..."):
            handle_generate_screening(services, wizard)


def _render_payment(wizard: StudyWizard) -> None:
    study = wizard.study
    section_card("Payment & schedule", "Payments are recorded only; no money is moved.")
    schedules = list(PaymentSchedule)
    current = study.payment_schedule or PaymentSchedule.IMMEDIATE
    study.payment_schedule = st.selectbox(
        "Payment schedule",
        schedules,
        index=schedules.index(current),
        format_func=PAYMENT_SCHEDULE_LABELS.get,
        key=f"schedule_{study.id}",
    )
    study.auto_approve = st.checkbox(
        "Automatically approve qualified applicants", value=study.auto_approve, key=f"auto_approve_{study.id}"
    )


def _render_review(wizard: StudyWizard) -> None:
    section_card("Review & publish", "Check the details below before publishing.")
    for label, value in wizard.review_lines():
        st.markdown(f"**{label}:** {value}")
    if wizard.study.requirements:
        st.markdown("**Requirements:**")
        for requirement in wizard.study.requirements:
            st.markdown(f"- {requirement}")
    if wizard.study_type is StudyType.PAID and wizard.study.screening_questions:
        with st.expander("Preview screening questions"):
            answers: Dict[str, Any] = {}
            for question in wizard.study.screening_questions:
                render_control(
                    describe_screening_question(question), answers, prefix="review", disabled=True
                )


def _render_controls(wizard: StudyWizard) -> None:
    col_previous, col_save, col_next = st.columns(3)
    if col_previous.button("Previous", disabled=wizard.position <= 1 or wizard.busy, use_container_width=True):
        wizard.previous()
        st.rerun()
    if col_save.button("Save draft", disabled=wizard.busy, use_container_width=True):
        handle_save_draft(wizard)
    if wizard.on_last_step:
        if col_next.button("Publish study", type="primary", disabled=wizard.busy, use_container_width=True):
            if handle_publish(wizard):
                switch_to(DASHBOARD_PAGE)
    elif col_next.button("Next", type="primary", disabled=wizard.busy, use_container_width=True):
        if handle_next(wizard):
            st.rerun()


def main() -> None:
    apply_app_theme(page_title="Study wizard", page_icon="🧭")
    page_header("Create a study", "Work through each step, then publish.", icon="🧭")

    session = require_session_or_redirect()
    if session is None:
        return
    services = get_services()

    study_id = get_query_param("study")
    wizard: Optional[StudyWizard] = st.session_state.get(WIZARD_STATE_KEY)
    if wizard is None or (study_id not in (None, "new") and wizard.study.id != study_id):
        try:
            wizard = load_wizard(services, session, study_id)
        except (AuthRequiredError, PersistenceError) as exc:
            st.error(f"Failed to load study: {exc}")
            return
        st.session_state[WIZARD_STATE_KEY] = wizard
    wizard.session = session
    wizard.store = services.studies

    if wizard.published:
        st.success("This study is live and accepting participants.")
        st.page_link(DASHBOARD_PAGE, label="Back to dashboard", icon="📊")
        return

    if wizard.current_step is None:
        _render_type_selection(wizard)
        return

    step_indicator([step.value for step in wizard.steps], wizard.position - 1)
    step = wizard.current_step
    if step is WizardStep.BASIC_INFO:
        _render_basic_info(wizard)
    elif step is WizardStep.SCREENING_QUESTIONS:
        _render_screening(services, wizard)
    elif step is WizardStep.PAYMENT_SCHEDULE:
        _render_payment(wizard)
    else:
        _render_review(wizard)
    _render_controls(wizard)


if __name__ == "__main__":
    main()
