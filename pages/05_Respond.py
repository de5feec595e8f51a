"""Public page where participants fill in a study's form."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import streamlit as st

from studykit.app_state import Services, get_services
from studykit.errors import PersistenceError
from studykit.navigation import HOME_PAGE, get_query_param
from studykit.renderer import answer_is_missing, describe_questions, render_control, validate_answers
from studykit.stores import Form
from studykit.ui_theme import apply_app_theme, page_header

logger = logging.getLogger(__name__)

SUBMITTED_STATE_KEY = "respond_submitted_form"


def participant_errors(name: str, email: str) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    if answer_is_missing(name):
        errors["participant_name"] = "Name is required"
    if answer_is_missing(email) or "@" not in email:
        errors["participant_email"] = "A valid email is required"
    return errors


def handle_submit(
    services: Services,
    form: Form,
    answers: Dict[str, Any],
    name: str,
    email: str,
) -> bool:
    """Validate and store a response; returns ``True`` when it was saved."""

    errors = participant_errors(name, email)
    errors.update(validate_answers(describe_questions(form.questions), answers))
    if errors:
        for message in errors.values():
            st.error(message)
        return False
    try:
        services.responses.submit(form, answers, participant_name=name, participant_email=email)
    except PersistenceError as exc:
        st.error(f"Failed to submit your response: {exc}")
        return False
    logger.info("Stored response for form %s", form.id)
    return True


def render_thank_you() -> None:
    page_header("Thank you!", "Your response has been recorded.", icon="🎉")
    st.write("The research team appreciates your time.")
    st.page_link(HOME_PAGE, label="Back to home", icon="🏠")


def _load_form(services: Services, form_id: str, study_id: Optional[str]) -> Optional[Form]:
    try:
        form = services.forms.get(form_id)
    except PersistenceError as exc:
        st.error(str(exc))
        return None
    if form is None or (study_id and form.study_id != study_id):
        st.error("404 · Form not found")
        return None
    return form


def main() -> None:
    apply_app_theme(page_title="Study form", page_icon="📝")

    form_id = get_query_param("form")
    study_id = get_query_param("study")
    if get_query_param("thank_you") or (form_id and st.session_state.get(SUBMITTED_STATE_KEY) == form_id):
        render_thank_you()
        return
    if not form_id:
        st.error("404 · Form not found")
        return

    services = get_services()
    form = _load_form(services, form_id, study_id)
    if form is None:
        return

    page_header(form.title, form.description or None, icon="📝")
    answers: Dict[str, Any] = {}
    with st.form("respond_form"):
        name = st.text_input("Name *")
        email = st.text_input("Email *")
        for spec in describe_questions(form.questions):
            render_control(spec, answers, prefix=form.id)
        submitted = st.form_submit_button("Submit", type="primary")

    if submitted and handle_submit(services, form, answers, name, email):
        st.session_state[SUBMITTED_STATE_KEY] = form.id
        st.rerun()


if __name__ == "__main__":
    main()
