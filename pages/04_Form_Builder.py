"""Build a form for a study, optionally starting from generated questions."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import streamlit as st

from studykit.app_state import FORM_BUILDER_STATE_KEY, Services, get_services, require_session_or_redirect
from studykit.auth import Session
from studykit.errors import AuthRequiredError, GenerationError, PersistenceError, ValidationError
from studykit.forms import FormBuilder
from studykit.navigation import DASHBOARD_PAGE, RESPOND_PAGE, get_query_param, page_url
from studykit.questions import (
    FORM_OPTION_TYPES,
    FORM_PLACEHOLDER_TYPES,
    FORM_QUESTION_TYPE_LABELS,
    FormQuestionType,
    Question,
    parse_options_text,
)
from studykit.renderer import describe_question, render_control
from studykit.ui_theme import apply_app_theme, page_header, section_card

logger = logging.getLogger(__name__)

PREVIEW_ANSWERS_STATE_KEY = "form_preview_answers"


def question_fields(prefix: str, question: Optional[Question] = None) -> Dict[str, Any]:
    """Draw the inputs shared by the add and edit forms and return their values."""

    types = list(FormQuestionType)
    current_type = question.type if question is not None and question.type in types else FormQuestionType.TEXT
    question_type = st.selectbox(
        "Question type",
        types,
        index=types.index(current_type),
        format_func=FORM_QUESTION_TYPE_LABELS.get,
        key=f"{prefix}_type",
    )
    fields: Dict[str, Any] = {
        "type": question_type,
        "label": st.text_input("Question label", value=question.label if question else "", key=f"{prefix}_label"),
        "placeholder": None,
        "options": (),
        "min": None,
        "max": None,
        "step": None,
    }
    if question_type in FORM_PLACEHOLDER_TYPES:
        placeholder = st.text_input(
            "Placeholder",
            value=(question.placeholder or "") if question else "",
            key=f"{prefix}_placeholder",
        )
        fields["placeholder"] = placeholder.strip() or None
    if question_type in FORM_OPTION_TYPES:
        options_text = st.text_input(
            "Options (comma separated)",
            value=", ".join(question.options) if question else "",
            key=f"{prefix}_options",
        )
        fields["options"] = parse_options_text(options_text)
    if question_type is FormQuestionType.SLIDER:
        col_min, col_max, col_step = st.columns(3)
        fields["min"] = col_min.number_input(
            "Min", value=float(question.min if question and question.min is not None else 0), key=f"{prefix}_min"
        )
        fields["max"] = col_max.number_input(
            "Max", value=float(question.max if question and question.max is not None else 100), key=f"{prefix}_max"
        )
        fields["step"] = col_step.number_input(
            "Step",
            min_value=0.01,
            value=float(question.step if question and question.step is not None else 1),
            key=f"{prefix}_step",
        )
    fields["required"] = st.checkbox(
        "Required", value=question.required if question else False, key=f"{prefix}_required"
    )
    return fields


def handle_generate(services: Services, builder: FormBuilder) -> bool:
    """Replace the builder's questions with generated ones."""

    if services.functions is None:
        st.error("Question generation needs Supabase to be configured.")
        return False
    try:
        questions = builder.generate(services.functions)
    except ValidationError as exc:
        for message in exc.errors.values():
            st.error(message)
        return False
    except GenerationError as exc:
        st.error(str(exc) or "Failed to generate form")
        return False
    st.success(f"Generated {len(questions)} questions!")
    return True


def handle_save(services: Services, session: Optional[Session], builder: FormBuilder) -> bool:
    try:
        form = builder.save(services.forms, session)
    except ValidationError as exc:
        for message in exc.errors.values():
            st.error(message)
        return False
    except (AuthRequiredError, PersistenceError) as exc:
        st.error(str(exc))
        return False
    st.success(f"Form '{form.title}' saved.")
    return True


def _render_generation(services: Services, builder: FormBuilder) -> None:
    section_card("Describe your study", "Let AI draft questions from a title and description.")
    builder.title = st.text_input("Form title", value=builder.title, key="builder_title")
    builder.description = st.text_area("Description", value=builder.description, key="builder_description")
    builder.question_count = st.text_input(
        "Number of questions", value=builder.question_count, key="builder_count"
    )
    if st.button("Generate questions", disabled=services.functions is None):
        if builder.questions:
            st.caption("Generated questions replace the current list.")
        with st.spinner("Generating questions..."):
            handle_generate(services, builder)


def _render_question_list(builder: FormBuilder) -> None:
    section_card("Questions", "Reorder with the arrows; edit inside each item.")
    total = len(builder.questions)
    if not total:
        st.caption("No questions yet.")
    for index, question in enumerate(builder.questions):
        label = question.label or "(untitled)"
        type_label = FORM_QUESTION_TYPE_LABELS.get(question.type, str(question.type))
        with st.expander(f"{index + 1}. {label} · {type_label}"):
            with st.form(f"edit_{question.id}"):
                fields = question_fields(f"edit_{question.id}", question)
                saved = st.form_submit_button("Save changes")
            if saved:
                builder.update_question(question.id, **fields)
                st.rerun()
            col_up, col_down, col_delete = st.columns(3)
            if col_up.button("Move up", key=f"up_{question.id}", disabled=index == 0):
                builder.shift_question(question.id, -1)
                st.rerun()
            if col_down.button("Move down", key=f"down_{question.id}", disabled=index == total - 1):
                builder.shift_question(question.id, 1)
                st.rerun()
            if col_delete.button("Delete", key=f"delete_{question.id}"):
                builder.delete_question(question.id)
                st.rerun()

    with st.expander("Add question", expanded=not total):
        with st.form("add_question", clear_on_submit=True):
            fields = question_fields("add")
            added = st.form_submit_button("Add question")
        if added:
            question_type = fields.pop("type")
            label = fields.pop("label")
            builder.add_question(question_type, label, **fields)
            st.rerun()


def _render_preview(builder: FormBuilder) -> None:
    section_card(builder.title or "Untitled form", builder.description or None)
    answers = st.session_state.setdefault(PREVIEW_ANSWERS_STATE_KEY, {})
    for question in builder.questions:
        render_control(describe_question(question), answers, prefix="preview")


def main() -> None:
    apply_app_theme(page_title="Form builder", page_icon="📝")
    page_header("Form builder", "Create the questions participants will answer.", icon="📝")

    session = require_session_or_redirect()
    if session is None:
        return
    services = get_services()

    study_id = get_query_param("study")
    if not study_id:
        st.error("No study selected.")
        st.page_link(DASHBOARD_PAGE, label="Back to dashboard", icon="📊")
        return

    builder: Optional[FormBuilder] = st.session_state.get(FORM_BUILDER_STATE_KEY)
    if builder is None or builder.study_id != study_id:
        builder = FormBuilder(study_id=study_id)
        st.session_state[FORM_BUILDER_STATE_KEY] = builder

    if builder.saved_form is not None:
        link = page_url(RESPOND_PAGE, study=study_id, form=builder.saved_form.id)
        st.success(f"Form saved. Share the [public link]({link}) with participants.")
        if st.button("Build another form"):
            st.session_state.pop(FORM_BUILDER_STATE_KEY, None)
            st.rerun()
        st.page_link(DASHBOARD_PAGE, label="Back to dashboard", icon="📊")
        return

    build_tab, preview_tab = st.tabs(["Build", "Preview"])
    with build_tab:
        _render_generation(services, builder)
        _render_question_list(builder)
        if st.button("Save form", type="primary"):
            if handle_save(services, session, builder):
                st.rerun()
    with preview_tab:
        _render_preview(builder)


if __name__ == "__main__":
    main()
