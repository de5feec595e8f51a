"""Researcher dashboard: studies, response counts, forms and uploaded data."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import pandas as pd
import streamlit as st

from studykit.app_state import WIZARD_STATE_KEY, Services, get_services, require_session_or_redirect
from studykit.auth import Session
from studykit.errors import AuthRequiredError, PersistenceError, ValidationError
from studykit.navigation import FORM_BUILDER_PAGE, RESPOND_PAGE, WIZARD_PAGE, page_url, switch_to
from studykit.study import Study, StudyStatus
from studykit.ui_theme import apply_app_theme, page_header, section_card

logger = logging.getLogger(__name__)

SELECTED_STUDY_STATE_KEY = "dashboard_selected_study"
NEW_STUDY_PARAM = "new"
TABLE_COLUMNS = ("Title", "Status", "Participants needed", "Compensation", "Responses", "Created")


def dashboard_stats(studies: List[Study]) -> Dict[str, int]:
    """Return the totals shown above the study table."""

    return {
        "total_studies": len(studies),
        "active_studies": sum(1 for study in studies if study.status is StudyStatus.ACTIVE),
        "draft_studies": sum(1 for study in studies if study.status is StudyStatus.DRAFT),
        "participants_needed": sum(study.participants_needed for study in studies),
    }


def study_table(studies: List[Study], response_counts: Dict[str, int]) -> pd.DataFrame:
    rows: List[Dict[str, Any]] = []
    for study in studies:
        rows.append(
            {
                "Title": study.title,
                "Status": study.status.value.title(),
                "Participants needed": study.participants_needed,
                "Compensation": study.compensation,
                "Responses": response_counts.get(study.id, 0),
                "Created": study.created_at[:10],
            }
        )
    return pd.DataFrame(rows, columns=list(TABLE_COLUMNS))


def uploads_table(uploads: List[Dict[str, Any]]) -> pd.DataFrame:
    frame = pd.DataFrame(
        uploads, columns=["file_name", "row_count", "file_size", "description", "upload_date"]
    )
    frame["file_size"] = (frame["file_size"].fillna(0) / 1024).round(2)
    return frame.rename(
        columns={
            "file_name": "File",
            "row_count": "Rows",
            "file_size": "Size (KB)",
            "description": "Description",
            "upload_date": "Uploaded",
        }
    )


def load_response_counts(services: Services, studies: List[Study]) -> Dict[str, int]:
    """Return response counts per study id; a failing count is shown as zero."""

    counts: Dict[str, int] = {}
    for study in studies:
        try:
            counts[study.id] = services.responses.count_for_study(study.id)
        except PersistenceError:
            counts[study.id] = 0
    return counts


def handle_upload(
    services: Services,
    session: Optional[Session],
    study_id: str,
    uploaded_file: Any,
    description: str,
) -> bool:
    """Upload a CSV file for ``study_id`` and report the outcome."""

    if uploaded_file is None:
        st.error("Please select a file to upload")
        return False
    try:
        record = services.uploads.upload_csv(
            session, study_id, uploaded_file.name, uploaded_file.getvalue(), description
        )
    except ValidationError as exc:
        for message in exc.errors.values():
            st.error(message)
        return False
    except (AuthRequiredError, PersistenceError) as exc:
        st.error(str(exc))
        return False
    st.success(f"Uploaded {record.get('file_name')} ({record.get('row_count', 0)} rows).")
    return True


def handle_delete_upload(services: Services, upload: Dict[str, Any]) -> bool:
    try:
        services.uploads.delete(upload)
    except PersistenceError as exc:
        st.error(str(exc))
        return False
    st.toast("File deleted")
    return True


def _render_forms(services: Services, study: Study) -> None:
    try:
        forms = services.forms.list_for_study(study.id)
    except PersistenceError as exc:
        st.error(str(exc))
        return
    if not forms:
        st.caption("No forms attached yet.")
        return
    for form in forms:
        link = page_url(RESPOND_PAGE, study=study.id, form=form.id)
        st.markdown(f"- **{form.title}** · {len(form.questions)} questions · [public link]({link})")


def _render_uploads(services: Services, session: Optional[Session], study: Study) -> None:
    with st.form(f"upload_{study.id}", clear_on_submit=True):
        uploaded_file = st.file_uploader("CSV file", type=["csv"])
        description = st.text_input("Description (optional)")
        st.caption("Maximum file size: 10MB. Only CSV files are accepted.")
        submitted = st.form_submit_button("Upload")
    if submitted:
        handle_upload(services, session, study.id, uploaded_file, description)

    try:
        uploads = services.uploads.list_for_study(study.id)
    except PersistenceError as exc:
        st.error(str(exc))
        return
    if not uploads:
        st.caption("No data uploaded yet.")
        return

    st.dataframe(uploads_table(uploads), hide_index=True, use_container_width=True)
    for upload in uploads:
        col_name, col_download, col_delete = st.columns([3, 1, 1])
        col_name.write(upload.get("file_name"))
        if col_download.button("Prepare download", key=f"prepare_{upload['id']}"):
            try:
                data = services.uploads.download(upload)
            except PersistenceError as exc:
                st.error(str(exc))
            else:
                col_download.download_button(
                    "Download",
                    data=data,
                    file_name=str(upload.get("file_name") or "data.csv"),
                    mime="text/csv",
                    key=f"download_{upload['id']}",
                )
        if col_delete.button("Delete", key=f"delete_{upload['id']}"):
            if handle_delete_upload(services, upload):
                st.rerun()


def _render_study_detail(services: Services, session: Optional[Session], study: Study) -> None:
    section_card(study.title, study.description or None)
    col_edit, col_form = st.columns(2)
    if col_edit.button("Edit study", use_container_width=True):
        st.session_state.pop(WIZARD_STATE_KEY, None)
        switch_to(WIZARD_PAGE, study=study.id)
    if col_form.button("Attach form", use_container_width=True):
        switch_to(FORM_BUILDER_PAGE, study=study.id)

    forms_tab, data_tab = st.tabs(["Forms", "Study data"])
    with forms_tab:
        _render_forms(services, study)
    with data_tab:
        _render_uploads(services, session, study)


def main() -> None:
    apply_app_theme(page_title="Dashboard", page_icon="📊")
    page_header("Research dashboard", "Manage your studies and collected data.", icon="📊")

    session = require_session_or_redirect()
    if session is None:
        return
    services = get_services()

    if st.button("Create study", type="primary"):
        st.session_state.pop(WIZARD_STATE_KEY, None)
        switch_to(WIZARD_PAGE, study=NEW_STUDY_PARAM)

    try:
        studies = services.studies.list_for_researcher(session)
    except (AuthRequiredError, PersistenceError) as exc:
        st.error(str(exc))
        return

    stats = dashboard_stats(studies)
    col_total, col_active, col_draft, col_participants = st.columns(4)
    col_total.metric("Total studies", stats["total_studies"])
    col_active.metric("Active", stats["active_studies"])
    col_draft.metric("Drafts", stats["draft_studies"])
    col_participants.metric("Participants needed", stats["participants_needed"])

    if not studies:
        st.info("No studies yet. Create your first study to start recruiting.")
        return

    counts = load_response_counts(services, studies)
    st.dataframe(study_table(studies, counts), hide_index=True, use_container_width=True)

    by_id = {study.id: study for study in studies}
    selected_id = st.selectbox(
        "Study",
        list(by_id),
        format_func=lambda study_id: by_id[study_id].title,
        key=SELECTED_STUDY_STATE_KEY,
    )
    if selected_id:
        _render_study_detail(services, session, by_id[selected_id])


if __name__ == "__main__":
    main()
