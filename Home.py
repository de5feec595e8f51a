"""Streamlit landing page for researchers and participants."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

import pandas as pd
import streamlit as st

from studykit.app_state import (
    ROLE_PARTICIPANT,
    ROLE_RESEARCHER,
    ROLE_STATE_KEY,
    current_role,
    current_session,
    get_services,
)
from studykit.errors import PersistenceError
from studykit.navigation import (
    DASHBOARD_PAGE,
    HOME_PAGE,
    SIGN_IN_PAGE,
    get_query_param,
    resolve_route,
    switch_to,
)
from studykit.study import LOCATION_LABELS, Study
from studykit.ui_theme import apply_app_theme, page_header, section_card

logger = logging.getLogger(__name__)

STUDY_TABLE_COLUMNS = ("Title", "Category", "Compensation", "Duration (min)", "Location", "Deadline")


def study_rows(studies: List[Study]) -> List[Dict[str, Any]]:
    """Return table rows describing ``studies`` for participants."""

    rows: List[Dict[str, Any]] = []
    for study in studies:
        rows.append(
            {
                "Title": study.title,
                "Category": study.category or "-",
                "Compensation": f"${study.compensation:g}" if study.compensation else "Free",
                "Duration (min)": study.duration or None,
                "Location": LOCATION_LABELS[study.location],
                "Deadline": study.deadline or "-",
            }
        )
    return rows


def _follow_path_param() -> bool:
    """Open the page named by a ``?path=`` link; returns ``True`` when handled."""

    path = get_query_param("path")
    if not path:
        return False
    route = resolve_route(path)
    if route.not_found:
        st.error("404 · Page not found")
        st.caption(f"No page matches `{path}`.")
        return True
    if route.page == HOME_PAGE:
        return False
    params = dict(route.params)
    if route.thank_you:
        params["thank_you"] = "1"
    switch_to(route.page, **params)
    return True


def _render_researcher_home() -> None:
    section_card(
        "Run your research",
        "Create paid or free studies, attach forms, and collect responses in one place.",
    )
    if current_session() is None:
        st.page_link(SIGN_IN_PAGE, label="Sign in to get started", icon="🔑")
        return
    if st.button("Go to dashboard", type="primary"):
        switch_to(DASHBOARD_PAGE)


def _render_participant_home() -> None:
    section_card("Browse studies", "Studies that are currently recruiting participants.")
    try:
        studies = get_services().studies.list_active()
    except PersistenceError as exc:
        st.error(str(exc))
        return

    if not studies:
        st.info("No studies are recruiting right now. Check back soon.")
        return

    table_df = pd.DataFrame(study_rows(studies), columns=list(STUDY_TABLE_COLUMNS))
    st.dataframe(table_df, hide_index=True, use_container_width=True)

    for study in studies:
        with st.expander(study.title):
            st.write(study.description or "No description provided.")
            if study.requirements:
                st.markdown("**Requirements**")
                for requirement in study.requirements:
                    st.markdown(f"- {requirement}")


def main() -> None:
    apply_app_theme(page_title="Study Marketplace", page_icon="🔬")
    if _follow_path_param():
        return

    page_header(
        "Study Marketplace",
        "Connecting researchers with the participants who help them learn.",
        icon="🔬",
    )

    roles = [ROLE_RESEARCHER, ROLE_PARTICIPANT]
    role = st.radio(
        "I am a",
        roles,
        index=roles.index(current_role()),
        format_func=str.title,
        horizontal=True,
    )
    st.session_state[ROLE_STATE_KEY] = role

    if role == ROLE_RESEARCHER:
        _render_researcher_home()
    else:
        _render_participant_home()


if __name__ == "__main__":
    main()
