"""Session and backend wiring shared by the pages."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import streamlit as st

from studykit.auth import AuthClient, LocalAuth, Session, SupabaseAuth
from studykit.local_backend import LocalBlobStore, LocalTable
from studykit.navigation import SIGN_IN_PAGE
from studykit.settings import data_directory, supabase_settings
from studykit.stores import (
    FORMS_TABLE,
    RESPONSES_TABLE,
    STUDIES_TABLE,
    UPLOADS_TABLE,
    FormStore,
    ResponseStore,
    StudyStore,
    UploadStore,
)
from studykit.supabase_backend import SupabaseClient

logger = logging.getLogger(__name__)

SESSION_STATE_KEY = "auth_session"
WIZARD_STATE_KEY = "study_wizard"
FORM_BUILDER_STATE_KEY = "form_builder"
ROLE_STATE_KEY = "user_role"
ROLE_RESEARCHER = "researcher"
ROLE_PARTICIPANT = "participant"


@dataclass
class Services:
    """The stores and auth client for one backend, bound to the current session."""

    auth: AuthClient
    studies: StudyStore
    forms: FormStore
    responses: ResponseStore
    uploads: UploadStore
    functions: Optional[Any] = None
    local: bool = False


def current_session() -> Optional[Session]:
    session = st.session_state.get(SESSION_STATE_KEY)
    return session if isinstance(session, Session) else None


def store_session(event: str, session: Optional[Session]) -> None:
    """Auth listener that keeps the signed-in session in Streamlit state."""

    logger.info("Auth event %s", event)
    if session is None:
        st.session_state.pop(SESSION_STATE_KEY, None)
    else:
        st.session_state[SESSION_STATE_KEY] = session


def build_services(
    settings: Optional[Dict[str, Any]] = None,
    session: Optional[Session] = None,
) -> Services:
    """Return Supabase-backed services, or local JSON ones when Supabase is not configured."""

    config = supabase_settings() if settings is None else settings
    if config:
        client = SupabaseClient(
            url=config["url"],
            anon_key=config["anon_key"],
            access_token=session.access_token if session and session.access_token else None,
        )
        return Services(
            auth=SupabaseAuth(client, config.get("redirect_url")),
            studies=StudyStore(client.table(STUDIES_TABLE)),
            forms=FormStore(client.table(FORMS_TABLE)),
            responses=ResponseStore(client.table(RESPONSES_TABLE)),
            uploads=UploadStore(
                client.table(UPLOADS_TABLE), client.storage(config["storage_bucket"])
            ),
            functions=client.functions(),
        )

    directory = data_directory()
    return Services(
        auth=LocalAuth(directory),
        studies=StudyStore(
            LocalTable(directory, STUDIES_TABLE, timestamp_fields=("created_at", "updated_at"))
        ),
        forms=FormStore(LocalTable(directory, FORMS_TABLE)),
        responses=ResponseStore(LocalTable(directory, RESPONSES_TABLE, timestamp_fields=())),
        uploads=UploadStore(
            LocalTable(directory, UPLOADS_TABLE, timestamp_fields=()),
            LocalBlobStore(directory / "uploads"),
        ),
        local=True,
    )


def get_services() -> Services:
    """Return services for the current session with the session listener attached."""

    services = build_services(session=current_session())
    services.auth.subscribe(store_session)
    return services


def current_role() -> str:
    return st.session_state.get(ROLE_STATE_KEY, ROLE_RESEARCHER)


def require_session_or_redirect() -> Optional[Session]:
    """Return the session, or show a sign-in prompt and return ``None``."""

    session = current_session()
    if session is None:
        st.warning("You must be signed in to continue.")
        st.page_link(SIGN_IN_PAGE, label="Sign in", icon="🔑")
    return session


__all__ = [
    "ROLE_PARTICIPANT",
    "ROLE_RESEARCHER",
    "ROLE_STATE_KEY",
    "SESSION_STATE_KEY",
    "FORM_BUILDER_STATE_KEY",
    "WIZARD_STATE_KEY",
    "Services",
    "build_services",
    "current_role",
    "current_session",
    "get_services",
    "require_session_or_redirect",
    "store_session",
]
