"""Sign in or create a researcher account."""

from __future__ import annotations

import logging
from typing import Optional

import streamlit as st

from studykit.app_state import Services, current_session, get_services
from studykit.auth import AuthClient
from studykit.errors import AuthError
from studykit.navigation import DASHBOARD_PAGE, switch_to
from studykit.ui_theme import apply_app_theme, page_header

logger = logging.getLogger(__name__)

MODE_STATE_KEY = "auth_mode"
SIGN_IN = "Sign in"
SIGN_UP = "Create account"


def handle_sign_in(auth: AuthClient, email: str, password: str) -> bool:
    """Sign in and report the outcome; returns ``True`` on success."""

    if not email.strip() or not password:
        st.error("Enter your email and password.")
        return False
    try:
        auth.sign_in(email.strip(), password)
    except AuthError as exc:
        st.error(str(exc))
        return False
    st.success("Successfully signed in!")
    return True


def handle_sign_up(auth: AuthClient, email: str, password: str, name: str) -> bool:
    """Create an account; returns ``True`` when the user is signed in afterwards."""

    if not email.strip() or not password:
        st.error("Enter your email and password.")
        return False
    try:
        session = auth.sign_up(email.strip(), password, name)
    except AuthError as exc:
        st.error(str(exc))
        return False
    if session is None:
        st.success("Successfully signed up! Please check your email for verification.")
        return False
    st.success("Account created.")
    return True


def handle_sign_out(services: Services) -> None:
    try:
        services.auth.sign_out(current_session())
    except AuthError as exc:
        st.error(str(exc))


def _render_signed_in(services: Services) -> None:
    session = current_session()
    user = session.user if session else None
    st.success(f"Signed in as {user.name or user.email}." if user else "Signed in.")
    col_dashboard, col_sign_out = st.columns(2)
    if col_dashboard.button("Open dashboard", type="primary", use_container_width=True):
        switch_to(DASHBOARD_PAGE)
    if col_sign_out.button("Sign out", use_container_width=True):
        handle_sign_out(services)
        st.rerun()


def _render_oauth(auth: AuthClient) -> None:
    url: Optional[str] = auth.oauth_url("google")
    if url:
        st.link_button("Continue with Google", url, use_container_width=True)


def main() -> None:
    apply_app_theme(page_title="Sign in", page_icon="🔑")
    page_header("Welcome", "Sign in to manage your studies.", icon="🔑")

    services = get_services()
    if current_session() is not None:
        _render_signed_in(services)
        return

    mode = st.radio("Mode", [SIGN_IN, SIGN_UP], key=MODE_STATE_KEY, horizontal=True, label_visibility="collapsed")
    with st.form("auth_form"):
        name = st.text_input("Full name") if mode == SIGN_UP else ""
        email = st.text_input("Email")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button(mode, type="primary", use_container_width=True)

    if submitted:
        if mode == SIGN_UP:
            success = handle_sign_up(services.auth, email, password, name)
        else:
            success = handle_sign_in(services.auth, email, password)
        if success:
            switch_to(DASHBOARD_PAGE)

    _render_oauth(services.auth)
    if services.local:
        st.caption("Supabase is not configured; accounts are stored locally.")


if __name__ == "__main__":
    main()
