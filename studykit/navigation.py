"""Mapping between the app's URL paths and its Streamlit pages."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Pattern, Tuple
from urllib.parse import urlencode

import streamlit as st
from streamlit.errors import StreamlitAPIException

logger = logging.getLogger(__name__)

HOME_PAGE = "Home.py"
SIGN_IN_PAGE = "pages/01_Sign_In.py"
DASHBOARD_PAGE = "pages/02_Dashboard.py"
WIZARD_PAGE = "pages/03_Study_Wizard.py"
FORM_BUILDER_PAGE = "pages/04_Form_Builder.py"
RESPOND_PAGE = "pages/05_Respond.py"


@dataclass(frozen=True)
class Route:
    """A resolved path: the page to show plus its query parameters."""

    page: Optional[str]
    params: Dict[str, str] = field(default_factory=dict)
    thank_you: bool = False

    @property
    def not_found(self) -> bool:
        return self.page is None


_ROUTES: List[Tuple[Pattern[str], str, Tuple[str, ...], bool]] = [
    (re.compile(r"^/$"), HOME_PAGE, (), False),
    (re.compile(r"^/auth$"), SIGN_IN_PAGE, (), False),
    (re.compile(r"^/dashboard$"), DASHBOARD_PAGE, (), False),
    (re.compile(r"^/study/([^/]+)$"), WIZARD_PAGE, ("study",), False),
    (re.compile(r"^/study/([^/]+)/form$"), FORM_BUILDER_PAGE, ("study",), False),
    (re.compile(r"^/study/([^/]+)/form/([^/]+)$"), RESPOND_PAGE, ("study", "form"), False),
    (re.compile(r"^/study/([^/]+)/form/([^/]+)/thank-you$"), RESPOND_PAGE, ("study", "form"), True),
]


def resolve_route(path: str) -> Route:
    """Return the page for ``path``; unknown paths resolve to a not-found route."""

    cleaned = "/" + (path or "").strip().strip("/")
    for pattern, page, names, thank_you in _ROUTES:
        match = pattern.match(cleaned)
        if match:
            return Route(page=page, params=dict(zip(names, match.groups())), thank_you=thank_you)
    return Route(page=None)


NAV_PARAMS_STATE_KEY = "nav_params"


def get_query_param(name: str) -> Optional[str]:
    """Return ``name`` from the query string, else from the last :func:`switch_to` call."""

    value = st.query_params.get(name)
    if isinstance(value, list):
        value = value[0] if value else None
    if isinstance(value, str) and value:
        return value
    stored = st.session_state.get(NAV_PARAMS_STATE_KEY, {}).get(name)
    return str(stored) if stored else None


def page_url(page: str, **params: str) -> str:
    """Return a relative link to ``page`` for use in markdown."""

    name = page.rsplit("/", 1)[-1].rsplit(".", 1)[0]
    slug = re.sub(r"^\d+_", "", name)
    query = urlencode(params)
    return f"./{slug}{f'?{query}' if query else ''}"


def switch_to(page: str, **params: str) -> None:
    """Open ``page`` with ``params`` available to it through :func:`get_query_param`."""

    st.session_state[NAV_PARAMS_STATE_KEY] = dict(params)
    if hasattr(st, "switch_page"):
        try:
            st.switch_page(page, query_params=params or None)
        except TypeError:
            st.switch_page(page)
        except StreamlitAPIException:
            logger.warning("Could not open %s", page)
            st.info("Use the navigation menu to open the next page.")
    else:
        st.info("Use the navigation menu to open the next page.")


__all__ = [
    "DASHBOARD_PAGE",
    "FORM_BUILDER_PAGE",
    "HOME_PAGE",
    "NAV_PARAMS_STATE_KEY",
    "RESPOND_PAGE",
    "Route",
    "SIGN_IN_PAGE",
    "WIZARD_PAGE",
    "get_query_param",
    "page_url",
    "resolve_route",
    "switch_to",
]
