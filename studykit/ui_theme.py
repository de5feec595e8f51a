"""Shared look and feel for the Streamlit pages."""

from __future__ import annotations

from html import escape
from typing import Any, Optional

import streamlit as st

from studykit.settings import configure_logging

_THEME_CSS = """
<style>
:root {
    --sk-primary: #0F766E;
    --sk-primary-soft: #CCFBF1;
    --sk-surface: #FFFFFF;
    --sk-border: rgba(15, 118, 110, 0.18);
    --sk-text: #0F172A;
    --sk-muted: #475569;
    --sk-draft: #B45309;
    --sk-active: #047857;
}

[data-testid="stAppViewContainer"] {
    background: linear-gradient(180deg, #F0FDFA 0%, #FFFFFF 60%);
}

.block-container {
    padding-top: 2rem;
    padding-bottom: 3rem;
}

.sk-header {
    display: flex;
    align-items: center;
    gap: 1.25rem;
    padding: 1.5rem 1.75rem;
    background: var(--sk-surface);
    border: 1px solid var(--sk-border);
    border-radius: 1.25rem;
    margin-bottom: 1.5rem;
}

.sk-header__icon {
    font-size: 2.5rem;
    line-height: 1;
}

.sk-header__title {
    margin: 0;
    font-size: 2rem;
    font-weight: 700;
    color: var(--sk-text);
}

.sk-header__subtitle {
    margin: 0.25rem 0 0 0;
    color: var(--sk-muted);
}

.sk-card {
    padding: 1.25rem 1.5rem;
    background: var(--sk-surface);
    border: 1px solid var(--sk-border);
    border-radius: 1rem;
    margin-bottom: 1rem;
}

.sk-card > h3 {
    margin-top: 0;
    font-size: 1.1rem;
}

.sk-card__description {
    color: var(--sk-muted);
    margin-top: -0.25rem;
}

.sk-badge {
    display: inline-block;
    padding: 0.1rem 0.65rem;
    border-radius: 999px;
    font-size: 0.8rem;
    font-weight: 600;
    background: var(--sk-primary-soft);
    color: var(--sk-primary);
}

.sk-badge--draft {
    background: #FEF3C7;
    color: var(--sk-draft);
}

.sk-badge--active {
    background: #D1FAE5;
    color: var(--sk-active);
}

.sk-steps {
    display: flex;
    gap: 0.5rem;
    margin-bottom: 1.25rem;
}

.sk-steps__item {
    flex: 1;
    padding: 0.5rem 0.75rem;
    border-radius: 0.75rem;
    border: 1px solid var(--sk-border);
    color: var(--sk-muted);
    font-size: 0.9rem;
}

.sk-steps__item--current {
    background: var(--sk-primary);
    border-color: var(--sk-primary);
    color: #FFFFFF;
}
</style>
"""


def apply_app_theme(page_title: str, page_icon: Optional[str] = None) -> None:
    """Configure the page and inject the shared CSS."""

    configure_logging()
    st.set_page_config(
        page_title=page_title,
        page_icon=page_icon,
        layout="wide",
        initial_sidebar_state="expanded",
    )
    st.markdown(_THEME_CSS, unsafe_allow_html=True)


def page_header(
    title: str,
    subtitle: Optional[str] = None,
    icon: Optional[str] = None,
    *,
    container: Optional[Any] = None,
) -> None:
    """Render the page title block."""

    icon_markup = f"<span class='sk-header__icon'>{icon}</span>" if icon else ""
    subtitle_markup = f"<p class='sk-header__subtitle'>{escape(subtitle)}</p>" if subtitle else ""
    target = container.markdown if container is not None else st.markdown
    target(
        f"<div class='sk-header'>{icon_markup}<div>"
        f"<h1 class='sk-header__title'>{escape(title)}</h1>{subtitle_markup}</div></div>",
        unsafe_allow_html=True,
    )


def section_card(title: str, description: Optional[str] = None) -> None:
    """Render a card heading that introduces the widgets below it."""

    description_markup = (
        f"<p class='sk-card__description'>{escape(description)}</p>" if description else ""
    )
    st.markdown(
        f"<div class='sk-card'><h3>{escape(title)}</h3>{description_markup}</div>",
        unsafe_allow_html=True,
    )


def status_badge(status: str) -> str:
    """Return badge markup for a study status."""

    modifier = f" sk-badge--{status}" if status in {"draft", "active"} else ""
    return f"<span class='sk-badge{modifier}'>{escape(status.title())}</span>"


def step_indicator(labels, current_index: int) -> None:
    """Render the wizard's step strip, highlighting ``current_index``."""

    items = []
    for index, label in enumerate(labels):
        modifier = " sk-steps__item--current" if index == current_index else ""
        items.append(f"<div class='sk-steps__item{modifier}'>{index + 1}. {escape(label)}</div>")
    st.markdown(f"<div class='sk-steps'>{''.join(items)}</div>", unsafe_allow_html=True)


__all__ = ["apply_app_theme", "page_header", "section_card", "status_badge", "step_indicator"]
