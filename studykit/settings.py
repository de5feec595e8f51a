"""Configuration read from Streamlit secrets."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Dict

import streamlit as st

DEFAULT_STORAGE_BUCKET = "study-data"
DEFAULT_DATA_DIR = "data"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _secrets_dict(name: str) -> Dict[str, Any]:
    """Return a mapping stored under ``name`` in Streamlit secrets."""

    try:
        value = st.secrets.get(name, {})  # type: ignore[arg-type]
    except FileNotFoundError:
        return {}
    if isinstance(value, Mapping):
        return dict(value)
    return {}


def _secret(name: str, default: Any = None) -> Any:
    """Return a flat secret value or ``default`` when secrets are missing."""

    try:
        return st.secrets.get(name, default)
    except FileNotFoundError:
        return default


def supabase_settings() -> Dict[str, Any]:
    """Return Supabase configuration, or an empty dict when it is incomplete."""

    secrets = _secrets_dict("supabase")
    url = secrets.get("url")
    anon_key = secrets.get("anon_key")
    bucket = secrets.get("storage_bucket", DEFAULT_STORAGE_BUCKET)
    redirect_url = secrets.get("redirect_url")

    if not (url and anon_key):
        url = _secret("supabase_url", url)
        anon_key = _secret("supabase_anon_key", anon_key)
        redirect_url = _secret("supabase_redirect_url", redirect_url)

    if url and anon_key:
        return {
            "url": str(url).rstrip("/"),
            "anon_key": str(anon_key),
            "storage_bucket": bucket or DEFAULT_STORAGE_BUCKET,
            "redirect_url": redirect_url,
        }
    return {}


def data_directory() -> Path:
    """Return the directory used by the local fallback backend."""

    return Path(str(_secret("data_dir", DEFAULT_DATA_DIR)))


def configure_logging(level: int = logging.INFO) -> None:
    """Send log records to stderr; later calls are no-ops once handlers exist."""

    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
