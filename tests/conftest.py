"""Shared fixtures for the studykit tests."""

from __future__ import annotations

import importlib.util
import sys
from pathlib import Path
from typing import Any, Dict, List, Mapping

import pytest
import streamlit as st

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from studykit.auth import Session, User  # noqa: E402
from studykit.local_backend import LocalTable  # noqa: E402
from studykit.stores import StudyStore  # noqa: E402


def load_page(file_name: str):
    """Import a module from ``pages/`` whose file name is not a valid identifier."""

    path = REPO_ROOT / "pages" / file_name
    spec = importlib.util.spec_from_file_location(f"page_{path.stem.lower()}", path)
    if spec is None or spec.loader is None:  # pragma: no cover - defensive
        raise RuntimeError(f"Could not load {file_name} for testing.")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


class FailingTable:
    """Table double whose every call raises like an unreachable service."""

    def __init__(self, exc: Exception) -> None:
        self.exc = exc
        self.calls: List[str] = []

    def _fail(self, name: str):
        self.calls.append(name)
        raise self.exc

    def insert(self, row: Mapping[str, Any]) -> Dict[str, Any]:
        return self._fail("insert")

    def update(self, filters, values):
        return self._fail("update")

    def select(self, filters=None, *, order=None, descending=False, limit=None):
        return self._fail("select")

    def delete(self, filters):
        return self._fail("delete")

    def count(self, filters=None) -> int:
        return self._fail("count")


@pytest.fixture
def session() -> Session:
    return Session(user=User(id="researcher-1", email="ada@example.com", name="Ada"), access_token="token")


@pytest.fixture
def studies_table(tmp_path) -> LocalTable:
    return LocalTable(tmp_path, "studies", timestamp_fields=("created_at", "updated_at"))


@pytest.fixture
def study_store(studies_table) -> StudyStore:
    return StudyStore(studies_table)


@pytest.fixture
def captured_messages(monkeypatch) -> Dict[str, List[str]]:
    """Record ``st.error``/``st.success``/``st.toast`` calls instead of rendering them."""

    messages: Dict[str, List[str]] = {"error": [], "success": [], "toast": []}
    for name in messages:
        monkeypatch.setattr(st, name, lambda message, *args, _name=name, **kwargs: messages[_name].append(message))
    return messages


@pytest.fixture
def session_state(monkeypatch) -> Dict[str, Any]:
    """Replace Streamlit session state and query params with plain dicts."""

    state: Dict[str, Any] = {}
    monkeypatch.setattr(st, "session_state", state)
    monkeypatch.setattr(st, "query_params", {})
    return state
