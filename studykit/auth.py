"""Sign-up, sign-in and session-change notifications.

Pages keep the returned :class:`Session` in Streamlit session state and pass it
explicitly to the wizard and the stores; nothing here reads global state.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional
from urllib.parse import urlencode

import requests

from studykit.errors import AuthError, AuthRequiredError
from studykit.local_backend import LocalTable
from studykit.supabase_backend import REQUEST_TIMEOUT, SupabaseClient

logger = logging.getLogger(__name__)

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"


@dataclass(frozen=True)
class User:
    id: str
    email: str
    name: Optional[str] = None


@dataclass(frozen=True)
class Session:
    user: User
    access_token: str = ""
    refresh_token: str = ""


AuthListener = Callable[[str, Optional[Session]], None]


def require_user(session: Optional[Session]) -> User:
    """Return the signed-in user or raise :class:`AuthRequiredError`."""

    if session is None or not session.user.id:
        raise AuthRequiredError()
    return session.user


class AuthClient:
    """Common listener bookkeeping for the auth providers."""

    def __init__(self) -> None:
        self._listeners: List[AuthListener] = []

    def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        """Register ``listener`` and return a function that removes it."""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, event: str, session: Optional[Session]) -> None:
        for listener in list(self._listeners):
            listener(event, session)

    def sign_up(self, email: str, password: str, name: str) -> Optional[Session]:
        raise NotImplementedError

    def sign_in(self, email: str, password: str) -> Session:
        raise NotImplementedError

    def sign_out(self, session: Optional[Session]) -> None:
        raise NotImplementedError

    def oauth_url(self, provider: str) -> Optional[str]:
        """Return the URL that starts an OAuth sign-in, if supported."""

        return None


def _user_from_payload(payload: Mapping[str, Any]) -> User:
    metadata = payload.get("user_metadata") or {}
    return User(
        id=str(payload.get("id") or ""),
        email=str(payload.get("email") or ""),
        name=metadata.get("name") if isinstance(metadata, Mapping) else None,
    )


def _error_message(response: requests.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    for key in ("error_description", "msg", "message", "error"):
        value = payload.get(key) if isinstance(payload, Mapping) else None
        if value:
            return str(value)
    return f"HTTP {response.status_code}"


class SupabaseAuth(AuthClient):
    """Supabase GoTrue endpoints."""

    def __init__(self, client: SupabaseClient, redirect_url: Optional[str] = None) -> None:
        super().__init__()
        self.client = client
        self.redirect_url = redirect_url

    def _post(self, path: str, payload: Dict[str, Any], *, token: Optional[str] = None) -> Dict[str, Any]:
        headers = self.client.headers()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            response = requests.post(
                self.client.endpoint(f"auth/v1/{path}"),
                headers=headers,
                json=payload,
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as exc:
            logger.exception("Auth request to %s failed", path)
            raise AuthError(f"Could not reach the sign-in service: {exc}") from exc
        if not response.ok:
            raise AuthError(_error_message(response))
        return response.json() if response.content else {}

    def _session(self, payload: Mapping[str, Any]) -> Session:
        return Session(
            user=_user_from_payload(payload.get("user") or {}),
            access_token=str(payload.get("access_token") or ""),
            refresh_token=str(payload.get("refresh_token") or ""),
        )

    def sign_up(self, email: str, password: str, name: str) -> Optional[Session]:
        """Create an account; returns ``None`` when email confirmation is pending."""

        payload = self._post(
            "signup", {"email": email, "password": password, "data": {"name": name}}
        )
        if not payload.get("access_token"):
            return None
        session = self._session(payload)
        self._notify(SIGNED_IN, session)
        return session

    def sign_in(self, email: str, password: str) -> Session:
        payload = self._post("token?grant_type=password", {"email": email, "password": password})
        session = self._session(payload)
        self._notify(SIGNED_IN, session)
        return session

    def sign_out(self, session: Optional[Session]) -> None:
        if session is not None and session.access_token:
            self._post("logout", {}, token=session.access_token)
        self._notify(SIGNED_OUT, None)

    def oauth_url(self, provider: str) -> Optional[str]:
        params = {"provider": provider}
        if self.redirect_url:
            params["redirect_to"] = self.redirect_url
        return f"{self.client.endpoint('auth/v1/authorize')}?{urlencode(params)}"


def _hash_password(password: str, salt: str) -> str:
    return hashlib.sha256(f"{salt}:{password}".encode("utf-8")).hexdigest()


class LocalAuth(AuthClient):
    """Accounts kept in a local ``users`` table, for running without Supabase."""

    def __init__(self, directory: Path) -> None:
        super().__init__()
        self.users = LocalTable(directory, "users")

    def sign_up(self, email: str, password: str, name: str) -> Optional[Session]:
        email = email.strip().lower()
        if not email or not password:
            raise AuthError("Email and password are required.")
        if self.users.select({"email": email}):
            raise AuthError("User already registered")
        salt = uuid.uuid4().hex
        row = self.users.insert(
            {
                "email": email,
                "name": name.strip() or None,
                "salt": salt,
                "password_hash": _hash_password(password, salt),
            }
        )
        session = Session(user=User(id=row["id"], email=email, name=row.get("name")))
        self._notify(SIGNED_IN, session)
        return session

    def sign_in(self, email: str, password: str) -> Session:
        rows = self.users.select({"email": email.strip().lower()})
        if not rows:
            raise AuthError("Invalid login credentials")
        row = rows[0]
        digest = _hash_password(password, str(row.get("salt") or ""))
        if not hmac.compare_digest(digest, str(row.get("password_hash") or "")):
            raise AuthError("Invalid login credentials")
        session = Session(user=User(id=row["id"], email=row["email"], name=row.get("name")))
        self._notify(SIGNED_IN, session)
        return session

    def sign_out(self, session: Optional[Session]) -> None:
        self._notify(SIGNED_OUT, None)


__all__ = [
    "AuthClient",
    "LocalAuth",
    "SIGNED_IN",
    "SIGNED_OUT",
    "Session",
    "SupabaseAuth",
    "User",
    "require_user",
]
