"""Thin ``requests`` wrappers around the Supabase REST, storage and functions APIs."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import quote

import requests

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10


@dataclass
class SupabaseClient:
    """Connection details shared by every Supabase API wrapper."""

    url: str
    anon_key: str
    access_token: Optional[str] = None

    def headers(self, extra: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        """Build request headers, authenticating as the user when possible."""

        headers = {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {self.access_token or self.anon_key}",
            "Content-Type": "application/json",
        }
        if extra:
            headers.update(extra)
        return headers

    def endpoint(self, path: str) -> str:
        return f"{self.url.rstrip('/')}/{path.lstrip('/')}"

    def table(self, name: str) -> "SupabaseTable":
        return SupabaseTable(client=self, name=name)

    def storage(self, bucket: str) -> "SupabaseStorage":
        return SupabaseStorage(client=self, bucket=bucket)

    def functions(self) -> "SupabaseFunctions":
        return SupabaseFunctions(client=self)


def _eq_filters(filters: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    return {key: f"eq.{value}" for key, value in (filters or {}).items()}


def parse_content_range(value: Optional[str]) -> int:
    """Return the total from a PostgREST ``Content-Range`` header such as ``0-9/42``."""

    if not value or "/" not in value:
        return 0
    total = value.rsplit("/", 1)[1]
    return int(total) if total.isdigit() else 0


@dataclass
class SupabaseTable:
    """PostgREST access to a single table with equality filters."""

    client: SupabaseClient
    name: str

    def _url(self) -> str:
        return self.client.endpoint(f"rest/v1/{self.name}")

    def insert(self, row: Mapping[str, Any]) -> Dict[str, Any]:
        """Insert ``row`` and return it with generated columns filled in."""

        response = requests.post(
            self._url(),
            headers=self.client.headers({"Prefer": "return=representation"}),
            json=dict(row),
            timeout=REQUEST_TIMEOUT,
        )
        response.raise_for_status()
        payload = response.json()
        if isinstance(payload, list):
            if not payload:
                raise ValueError(f"Insert into {self.name} returned no rows.")
            return payload[0]
        return payload

    def update(self, filters: Mapping[str, Any], values: Mapping[str, Any]) -> List[Dict[str, Any]]:
        """Update the rows matching ``filters`` and return them."""

        response = requests.patch(
            self._url(),
            headers=self.client.headers({"Prefer": "return=representation"}),
            params=_eq_filters(filters),
            json=dict(values),
            timeout=REQUEST_TIMEOUT,
        )
        response.raise_for_status()
        return response.json()

    def select(
        self,
        filters: Optional[Mapping[str, Any]] = None,
        *,
        order: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Return rows matching ``filters`` ordered by ``order``."""

        params: Dict[str, Any] = {"select": "*", **_eq_filters(filters)}
        if order:
            params["order"] = f"{order}.{'desc' if descending else 'asc'}"
        if limit is not None:
            params["limit"] = limit
        response = requests.get(
            self._url(),
            headers=self.client.headers(),
            params=params,
            timeout=REQUEST_TIMEOUT,
        )
        response.raise_for_status()
        return response.json()

    def delete(self, filters: Mapping[str, Any]) -> None:
        response = requests.delete(
            self._url(),
            headers=self.client.headers(),
            params=_eq_filters(filters),
            timeout=REQUEST_TIMEOUT,
        )
        response.raise_for_status()

    def count(self, filters: Optional[Mapping[str, Any]] = None) -> int:
        """Return the number of rows matching ``filters`` without fetching them."""

        response = requests.head(
            self._url(),
            headers=self.client.headers({"Prefer": "count=exact"}),
            params={"select": "*", **_eq_filters(filters)},
            timeout=REQUEST_TIMEOUT,
        )
        response.raise_for_status()
        return parse_content_range(response.headers.get("Content-Range"))


@dataclass
class SupabaseStorage:
    """Object storage access for one bucket."""

    client: SupabaseClient
    bucket: str

    def _object_url(self, path: str, *, authenticated: bool = False) -> str:
        prefix = "storage/v1/object/authenticated" if authenticated else "storage/v1/object"
        return self.client.endpoint(f"{prefix}/{self.bucket}/{quote(path)}")

    def upload(self, path: str, data: bytes, content_type: str = "text/csv") -> None:
        """Upload ``data`` to ``path``; existing objects are not overwritten."""

        response = requests.post(
            self._object_url(path),
            headers=self.client.headers(
                {"Content-Type": content_type, "x-upsert": "false", "cache-control": "3600"}
            ),
            data=data,
            timeout=REQUEST_TIMEOUT,
        )
        response.raise_for_status()

    def download(self, path: str) -> bytes:
        response = requests.get(
            self._object_url(path, authenticated=True),
            headers=self.client.headers(),
            timeout=REQUEST_TIMEOUT,
        )
        response.raise_for_status()
        return response.content

    def remove(self, path: str) -> None:
        response = requests.delete(
            self.client.endpoint(f"storage/v1/object/{self.bucket}"),
            headers=self.client.headers(),
            json={"prefixes": [path]},
            timeout=REQUEST_TIMEOUT,
        )
        response.raise_for_status()


@dataclass
class SupabaseFunctions:
    """Invoker for edge functions."""

    client: SupabaseClient

    def invoke(self, name: str, body: Mapping[str, Any]) -> Tuple[int, Any]:
        """Call function ``name`` and return ``(status_code, decoded_body)``.

        The body is ``None`` when the response is not JSON. Interpreting the
        status is left to the caller because the functions report errors in
        the body as well as through the status code.
        """

        response = requests.post(
            self.client.endpoint(f"functions/v1/{name}"),
            headers=self.client.headers(),
            json=dict(body),
            timeout=REQUEST_TIMEOUT * 6,
        )
        try:
            payload = response.json()
        except ValueError:
            logger.warning("Function %s returned a non-JSON body (status %s)", name, response.status_code)
            payload = None
        return response.status_code, payload


__all__ = [
    "REQUEST_TIMEOUT",
    "SupabaseClient",
    "SupabaseFunctions",
    "SupabaseStorage",
    "SupabaseTable",
    "parse_content_range",
]
