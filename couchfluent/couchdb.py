from __future__ import annotations

"""Asynchronous CouchDB transport used by the operation façade."""

from collections.abc import Mapping
import json
import logging
from typing import Any
from urllib.parse import quote

import httpx

from .models import DESIGN_PREFIX

logger = logging.getLogger(__name__)

# View query parameters CouchDB expects as JSON values rather than plain strings.
JSON_QUERY_PARAMS = frozenset({"key", "keys", "startkey", "endkey", "start_key", "end_key"})


def encode_query_params(params: Mapping[str, Any] | None) -> dict[str, Any] | None:
    """JSON-encode key-like view parameters, leaving the rest to ``httpx``."""

    if params is None:
        return None
    return {
        name: json.dumps(value) if name in JSON_QUERY_PARAMS else value
        for name, value in params.items()
    }


def db_path(db_name: str) -> str:
    """Return the URL path segment for a physical database name."""

    return quote(db_name, safe="")


def doc_path(doc_id: str) -> str:
    """Return the URL path for a document id, keeping the design prefix readable."""

    if doc_id.startswith(DESIGN_PREFIX):
        return DESIGN_PREFIX + quote(doc_id[len(DESIGN_PREFIX):], safe="")
    return quote(doc_id, safe="")


class AsyncCouchDBClient:
    """Thin async wrapper around the CouchDB HTTP API primitives."""

    def __init__(
        self,
        url: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize a persistent async HTTP client rooted at the server URL."""

        self.url = url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.url,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP connection pool."""

        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        json_body: Any = None,
    ) -> Any:
        response = await self._client.request(method, path, params=params, json=json_body)
        logger.debug("%s %s %s", method, path, response.status_code)
        if response.status_code >= 400:
            logger.debug("  body: %s", response.text)
        response.raise_for_status()
        if response.headers.get("content-type", "").startswith("application/json"):
            return response.json()
        return response.text

    async def list_dbs(self) -> list[str]:
        """Return the names of every database on the server."""

        return await self._request("GET", "/_all_dbs")

    async def create_db(self, db_name: str) -> dict[str, Any]:
        """Create a database; 412 when it already exists."""

        return await self._request("PUT", f"/{db_path(db_name)}")

    async def destroy_db(self, db_name: str) -> dict[str, Any]:
        """Delete a database; 404 when it does not exist."""

        return await self._request("DELETE", f"/{db_path(db_name)}")

    async def get_doc(
        self,
        db_name: str,
        doc_id: str,
        params: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Fetch a single document by id."""

        return await self._request("GET", f"/{db_path(db_name)}/{doc_path(doc_id)}", params=params)

    async def insert_doc(
        self,
        db_name: str,
        doc: Mapping[str, Any],
        doc_id: str | None = None,
    ) -> dict[str, Any]:
        """Write a document, under ``doc_id`` when given or a server-assigned id otherwise."""

        if doc_id is None:
            return await self._request("POST", f"/{db_path(db_name)}", json_body=dict(doc))
        return await self._request(
            "PUT",
            f"/{db_path(db_name)}/{doc_path(doc_id)}",
            json_body=dict(doc),
        )

    async def destroy_doc(self, db_name: str, doc_id: str, rev: str) -> dict[str, Any]:
        """Delete the exact revision ``rev`` of a document."""

        return await self._request(
            "DELETE",
            f"/{db_path(db_name)}/{doc_path(doc_id)}",
            params={"rev": rev},
        )

    async def list_docs(self, db_name: str) -> dict[str, Any]:
        """Return the built-in ``_all_docs`` listing of a database."""

        return await self._request("GET", f"/{db_path(db_name)}/_all_docs")

    async def view(
        self,
        db_name: str,
        design_name: str,
        view_name: str,
        params: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Query a view of a design document."""

        return await self._request(
            "GET",
            f"/{db_path(db_name)}/{doc_path(DESIGN_PREFIX + design_name)}/_view/{quote(view_name, safe='')}",
            params=encode_query_params(params),
        )

    async def view_with_list(
        self,
        db_name: str,
        design_name: str,
        list_name: str,
        view_name: str,
        params: Mapping[str, Any] | None = None,
    ) -> Any:
        """Run a list function over a view; the body is JSON or text depending on the function."""

        return await self._request(
            "GET",
            f"/{db_path(db_name)}/{doc_path(DESIGN_PREFIX + design_name)}"
            f"/_list/{quote(list_name, safe='')}/{quote(view_name, safe='')}",
            params=encode_query_params(params),
        )
