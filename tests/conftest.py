from __future__ import annotations

import itertools
import json
from typing import Any
import uuid

import httpx
import pytest

from couchfluent import operations
from couchfluent.config import get_settings


@pytest.fixture(autouse=True)
def clear_settings_cache() -> None:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def reset_facade(monkeypatch) -> None:
    monkeypatch.setattr(operations, "_couch", None)


class FakeCouchServer:
    """In-memory stand-in for the subset of the CouchDB HTTP API the client uses."""

    def __init__(self) -> None:
        self.dbs: dict[str, dict[str, dict[str, Any]]] = {}
        self.requests: list[httpx.Request] = []
        self._revs = itertools.count(1)

    def _next_rev(self, previous: str | None = None) -> str:
        generation = int(previous.split("-", 1)[0]) + 1 if previous else 1
        return f"{generation}-{next(self._revs):04d}"

    def _store(self, db: dict[str, dict[str, Any]], doc_id: str, body: dict[str, Any]) -> httpx.Response:
        existing = db.get(doc_id)
        if existing is not None and body.get("_rev") != existing["_rev"]:
            return httpx.Response(409, json={"error": "conflict", "reason": "Document update conflict."})
        rev = self._next_rev(existing["_rev"] if existing else None)
        db[doc_id] = {**body, "_id": doc_id, "_rev": rev}
        return httpx.Response(201, json={"ok": True, "id": doc_id, "rev": rev})

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        method = request.method
        parts = request.url.path.strip("/").split("/", 1)
        name = parts[0]

        if name == "_all_dbs" and method == "GET":
            return httpx.Response(200, json=sorted(self.dbs))

        if len(parts) == 1:
            if method == "PUT":
                if name in self.dbs:
                    return httpx.Response(412, json={"error": "file_exists", "reason": "The database could not be created, the file already exists."})
                self.dbs[name] = {}
                return httpx.Response(201, json={"ok": True})
            if name not in self.dbs:
                return httpx.Response(404, json={"error": "not_found", "reason": "Database does not exist."})
            if method == "DELETE":
                del self.dbs[name]
                return httpx.Response(200, json={"ok": True})
            if method == "POST":
                return self._store(self.dbs[name], uuid.uuid4().hex, _json(request))
            return httpx.Response(405, json={"error": "method_not_allowed"})

        db = self.dbs.get(name)
        if db is None:
            return httpx.Response(404, json={"error": "not_found", "reason": "Database does not exist."})

        doc_id = parts[1]
        if doc_id == "_all_docs" and method == "GET":
            rows = [
                {"id": key, "key": key, "value": {"rev": doc["_rev"]}}
                for key, doc in sorted(db.items())
            ]
            return httpx.Response(200, json={"total_rows": len(rows), "offset": 0, "rows": rows})

        if method == "PUT":
            return self._store(db, doc_id, _json(request))

        doc = db.get(doc_id)
        if doc is None:
            return httpx.Response(404, json={"error": "not_found", "reason": "missing"})

        if method == "GET":
            return httpx.Response(200, json=doc)
        if method == "DELETE":
            if request.url.params.get("rev") != doc["_rev"]:
                return httpx.Response(409, json={"error": "conflict", "reason": "Document update conflict."})
            del db[doc_id]
            return httpx.Response(200, json={"ok": True, "id": doc_id, "rev": self._next_rev(doc["_rev"])})

        return httpx.Response(405, json={"error": "method_not_allowed"})


def _json(request: httpx.Request) -> dict[str, Any]:
    return json.loads(request.content or b"{}")


@pytest.fixture
def couch_server() -> FakeCouchServer:
    return FakeCouchServer()


@pytest.fixture
def mock_transport(couch_server: FakeCouchServer) -> httpx.MockTransport:
    return httpx.MockTransport(couch_server)
