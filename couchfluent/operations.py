from __future__ import annotations

"""Fluent operation façade over the async CouchDB transport.

Each intent is one entry point. Intents that need more than a database name
return a small builder; the terminal call (``into``/``from_``/``to``) is the
coroutine that issues the requests:

    await insert([{"name": "jeff"}, {"name": "annie"}]).with_key("name").into("people")
    await get_view("people", "by_name").with_params({"key": "jeff"}).from_("people")
    await delete_doc("jeff").from_("people")

Every name given to an intent goes through the configured prefix except in
``check_db_exists``, which compares names exactly as supplied.
"""

import asyncio
from collections.abc import Mapping, Sequence
from enum import Enum
import logging
from typing import Any

import httpx

from .config import Settings, get_settings
from .couchdb import AsyncCouchDBClient
from .errors import (
    AlreadyInitializedError,
    DeletionAlreadyRanError,
    MissingKeyFieldError,
    MissingRevisionError,
    NotInitializedError,
)
from .models import DesignDocument, design_id
from .names import resolve

logger = logging.getLogger(__name__)

Document = Mapping[str, Any]


def _as_docs(docs: Document | Sequence[Document]) -> list[Document]:
    """Normalize a single document or any sequence of documents to a list."""

    if isinstance(docs, Mapping):
        return [docs]
    return list(docs)


def _as_names(db_names: str | Sequence[str]) -> list[str]:
    """Normalize a single name or any sequence of names to a list."""

    if isinstance(db_names, str):
        return [db_names]
    return list(db_names)


def extract_ids(rows: Sequence[Mapping[str, Any]], field_name: str = "id") -> list[Any]:
    """Collect ``field_name`` from listing or view rows, falling back to ``row["value"]``."""

    return [row.get(field_name) or row["value"][field_name] for row in rows]


class InsertBuilder:
    """Collects the key field for a batch insert; ``into`` writes the batch."""

    def __init__(self, couch: Couch, docs: list[Document]) -> None:
        """Bind the builder to a façade and the normalized batch."""

        self._couch = couch
        self._docs = docs
        self._key_name: str | None = None

    def with_key(self, key_name: str) -> InsertBuilder:
        """Use each document's ``key_name`` field as its document id."""

        self._key_name = key_name
        return self

    def _doc_ids(self) -> list[str | None]:
        if self._key_name is None:
            return [None] * len(self._docs)

        doc_ids: list[str | None] = []
        for index, doc in enumerate(self._docs):
            if self._key_name not in doc:
                raise MissingKeyFieldError(self._key_name, index)
            doc_ids.append(str(doc[self._key_name]))
        return doc_ids

    async def _insert_one(self, db_name: str, doc: Document, doc_id: str | None) -> dict[str, Any]:
        try:
            return await self._couch.client.insert_doc(db_name, doc, doc_id)
        except httpx.HTTPError as exc:
            logger.error("Insert into %s failed: %s", db_name, exc)
            raise

    async def into(self, db_name: str) -> list[dict[str, Any]]:
        """Insert every document concurrently and return the bodies in input order.

        The first failing insert is raised as soon as it fails. The other
        inserts are not cancelled; their outcomes are discarded.
        """

        physical = self._couch.resolve(db_name)
        doc_ids = self._doc_ids()
        bodies = await asyncio.gather(
            *(
                self._insert_one(physical, doc, doc_id)
                for doc, doc_id in zip(self._docs, doc_ids)
            )
        )
        return list(bodies)


class GetBuilder:
    """Holds the document id; ``from_`` fetches it."""

    def __init__(self, couch: Couch, doc_id: str) -> None:
        """Bind the builder to a façade and the id of the document to fetch."""

        self._couch = couch
        self._doc_id = doc_id

    async def from_(self, db_name: str) -> dict[str, Any]:
        """Fetch the document from ``db_name``."""

        return await self._couch.client.get_doc(self._couch.resolve(db_name), self._doc_id)


class ListBuilder:
    """``from_`` fetches the built-in document listing of a database."""

    def __init__(self, couch: Couch) -> None:
        """Bind the builder to a façade."""

        self._couch = couch

    async def from_(self, db_name: str) -> dict[str, Any]:
        """Return the ``_all_docs`` listing of ``db_name``."""

        return await self._couch.client.list_docs(self._couch.resolve(db_name))


class ViewBuilder:
    """Collects optional query parameters; ``from_`` queries the view."""

    def __init__(self, couch: Couch, design_name: str, view_name: str) -> None:
        """Bind the builder to a façade and the design and view to query."""

        self._couch = couch
        self._design_name = design_name
        self._view_name = view_name
        self._params: Mapping[str, Any] | None = None

    def with_params(self, params: Mapping[str, Any] | None) -> ViewBuilder:
        """Forward ``params`` as the view request's query parameters."""

        if params:
            self._params = params
        return self

    async def from_(self, db_name: str) -> dict[str, Any]:
        """Query the view in ``db_name`` with any collected parameters."""

        return await self._couch.client.view(
            self._couch.resolve(db_name),
            self._design_name,
            self._view_name,
            self._params,
        )


class ListFunctionBuilder(ViewBuilder):
    """Runs a design document list function over one of its views."""

    def __init__(self, couch: Couch, design_name: str, list_name: str, view_name: str) -> None:
        """Bind the builder to the design, its list function and the view it iterates."""

        super().__init__(couch, design_name, view_name)
        self._list_name = list_name

    async def from_(self, db_name: str) -> Any:
        """Run the list function in ``db_name``; the body is JSON or text."""

        return await self._couch.client.view_with_list(
            self._couch.resolve(db_name),
            self._design_name,
            self._list_name,
            self._view_name,
            self._params,
        )


class DesignBuilder:
    """Builds the design payload up front; ``to`` stores it."""

    def __init__(self, couch: Couch, design_name: str, view_maps: Mapping[str, Mapping[str, Any]]) -> None:
        """Validate ``view_maps`` into a design document for ``design_name``."""

        self._couch = couch
        self._design_name = design_name
        self.design = DesignDocument.from_view_maps(view_maps)

    async def to(self, db_name: str) -> dict[str, Any]:
        """Store the design document under ``_design/<name>`` in ``db_name``."""

        physical = self._couch.resolve(db_name)
        logger.info("Adding design %s", self._design_name)
        return await self._couch.client.insert_doc(
            physical,
            self.design.payload(),
            design_id(self._design_name),
        )


class DatabaseListing:
    """Server database names, fetched at most once for the lifetime of the object.

    Concurrent callers that arrive before the first fetch completes share the
    same in-flight request.
    """

    def __init__(self, client: AsyncCouchDBClient) -> None:
        """Prepare a listing that fetches from ``client`` on first use."""

        self._client = client
        self._fetch: asyncio.Future[list[str]] | None = None

    async def names(self) -> list[str]:
        """Return the server database names, fetching them on first use."""

        if self._fetch is None:
            self._fetch = asyncio.ensure_future(self._client.list_dbs())
        return await self._fetch

    async def contains(self, db_name: str) -> bool:
        """Return whether ``db_name`` is in the listing, exactly as given."""

        return db_name in await self.names()


class DeletionState(Enum):
    """Steps of a ``DocumentDeletion``."""

    AWAITING_REVISION = "awaiting_revision"
    AWAITING_DESTROY_CONFIRMATION = "awaiting_destroy_confirmation"
    DONE = "done"
    FAILED = "failed"


class DocumentDeletion:
    """Read-then-write delete of the latest revision of one document.

    ``state`` moves from ``AWAITING_REVISION`` to
    ``AWAITING_DESTROY_CONFIRMATION`` only after the revision lookup succeeds,
    and the destroy request always names the revision returned by that lookup.
    On failure ``state`` is ``FAILED`` and ``failed_during`` records the step
    that raised.
    """

    def __init__(self, client: AsyncCouchDBClient, db_name: str, doc_id: str) -> None:
        """Start in ``AWAITING_REVISION`` for ``doc_id`` in the physical ``db_name``."""

        self._client = client
        self.db_name = db_name
        self.doc_id = doc_id
        self.state = DeletionState.AWAITING_REVISION
        self.failed_during: DeletionState | None = None
        self.revision: str | None = None

    async def _fetch_revision(self) -> str:
        rev_info = await self._client.get_doc(self.db_name, self.doc_id, params={"revs_info": True})
        rev = rev_info.get("_rev")
        if not rev:
            raise MissingRevisionError(self.doc_id)
        return rev

    async def run(self) -> dict[str, Any]:
        """Look up the latest revision, then destroy exactly that revision."""

        if self.state is not DeletionState.AWAITING_REVISION:
            raise DeletionAlreadyRanError(self.doc_id, self.state.value)

        try:
            self.revision = await self._fetch_revision()
            self.state = DeletionState.AWAITING_DESTROY_CONFIRMATION
            body = await self._client.destroy_doc(self.db_name, self.doc_id, self.revision)
        except Exception:
            self.failed_during = self.state
            self.state = DeletionState.FAILED
            raise

        self.state = DeletionState.DONE
        return body


class DeleteBuilder:
    """Holds the document id; ``from_`` runs the two-step delete."""

    def __init__(self, couch: Couch, doc_id: str) -> None:
        """Bind the builder to a façade and the id of the document to delete."""

        self._couch = couch
        self._doc_id = doc_id

    async def from_(self, db_name: str) -> dict[str, Any]:
        """Delete the latest revision of the document from ``db_name``."""

        deletion = DocumentDeletion(self._couch.client, self._couch.resolve(db_name), self._doc_id)
        return await deletion.run()


class Couch:
    """Entry points for every supported intent against one CouchDB server."""

    def __init__(self, client: AsyncCouchDBClient, prefix: str | None = None) -> None:
        """Wrap a transport client and the prefix applied to logical database names."""

        self.client = client
        self.prefix = prefix or ""

    async def aclose(self) -> None:
        """Close the underlying HTTP connection pool."""

        await self.client.aclose()

    async def __aenter__(self) -> Couch:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def resolve(self, db_name: str) -> str:
        """Return the physical name for a logical database name."""

        return resolve(db_name, self.prefix)

    async def create(self, db_name: str) -> None:
        """Create a database; raises when it already exists."""

        physical = self.resolve(db_name)
        await self.client.create_db(physical)
        logger.info('Creating db "%s"', physical)

    async def destroy(self, db_name: str) -> None:
        """Delete a database; raises when it does not exist."""

        physical = self.resolve(db_name)
        logger.info('Destroying db "%s"', physical)
        await self.client.destroy_db(physical)

    def insert(self, docs: Document | Sequence[Document]) -> InsertBuilder:
        """Start a batch insert of one document or a sequence of documents."""

        return InsertBuilder(self, _as_docs(docs))

    def get(self, doc_id: str) -> GetBuilder:
        """Start a fetch of one document by id."""

        return GetBuilder(self, doc_id)

    def get_list(self) -> ListBuilder:
        """Start a fetch of a database's ``_all_docs`` listing."""

        return ListBuilder(self)

    def get_view(self, design_name: str, view_name: str) -> ViewBuilder:
        """Start a query of a design document view."""

        return ViewBuilder(self, design_name, view_name)

    def get_list_function(self, design_name: str, list_name: str, view_name: str) -> ListFunctionBuilder:
        """Start a run of a design document list function over a view."""

        return ListFunctionBuilder(self, design_name, list_name, view_name)

    def add_design(self, design_name: str, view_maps: Mapping[str, Mapping[str, Any]]) -> DesignBuilder:
        """Start registration of a design document built from ``view_maps``."""

        return DesignBuilder(self, design_name, view_maps)

    async def check_db_exists(self, db_names: str | Sequence[str]) -> list[bool]:
        """Return, per name and in input order, whether the server has that database.

        Names are compared exactly as given, without the configured prefix.
        The database listing is fetched once per call.
        """

        listing = DatabaseListing(self.client)
        results = await asyncio.gather(*(listing.contains(name) for name in _as_names(db_names)))
        return list(results)

    def delete_doc(self, doc_id: str) -> DeleteBuilder:
        """Start a delete of the latest revision of one document."""

        return DeleteBuilder(self, doc_id)


_couch: Couch | None = None


def init(
    url: str | None = None,
    prefix: str | None = None,
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Couch:
    """Configure the process-wide façade; must run before any intent function.

    A configured façade owns an open connection pool, so ``shutdown()`` must
    run before ``init()`` can be called again.
    """

    global _couch
    if _couch is not None:
        raise AlreadyInitializedError()

    settings = settings or get_settings()
    client = AsyncCouchDBClient(
        url or settings.couchdb_url,
        timeout=settings.couchdb_timeout_seconds,
        transport=transport,
    )
    _couch = Couch(client, settings.couchdb_db_prefix if prefix is None else prefix)
    return _couch


def current() -> Couch:
    """Return the façade configured by ``init``."""

    if _couch is None:
        raise NotInitializedError()
    return _couch


async def shutdown() -> None:
    """Close the process-wide façade's HTTP client and forget it."""

    global _couch
    if _couch is not None:
        couch, _couch = _couch, None
        await couch.aclose()


async def create(db_name: str) -> None:
    """Create a database through the process-wide façade."""

    await current().create(db_name)


async def destroy(db_name: str) -> None:
    """Delete a database through the process-wide façade."""

    await current().destroy(db_name)


def insert(docs: Document | Sequence[Document]) -> InsertBuilder:
    """Start a batch insert through the process-wide façade."""

    return current().insert(docs)


def get(doc_id: str) -> GetBuilder:
    """Start a document fetch through the process-wide façade."""

    return current().get(doc_id)


def get_list() -> ListBuilder:
    """Start an ``_all_docs`` fetch through the process-wide façade."""

    return current().get_list()


def get_view(design_name: str, view_name: str) -> ViewBuilder:
    """Start a view query through the process-wide façade."""

    return current().get_view(design_name, view_name)


def get_list_function(design_name: str, list_name: str, view_name: str) -> ListFunctionBuilder:
    """Start a list function run through the process-wide façade."""

    return current().get_list_function(design_name, list_name, view_name)


def add_design(design_name: str, view_maps: Mapping[str, Mapping[str, Any]]) -> DesignBuilder:
    """Start a design document registration through the process-wide façade."""

    return current().add_design(design_name, view_maps)


async def check_db_exists(db_names: str | Sequence[str]) -> list[bool]:
    """Check database existence through the process-wide façade."""

    return await current().check_db_exists(db_names)


def delete_doc(doc_id: str) -> DeleteBuilder:
    """Start a two-step document delete through the process-wide façade."""

    return current().delete_doc(doc_id)
