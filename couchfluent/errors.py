"""Errors raised by the access layer itself.

Transport failures are not wrapped: they surface as the ``httpx`` exceptions
raised by the underlying client.
"""


class CouchFluentError(RuntimeError):
    """Base class for failures originating in this package."""


class NotInitializedError(CouchFluentError):
    """Raised when an operation runs before ``init()`` configured a server."""

    def __init__(self) -> None:
        super().__init__("couchfluent is not initialized; call couchfluent.operations.init() first")


class MissingKeyFieldError(CouchFluentError):
    """Raised when a batch insert names a key field a document does not carry."""

    def __init__(self, key_name: str, index: int) -> None:
        """Record which field was expected and at which batch position."""

        super().__init__(f"Document at index {index} has no '{key_name}' field to use as its id")
        self.key_name = key_name
        self.index = index


class MissingRevisionError(CouchFluentError):
    """Raised when a revision lookup returns a document without ``_rev``."""

    def __init__(self, doc_id: str) -> None:
        super().__init__(f"Document {doc_id} is missing _rev and cannot be deleted")
        self.doc_id = doc_id


class AlreadyInitializedError(CouchFluentError):
    """Raised when ``init()`` runs while a façade is still configured."""

    def __init__(self) -> None:
        super().__init__("couchfluent is already initialized; await couchfluent.operations.shutdown() first")


class DeletionAlreadyRanError(CouchFluentError):
    """Raised when a ``DocumentDeletion`` is run a second time."""

    def __init__(self, doc_id: str, state: str) -> None:
        """Record the document and the state the earlier run left behind."""

        super().__init__(f"Deletion of {doc_id} already ran (state={state})")
        self.doc_id = doc_id
        self.state = state
