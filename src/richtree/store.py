"""Document store interface and an in-memory implementation."""

from __future__ import annotations

import copy
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from richtree.exceptions import AccessDeniedError, DocumentNotFoundError, ValidationError
from richtree.logger import get_logger
from richtree.models import DocumentId, is_document_id

logger = get_logger()


@dataclass(frozen=True)
class AccessContext:
    """Who is reading, forwarded verbatim to every fetch.

    ``override_access`` skips access checks entirely (trusted local reads).
    """

    user: Any = None
    override_access: bool = False


ReadAccessFunc = Callable[[AccessContext | None, Mapping[str, Any]], bool]
"""Type for per-collection read access checks: (access, document) -> allowed"""


class DocumentStore(Protocol):
    """Protocol for the document store collaborator.

    ``fetch`` returns the document's fields (a mapping carrying ``id``).
    Single unresolvable references raise DocumentNotFoundError or
    AccessDeniedError; transport or database failures raise StoreError.
    """

    async def fetch(
        self, collection: str, doc_id: DocumentId, access: AccessContext | None = None
    ) -> Mapping[str, Any]:
        """Fetch one document by id, filtered by access."""
        ...


class InMemoryDocumentStore:
    """Document store backed by plain dictionaries.

    Used by the CLI and tests. Documents are deep-copied on the way in and
    out so callers can never mutate stored state.
    """

    def __init__(
        self,
        documents: Mapping[str, Iterable[Mapping[str, Any]]] | None = None,
        *,
        read_access: Mapping[str, ReadAccessFunc] | None = None,
    ) -> None:
        self._collections: dict[str, dict[DocumentId, dict[str, Any]]] = {}
        self._read_access = dict(read_access or {})
        self.fetch_count = 0
        for collection, docs in (documents or {}).items():
            for doc in docs:
                self.add(collection, doc)

    def add(self, collection: str, document: Mapping[str, Any]) -> None:
        """Add or replace a document; it must carry an ``id``."""
        doc_id = document.get("id")
        if not is_document_id(doc_id):
            raise ValidationError(f"Document in collection '{collection}' has no valid 'id'")
        self._collections.setdefault(collection, {})[doc_id] = copy.deepcopy(dict(document))  # type: ignore[index]

    def set_read_access(self, collection: str, check: ReadAccessFunc) -> None:
        self._read_access[collection] = check

    @property
    def collections(self) -> list[str]:
        return sorted(self._collections)

    def get(self, collection: str, doc_id: DocumentId) -> dict[str, Any] | None:
        """Get a stored document without access checks (for inspection)."""
        doc = self._collections.get(collection, {}).get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def fetch(
        self, collection: str, doc_id: DocumentId, access: AccessContext | None = None
    ) -> Mapping[str, Any]:
        """Fetch one document by id, filtered by the collection's read access."""
        self.fetch_count += 1
        doc = self._collections.get(collection, {}).get(doc_id)
        if doc is None and isinstance(doc_id, str) and doc_id.isdigit():
            # JSON/YAML stores may key numeric ids either way
            doc = self._collections.get(collection, {}).get(int(doc_id))
        if doc is None:
            raise DocumentNotFoundError(collection, doc_id)

        check = self._read_access.get(collection)
        if check is not None and not (access is not None and access.override_access):
            if not check(access, doc):
                raise AccessDeniedError(collection, doc_id)

        logger.debug(f"Fetched {collection}/{doc_id}")
        return copy.deepcopy(doc)
