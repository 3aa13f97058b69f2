"""Read path: fetch a document, populate its rich text and relationships, derive fields."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from richtree.exceptions import FieldConfigError, ReferenceResolutionError
from richtree.fields import (
    ArrayField,
    CollectionConfig,
    FieldDefinition,
    GroupField,
    RelationshipField,
    RichTextField,
)
from richtree.logger import get_logger
from richtree.models import DocumentId, is_editor_state_data
from richtree.populate import (
    DEFAULT_DEGRADE_ON,
    PopulationEngine,
    effective_depth,
    gather_in_order,
)
from richtree.store import AccessContext, DocumentStore

logger = get_logger()


class DocumentReader:
    """Reads documents the way an API read request does.

    The request's ``depth`` is forwarded verbatim to every rich-text field,
    each of which applies its own cap.
    """

    def __init__(
        self,
        store: DocumentStore,
        collections: Mapping[str, CollectionConfig],
        *,
        degrade_on: tuple[type[ReferenceResolutionError], ...] = DEFAULT_DEGRADE_ON,
    ) -> None:
        self.store = store
        self.collections = collections
        self.degrade_on = degrade_on

    async def read(
        self,
        collection: str,
        doc_id: DocumentId,
        *,
        depth: int,
        access: AccessContext | None = None,
    ) -> dict[str, Any]:
        """Read one document.

        Raises:
            ValueError: If ``depth`` is negative or not an integer
            FieldConfigError: If the collection is not configured
            DocumentNotFoundError, AccessDeniedError: If the document itself is unreadable
            DerivedFieldError: If a derived field cannot be computed
            StoreError: If the store fails
        """
        effective_depth(depth, None)
        collection_config = self.collections.get(collection)
        if collection_config is None:
            raise FieldConfigError(f"Unknown collection '{collection}'")

        logger.checks(f"Reading {collection}/{doc_id} at depth {depth}")
        document = await self.store.fetch(collection, doc_id, access)
        return await self.read_document(collection_config, document, depth=depth, access=access)

    async def read_document(
        self,
        collection: CollectionConfig,
        document: Mapping[str, Any],
        *,
        depth: int,
        access: AccessContext | None = None,
    ) -> dict[str, Any]:
        """Run the read hooks on an already-fetched document."""
        data = await self._populate_fields(collection.fields, document, depth, access)
        return collection.apply_after_read(data)

    async def _populate_fields(
        self,
        fields: Sequence[FieldDefinition],
        data: Mapping[str, Any],
        depth: int,
        access: AccessContext | None,
    ) -> dict[str, Any]:
        result = dict(data)
        present = [f for f in fields if f.name in data]
        values = await gather_in_order(
            self._populate_field(f, data[f.name], depth, access) for f in present
        )
        result.update(zip([f.name for f in present], values, strict=True))
        return result

    async def _populate_field(
        self,
        definition: FieldDefinition,
        value: Any,
        depth: int,
        access: AccessContext | None,
    ) -> Any:
        if isinstance(definition, RichTextField):
            if not is_editor_state_data(value):
                return value
            engine = PopulationEngine(
                self.store,
                definition.editor,
                collections=self.collections,
                degrade_on=self.degrade_on,
            )
            state = await engine.populate(
                value, depth, definition.effective_max_depth, access=access
            )
            return state.to_dict()
        if isinstance(definition, RelationshipField):
            engine = PopulationEngine(
                self.store, collections=self.collections, degrade_on=self.degrade_on
            )
            return await engine.populate_field(definition, value, depth, access=access)
        if isinstance(definition, GroupField) and isinstance(value, Mapping):
            return await self._populate_fields(definition.fields, value, depth, access)  # type: ignore[arg-type]
        if isinstance(definition, ArrayField) and isinstance(value, list):
            return await gather_in_order(
                self._populate_row(definition.fields, row, depth, access)
                for row in value  # type: ignore[misc]
            )
        return value

    async def _populate_row(
        self,
        fields: Sequence[FieldDefinition],
        row: Any,
        depth: int,
        access: AccessContext | None,
    ) -> Any:
        if not isinstance(row, Mapping):
            return row
        return await self._populate_fields(fields, row, depth, access)  # type: ignore[arg-type]
