"""Depth-limited population of references in editor-state trees.

Population walks a tree depth-first and replaces the ``value`` of every
reference (relationship and upload nodes, internal link targets, and
reference payloads inside block field maps) with either the bare target id
or a hydrated snapshot of the target document.

Depth counts cross-document hops. Following a reference into the fetched
document costs exactly one unit; descending into an editor state nested in
a block of the same document costs nothing. A remaining depth of zero
collapses every reference to its bare id, including references that were
hydrated by an earlier pass.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from typing import TYPE_CHECKING, Any, TypeVar

from richtree import models
from richtree.exceptions import AccessDeniedError, DocumentNotFoundError, ReferenceResolutionError
from richtree.logger import get_logger
from richtree.models import (
    DocumentId,
    EditorState,
    Node,
    ReferencePayload,
    is_editor_state_data,
    is_reference_data,
    target_id_of,
)

if TYPE_CHECKING:
    from richtree.config import EditorConfig
    from richtree.fields import CollectionConfig, FieldDefinition
    from richtree.store import AccessContext, DocumentStore

logger = get_logger()

_T = TypeVar("_T")

PopulationHook = Callable[[Node, "PopulationWalk", int], Awaitable[Node]]
"""Type for per-kind population hooks: (node, walk, remaining_depth) -> new node"""

DEFAULT_DEGRADE_ON: tuple[type[ReferenceResolutionError], ...] = (
    DocumentNotFoundError,
    AccessDeniedError,
)


async def gather_in_order(awaitables: Iterable[Awaitable[_T]]) -> list[_T]:
    """Run awaitables concurrently and return their results in input order.

    The first failure cancels every sibling still running and is re-raised,
    so no partial result escapes. Cancelling the caller cancels all of them.
    """
    tasks = [asyncio.ensure_future(aw) for aw in awaitables]
    if not tasks:
        return []

    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    except asyncio.CancelledError:
        for task in tasks:
            task.cancel()
        raise

    for task in done:
        if not task.cancelled() and task.exception() is not None:
            for other in pending:
                other.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            raise task.exception()  # type: ignore[misc]

    return [task.result() for task in tasks]


def effective_depth(requested_depth: int, field_max_depth: int | None) -> int:
    """Compute the depth budget at a field's root: ``min(requested, field cap)``."""
    if isinstance(requested_depth, bool) or not isinstance(requested_depth, int):
        raise ValueError(f"Depth must be an integer, got {requested_depth!r}")
    if requested_depth < 0:
        raise ValueError(f"Depth must be non-negative, got {requested_depth}")
    if field_max_depth is None:
        return requested_depth
    if field_max_depth < 0:
        raise ValueError(f"Field max depth must be non-negative, got {field_max_depth}")
    return min(requested_depth, field_max_depth)


# ============================================================================
# Built-in population hooks
# ============================================================================


async def populate_reference_node(node: Node, walk: PopulationWalk, depth: int) -> Node:
    """Hook for relationship and upload nodes: resolve the node's own reference.

    Upload nodes may also carry a ``fields`` map, which is walked like a block's.
    """
    ref = node.reference
    if ref is None:
        return node
    new_ref = await walk.reference(ref, depth)
    updates: dict[str, Any] = {"value": new_ref.value}
    if isinstance(node.get("fields"), Mapping):
        updates["fields"] = await walk.data(node.get("fields"), depth)
    return node.replace(**updates)


async def populate_fields_payload(node: Node, walk: PopulationWalk, depth: int) -> Node:
    """Hook for block and link nodes: walk the node's ``fields`` map.

    Nested editor states are populated at the same depth; reference
    payloads (such as an internal link's ``doc``) are resolved. Fields
    declared for the block's ``blockType`` populate themselves, so a bare
    id in a relationship field is resolved too.
    """
    fields = node.get("fields")
    if not isinstance(fields, Mapping):
        return node
    declared = walk.block_fields.get(node.block_type, ()) if node.block_type else ()
    return node.replace(fields=await walk.fields(declared, fields, depth))


DEFAULT_POPULATION_HOOKS: dict[str, PopulationHook] = {
    models.RELATIONSHIP: populate_reference_node,
    models.UPLOAD: populate_reference_node,
    models.LINK: populate_fields_payload,
    models.AUTOLINK: populate_fields_payload,
    models.BLOCK: populate_fields_payload,
}


# ============================================================================
# Walk
# ============================================================================


class PopulationWalk:
    """State of a single populate call.

    Holds the collaborators and an in-flight fetch table so that every site
    referencing the same document shares one fetch. Each branch builds its
    own new subtree; nothing in the input is mutated.
    """

    def __init__(
        self,
        store: DocumentStore,
        hooks: Mapping[str, PopulationHook],
        *,
        access: AccessContext | None = None,
        collections: Mapping[str, CollectionConfig] | None = None,
        block_fields: Mapping[str, Sequence[FieldDefinition]] | None = None,
        degrade_on: tuple[type[ReferenceResolutionError], ...] = DEFAULT_DEGRADE_ON,
    ) -> None:
        self.store = store
        self.hooks = hooks
        self.access = access
        self.collections = collections or {}
        self.block_fields = block_fields or {}
        self.degrade_on = degrade_on
        self._fetches: dict[tuple[str, DocumentId], asyncio.Task[Mapping[str, Any]]] = {}

    async def state(self, state: EditorState, depth: int) -> EditorState:
        root = await self.node(state.root, depth)
        return EditorState(root=root, metadata=dict(state.metadata))

    async def node(self, node: Node, depth: int) -> Node:
        if node.is_container:
            children = await gather_in_order(self.node(child, depth) for child in node.children or ())
            node = node.replace(children=tuple(children))
        hook = self.hooks.get(node.kind)
        if hook is None:
            return node
        logger.checks(f"Population hook for '{node.kind}' at depth {depth}")
        return await hook(node, self, depth)

    async def reference(self, ref: ReferencePayload, depth: int) -> ReferencePayload:
        if depth <= 0:
            return ref.collapse()

        document = await self.fetch(ref.relation_to, ref.target_id)
        if document is None:
            return ref.collapse()

        # Crossing into another document costs one unit of depth
        populated = await self.document(ref.relation_to, document, depth - 1)
        logger.hydrated(ref.relation_to, ref.target_id, depth - 1)
        return ref.hydrate(populated)

    async def document(
        self, collection: str, document: Mapping[str, Any], depth: int
    ) -> dict[str, Any]:
        """Populate the fields of a fetched document at ``depth``.

        Declared fields populate themselves; when the collection is
        configured, its after-read hooks run on the populated snapshot.
        """
        collection_config = self.collections.get(collection)
        if collection_config is None:
            return await self.fields((), document, depth)
        populated = await self.fields(collection_config.fields, document, depth)
        return collection_config.apply_after_read(populated)

    async def fields(
        self, declared: Iterable[FieldDefinition], data: Mapping[str, Any], depth: int
    ) -> dict[str, Any]:
        """Populate a field map; undeclared keys are walked as raw data."""
        by_name = {definition.name: definition for definition in declared}
        keys = list(data)

        def populate_key(key: str) -> Awaitable[Any]:
            definition = by_name.get(key)
            if definition is None:
                return self.data(data[key], depth)
            return definition.populate(data[key], self, depth)

        values = await gather_in_order(populate_key(key) for key in keys)
        return dict(zip(keys, values, strict=True))

    async def rows(
        self, declared: Sequence[FieldDefinition], rows: list[Any], depth: int
    ) -> list[Any]:
        return await gather_in_order(
            self.fields(declared, row, depth) if isinstance(row, Mapping) else self.data(row, depth)
            for row in rows
        )

    async def relationship(self, relation_to: str, value: Any, depth: int) -> Any:
        """Populate a relationship field's stored id (or list of ids) pointing at ``relation_to``.

        Returns:
            The bare id, or the hydrated snapshot when depth remains
        """
        if isinstance(value, list):
            return await gather_in_order(
                self.relationship(relation_to, item, depth)
                for item in value  # type: ignore[misc]
            )
        if is_reference_data(value):
            # Polymorphic relationships store {relationTo, value}
            return await self.data(value, depth)
        if target_id_of(value) is None:
            return value
        ref = await self.reference(ReferencePayload(relation_to=relation_to, value=value), depth)
        return ref.value

    async def data(self, value: Any, depth: int) -> Any:
        """Populate raw data: editor states, reference payloads, mappings and lists."""
        if is_editor_state_data(value):
            state = await self.state(EditorState.from_dict(value), depth)
            return state.to_dict()
        if is_reference_data(value):
            ref = await self.reference(ReferencePayload.from_dict(value), depth)
            return {**value, **ref.to_dict()}
        if isinstance(value, Mapping):
            keys = list(value)  # type: ignore[arg-type]
            values = await gather_in_order(self.data(value[key], depth) for key in keys)  # type: ignore[index]
            return dict(zip(keys, values, strict=True))
        if isinstance(value, list):
            return await gather_in_order(self.data(item, depth) for item in value)  # type: ignore[misc]
        return value

    async def fetch(self, collection: str, doc_id: DocumentId) -> Mapping[str, Any] | None:
        """Fetch a document, or return None if the reference degrades to its id."""
        key = (collection, doc_id)
        task = self._fetches.get(key)
        if task is None:
            task = asyncio.ensure_future(self.store.fetch(collection, doc_id, self.access))
            self._fetches[key] = task
        try:
            return await task
        except self.degrade_on as e:
            logger.degraded(collection, doc_id, e)
            return None

    def close(self) -> None:
        """Cancel fetches still in flight (after a failure or cancellation)."""
        for task in self._fetches.values():
            if not task.done():
                task.cancel()


class PopulationEngine:
    """Populates editor states against a document store.

    One engine is built per field configuration; the population hook
    dispatch table comes from the field's EditorConfig.
    """

    def __init__(
        self,
        store: DocumentStore,
        config: EditorConfig | None = None,
        *,
        collections: Mapping[str, CollectionConfig] | None = None,
        degrade_on: tuple[type[ReferenceResolutionError], ...] = DEFAULT_DEGRADE_ON,
    ) -> None:
        self.store = store
        self.hooks: Mapping[str, PopulationHook] = (
            config.population_hooks if config is not None else DEFAULT_POPULATION_HOOKS
        )
        self.max_depth = config.max_depth if config is not None else None
        self.block_fields = config.block_fields if config is not None else None
        self.collections = collections
        self.degrade_on = degrade_on

    def _walk(self, access: AccessContext | None) -> PopulationWalk:
        return PopulationWalk(
            self.store,
            self.hooks,
            access=access,
            collections=self.collections,
            block_fields=self.block_fields,
            degrade_on=self.degrade_on,
        )

    async def populate(
        self,
        state: EditorState | Mapping[str, Any],
        requested_depth: int,
        field_max_depth: int | None = None,
        *,
        access: AccessContext | None = None,
    ) -> EditorState:
        """Return a populated copy of ``state``.

        Args:
            state: Editor state (model or serialized mapping); never mutated
            requested_depth: Caller's depth, a non-negative integer
            field_max_depth: Cap declared by the field; defaults to the
                editor config's ``max_depth``
            access: Access context forwarded to every fetch

        Raises:
            ValueError: If a depth is negative or not an integer
            StoreError: If the store fails; no partial tree is returned
        """
        if field_max_depth is None:
            field_max_depth = self.max_depth
        depth = effective_depth(requested_depth, field_max_depth)
        if not isinstance(state, EditorState):
            state = EditorState.from_dict(state)

        walk = self._walk(access)
        try:
            return await walk.state(state, depth)
        finally:
            walk.close()

    async def populate_value(
        self, value: Any, depth: int, *, access: AccessContext | None = None
    ) -> Any:
        """Populate arbitrary serialized data (a document, a field value) at ``depth``."""
        depth = effective_depth(depth, None)
        walk = self._walk(access)
        try:
            return await walk.data(value, depth)
        finally:
            walk.close()

    async def populate_field(
        self,
        definition: FieldDefinition,
        value: Any,
        depth: int,
        *,
        access: AccessContext | None = None,
    ) -> Any:
        """Populate one declared field's stored value at ``depth``."""
        depth = effective_depth(depth, None)
        walk = self._walk(access)
        try:
            return await definition.populate(value, walk, depth)
        finally:
            walk.close()


async def populate(  # noqa: PLR0913 - mirrors PopulationEngine options
    state: EditorState | Mapping[str, Any],
    requested_depth: int,
    field_max_depth: int | None = None,
    *,
    store: DocumentStore,
    config: EditorConfig | None = None,
    access: AccessContext | None = None,
    degrade_on: tuple[type[ReferenceResolutionError], ...] = DEFAULT_DEGRADE_ON,
) -> EditorState:
    """Populate an editor state with a one-off engine.

    Effective depth is ``min(requested_depth, field_max_depth)``.
    """
    engine = PopulationEngine(store, config, degrade_on=degrade_on)
    return await engine.populate(state, requested_depth, field_max_depth, access=access)
