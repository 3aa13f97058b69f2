"""Field declarations, field lookup and the derived HTML field.

Each field declaration knows how to populate its own stored value, so a
fetched document or a block whose fields are declared is walked field by
field: rich text applies its depth cap, relationship fields resolve bare ids.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

from richtree.converters.html import HTML_CONVERTER_FEATURE, convert
from richtree.exceptions import DerivedFieldError, FieldConfigError
from richtree.logger import get_logger

if TYPE_CHECKING:
    from richtree.config import EditorConfig
    from richtree.populate import PopulationWalk

logger = get_logger()


class AfterReadHook(Protocol):
    """Protocol for hooks computing a field's value when a document is read."""

    def __call__(
        self,
        *,
        collection: CollectionConfig,
        field: FieldDefinition,
        sibling_data: Mapping[str, Any],
    ) -> Any:
        """Compute the field's value.

        Args:
            collection: Collection being read
            field: The field this hook belongs to
            sibling_data: Values of the fields next to this one (already populated)

        Returns:
            The field's value
        """
        ...


@dataclass(eq=False)
class FieldDefinition:
    """Base class for field declarations.

    Fields compare by identity so that the same declaration can be located
    in a collection's field tree.
    """

    name: str

    async def populate(self, value: Any, walk: PopulationWalk, depth: int) -> Any:
        """Populate this field's stored value; undeclared shapes are walked generically."""
        return await walk.data(value, depth)


@dataclass(eq=False)
class TextField(FieldDefinition):
    """Plain-value field, optionally computed by after-read hooks."""

    after_read: list[AfterReadHook] = field(default_factory=list[AfterReadHook])
    hidden: bool = False


@dataclass(eq=False)
class RichTextField(FieldDefinition):
    """Rich-text field storing one editor state."""

    editor: EditorConfig | None = None
    max_depth: int | None = None

    @property
    def effective_max_depth(self) -> int | None:
        """The field's own cap, falling back to its editor config's cap."""
        if self.max_depth is not None:
            return self.max_depth
        return self.editor.max_depth if self.editor is not None else None

    async def populate(self, value: Any, walk: PopulationWalk, depth: int) -> Any:
        cap = self.effective_max_depth
        return await walk.data(value, depth if cap is None else min(depth, cap))


@dataclass(eq=False)
class RelationshipField(FieldDefinition):
    """Field storing the bare id (or a list of ids) of documents in ``relation_to``.

    Upload fields are relationship fields pointing at an upload collection.
    """

    relation_to: str

    async def populate(self, value: Any, walk: PopulationWalk, depth: int) -> Any:
        return await walk.relationship(self.relation_to, value, depth)


@dataclass(eq=False)
class GroupField(FieldDefinition):
    """Named container of fields stored as a nested mapping."""

    fields: list[FieldDefinition] = field(default_factory=list[FieldDefinition])

    async def populate(self, value: Any, walk: PopulationWalk, depth: int) -> Any:
        if not isinstance(value, Mapping):
            return await walk.data(value, depth)
        return await walk.fields(self.fields, value, depth)  # type: ignore[arg-type]


@dataclass(eq=False)
class ArrayField(FieldDefinition):
    """Named container of fields stored as a list of rows."""

    fields: list[FieldDefinition] = field(default_factory=list[FieldDefinition])

    async def populate(self, value: Any, walk: PopulationWalk, depth: int) -> Any:
        if not isinstance(value, list):
            return await walk.data(value, depth)
        return await walk.rows(self.fields, value, depth)  # type: ignore[arg-type]


def run_after_read(
    collection: CollectionConfig,
    fields: Sequence[FieldDefinition],
    sibling_data: dict[str, Any],
) -> None:
    """Compute derived field values in place, descending into groups and array rows."""
    for definition in fields:
        if isinstance(definition, TextField):
            for hook in definition.after_read:
                sibling_data[definition.name] = hook(
                    collection=collection, field=definition, sibling_data=sibling_data
                )
        elif isinstance(definition, GroupField):
            group_data = sibling_data.get(definition.name)
            if isinstance(group_data, dict):
                run_after_read(collection, definition.fields, group_data)  # type: ignore[arg-type]
        elif isinstance(definition, ArrayField):
            rows = sibling_data.get(definition.name)
            if isinstance(rows, list):
                for row in rows:  # type: ignore[misc]
                    if isinstance(row, dict):
                        run_after_read(collection, definition.fields, row)  # type: ignore[arg-type]


@dataclass
class CollectionConfig:
    """A collection's field declarations."""

    slug: str
    fields: list[FieldDefinition] = field(default_factory=list[FieldDefinition])

    def get_field(self, name: str) -> FieldDefinition | None:
        """Get a top-level field by name."""
        for candidate in self.fields:
            if candidate.name == name:
                return candidate
        return None

    def apply_after_read(self, document: dict[str, Any]) -> dict[str, Any]:
        """Run every after-read hook of this collection on ``document`` (in place)."""
        run_after_read(self, self.fields, document)
        return document


@dataclass(frozen=True)
class FieldLocation:
    """Where a field sits in its collection: its path and the fields beside it."""

    path: tuple[str, ...]
    sibling_fields: Sequence[FieldDefinition]


def find_field_path_and_sibling_fields(
    fields: Sequence[FieldDefinition],
    target: FieldDefinition,
    path: tuple[str, ...] = (),
) -> FieldLocation | None:
    """Locate ``target`` in a field tree, descending into groups and arrays.

    Returns:
        The target's path and sibling fields, or None if it is not declared here
    """
    for candidate in fields:
        if candidate is target:
            return FieldLocation(path=(*path, candidate.name), sibling_fields=fields)
        if isinstance(candidate, GroupField | ArrayField):
            found = find_field_path_and_sibling_fields(
                candidate.fields, target, (*path, candidate.name)
            )
            if found is not None:
                return found
    return None


class FieldAdapter:
    """Field lookups on behalf of one field of a collection."""

    def __init__(self, collection: CollectionConfig, field_definition: FieldDefinition):
        self.collection = collection
        self.field = field_definition
        location = find_field_path_and_sibling_fields(collection.fields, field_definition)
        if location is None:
            raise FieldConfigError(
                f"Field '{field_definition.name}' is not declared in collection '{collection.slug}'"
            )
        self.location = location

    def locate_sibling_field(self, name: str) -> FieldDefinition | None:
        """Find a field declared next to this one by name."""
        for candidate in self.location.sibling_fields:
            if candidate.name == name:
                return candidate
        return None

    @staticmethod
    def read_raw_value(document: Mapping[str, Any], field_path: str | Sequence[str | int]) -> Any:
        """Read a stored value by path (``"group.field"``, ``"rows.0.field"`` or a sequence).

        Returns:
            The value, or None if any step of the path is absent
        """
        steps = field_path.split(".") if isinstance(field_path, str) else list(field_path)
        current: Any = document
        for step in steps:
            if isinstance(current, Mapping):
                current = current.get(step)  # type: ignore[union-attr]
            elif isinstance(current, list):
                try:
                    current = current[int(step)]
                except (ValueError, IndexError):
                    return None
            else:
                return None
            if current is None:
                return None
        return current


def lexical_html(rich_text_field_name: str, name: str = "lexicalHTML") -> TextField:
    """Declare a hidden text field holding the HTML of a sibling rich-text field.

    The rich-text field must be a SIBLING of this field, and its editor must
    enable the htmlConverter feature.

    Args:
        rich_text_field_name: Name of the sibling rich-text field to convert
        name: Name of the derived field
    """

    def convert_sibling(
        *,
        collection: CollectionConfig,
        field: FieldDefinition,
        sibling_data: Mapping[str, Any],
    ) -> str:
        adapter = FieldAdapter(collection, field)
        source = adapter.locate_sibling_field(rich_text_field_name)
        if not isinstance(source, RichTextField):
            raise DerivedFieldError(
                f"Cannot compute '{field.name}': the referenced rich text field "
                f"'{rich_text_field_name}' was not found next to it"
            )

        value = adapter.read_raw_value(sibling_data, [rich_text_field_name])
        if not value:
            raise DerivedFieldError(
                f"Cannot compute '{field.name}': rich text field "
                f"'{rich_text_field_name}' has no stored value"
            )

        editor = source.editor
        if editor is None:
            raise DerivedFieldError(
                f"Cannot compute '{field.name}': rich text field "
                f"'{rich_text_field_name}' has no editor config"
            )
        if not editor.has_feature(HTML_CONVERTER_FEATURE):
            raise DerivedFieldError(
                f"Cannot compute '{field.name}': rich text field "
                f"'{rich_text_field_name}' does not enable the {HTML_CONVERTER_FEATURE} feature"
            )

        logger.checks(f"Converting '{rich_text_field_name}' to HTML for '{field.name}'")
        return convert(value, editor.converter_set)

    return TextField(name=name, after_read=[convert_sibling], hidden=True)
