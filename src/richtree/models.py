"""Data models for richtree: the serialized editor-state tree."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

# Node kinds understood by the built-in converters and population hooks
ROOT = "root"
PARAGRAPH = "paragraph"
TEXT = "text"
LINEBREAK = "linebreak"
TAB = "tab"
LINK = "link"
AUTOLINK = "autolink"
LIST = "list"
LISTITEM = "listitem"
HEADING = "heading"
QUOTE = "quote"
HORIZONTAL_RULE = "horizontalrule"
RELATIONSHIP = "relationship"
UPLOAD = "upload"
BLOCK = "block"

REFERENCE_KINDS = frozenset({RELATIONSHIP, UPLOAD})

DocumentId = str | int


def is_document_id(value: Any) -> bool:
    """Check whether a value can be used as a bare document id."""
    # bool is an int subclass but never a valid id
    return isinstance(value, str | int) and not isinstance(value, bool)


def target_id_of(value: Any) -> DocumentId | None:
    """Extract the target id from a reference value (bare id or hydrated snapshot)."""
    if is_document_id(value):
        return value  # type: ignore[no-any-return]
    if isinstance(value, Mapping):
        doc_id = value.get("id")  # type: ignore[union-attr]
        if is_document_id(doc_id):
            return doc_id  # type: ignore[no-any-return]
    return None


def is_editor_state_data(value: Any) -> bool:
    """Check whether raw data has the serialized editor-state shape ``{"root": {...}}``."""
    if not isinstance(value, Mapping):
        return False
    root = value.get("root")  # type: ignore[union-attr]
    return isinstance(root, Mapping) and isinstance(root.get("type"), str)  # type: ignore[union-attr]


def is_reference_data(value: Any) -> bool:
    """Check whether raw data is a reference payload ``{"relationTo": ..., "value": ...}``."""
    if not isinstance(value, Mapping):
        return False
    return (
        isinstance(value.get("relationTo"), str)  # type: ignore[union-attr]
        and "value" in value
        and target_id_of(value["value"]) is not None  # type: ignore[index]
    )


@dataclass(frozen=True)
class ReferencePayload:
    """A pointer to another document, optionally carrying its hydrated snapshot.

    ``value`` is either the bare id or a mapping of the target document's
    fields. A hydrated snapshot always carries ``id`` equal to the target id.
    """

    relation_to: str
    value: DocumentId | Mapping[str, Any]

    @property
    def target_id(self) -> DocumentId:
        doc_id = target_id_of(self.value)
        if doc_id is None:
            raise ValueError(f"Reference to '{self.relation_to}' has no target id")
        return doc_id

    @property
    def is_hydrated(self) -> bool:
        return isinstance(self.value, Mapping)

    @property
    def document(self) -> Mapping[str, Any] | None:
        """The hydrated snapshot, or None for id-only references."""
        return self.value if isinstance(self.value, Mapping) else None

    def collapse(self) -> ReferencePayload:
        """Return an id-only copy of this reference."""
        return ReferencePayload(relation_to=self.relation_to, value=self.target_id)

    def hydrate(self, document: Mapping[str, Any]) -> ReferencePayload:
        """Return a copy whose value is ``document``, pinned to this reference's id."""
        snapshot = dict(document)
        snapshot["id"] = self.target_id
        return ReferencePayload(relation_to=self.relation_to, value=snapshot)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ReferencePayload:
        return cls(relation_to=data["relationTo"], value=data["value"])

    def to_dict(self) -> dict[str, Any]:
        return {"relationTo": self.relation_to, "value": self.value}


@dataclass(frozen=True)
class Node:
    """One node of an editor-state tree.

    ``kind`` is the serialized ``type`` tag. Container nodes carry an ordered
    tuple of children; leaves carry ``None``. All other serialized keys are kept
    in ``attributes`` so that unknown payloads round-trip unchanged.
    """

    kind: str
    children: tuple[Node, ...] | None = None
    attributes: Mapping[str, Any] = field(default_factory=dict[str, Any])

    @property
    def is_container(self) -> bool:
        return self.children is not None

    def get(self, key: str, default: Any = None) -> Any:
        """Get a kind-specific payload field."""
        return self.attributes.get(key, default)

    @property
    def reference(self) -> ReferencePayload | None:
        """The reference payload carried directly by this node, if any."""
        if is_reference_data(self.attributes):
            return ReferencePayload.from_dict(self.attributes)
        return None

    @property
    def block_type(self) -> str | None:
        """The ``blockType`` of a block node (read from its field map)."""
        fields = self.attributes.get("fields")
        if isinstance(fields, Mapping) and isinstance(fields.get("blockType"), str):  # type: ignore[union-attr]
            return fields["blockType"]  # type: ignore[index,no-any-return]
        block_type = self.attributes.get("blockType")
        return block_type if isinstance(block_type, str) else None

    def replace(
        self, *, children: tuple[Node, ...] | None = None, **attributes: Any
    ) -> Node:
        """Return a copy with new children and/or updated payload fields."""
        return Node(
            kind=self.kind,
            children=self.children if children is None else children,
            attributes={**self.attributes, **attributes},
        )

    def walk(self) -> Iterator[Node]:
        """Iterate over this node and all its descendants, depth-first."""
        yield self
        for child in self.children or ():
            yield from child.walk()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Node:
        attributes = {k: v for k, v in data.items() if k not in ("type", "children")}
        raw_children = data.get("children")
        children: tuple[Node, ...] | None = None
        if isinstance(raw_children, list):
            children = tuple(cls.from_dict(child) for child in raw_children)  # type: ignore[arg-type]
        return cls(kind=data["type"], children=children, attributes=attributes)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"type": self.kind, **self.attributes}
        if self.children is not None:
            result["children"] = [child.to_dict() for child in self.children]
        return result


@dataclass(frozen=True)
class EditorState:
    """A serialized rich-text document: root node plus metadata."""

    root: Node
    metadata: Mapping[str, Any] = field(default_factory=dict[str, Any])

    def walk(self) -> Iterator[Node]:
        return self.root.walk()

    def references(self) -> list[ReferencePayload]:
        """All reference payloads carried directly by nodes of this tree."""
        return [ref for node in self.walk() if (ref := node.reference) is not None]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> EditorState:
        if not is_editor_state_data(data):
            raise ValueError("Editor state must be a mapping with a 'root' node")
        metadata = {k: v for k, v in data.items() if k != "root"}
        return cls(root=Node.from_dict(data["root"]), metadata=metadata)

    def to_dict(self) -> dict[str, Any]:
        return {"root": self.root.to_dict(), **self.metadata}
