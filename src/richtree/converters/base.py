"""Base abstractions for HTML conversion."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from richtree.logger import get_logger
from richtree.models import EditorState, Node, is_editor_state_data

logger = get_logger()

RenderChildren = Callable[[], list[str]]
"""Type for the children callback: renders the current node's children, in order."""


class ConverterFunc(Protocol):
    """Protocol for node converter functions.

    A converter renders one node to an HTML fragment. Container converters
    call ``render_children()`` to get their children's fragments and join
    them by their own rule.
    """

    def __call__(self, node: Node, ctx: ConverterContext, render_children: RenderChildren) -> str:
        """Render a node.

        Args:
            node: The node to render
            ctx: Conversion context (converter set, parent node)
            render_children: Callback rendering this node's children in order

        Returns:
            HTML fragment
        """
        ...


class BlockRenderFunc(Protocol):
    """Protocol for block renderers, dispatched by ``blockType``."""

    def __call__(self, fields: Mapping[str, Any], node: Node, ctx: ConverterContext) -> str: ...


@dataclass(frozen=True)
class HTMLConverter:
    """Registration entry mapping one or more node kinds to a converter."""

    node_types: tuple[str, ...]
    converter: ConverterFunc

    def __post_init__(self) -> None:
        # Accept any iterable of kinds, including a single string
        if isinstance(self.node_types, str):
            object.__setattr__(self, "node_types", (self.node_types,))
        else:
            object.__setattr__(self, "node_types", tuple(self.node_types))


@dataclass(frozen=True)
class BlockRenderer:
    """Registration entry for the renderer of one block type."""

    slug: str
    render: BlockRenderFunc


@dataclass(frozen=True)
class ConverterSet:
    """Dispatch table from node kind to converter, built once per field.

    Build it with from_converters(), which folds the ordered converter list
    so that a later entry wins for any kind it shares with an earlier one.
    """

    table: Mapping[str, ConverterFunc] = field(default_factory=dict[str, ConverterFunc])
    blocks: Mapping[str, BlockRenderer] = field(default_factory=dict[str, BlockRenderer])

    @classmethod
    def from_converters(
        cls,
        converters: Iterable[HTMLConverter],
        blocks: Iterable[BlockRenderer] = (),
    ) -> ConverterSet:
        table: dict[str, ConverterFunc] = {}
        for entry in converters:
            for kind in entry.node_types:
                table[kind] = entry.converter
        block_table = {renderer.slug: renderer for renderer in blocks}
        return cls(table=table, blocks=block_table)

    @property
    def kinds(self) -> set[str]:
        return set(self.table)

    def get(self, kind: str) -> ConverterFunc | None:
        return self.table.get(kind)

    def render(self, node: Node, parent: Node | None = None) -> str:
        """Render a node with this converter set.

        Unregistered kinds never raise: containers render as the
        concatenation of their children, leaves as an empty fragment.
        """
        ctx = ConverterContext(converters=self, parent=parent)

        def render_children() -> list[str]:
            return [self.render(child, node) for child in node.children or ()]

        converter = self.table.get(node.kind)
        if converter is None:
            logger.checks(f"No HTML converter for node type '{node.kind}', using fallback")
            return "".join(render_children()) if node.is_container else ""
        return converter(node, ctx, render_children)


@dataclass(frozen=True)
class ConverterContext:
    """Context handed to every converter call."""

    converters: ConverterSet
    parent: Node | None = None

    def render_state(self, state: EditorState | Mapping[str, Any]) -> str:
        """Render a nested editor state (e.g. a block's sub-editor) with the same converters."""
        if not isinstance(state, EditorState):
            if not is_editor_state_data(state):
                return ""
            state = EditorState.from_dict(state)
        return self.converters.render(state.root)

    def render_block(self, node: Node) -> str:
        """Dispatch a block node to the renderer declared for its ``blockType``."""
        block_type = node.block_type
        renderer = self.converters.blocks.get(block_type) if block_type else None
        if renderer is None:
            logger.debug(f"No renderer for block type '{block_type}', rendering nothing")
            return ""
        fields = node.get("fields")
        return renderer.render(fields if isinstance(fields, Mapping) else {}, node, self)  # type: ignore[arg-type]
