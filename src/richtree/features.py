"""Feature modules that extend the editor with node kinds.

A feature bundles everything one extension contributes: HTML converters,
population hooks and block renderers. Features are plain values; an
EditorConfig folds an ordered list of them into per-field dispatch tables.

Custom features are written with the decorator methods on Feature:

    mention = Feature("mention")

    @mention.html_converter("mention")
    def render_mention(node, ctx, render_children):
        return f"<span class=\"mention\">@{node.get('name')}</span>"

    @mention.population_hook("mention")
    async def populate_mention(node, walk, depth):
        ...
"""

from __future__ import annotations

import importlib
import importlib.util
import sys
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeVar, overload

from richtree import models
from richtree.converters.base import (
    BlockRenderer,
    BlockRenderFunc,
    ConverterContext,
    HTMLConverter,
)
from richtree.converters.defaults import default_converter
from richtree.converters.html import HTML_CONVERTER_FEATURE
from richtree.exceptions import ValidationError
from richtree.models import Node, is_editor_state_data
from richtree.populate import PopulationHook, populate_fields_payload, populate_reference_node

if TYPE_CHECKING:
    from richtree.fields import FieldDefinition

ConvertersOption = Sequence[HTMLConverter] | Callable[[list[HTMLConverter]], list[HTMLConverter]]
"""Field-level converter option: a list replacing the accumulated converters,
or a function receiving the accumulated list and returning the final one."""

_F = TypeVar("_F", bound=Callable[..., Any])


@dataclass
class Feature:
    """One feature module's contributions, keyed by ``key``."""

    key: str
    html_converters: list[HTMLConverter] = field(default_factory=list[HTMLConverter])
    population_hooks: dict[str, PopulationHook] = field(default_factory=dict[str, PopulationHook])
    block_renderers: list[BlockRenderer] = field(default_factory=list[BlockRenderer])
    block_fields: dict[str, list[FieldDefinition]] = field(default_factory=dict)
    props: dict[str, Any] = field(default_factory=dict[str, Any])

    def html_converter(self, *node_types: str) -> Callable[[_F], _F]:
        """Register a converter for the given node kinds."""

        def decorator(f: _F) -> _F:
            self.html_converters.append(HTMLConverter(node_types, f))
            return f

        return decorator

    def population_hook(self, *node_types: str) -> Callable[[_F], _F]:
        """Register a population hook for the given node kinds."""

        def decorator(f: _F) -> _F:
            for kind in node_types:
                self.population_hooks[kind] = f
            return f

        return decorator

    @overload
    def block(
        self,
        slug: str,
        render: BlockRenderFunc,
        *,
        fields: Sequence[FieldDefinition] | None = None,
    ) -> BlockRenderFunc: ...

    @overload
    def block(
        self, slug: str, *, fields: Sequence[FieldDefinition] | None = None
    ) -> Callable[[BlockRenderFunc], BlockRenderFunc]: ...

    def block(
        self,
        slug: str,
        render: BlockRenderFunc | None = None,
        *,
        fields: Sequence[FieldDefinition] | None = None,
    ) -> BlockRenderFunc | Callable[[BlockRenderFunc], BlockRenderFunc]:
        """Declare a block type, its renderer and optionally its field declarations.

        Declared fields populate themselves, so a relationship field storing a
        bare id is resolved against its ``relation_to`` collection.

        Examples:
            blocks.block("banner", render_banner)

            @blocks.block("richTextBlock")
            def render_rich_text_block(fields, node, ctx):
                return ctx.render_state(fields["richText"])
        """
        if fields is not None:
            self.block_fields[slug] = list(fields)

        def decorator(f: BlockRenderFunc) -> BlockRenderFunc:
            self.block_renderers.append(BlockRenderer(slug, f))
            return f

        if render is None:
            return decorator
        return decorator(render)


# ============================================================================
# Built-in features
# ============================================================================


def relationship_feature() -> Feature:
    """Relationship nodes: references to documents in any collection."""
    return Feature(
        "relationship",
        html_converters=[
            HTMLConverter((models.RELATIONSHIP,), default_converter(models.RELATIONSHIP))
        ],
        population_hooks={models.RELATIONSHIP: populate_reference_node},
    )


def upload_feature() -> Feature:
    """Upload nodes: references to media documents, rendered as images or links."""
    return Feature(
        "upload",
        html_converters=[HTMLConverter((models.UPLOAD,), default_converter(models.UPLOAD))],
        population_hooks={models.UPLOAD: populate_reference_node},
    )


def link_feature() -> Feature:
    """Link nodes, including internal links whose ``fields.doc`` references a document."""
    return Feature(
        "link",
        html_converters=[
            HTMLConverter((models.LINK, models.AUTOLINK), default_converter(models.LINK))
        ],
        population_hooks={
            models.LINK: populate_fields_payload,
            models.AUTOLINK: populate_fields_payload,
        },
    )


def blocks_feature(
    blocks: Sequence[BlockRenderer] = (),
    fields: Mapping[str, Sequence[FieldDefinition]] | None = None,
) -> Feature:
    """Block nodes; each block type renders through its declared renderer only.

    Args:
        blocks: Renderers by block type
        fields: Field declarations by block type
    """
    feature = Feature(
        "blocks",
        html_converters=[HTMLConverter((models.BLOCK,), default_converter(models.BLOCK))],
        population_hooks={models.BLOCK: populate_fields_payload},
    )
    feature.block_renderers.extend(blocks)
    for slug, block_fields in (fields or {}).items():
        feature.block_fields[slug] = list(block_fields)
    return feature


def render_nested_editor_states(
    fields: Mapping[str, Any], node: Node, ctx: ConverterContext
) -> str:
    """Block renderer that renders every editor state in the block's fields, in order.

    Block types render nothing unless a renderer is declared for them; this
    one can be declared for blocks that simply wrap rich text.
    """
    return "".join(
        ctx.render_state(value) for value in fields.values() if is_editor_state_data(value)
    )


def html_converter_feature(converters: ConvertersOption | None = None) -> Feature:
    """Enable HTML conversion for a field, optionally customizing its converters."""
    return Feature(HTML_CONVERTER_FEATURE, props={"converters": converters})


BUILTIN_FEATURES: dict[str, Callable[[], Feature]] = {
    "relationship": relationship_feature,
    "upload": upload_feature,
    "link": link_feature,
    "blocks": blocks_feature,
    HTML_CONVERTER_FEATURE: html_converter_feature,
}


def default_features() -> list[Feature]:
    """All built-in features in their default order."""
    return [factory() for factory in BUILTIN_FEATURES.values()]


# ============================================================================
# Loading custom features
# ============================================================================


def load_handler(handler: str) -> Any:
    """Load an object from a handler string.

    Supports two formats:
    - "module.path.name" - Import from an installed module
    - "file/path.py:name" - Load from a file

    Args:
        handler: Handler string

    Returns:
        The loaded object

    Raises:
        ValidationError: If the handler cannot be loaded
    """
    if ":" in handler:
        file_path_str, attr_name = handler.rsplit(":", 1)
        file_path = Path(file_path_str)

        if not file_path.exists():
            raise ValidationError(f"Handler file not found: {file_path}")

        spec = importlib.util.spec_from_file_location(f"richtree_ext_{file_path.stem}", file_path)
        if spec is None or spec.loader is None:
            raise ValidationError(f"Failed to load handler from file: {file_path}")

        module = importlib.util.module_from_spec(spec)
        sys.modules[spec.name] = module
        spec.loader.exec_module(module)

        if not hasattr(module, attr_name):
            raise ValidationError(f"'{attr_name}' not found in {file_path}")

        return getattr(module, attr_name)

    try:
        module_path, attr_name = handler.rsplit(".", 1)
    except ValueError as e:
        raise ValidationError(f"Invalid handler '{handler}': expected 'module.name'") from e

    try:
        module = importlib.import_module(module_path)
    except ImportError as e:
        raise ValidationError(f"Failed to import handler module '{handler}': {e}") from e

    if not hasattr(module, attr_name):
        raise ValidationError(f"'{attr_name}' not found in module '{module_path}'")

    return getattr(module, attr_name)


def load_feature(handler: str) -> Feature:
    """Load a custom feature: a Feature value or a zero-argument factory returning one."""
    loaded = load_handler(handler)
    feature = loaded() if callable(loaded) and not isinstance(loaded, Feature) else loaded
    if not isinstance(feature, Feature):
        raise ValidationError(f"Handler '{handler}' did not provide a Feature")
    return feature
