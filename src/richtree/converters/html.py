"""HTML conversion of editor states."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from typing import TYPE_CHECKING, Any

from richtree.converters.base import BlockRenderer, ConverterSet, HTMLConverter
from richtree.converters.defaults import default_html_converters
from richtree.models import EditorState

if TYPE_CHECKING:
    from richtree.config import EditorConfig

HTML_CONVERTER_FEATURE = "htmlConverter"
"""Key of the feature that enables HTML conversion for a field."""


def consolidate_html_converters(config: EditorConfig) -> list[HTMLConverter]:
    """Combine default converters, feature converters and the field's converter option.

    The result is ordered so that folding it into a ConverterSet lets later
    entries win per node kind:

    1. the built-in defaults;
    2. converters contributed by each enabled feature, in feature order;
    3. the ``converters`` option of the htmlConverter feature, either a list
       that replaces everything accumulated so far, or a function that
       receives the accumulated list and returns the final one.
    """
    converters = default_html_converters()
    for feature in config.features:
        converters.extend(feature.html_converters)

    option = config.html_converter_option
    if option is None:
        return converters
    if callable(option):
        customize: Callable[[list[HTMLConverter]], list[HTMLConverter]] = option
        return list(customize(list(converters)))
    return list(option)


def build_converter_set(config: EditorConfig) -> ConverterSet:
    """Build the dispatch table for a field from its editor config."""
    return ConverterSet.from_converters(
        consolidate_html_converters(config), config.block_renderers
    )


def convert(
    state: EditorState | Mapping[str, Any],
    converters: ConverterSet | Sequence[HTMLConverter] | None = None,
    *,
    blocks: Sequence[BlockRenderer] = (),
) -> str:
    """Render an editor state to HTML.

    Args:
        state: Editor state, populated or not (model or serialized mapping)
        converters: A ConverterSet, an ordered converter list (later entries win
            per kind), or None for the built-in defaults
        blocks: Block renderers, used when ``converters`` is not a ConverterSet

    Returns:
        HTML string; unknown node kinds degrade instead of raising
    """
    if not isinstance(state, EditorState):
        state = EditorState.from_dict(state)
    if not isinstance(converters, ConverterSet):
        if converters is None:
            converters = default_html_converters()
        converters = ConverterSet.from_converters(converters, blocks)
    return converters.render(state.root)
