"""HTML converters for editor states."""

from richtree.converters.base import (
    BlockRenderer,
    ConverterContext,
    ConverterSet,
    HTMLConverter,
    RenderChildren,
)
from richtree.converters.defaults import default_converter, default_html_converters
from richtree.converters.html import build_converter_set, consolidate_html_converters, convert

__all__ = [
    "BlockRenderer",
    "ConverterContext",
    "ConverterSet",
    "HTMLConverter",
    "RenderChildren",
    "build_converter_set",
    "consolidate_html_converters",
    "convert",
    "default_converter",
    "default_html_converters",
]
