"""Built-in HTML converters for the core node kinds."""

from __future__ import annotations

from collections.abc import Mapping
from html import escape
from typing import Any

from richtree import models
from richtree.converters.base import ConverterContext, ConverterFunc, HTMLConverter, RenderChildren
from richtree.models import Node, ReferencePayload, is_reference_data

# Text format bitmask flags as stored on text nodes
IS_BOLD = 1
IS_ITALIC = 1 << 1
IS_STRIKETHROUGH = 1 << 2
IS_UNDERLINE = 1 << 3
IS_CODE = 1 << 4
IS_SUBSCRIPT = 1 << 5
IS_SUPERSCRIPT = 1 << 6

TEXT_FORMAT_TAGS: list[tuple[int, str, str]] = [
    (IS_BOLD, "<strong>", "</strong>"),
    (IS_ITALIC, "<em>", "</em>"),
    (IS_STRIKETHROUGH, '<span style="text-decoration: line-through">', "</span>"),
    (IS_UNDERLINE, '<span style="text-decoration: underline">', "</span>"),
    (IS_CODE, "<code>", "</code>"),
    (IS_SUBSCRIPT, "<sub>", "</sub>"),
    (IS_SUPERSCRIPT, "<sup>", "</sup>"),
]

HEADING_TAGS = frozenset({"h1", "h2", "h3", "h4", "h5", "h6"})


def attr(name: str, value: Any) -> str:
    """Format a single HTML attribute with an escaped, quoted value."""
    return f' {name}="{escape(str(value), quote=True)}"'


def _root(node: Node, ctx: ConverterContext, render_children: RenderChildren) -> str:
    return "".join(render_children())


def _paragraph(node: Node, ctx: ConverterContext, render_children: RenderChildren) -> str:
    return f"<p>{''.join(render_children())}</p>"


def _text(node: Node, ctx: ConverterContext, render_children: RenderChildren) -> str:
    html = escape(str(node.get("text", "")), quote=False)
    text_format = node.get("format", 0)
    if not isinstance(text_format, int):
        return html
    for flag, open_tag, close_tag in TEXT_FORMAT_TAGS:
        if text_format & flag:
            html = f"{open_tag}{html}{close_tag}"
    return html


def _linebreak(node: Node, ctx: ConverterContext, render_children: RenderChildren) -> str:
    return "<br>"


def _tab(node: Node, ctx: ConverterContext, render_children: RenderChildren) -> str:
    return "\t"


def _horizontal_rule(node: Node, ctx: ConverterContext, render_children: RenderChildren) -> str:
    return "<hr>"


def link_href(fields: Mapping[str, Any]) -> str:
    """Compute the href of a link node from its ``fields`` payload.

    Internal links point at ``/<collection>/<id>``; the target may be
    hydrated or id-only.
    """
    if fields.get("linkType") == "internal" and is_reference_data(fields.get("doc")):
        doc = ReferencePayload.from_dict(fields["doc"])
        return f"/{doc.relation_to}/{doc.target_id}"
    url = fields.get("url")
    return str(url) if url else ""


def _link(node: Node, ctx: ConverterContext, render_children: RenderChildren) -> str:
    fields = node.get("fields")
    if not isinstance(fields, Mapping):
        # Older link nodes keep url/newTab at the node level
        fields = node.attributes
    href = link_href(fields)  # type: ignore[arg-type]
    new_tab = ""
    if fields.get("newTab"):  # type: ignore[union-attr]
        new_tab = attr("rel", "noopener noreferrer") + attr("target", "_blank")
    return f"<a{attr('href', href)}{new_tab}>{''.join(render_children())}</a>"


def _list(node: Node, ctx: ConverterContext, render_children: RenderChildren) -> str:
    tag = node.get("tag")
    if tag not in ("ul", "ol"):
        tag = "ol" if node.get("listType") == "number" else "ul"
    return f"<{tag}>{''.join(render_children())}</{tag}>"


def _listitem(node: Node, ctx: ConverterContext, render_children: RenderChildren) -> str:
    extra = ""
    if ctx.parent is not None and ctx.parent.get("listType") == "check":
        checked = "true" if node.get("checked") else "false"
        extra = attr("role", "checkbox") + attr("aria-checked", checked)
    value = node.get("value")
    if isinstance(value, int) and not isinstance(value, bool):
        extra += attr("value", value)
    return f"<li{extra}>{''.join(render_children())}</li>"


def _heading(node: Node, ctx: ConverterContext, render_children: RenderChildren) -> str:
    tag = node.get("tag")
    if tag not in HEADING_TAGS:
        tag = "h1"
    return f"<{tag}>{''.join(render_children())}</{tag}>"


def _quote(node: Node, ctx: ConverterContext, render_children: RenderChildren) -> str:
    return f"<blockquote>{''.join(render_children())}</blockquote>"


def _relationship(node: Node, ctx: ConverterContext, render_children: RenderChildren) -> str:
    ref = node.reference
    if ref is None:
        return ""
    return f"<div{attr('data-relation-to', ref.relation_to)}{attr('data-id', ref.target_id)}></div>"


def _upload(node: Node, ctx: ConverterContext, render_children: RenderChildren) -> str:
    ref = node.reference
    doc = ref.document if ref is not None else None
    if doc is None or not doc.get("url"):
        # Id-only uploads carry no URL to render
        return ""
    url = doc["url"]
    filename = doc.get("filename") or ""
    mime_type = doc.get("mimeType") or ""
    if str(mime_type).startswith("image/"):
        size = ""
        for key in ("width", "height"):
            if doc.get(key):
                size += attr(key, doc[key])
        alt = doc.get("alt") or filename
        return f"<img{attr('src', url)}{attr('alt', alt)}{size}>"
    return f"<a{attr('href', url)}>{escape(str(filename or url), quote=False)}</a>"


def _block(node: Node, ctx: ConverterContext, render_children: RenderChildren) -> str:
    return ctx.render_block(node)


def default_html_converters() -> list[HTMLConverter]:
    """Return a fresh list of the built-in converters.

    A new list is returned on every call so that consolidation never
    mutates a shared default.
    """
    return [
        HTMLConverter((models.ROOT,), _root),
        HTMLConverter((models.PARAGRAPH,), _paragraph),
        HTMLConverter((models.TEXT,), _text),
        HTMLConverter((models.LINEBREAK,), _linebreak),
        HTMLConverter((models.TAB,), _tab),
        HTMLConverter((models.LINK, models.AUTOLINK), _link),
        HTMLConverter((models.LIST,), _list),
        HTMLConverter((models.LISTITEM,), _listitem),
        HTMLConverter((models.HEADING,), _heading),
        HTMLConverter((models.QUOTE,), _quote),
        HTMLConverter((models.HORIZONTAL_RULE,), _horizontal_rule),
        HTMLConverter((models.RELATIONSHIP,), _relationship),
        HTMLConverter((models.UPLOAD,), _upload),
        HTMLConverter((models.BLOCK,), _block),
    ]


def default_converter(kind: str) -> ConverterFunc:
    """Look up the built-in converter for one node kind."""
    for entry in default_html_converters():
        if kind in entry.node_types:
            return entry.converter
    raise KeyError(f"No built-in HTML converter for '{kind}'")
