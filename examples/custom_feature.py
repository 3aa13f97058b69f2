"""Example extension module for richtree editors.

This file demonstrates how to extend an editor with:
- A block renderer for a custom block type
- A custom node kind with its own population hook and HTML converter

Usage:
    richtree -c examples/richtree_config.yaml convert examples/post.json
    richtree -c examples/richtree_config.yaml populate examples/post.json \
        --store examples/store.yaml --depth 1 --html
"""

from collections.abc import Mapping
from html import escape
from typing import Any

from richtree.converters import ConverterContext, RenderChildren
from richtree.features import Feature
from richtree.models import Node
from richtree.populate import PopulationWalk

# =============================================================================
# Blocks
# =============================================================================


def render_banner(fields: Mapping[str, Any], node: Node, ctx: ConverterContext) -> str:
    """Render a banner block: a heading line plus optional nested rich text."""
    label = escape(str(fields.get("label", "")), quote=False)
    body = ctx.render_state(fields["body"]) if "body" in fields else ""
    return f'<aside class="banner"><strong>{label}</strong>{body}</aside>'


# =============================================================================
# Mentions
# =============================================================================


def mention() -> Feature:
    """Mention nodes: ``{"type": "mention", "user": {"relationTo": "users", "value": id}}``."""
    feature = Feature("mention")

    @feature.population_hook("mention")
    async def populate_mention(node: Node, walk: PopulationWalk, depth: int) -> Node:
        return node.replace(user=await walk.data(node.get("user"), depth))

    @feature.html_converter("mention")
    def render_mention(node: Node, ctx: ConverterContext, render_children: RenderChildren) -> str:
        user = node.get("user") or {}
        target = user.get("value")
        if isinstance(target, Mapping):
            # Hydrated: show the user's name
            name = escape(str(target.get("name", "")), quote=False)
            return f'<span class="mention">@{name}</span>'
        return f'<span class="mention" data-id="{escape(str(target))}"></span>'

    return feature
