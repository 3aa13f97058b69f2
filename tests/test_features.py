"""Tests for feature modules and custom feature loading."""

# pyright: reportUnusedFunction=false

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from richtree.config import EditorConfig
from richtree.converters import ConverterContext, RenderChildren, convert
from richtree.exceptions import ValidationError
from richtree.features import (
    HTML_CONVERTER_FEATURE,
    Feature,
    default_features,
    link_feature,
    load_feature,
    load_handler,
)
from richtree.fields import RelationshipField
from richtree.models import Node
from richtree.populate import PopulationEngine, PopulationWalk
from richtree.store import InMemoryDocumentStore
from tests.conftest import block, paragraph, relationship, state, text


def mention_feature() -> Feature:
    mention = Feature("mention")

    @mention.html_converter("mention")
    def render_mention(node: Node, ctx: ConverterContext, render_children: RenderChildren) -> str:
        target = node.get("user", {}).get("value")
        name = target.get("name") if isinstance(target, dict) else target
        return f'<span class="mention">@{name}</span>'

    @mention.population_hook("mention")
    async def populate_mention(node: Node, walk: PopulationWalk, depth: int) -> Node:
        return node.replace(user=await walk.data(node.get("user"), depth))

    return mention


class TestFeature:
    """Tests for the Feature value and its decorators."""

    def test_default_feature_order(self) -> None:
        """Test the built-in features and their order."""
        keys = [feature.key for feature in default_features()]

        assert keys == ["relationship", "upload", "link", "blocks", HTML_CONVERTER_FEATURE]

    def test_decorators_register_and_return_function(self) -> None:
        """Test that decorators record contributions and leave the function usable."""
        feature = Feature("x")

        @feature.html_converter("a", "b")
        def render(node: Node, ctx: ConverterContext, render_children: RenderChildren) -> str:
            return "r"

        @feature.block("banner")
        def banner(fields: Any, node: Node, ctx: ConverterContext) -> str:
            return "b"

        assert feature.html_converters[0].node_types == ("a", "b")
        assert feature.block_renderers[0].slug == "banner"
        assert render(Node("a"), None, list) == "r"  # type: ignore[arg-type]
        assert banner({}, Node("block"), None) == "b"  # type: ignore[arg-type]

    def test_block_without_decorator(self) -> None:
        """Test declaring a block renderer by direct call."""
        feature = Feature("x")

        def banner(fields: Any, node: Node, ctx: ConverterContext) -> str:
            return "b"

        assert feature.block("banner", banner) is banner
        assert [r.slug for r in feature.block_renderers] == ["banner"]


class TestCustomFeature:
    """Tests for a custom node kind contributed by a feature."""

    @pytest.mark.asyncio
    async def test_custom_feature_populates_and_renders(self) -> None:
        """Test that one feature contributes both a hook and a converter."""
        store = InMemoryDocumentStore({"users": [{"id": "u1", "name": "bob"}]})
        config = EditorConfig(features=[*default_features(), mention_feature()])
        data = state(
            paragraph(text("hi "), {"type": "mention", "user": {"relationTo": "users", "value": "u1"}})
        )

        populated = await PopulationEngine(store, config).populate(data, 1)
        mention = populated.to_dict()["root"]["children"][0]["children"][1]

        assert mention["user"]["value"] == {"id": "u1", "name": "bob"}
        assert convert(populated, config.converter_set) == (
            '<p>hi <span class="mention">@bob</span></p>'
        )

    @pytest.mark.asyncio
    async def test_later_feature_overrides_hook(self) -> None:
        """Test that a later feature's hook replaces the built-in one for a kind."""
        store = InMemoryDocumentStore({"posts": [{"id": "X", "title": "Post X"}]})
        frozen = Feature("frozen-relationships")

        @frozen.population_hook("relationship")
        async def keep(node: Node, walk: PopulationWalk, depth: int) -> Node:
            return node

        config = EditorConfig(features=[*default_features(), frozen])
        result = await PopulationEngine(store, config).populate(
            state(relationship("posts", "X")), 2
        )

        assert result.to_dict()["root"]["children"][0]["value"] == "X"
        assert store.fetch_count == 0

    @pytest.mark.asyncio
    async def test_disabled_feature_does_not_populate(self) -> None:
        """Test that a node kind no enabled feature handles is left untouched."""
        store = InMemoryDocumentStore({"posts": [{"id": "X", "title": "Post X"}]})
        config = EditorConfig(features=[link_feature()])

        result = await PopulationEngine(store, config).populate(
            state(relationship("posts", "X")), 1
        )

        assert "relationship" not in config.population_hooks
        assert result.to_dict()["root"]["children"][0]["value"] == "X"
        assert store.fetch_count == 0

    def test_block_fields_from_features(self) -> None:
        """Test that block field declarations are merged, later features winning."""
        first = Feature("first-blocks")
        first.block("gallery", fields=[RelationshipField("images", relation_to="media")])
        second = Feature("second-blocks")

        @second.block("gallery", fields=[RelationshipField("images", relation_to="assets")])
        def render_gallery(fields: Any, node: Node, ctx: ConverterContext) -> str:
            return ""

        config = EditorConfig(features=[first, second])

        declared = config.block_fields["gallery"]
        assert len(declared) == 1
        assert isinstance(declared[0], RelationshipField)
        assert declared[0].relation_to == "assets"
        assert [r.slug for r in config.block_renderers] == ["gallery"]

    def test_has_feature(self) -> None:
        """Test querying the enabled features."""
        assert EditorConfig().has_feature(HTML_CONVERTER_FEATURE)
        assert not EditorConfig(features=[]).has_feature(HTML_CONVERTER_FEATURE)

    def test_negative_max_depth_rejected(self) -> None:
        """Test that an editor config cannot declare a negative cap."""
        with pytest.raises(ValidationError, match="max_depth"):
            EditorConfig(max_depth=-1)

    def test_block_renderers_from_features(self) -> None:
        """Test that block renderers of every feature are collected."""
        feature = Feature("extra-blocks")
        feature.block("banner", lambda fields, node, ctx: f"<aside>{fields['label']}</aside>")
        config = EditorConfig(features=[*default_features(), feature])

        assert convert(state(block("banner", label="Hi")), config.converter_set) == (
            "<aside>Hi</aside>"
        )


class TestLoading:
    """Tests for loading features and handlers."""

    def test_load_handler_from_file(self, tmp_path: Path) -> None:
        """Test loading an object from a Python file."""
        handler_file = tmp_path / "handlers.py"
        handler_file.write_text("VALUE = 42\n")

        assert load_handler(f"{handler_file}:VALUE") == 42

    def test_load_handler_from_module(self) -> None:
        """Test loading an object from an importable module."""
        assert load_handler("richtree.features.default_features") is default_features

    @pytest.mark.parametrize(
        ("handler", "message"),
        [
            ("missing_file.py:thing", "not found"),
            ("nodots", "Invalid handler"),
            ("richtree_no_such_module.thing", "Failed to import"),
            ("richtree.features.no_such_name", "not found in module"),
        ],
    )
    def test_load_handler_errors(self, handler: str, message: str) -> None:
        """Test the errors raised for unloadable handlers."""
        with pytest.raises(ValidationError, match=message):
            load_handler(handler)

    def test_load_feature_from_factory(self, tmp_path: Path) -> None:
        """Test that a factory function is called to build the feature."""
        handler_file = tmp_path / "mention.py"
        handler_file.write_text(
            "from richtree.features import Feature\n"
            "\n"
            "def mention():\n"
            "    return Feature('mention')\n"
        )

        feature = load_feature(f"{handler_file}:mention")

        assert isinstance(feature, Feature)
        assert feature.key == "mention"

    def test_load_feature_rejects_other_objects(self, tmp_path: Path) -> None:
        """Test that a handler must provide a Feature."""
        handler_file = tmp_path / "bad.py"
        handler_file.write_text("NOT_A_FEATURE = 'nope'\n")

        with pytest.raises(ValidationError, match="did not provide a Feature"):
            load_feature(f"{handler_file}:NOT_A_FEATURE")
