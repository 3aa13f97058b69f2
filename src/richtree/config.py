"""Editor configuration and the richtree_config.yaml loader.

An EditorConfig is the per-field configuration value: the ordered feature
list plus the field's depth cap. It is built once and handed by reference
to both the population engine and the HTML converters; the dispatch tables
it derives are computed lazily and then reused.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from functools import cached_property
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError as PydanticValidationError

from richtree.converters.base import BlockRenderer, ConverterSet
from richtree.converters.html import build_converter_set
from richtree.exceptions import ParseError, ValidationError
from richtree.features import (
    BUILTIN_FEATURES,
    HTML_CONVERTER_FEATURE,
    ConvertersOption,
    Feature,
    blocks_feature,
    default_features,
    html_converter_feature,
    load_feature,
    load_handler,
)
from richtree.fields import (
    ArrayField,
    CollectionConfig,
    FieldDefinition,
    GroupField,
    RelationshipField,
    RichTextField,
    TextField,
    lexical_html,
)
from richtree.populate import PopulationHook
from richtree.schemas import ConfigFileSchema, EditorSchema, FieldSchema

DEFAULT_CONFIG_FILENAME = "richtree_config.yaml"


@dataclass(frozen=True)
class EditorConfig:
    """Configuration of one rich-text field's editor.

    Features are applied in order; a later feature overrides an earlier one
    for any node kind both handle.
    """

    features: Sequence[Feature] = field(default_factory=default_features)
    max_depth: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "features", tuple(self.features))
        if self.max_depth is not None and self.max_depth < 0:
            raise ValidationError(f"max_depth must be non-negative, got {self.max_depth}")

    @cached_property
    def resolved_feature_map(self) -> dict[str, Feature]:
        """Features by key; a later feature replaces an earlier one with the same key."""
        return {feature.key: feature for feature in self.features}

    def has_feature(self, key: str) -> bool:
        return key in self.resolved_feature_map

    @cached_property
    def population_hooks(self) -> dict[str, PopulationHook]:
        """Population dispatch table folded from the enabled features' hooks.

        A node kind no enabled feature handles is left untouched.
        """
        hooks: dict[str, PopulationHook] = {}
        for feature in self.features:
            hooks.update(feature.population_hooks)
        return hooks

    @cached_property
    def block_fields(self) -> dict[str, list[FieldDefinition]]:
        """Field declarations by block type; a later feature wins for a shared type."""
        declared: dict[str, list[FieldDefinition]] = {}
        for feature in self.features:
            declared.update(feature.block_fields)
        return declared

    @cached_property
    def block_renderers(self) -> list[BlockRenderer]:
        return [renderer for feature in self.features for renderer in feature.block_renderers]

    @property
    def html_converter_option(self) -> ConvertersOption | None:
        feature = self.resolved_feature_map.get(HTML_CONVERTER_FEATURE)
        if feature is None:
            return None
        return feature.props.get("converters")  # type: ignore[no-any-return]

    @cached_property
    def converter_set(self) -> ConverterSet:
        """HTML dispatch table consolidated from defaults, features and field options."""
        return build_converter_set(self)


@dataclass
class RichTreeConfig:
    """Runtime configuration built from a config file."""

    editor: EditorConfig
    collections: dict[str, CollectionConfig]


def load_config_file(config_path: Path | str) -> ConfigFileSchema:
    """Load and validate a richtree config file.

    Args:
        config_path: Path to richtree_config.yaml

    Returns:
        The validated file contents

    Raises:
        FileNotFoundError: If config file doesn't exist
        ParseError: If the file is not valid YAML
        ValidationError: If the contents are invalid
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    try:
        with config_path.open(encoding="utf-8") as f:
            data: Any = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ParseError(f"Failed to parse config YAML: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ParseError("Config YAML must contain a dictionary at the root level")

    try:
        return ConfigFileSchema(**data)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid config structure: {e}") from e


def build_editor_config(schema: EditorSchema) -> EditorConfig:
    """Resolve feature names (built-in or custom handlers) into an EditorConfig."""
    features: list[Feature] = []
    for name in schema.features:
        if name in schema.feature_handlers:
            features.append(load_feature(schema.feature_handlers[name]))
        elif name == "blocks":
            blocks = [
                BlockRenderer(block.slug, load_handler(block.renderer))
                for block in schema.blocks
                if block.renderer is not None
            ]
            block_fields = {
                block.slug: [_build_field(f, None) for f in block.fields]
                for block in schema.blocks
                if block.fields
            }
            features.append(blocks_feature(blocks, block_fields))
        elif name == HTML_CONVERTER_FEATURE and schema.converters_handler:
            features.append(html_converter_feature(load_handler(schema.converters_handler)))
        elif name in BUILTIN_FEATURES:
            features.append(BUILTIN_FEATURES[name]())
        else:
            available = ", ".join(sorted({*BUILTIN_FEATURES, *schema.feature_handlers}))
            raise ValidationError(
                f"Unknown editor feature '{name}'. Available features: {available}"
            )

    return EditorConfig(features=features, max_depth=schema.max_depth)


def _build_field(schema: FieldSchema, editor: EditorConfig | None) -> FieldDefinition:
    """Build a field declaration; rich-text fields use ``editor`` (None inside blocks)."""
    if schema.type == "richText":
        return RichTextField(name=schema.name, editor=editor, max_depth=schema.max_depth)
    if schema.type == "lexicalHTML":
        if not schema.source:
            raise ValidationError(f"lexicalHTML field '{schema.name}' requires a 'source' field")
        return lexical_html(schema.source, name=schema.name)
    if schema.type == "relationship":
        if not schema.relation_to:
            raise ValidationError(
                f"relationship field '{schema.name}' requires a 'relation_to' collection"
            )
        return RelationshipField(name=schema.name, relation_to=schema.relation_to)
    if schema.type == "group":
        return GroupField(name=schema.name, fields=[_build_field(f, editor) for f in schema.fields])
    if schema.type == "array":
        return ArrayField(name=schema.name, fields=[_build_field(f, editor) for f in schema.fields])
    return TextField(name=schema.name)


def build_collections(
    schema: ConfigFileSchema, editor: EditorConfig
) -> dict[str, CollectionConfig]:
    """Build collection field declarations; rich-text fields share ``editor``."""
    return {
        slug: CollectionConfig(
            slug=slug, fields=[_build_field(f, editor) for f in collection.fields]
        )
        for slug, collection in schema.collections.items()
    }


def load_config(config_path: Path | str) -> RichTreeConfig:
    """Load a config file into runtime values."""
    schema = load_config_file(config_path)
    editor = build_editor_config(schema.editor)
    return RichTreeConfig(editor=editor, collections=build_collections(schema, editor))

