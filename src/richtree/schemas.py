"""Pydantic schemas for JSON/YAML data validation."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, field_validator


class NodeSchema(BaseModel):
    """Schema for one serialized node; kind-specific keys are passed through."""

    model_config = ConfigDict(extra="allow")

    type: str
    children: list[NodeSchema] | None = None

    @field_validator("type")
    @classmethod
    def type_not_empty(cls, v: str) -> str:
        """Ensure every node carries a kind tag."""
        if not v:
            raise ValueError("Node 'type' must not be empty")
        return v


class EditorStateSchema(BaseModel):
    """Schema for a serialized editor state ``{"root": Node, ...metadata}``."""

    model_config = ConfigDict(extra="allow")

    root: NodeSchema


class FieldSchema(BaseModel):
    """Schema for one field declaration in a collection config."""

    name: str
    type: Literal["text", "richText", "lexicalHTML", "relationship", "group", "array"]
    max_depth: NonNegativeInt | None = None  # richText only
    relation_to: str | None = None  # relationship only: target collection
    source: str | None = None  # lexicalHTML only: sibling rich-text field name
    fields: list[FieldSchema] = Field(default_factory=list)  # group/array only


class CollectionSchema(BaseModel):
    """Schema for a collection's field declarations."""

    fields: list[FieldSchema] = Field(default_factory=list)


class BlockSchema(BaseModel):
    """Schema for a block type declared by the blocks feature."""

    slug: str
    renderer: str | None = None  # "module.func" or "file.py:func"
    fields: list[FieldSchema] = Field(default_factory=list)


class EditorSchema(BaseModel):
    """Schema for the editor configuration shared by rich-text fields."""

    max_depth: NonNegativeInt | None = None
    features: list[str] = Field(
        default_factory=lambda: ["relationship", "upload", "link", "blocks", "htmlConverter"]
    )
    feature_handlers: dict[str, str] = Field(default_factory=dict)
    blocks: list[BlockSchema] = Field(default_factory=list)
    converters_handler: str | None = None  # callable customizing the HTML converter list


class ConfigFileSchema(BaseModel):
    """Schema for the whole richtree_config.yaml file."""

    editor: EditorSchema = Field(default_factory=EditorSchema)
    collections: dict[str, CollectionSchema] = Field(default_factory=dict)

    @field_validator("collections", mode="before")
    @classmethod
    def ensure_dict(cls, v: Any) -> Any:
        """Treat an empty ``collections:`` key as no collections."""
        return {} if v is None else v
