"""Tests that the package and its modules import cleanly."""

from __future__ import annotations

import importlib

import pytest

import richtree
from richtree.schemas import BlockSchema, CollectionSchema, EditorSchema, FieldSchema

MODULES = [
    "richtree.cli",
    "richtree.config",
    "richtree.converters",
    "richtree.features",
    "richtree.fields",
    "richtree.parser",
    "richtree.populate",
    "richtree.reader",
    "richtree.schemas",
    "richtree.store",
]


@pytest.mark.parametrize("name", MODULES)
def test_module_imports(name: str) -> None:
    """Test that every public module can be imported."""
    assert importlib.import_module(name) is not None


def test_public_api() -> None:
    """Test the names re-exported by the package."""
    assert richtree.__version__
    for name in richtree.__all__:
        assert hasattr(richtree, name), name


def test_schema_list_defaults_are_independent() -> None:
    """Test that list fields of config schemas default to fresh empty lists."""
    group = FieldSchema(name="g", type="group")
    other = FieldSchema(name="h", type="group")

    assert group.fields == []
    assert group.fields is not other.fields
    assert BlockSchema(slug="banner").fields == []
    assert CollectionSchema().fields == []
    assert EditorSchema().blocks == []
