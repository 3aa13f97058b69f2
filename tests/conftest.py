"""Pytest configuration and fixtures for richtree tests."""

from __future__ import annotations

from typing import Any

import pytest

from richtree.logger import reset_logger
from richtree.store import InMemoryDocumentStore


@pytest.fixture(autouse=True)
def clean_logger() -> None:
    """Reset logger state before each test for isolation."""
    reset_logger()


def text(value: str, fmt: int = 0) -> dict[str, Any]:
    """Create a serialized text node."""
    return {"type": "text", "text": value, "format": fmt, "version": 1}


def paragraph(*children: dict[str, Any]) -> dict[str, Any]:
    """Create a serialized paragraph node."""
    return {"type": "paragraph", "children": list(children), "version": 1}


def relationship(collection: str, value: Any) -> dict[str, Any]:
    """Create a serialized relationship node."""
    return {"type": "relationship", "relationTo": collection, "value": value, "version": 1}


def upload(collection: str, value: Any) -> dict[str, Any]:
    """Create a serialized upload node."""
    return {"type": "upload", "relationTo": collection, "value": value, "version": 1}


def block(block_type: str, **fields: Any) -> dict[str, Any]:
    """Create a serialized block node."""
    return {"type": "block", "fields": {"blockType": block_type, **fields}, "version": 1}


def state(*children: dict[str, Any]) -> dict[str, Any]:
    """Create a serialized editor state with the given root children."""
    return {
        "root": {"type": "root", "children": list(children), "direction": "ltr", "version": 1},
    }


def reference_values(data: Any) -> list[Any]:
    """Collect the ``value`` of every reference payload in serialized data, depth-first."""
    found: list[Any] = []
    if isinstance(data, dict):
        if "relationTo" in data and "value" in data:
            found.append(data["value"])
        for value in data.values():
            found.extend(reference_values(value))
    elif isinstance(data, list):
        for item in data:
            found.extend(reference_values(item))
    return found


@pytest.fixture
def documents() -> dict[str, list[dict[str, Any]]]:
    """Documents for the store: X and Y reference each other, P references Y."""
    return {
        "posts": [
            {
                "id": "X",
                "title": "Post X",
                "content": state(paragraph(text("x")), relationship("posts", "Y")),
            },
            {
                "id": "Y",
                "title": "Post Y",
                "content": state(paragraph(text("y")), relationship("posts", "X")),
            },
            {
                "id": "P",
                "title": "Popular",
                "content": state(relationship("posts", "Y")),
            },
        ],
        "media": [
            {
                "id": "img1",
                "url": "/media/a.png",
                "filename": "a.png",
                "mimeType": "image/png",
                "alt": "A picture",
            },
            {"id": "doc1", "url": "/media/a.pdf", "filename": "a.pdf", "mimeType": "application/pdf"},
        ],
    }


@pytest.fixture
def store(documents: dict[str, list[dict[str, Any]]]) -> InMemoryDocumentStore:
    """In-memory store holding the ``documents`` fixture."""
    return InMemoryDocumentStore(documents)
