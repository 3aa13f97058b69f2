"""Tests for the document read path."""

from __future__ import annotations

from typing import Any

import pytest

from richtree.config import EditorConfig
from richtree.exceptions import DerivedFieldError, DocumentNotFoundError, FieldConfigError
from richtree.fields import (
    ArrayField,
    CollectionConfig,
    GroupField,
    RelationshipField,
    RichTextField,
    TextField,
    lexical_html,
)
from richtree.reader import DocumentReader
from richtree.store import InMemoryDocumentStore
from tests.conftest import paragraph, relationship, state, text

RELATION_X = '<div data-relation-to="posts" data-id="X"></div>'


@pytest.fixture
def collections() -> dict[str, CollectionConfig]:
    editor = EditorConfig()
    return {
        "posts": CollectionConfig(
            "posts", [TextField("title"), RichTextField("content", editor=editor)]
        ),
        "pages": CollectionConfig(
            "pages",
            [
                TextField("title"),
                RichTextField("content", editor=editor),
                lexical_html("content", "contentHTML"),
                GroupField(
                    "sidebar",
                    [RichTextField("body", editor=editor), lexical_html("body", "bodyHTML")],
                ),
                ArrayField(
                    "sections",
                    [RichTextField("body", editor=editor), lexical_html("body", "bodyHTML")],
                ),
            ],
        ),
    }


@pytest.fixture
def reader_store(documents: dict[str, list[dict[str, Any]]]) -> InMemoryDocumentStore:
    pages = [
        {
            "id": "home",
            "title": "Home",
            "content": state(paragraph(text("Welcome")), relationship("posts", "X")),
            "sidebar": {"body": state(paragraph(text("Side")))},
            "sections": [
                {"body": state(paragraph(text("One")))},
                {"body": state(relationship("posts", "X"))},
            ],
        },
        {"id": "empty", "title": "Empty"},
    ]
    return InMemoryDocumentStore({**documents, "pages": pages})


class TestDocumentReader:
    """Tests for DocumentReader."""

    @pytest.mark.asyncio
    async def test_read_populates_rich_text(
        self, reader_store: InMemoryDocumentStore, collections: dict[str, CollectionConfig]
    ) -> None:
        """Test that the request depth reaches rich-text fields."""
        reader = DocumentReader(reader_store, collections)

        page = await reader.read("pages", "home", depth=1)

        x_doc = page["content"]["root"]["children"][1]["value"]
        assert x_doc["title"] == "Post X"

    @pytest.mark.asyncio
    async def test_read_computes_derived_html(
        self, reader_store: InMemoryDocumentStore, collections: dict[str, CollectionConfig]
    ) -> None:
        """Test derived HTML at the top level, in a group and in array rows."""
        reader = DocumentReader(reader_store, collections)

        page = await reader.read("pages", "home", depth=0)

        assert page["contentHTML"] == f"<p>Welcome</p>{RELATION_X}"
        assert page["sidebar"]["bodyHTML"] == "<p>Side</p>"
        assert [row["bodyHTML"] for row in page["sections"]] == ["<p>One</p>", RELATION_X]

    @pytest.mark.asyncio
    async def test_array_rows_are_populated(
        self, reader_store: InMemoryDocumentStore, collections: dict[str, CollectionConfig]
    ) -> None:
        """Test that rich text inside array rows is populated."""
        reader = DocumentReader(reader_store, collections)

        page = await reader.read("pages", "home", depth=1)

        row_ref = page["sections"][1]["body"]["root"]["children"][0]
        assert row_ref["value"]["title"] == "Post X"

    @pytest.mark.asyncio
    async def test_field_cap_applies(
        self, reader_store: InMemoryDocumentStore, collections: dict[str, CollectionConfig]
    ) -> None:
        """Test that a rich-text field's own cap limits the request depth."""
        capped = RichTextField("content", editor=EditorConfig(), max_depth=0)
        collections["pages"].fields[1] = capped
        collections["pages"].fields[2] = lexical_html("content", "contentHTML")
        reader = DocumentReader(reader_store, collections)

        page = await reader.read("pages", "home", depth=3)

        assert page["content"]["root"]["children"][1]["value"] == "X"

    @pytest.mark.asyncio
    async def test_stored_document_is_unchanged(
        self, reader_store: InMemoryDocumentStore, collections: dict[str, CollectionConfig]
    ) -> None:
        """Test that reading never writes populated values back to the store."""
        reader = DocumentReader(reader_store, collections)

        await reader.read("pages", "home", depth=2)

        stored = reader_store.get("pages", "home")
        assert stored is not None
        assert "contentHTML" not in stored
        assert stored["content"]["root"]["children"][1]["value"] == "X"

    @pytest.mark.asyncio
    async def test_unknown_collection(
        self, reader_store: InMemoryDocumentStore, collections: dict[str, CollectionConfig]
    ) -> None:
        """Test that reading an unconfigured collection fails."""
        reader = DocumentReader(reader_store, collections)

        with pytest.raises(FieldConfigError, match="Unknown collection"):
            await reader.read("authors", "a", depth=0)

    @pytest.mark.asyncio
    async def test_missing_document(
        self, reader_store: InMemoryDocumentStore, collections: dict[str, CollectionConfig]
    ) -> None:
        """Test that the requested document itself must exist."""
        reader = DocumentReader(reader_store, collections)

        with pytest.raises(DocumentNotFoundError):
            await reader.read("pages", "nope", depth=0)

    @pytest.mark.asyncio
    async def test_derived_field_without_source_value(
        self, reader_store: InMemoryDocumentStore, collections: dict[str, CollectionConfig]
    ) -> None:
        """Test that a derived field whose source is empty raises."""
        reader = DocumentReader(reader_store, collections)

        with pytest.raises(DerivedFieldError, match="no stored value"):
            await reader.read("pages", "empty", depth=0)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bad_depth", [-1, True])
    async def test_invalid_depth_rejected_without_rich_text(
        self, reader_store: InMemoryDocumentStore, bad_depth: Any
    ) -> None:
        """Test that depth is validated even when no field would use it."""
        reader = DocumentReader(
            reader_store, {"authors": CollectionConfig("authors", [TextField("name")])}
        )

        with pytest.raises(ValueError, match="Depth"):
            await reader.read("authors", "a1", depth=bad_depth)
        assert reader_store.fetch_count == 0

    @pytest.mark.asyncio
    async def test_relationship_field_is_populated(
        self, documents: dict[str, list[dict[str, Any]]]
    ) -> None:
        """Test that a bare-id relationship field follows the request depth."""
        store = InMemoryDocumentStore(
            {**documents, "authors": [{"id": "a1", "name": "Ann", "avatar": "img1"}]}
        )
        authors = CollectionConfig(
            "authors", [TextField("name"), RelationshipField("avatar", relation_to="media")]
        )
        reader = DocumentReader(store, {"authors": authors, "media": CollectionConfig("media")})

        shallow = await reader.read("authors", "a1", depth=0)
        deep = await reader.read("authors", "a1", depth=1)

        assert shallow["avatar"] == "img1"
        assert deep["avatar"]["filename"] == "a.png"
        assert deep["name"] == "Ann"
