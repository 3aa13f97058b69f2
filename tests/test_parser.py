"""Tests for loading editor states and document stores."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from richtree.exceptions import ParseError, ValidationError
from richtree.parser import EditorStateParser, load_document_store, load_editor_state
from tests.conftest import paragraph, relationship, state, text


class TestEditorStateParser:
    """Tests for EditorStateParser."""

    def test_parse_json_file(self, tmp_path: Path) -> None:
        """Test loading a JSON editor state."""
        data = state(paragraph(text("a")), relationship("posts", "X"))
        path = tmp_path / "state.json"
        path.write_text(json.dumps(data))

        editor_state = load_editor_state(path)

        assert editor_state.to_dict() == data

    def test_parse_yaml_file(self, tmp_path: Path) -> None:
        """Test loading a YAML editor state."""
        path = tmp_path / "state.yaml"
        path.write_text(
            """\
root:
  type: root
  children:
    - type: paragraph
      children:
        - type: text
          text: hello
"""
        )

        editor_state = load_editor_state(path)

        assert editor_state.root.children is not None
        assert editor_state.root.children[0].kind == "paragraph"

    def test_missing_type_is_invalid(self) -> None:
        """Test that every node must carry a type."""
        with pytest.raises(ValidationError, match="Invalid editor state"):
            EditorStateParser().parse_data({"root": {"type": "root", "children": [{"text": "a"}]}})

    def test_empty_type_is_invalid(self) -> None:
        """Test that node types must not be empty."""
        with pytest.raises(ValidationError, match="Invalid editor state"):
            EditorStateParser().parse_data({"root": {"type": ""}})

    def test_missing_root_is_invalid(self) -> None:
        """Test that a state needs a root node."""
        with pytest.raises(ValidationError):
            EditorStateParser().parse_data({"children": []})

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test that a missing file raises ParseError."""
        with pytest.raises(ParseError, match="File not found"):
            load_editor_state(tmp_path / "nope.json")

    def test_non_mapping_file(self, tmp_path: Path) -> None:
        """Test that the file root must be a mapping."""
        path = tmp_path / "state.json"
        path.write_text("[1, 2]")

        with pytest.raises(ParseError, match="mapping"):
            load_editor_state(path)


class TestLoadDocumentStore:
    """Tests for load_document_store."""

    @pytest.mark.asyncio
    async def test_load_store(self, tmp_path: Path) -> None:
        """Test loading documents grouped by collection."""
        path = tmp_path / "store.yaml"
        path.write_text("posts:\n  - id: X\n    title: Post X\n  - id: 2\n    title: Two\n")

        store = load_document_store(path)

        assert store.collections == ["posts"]
        assert (await store.fetch("posts", "X"))["title"] == "Post X"
        assert (await store.fetch("posts", "2"))["title"] == "Two"

    def test_collection_must_be_list(self, tmp_path: Path) -> None:
        """Test that each collection holds a list of documents."""
        path = tmp_path / "store.yaml"
        path.write_text("posts:\n  id: X\n")

        with pytest.raises(ParseError, match="posts"):
            load_document_store(path)

    def test_documents_need_ids(self, tmp_path: Path) -> None:
        """Test that stored documents must carry an id."""
        path = tmp_path / "store.yaml"
        path.write_text("posts:\n  - title: No id\n")

        with pytest.raises(ValidationError, match="no valid 'id'"):
            load_document_store(path)
