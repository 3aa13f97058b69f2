"""JSON/YAML loading for editor states and document stores."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError as PydanticValidationError

from .exceptions import ParseError, ValidationError
from .models import EditorState
from .schemas import EditorStateSchema
from .store import InMemoryDocumentStore


def load_data_file(file_path: Path | str) -> Any:
    """Load a JSON or YAML file (YAML is a superset of JSON, so one loader reads both)."""
    path = Path(file_path)
    if not path.exists():
        raise ParseError(f"File not found: {file_path}")

    try:
        with path.open(encoding="utf-8") as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ParseError(f"Failed to parse {path.name}: {e}") from e


class EditorStateParser:
    """Parser for serialized editor states."""

    def parse_file(self, file_path: Path | str) -> EditorState:
        """Parse a JSON/YAML file into an EditorState."""
        data = load_data_file(file_path)
        if not isinstance(data, dict):
            raise ParseError("Editor state file must contain a mapping at the root level")
        return self.parse_data(data)  # type: ignore[arg-type]

    def parse_data(self, data: Mapping[str, Any]) -> EditorState:
        """Validate serialized data and build the tree model."""
        try:
            EditorStateSchema.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid editor state: {e}") from e

        # The schema only validates; the model keeps every payload key verbatim
        return EditorState.from_dict(data)


def load_editor_state(file_path: Path | str) -> EditorState:
    """Load and validate an editor state file."""
    return EditorStateParser().parse_file(file_path)


def load_document_store(file_path: Path | str) -> InMemoryDocumentStore:
    """Load an in-memory document store from a file.

    The file maps collection names to lists of documents, each with an ``id``:

        posts:
          - id: X
            title: Hello
    """
    data = load_data_file(file_path)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ParseError("Store file must map collection names to lists of documents")

    documents: dict[str, list[dict[str, Any]]] = {}
    for collection, docs in data.items():  # type: ignore[union-attr]
        if not isinstance(docs, list) or not all(isinstance(d, dict) for d in docs):  # type: ignore[misc]
            raise ParseError(f"Collection '{collection}' must be a list of documents")
        documents[str(collection)] = docs  # type: ignore[assignment]
    return InMemoryDocumentStore(documents)
