"""Population and HTML conversion of serialized rich-text editor states."""

from richtree.config import EditorConfig
from richtree.converters import HTMLConverter, convert
from richtree.features import Feature
from richtree.models import EditorState, Node, ReferencePayload
from richtree.populate import PopulationEngine, populate

__version__ = "0.1.0"

__all__ = [
    "EditorConfig",
    "EditorState",
    "Feature",
    "HTMLConverter",
    "Node",
    "PopulationEngine",
    "ReferencePayload",
    "convert",
    "populate",
]
