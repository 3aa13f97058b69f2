"""Custom exceptions for richtree."""


class RichTreeError(Exception):
    """Base exception for all richtree errors."""

    pass


class ValidationError(RichTreeError):
    """Raised when validation fails."""

    pass


class ParseError(RichTreeError):
    """Raised when a JSON or YAML file cannot be parsed."""

    pass


class FieldConfigError(RichTreeError):
    """Raised when a field declaration cannot be resolved."""

    pass


class DerivedFieldError(FieldConfigError):
    """Raised when a derived field cannot compute its value from its source field."""

    pass


class ReferenceResolutionError(RichTreeError):
    """Raised by a document store when a single reference cannot be resolved.

    Population degrades the affected reference to its bare id instead of
    failing the whole walk.
    """

    def __init__(self, collection: str, doc_id: str | int, message: str | None = None):
        self.collection = collection
        self.doc_id = doc_id
        super().__init__(message or f"{collection}/{doc_id}")


class DocumentNotFoundError(ReferenceResolutionError):
    """Raised when the referenced document does not exist."""

    pass


class AccessDeniedError(ReferenceResolutionError):
    """Raised when the caller may not read the referenced document."""

    pass


class StoreError(RichTreeError):
    """Raised when the document store itself fails (transport or database error)."""

    pass
