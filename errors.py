"""
Exceptions raised by the storage layer and the LLM pass-through.
"""


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class RecordValidationError(StorageError):
    """Create input is malformed or missing required fields."""

    def __init__(self, message: str, errors: list | None = None):
        super().__init__(message)
        self.errors = errors or []


class ConflictError(StorageError):
    """A unique field already holds the given value."""

    def __init__(self, field: str, value):
        super().__init__(f"A user with this {field} already exists")
        self.field = field
        self.value = value


class StorageUnavailableError(StorageError):
    """The backing database could not be reached."""
    pass


class InvalidQueryError(StorageError):
    """Unknown collection or field name. Always a caller bug."""
    pass


class CompletionNotConfiguredError(Exception):
    """No LLM API key is configured."""
    pass


class CompletionError(Exception):
    """The upstream LLM call failed."""
    pass
