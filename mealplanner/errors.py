"""
Error taxonomy for the recipe import pipeline.

Every error carries an ErrorKind so routers (or any non-HTTP caller) can map
it to a response without inspecting the concrete class.
"""

import enum
from typing import Optional


class ErrorKind(enum.Enum):
    """Caller-facing error categories and their HTTP status codes."""
    VALIDATION = 400
    UNAUTHENTICATED = 401
    NOT_FOUND = 404
    CONFLICT = 409
    INTERNAL = 500

    @property
    def status_code(self) -> int:
        return self.value


class RecipeImportError(Exception):
    """Base class for all import pipeline errors."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str, kind: Optional[ErrorKind] = None):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind


class ValidationError(RecipeImportError):
    """Bad caller input (missing/malformed/unsafe URL, recipe without source URL)."""
    kind = ErrorKind.VALIDATION


class NotFoundError(RecipeImportError):
    """Household or recipe does not exist for the caller."""
    kind = ErrorKind.NOT_FOUND


class DuplicateRecipeError(RecipeImportError):
    """A recipe with the extracted name already exists in the household."""
    kind = ErrorKind.CONFLICT


class FetchError(RecipeImportError):
    """The recipe page could not be fetched (network error, timeout, non-2xx)."""
    kind = ErrorKind.VALIDATION

    def __init__(self, message: str, status_code: Optional[int] = None, timed_out: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.timed_out = timed_out


class CompletionServiceError(RecipeImportError):
    """The text-completion service call failed or is not configured."""

    def __init__(self, message: str, timed_out: bool = False):
        super().__init__(message)
        self.timed_out = timed_out


class ExtractionError(RecipeImportError):
    """The AI extraction produced no usable recipe. Fatal to the run."""


class MatchServiceError(RecipeImportError):
    """Fuzzy matching failed. Always downgraded to "no fuzzy matches"."""


class PersistenceError(RecipeImportError):
    """A data store operation failed."""


class PersistenceConflict(PersistenceError):
    """A uniqueness constraint rejected an insert. Recovered by re-reading."""
    kind = ErrorKind.CONFLICT
