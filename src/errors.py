"""
Error taxonomy for the compatibility catalog.

Hierarchy:
    CatalogError (base)
    ├── MalformedRow      — one CSV row could not become a record (skipped, counted)
    ├── ReadError         — the upload itself could not be read/decoded (aborts ingestion)
    ├── IngestionFailed   — validation or replace transaction failed (prior catalog kept)
    ├── NotFound          — lookup by id missed
    ├── InvalidInput      — required field missing on a mutation
    └── Unauthorized      — mutation attempted without an authenticated caller

Every error carries a human-readable ``message`` and an optional ``detail`` dict,
and renders to a plain dict for display via ``to_dict()``.
"""

from typing import Any, Dict, Optional


class CatalogError(Exception):
    """Base class for all catalog errors."""

    def __init__(self, message: str, *, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_dict(self) -> Dict[str, Any]:
        """Structured outcome for the UI, never a raw traceback."""
        result = {
            "success": False,
            "error": self.__class__.__name__,
            "message": self.message,
        }
        if self.detail:
            result["detail"] = self.detail
        return result


class MalformedRow(CatalogError):
    """
    A row that cannot be normalized into a record.

    Raised only by ``normalize_row_strict``; the ingestion pipeline swallows it
    and counts the row as rejected.
    """


class ReadError(CatalogError):
    """The uploaded stream could not be read or decoded."""


class IngestionFailed(CatalogError):
    """
    Import aborted before or during the replace transaction.

    ``detail`` carries the counts known at the point of failure
    (total_processed, duplicates_skipped, ...).
    """


class NotFound(CatalogError):
    """No record with the requested id."""

    def __init__(self, message: str = "Record not found", *, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message, detail=detail)


class InvalidInput(CatalogError):
    """A mutation was called with a missing or empty required field."""


class Unauthorized(CatalogError):
    """Mutation called without an AuthenticatedCaller."""

    def __init__(self, message: str = "Access denied. Log in first.", *, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message, detail=detail)
