"""Error types raised by the search core and its collaborators."""

from typing import Optional


class DocSearchError(Exception):
    """Base class for docs search errors."""


class VectorSearchUnavailable(DocSearchError):
    """The vector similarity query could not run.

    Recovered inside the engine by falling back to keyword search; never
    surfaced to callers of ``SearchEngine.search``.
    """

    def __init__(self, cause: BaseException):
        super().__init__(f"vector search unavailable: {cause}")
        self.cause = cause


class SearchError(DocSearchError):
    """Terminal search failure carrying the underlying cause."""

    def __init__(self, cause: BaseException):
        super().__init__(f"search failed: {cause}")
        self.cause = cause


class MalformedRowError(DocSearchError):
    """A stored row could not be decoded into a Document."""

    def __init__(self, message: str, doc_id: Optional[str] = None):
        prefix = f"row {doc_id}: " if doc_id else ""
        super().__init__(f"{prefix}{message}")
        self.doc_id = doc_id


class FetchError(DocSearchError):
    """Retrieving a document from the remote source failed."""

    def __init__(self, path: str, message: str):
        super().__init__(f"Error fetching doc {path}: {message}")
        self.path = path


class RefreshError(DocSearchError):
    """The refresh pipeline could not complete."""

    def __init__(self, cause: BaseException):
        super().__init__(f"refresh failed: {cause}")
        self.cause = cause
