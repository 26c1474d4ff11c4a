"""Exception hierarchy for archive curation and page rasterization."""

from typing import Optional


class CuratorError(RuntimeError):
    """Base class for all archive_curator errors."""


class RetryExhausted(CuratorError):
    """Raised when a retried operation fails on every attempt."""

    def __init__(self, attempts: int, last_error: Optional[BaseException]):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Operation failed after {attempts} attempts: {last_error}")


# === Document-level rasterization failures ===


class RasterizationError(CuratorError):
    """Terminal failure for one page-document.

    Attributes:
        document: Display name of the offending document
    """

    reason = "rasterization failed"

    def __init__(self, document: str, detail: str = ""):
        self.document = document
        self.detail = detail
        message = f"{self.reason}: {document}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class EmptySource(RasterizationError):
    reason = "empty source"


class InvalidFormat(RasterizationError):
    reason = "invalid format"


class EmptyDocument(RasterizationError):
    reason = "document has no pages"


class NoPagesRendered(RasterizationError):
    reason = "no pages rendered"


class DecodeFailed(RasterizationError):
    """Document could not be read or opened after all retries."""

    reason = "decode failed"

    def __init__(self, document: str, last_error: Optional[BaseException], attempts: int):
        self.last_error = last_error
        self.attempts = attempts
        super().__init__(document, f"after {attempts} attempts: {last_error}")


# === Page-level failures (never escape the engine) ===


class PageRenderError(CuratorError):
    """A single page could not be rendered; the page is skipped."""


class RenderTimeout(PageRenderError):
    pass


class DegenerateImage(PageRenderError):
    pass


# === Selection model ===


class SelectionError(CuratorError):
    """Broken selection invariant or bad addressing."""


class IndexOutOfRange(SelectionError, IndexError):
    """Flag index beyond the current length of a category.

    Callers should re-read the category length and retry.
    """

    def __init__(self, archive_id: str, category: str, index: int, length: int):
        self.archive_id = archive_id
        self.category = category
        self.index = index
        self.length = length
        super().__init__(
            f"Index {index} out of range for '{category}' of archive {archive_id} "
            f"(length {length})"
        )


class UnknownArchive(SelectionError, KeyError):
    def __init__(self, archive_id: str):
        self.archive_id = archive_id
        super().__init__(f"Unknown archive: {archive_id}")

    def __str__(self) -> str:
        return self.args[0]


class UnknownCategory(SelectionError, ValueError):
    pass


# === Export ===


class ExportError(CuratorError):
    """An external report or bundle writer failed."""
