"""Document backends used by the page rasterizer.

A backend turns raw document bytes into a document handle, page handles
and pixel buffers. Every handle exposes an explicit release method so the
rasterizer can scope it with ``scoped_resource``.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional, Protocol, Tuple, TypeVar

import fitz  # pymupdf
from PIL import Image

logger = logging.getLogger(__name__)

R = TypeVar("R")


class PixelBuffer(Protocol):
    """Rendered page pixels."""

    width: int
    height: int

    def to_image(self) -> Image.Image:
        """Convert pixels to an RGB PIL image."""
        ...

    def release(self) -> None:
        ...


class PageHandle(Protocol):
    """One loaded page of an open document."""

    def size(self) -> Tuple[float, float]:
        """Natural (unscaled) width and height."""
        ...

    def render(self, scale: float) -> PixelBuffer:
        ...

    def close(self) -> None:
        ...


class DocumentHandle(Protocol):
    """An open, decodable document."""

    @property
    def page_count(self) -> int:
        ...

    def load_page(self, index: int) -> Optional[PageHandle]:
        """Load page by 0-based index; None if the page is unusable."""
        ...

    def close(self) -> None:
        ...


class DocumentBackend(Protocol):
    """Opens document handles from raw bytes."""

    def open(self, data: bytes) -> DocumentHandle:
        ...


@contextmanager
def scoped_resource(resource: R, release: str, what: str) -> Iterator[R]:
    """Yield resource and call its release method on every exit path.

    A failing release is logged and never masks the primary error.
    ``None`` resources are yielded as-is and not released.

    Args:
        resource: Handle to scope
        release: Name of the release method ("close", "release")
        what: Description used in log lines
    """
    try:
        yield resource
    finally:
        if resource is not None:
            try:
                getattr(resource, release)()
            except Exception as e:
                logger.warning(f"Failed to release {what}: {e}")


class FitzPixelBuffer:
    """Pixel buffer backed by a pymupdf Pixmap."""

    def __init__(self, pixmap: "fitz.Pixmap"):
        self._pixmap = pixmap
        self.width = pixmap.width
        self.height = pixmap.height

    def to_image(self) -> Image.Image:
        pix = self._pixmap
        if pix is None:
            raise RuntimeError("Pixel buffer already released")

        # Determine image mode based on alpha channel
        mode = "RGB" if pix.alpha == 0 else "RGBA"
        img = Image.frombytes(mode, [pix.width, pix.height], pix.samples)

        if mode == "RGBA":
            img = img.convert("RGB")
        return img

    def release(self) -> None:
        self._pixmap = None


class FitzPage:
    """Page handle backed by a pymupdf Page."""

    def __init__(self, page: "fitz.Page"):
        self._page = page

    def size(self) -> Tuple[float, float]:
        rect = self._page.rect
        return rect.width, rect.height

    def render(self, scale: float) -> FitzPixelBuffer:
        pix = self._page.get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)
        return FitzPixelBuffer(pix)

    def close(self) -> None:
        # pymupdf pages have no explicit close; dropping the reference frees them
        self._page = None


class FitzDocument:
    """Document handle backed by a pymupdf Document."""

    def __init__(self, doc: "fitz.Document"):
        self._doc = doc

    @property
    def page_count(self) -> int:
        return self._doc.page_count

    def load_page(self, index: int) -> Optional[FitzPage]:
        page = self._doc.load_page(index)
        if page is None:
            return None
        return FitzPage(page)

    def close(self) -> None:
        if self._doc is not None:
            self._doc.close()
            self._doc = None


class FitzBackend:
    """Default backend using pymupdf (fitz)."""

    def open(self, data: bytes) -> FitzDocument:
        doc = fitz.open(stream=data, filetype="pdf")
        try:
            if doc.needs_pass:
                raise ValueError("Document is encrypted")
        except Exception:
            doc.close()
            raise
        return FitzDocument(doc)
