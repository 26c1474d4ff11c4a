"""Tests for PageRasterizer."""

import io
import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

import pytest
from PIL import Image

from archive_curator.errors import (
    DecodeFailed,
    EmptyDocument,
    EmptySource,
    InvalidFormat,
    NoPagesRendered,
    RasterizationError,
)
from archive_curator.preprocessing.renderer import PageRasterizer, compute_scale
from archive_curator.schemas.config import RasterConfig

PDF_BYTES = b"%PDF-1.7 fake document body"


# === Fake document backend ===


class FakePixels:
    """Noise image so the encoded PNG is well above the degenerate threshold."""

    def __init__(self, width: int, height: int):
        self.width = width
        self.height = height
        self.released = False

    def to_image(self) -> Image.Image:
        return Image.frombytes("RGB", (self.width, self.height), os.urandom(self.width * self.height * 3))

    def release(self) -> None:
        self.released = True


class FakePage:
    def __init__(self, backend: "FakeBackend", index: int):
        self.backend = backend
        self.index = index
        self.closed = False

    def size(self) -> Tuple[float, float]:
        return self.backend.page_sizes.get(self.index, (595.0, 842.0))

    def render(self, scale: float) -> FakePixels:
        backend = self.backend
        backend.scales.append(scale)
        with backend.track_render():
            if self.index in backend.hang_pages:
                backend.release_hung.wait(timeout=backend.hang_s)
            return self._rasterize()

    def _rasterize(self) -> FakePixels:
        backend = self.backend
        if self.index in backend.failing_pages:
            raise RuntimeError("renderer crashed")
        # Width encodes the page index so tests can check the output order
        width = 1 if self.index in backend.degenerate_pages else 32 + self.index
        height = 1 if self.index in backend.degenerate_pages else 32
        pixels = FakePixels(width, height)
        backend.pixels.append(pixels)
        return pixels

    def close(self) -> None:
        self.closed = True


class FakeDocument:
    def __init__(self, backend: "FakeBackend"):
        self.backend = backend
        self.closed = False

    @property
    def page_count(self) -> int:
        return self.backend.pages

    def load_page(self, index: int) -> Optional[FakePage]:
        if index in self.backend.missing_pages:
            return None
        page = FakePage(self.backend, index)
        self.backend.loaded_pages.append(page)
        return page

    def close(self) -> None:
        self.closed = True


class FakeBackend:
    """Document backend whose failure modes are set per test."""

    def __init__(self, pages: int = 3, open_failures: int = 0):
        self.pages = pages
        self.open_failures = open_failures
        self.open_calls = 0
        self.documents: List[FakeDocument] = []
        self.loaded_pages: List[FakePage] = []
        self.pixels: List[FakePixels] = []
        self.scales: List[float] = []
        self.page_sizes: Dict[int, Tuple[float, float]] = {}
        self.hang_pages: Set[int] = set()
        self.failing_pages: Set[int] = set()
        self.missing_pages: Set[int] = set()
        self.degenerate_pages: Set[int] = set()
        self.hang_s = 5.0
        self.release_hung = threading.Event()
        self.live_renders = 0
        self.peak_live_renders = 0
        self._render_lock = threading.Lock()

    @contextmanager
    def track_render(self):
        with self._render_lock:
            self.live_renders += 1
            self.peak_live_renders = max(self.peak_live_renders, self.live_renders)
        try:
            yield
        finally:
            with self._render_lock:
                self.live_renders -= 1

    def open(self, data: bytes) -> FakeDocument:
        self.open_calls += 1
        if self.open_calls <= self.open_failures:
            raise OSError("zero-byte read")
        doc = FakeDocument(self)
        self.documents.append(doc)
        return doc


def widths(images: List[bytes]) -> List[int]:
    return [Image.open(io.BytesIO(image)).width for image in images]


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def rasterizer(backend: FakeBackend, sleeps) -> PageRasterizer:
    return PageRasterizer(RasterConfig(render_timeout_s=5.0), backend=backend, sleep=sleeps)


class TestComputeScale:
    """Test suite for the render scale clamp."""

    def test_a4_scales_long_edge_to_target(self) -> None:
        scale = compute_scale(595, 842, RasterConfig())
        assert scale == pytest.approx(1200 / 842)

    def test_small_page_clamped_to_max(self) -> None:
        assert compute_scale(100, 100, RasterConfig()) == 2.0

    def test_huge_page_clamped_to_min(self) -> None:
        assert compute_scale(5000, 3000, RasterConfig()) == 1.0

    def test_landscape_uses_long_edge(self) -> None:
        assert compute_scale(842, 595, RasterConfig()) == pytest.approx(1200 / 842)


class TestRealDocuments:
    """Rendering documents generated with fitz."""

    def test_renders_all_pages_as_png(self, make_pdf) -> None:
        """Test rendering every page of a small document."""
        pdf_path = make_pdf(pages=3)
        images = PageRasterizer().rasterize(pdf_path)

        assert len(images) == 3
        for image_bytes in images:
            img = Image.open(io.BytesIO(image_bytes))
            assert img.format == "PNG"
            assert img.mode == "RGB"
            # A4 long edge is brought to ~1200 px
            assert abs(img.height - 1200) <= 2

    def test_small_page_upscaled_at_most_twice(self, make_pdf) -> None:
        pdf_path = make_pdf(pages=1, size=(100, 100))
        images = PageRasterizer().rasterize(pdf_path)

        img = Image.open(io.BytesIO(images[0]))
        assert img.size == (200, 200)

    def test_large_page_not_downscaled_below_one(self, make_pdf) -> None:
        pdf_path = make_pdf(pages=1, size=(1600, 900))
        images = PageRasterizer().rasterize(pdf_path)

        img = Image.open(io.BytesIO(images[0]))
        assert img.size == (1600, 900)

    def test_max_pages_limit(self, make_pdf) -> None:
        pdf_path = make_pdf(pages=5)
        images = PageRasterizer(RasterConfig(max_pages=2)).rasterize(pdf_path)
        assert len(images) == 2

    def test_explicit_max_pages_overrides_config(self, make_pdf) -> None:
        pdf_path = make_pdf(pages=5)
        images = PageRasterizer(RasterConfig(max_pages=2)).rasterize(pdf_path, max_pages=4)
        assert len(images) == 4

    def test_truncated_document_fails_with_rasterization_error(self, tmp_path: Path, sleeps) -> None:
        pdf_path = tmp_path / "broken.pdf"
        pdf_path.write_bytes(b"%PDF-1.4\n" + b"\x00garbage" * 10)

        with pytest.raises(RasterizationError):
            PageRasterizer(sleep=sleeps).rasterize(pdf_path)


class TestSourceValidation:
    """Failures detected before the document is opened."""

    def test_empty_file(self, tmp_path: Path, rasterizer: PageRasterizer, backend: FakeBackend) -> None:
        pdf_path = tmp_path / "empty.pdf"
        pdf_path.write_bytes(b"")

        with pytest.raises(EmptySource) as exc_info:
            rasterizer.rasterize(pdf_path)

        assert exc_info.value.document == "empty.pdf"
        assert backend.open_calls == 0

    def test_bad_signature(self, tmp_path: Path, rasterizer: PageRasterizer, backend: FakeBackend, sleeps) -> None:
        pdf_path = tmp_path / "archive.pdf"
        pdf_path.write_bytes(b"PK\x03\x04 not a page document")

        with pytest.raises(InvalidFormat):
            rasterizer.rasterize(pdf_path)

        assert backend.open_calls == 0
        assert sleeps.calls == []

    def test_missing_file_retried_then_decode_failed(self, tmp_path: Path, rasterizer: PageRasterizer, sleeps) -> None:
        with pytest.raises(DecodeFailed) as exc_info:
            rasterizer.rasterize(tmp_path / "missing.pdf")

        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_error, OSError)
        assert sleeps.calls == [1.0, 2.0]

    def test_non_positive_max_pages_rejected(self, rasterizer: PageRasterizer) -> None:
        with pytest.raises(ValueError):
            rasterizer.rasterize_bytes(PDF_BYTES, "doc.pdf", max_pages=0)


class TestOpenRetry:
    """Bounded retry with linear backoff when opening documents."""

    def test_three_attempts_then_decode_failed(self, sleeps) -> None:
        backend = FakeBackend(open_failures=10)
        rasterizer = PageRasterizer(backend=backend, sleep=sleeps)

        with pytest.raises(DecodeFailed) as exc_info:
            rasterizer.rasterize_bytes(PDF_BYTES, "locked.pdf")

        assert backend.open_calls == 3
        # Waits 1 and 2 units; nothing after the final attempt
        assert sleeps.calls == [1.0, 2.0]
        assert exc_info.value.attempts == 3
        assert "zero-byte read" in str(exc_info.value)

    def test_recovers_on_third_attempt(self, sleeps) -> None:
        backend = FakeBackend(open_failures=2)
        rasterizer = PageRasterizer(backend=backend, sleep=sleeps)

        images = rasterizer.rasterize_bytes(PDF_BYTES, "flaky.pdf")

        assert len(images) == 3
        assert backend.open_calls == 3
        assert sleeps.calls == [1.0, 2.0]

    def test_backoff_unit_from_config(self, sleeps) -> None:
        backend = FakeBackend(open_failures=10)
        rasterizer = PageRasterizer(RasterConfig(backoff_unit_s=0.25), backend=backend, sleep=sleeps)

        with pytest.raises(DecodeFailed):
            rasterizer.rasterize_bytes(PDF_BYTES, "locked.pdf")

        assert sleeps.calls == [0.25, 0.5]


class TestPageFailures:
    """Page-level failures skip the page and keep the rest in order."""

    def test_page_order_preserved(self, rasterizer: PageRasterizer, backend: FakeBackend) -> None:
        backend.pages = 4
        images = rasterizer.rasterize_bytes(PDF_BYTES, "doc.pdf")
        assert widths(images) == [32, 33, 34, 35]

    def test_timed_out_page_is_skipped(self, sleeps) -> None:
        """Page 3 outlives its timeout but finishes within the grace period."""
        backend = FakeBackend(pages=5)
        backend.hang_pages = {2}
        backend.hang_s = 0.75
        rasterizer = PageRasterizer(RasterConfig(render_timeout_s=0.5), backend=backend, sleep=sleeps)

        images = rasterizer.rasterize_bytes(PDF_BYTES, "slow.pdf")

        assert widths(images) == [32, 33, 35, 36]
        assert backend.peak_live_renders == 1
        # Hung render finished before close, so the document was closed
        assert backend.documents[0].closed

    def test_still_running_render_stops_document(self, sleeps) -> None:
        backend = FakeBackend(pages=5)
        backend.hang_pages = {2}
        rasterizer = PageRasterizer(RasterConfig(render_timeout_s=0.1), backend=backend, sleep=sleeps)

        try:
            images = rasterizer.rasterize_bytes(PDF_BYTES, "stuck.pdf")

            assert widths(images) == [32, 33]
            assert backend.peak_live_renders == 1
            assert len(backend.loaded_pages) == 3
            assert not backend.documents[0].closed
        finally:
            backend.release_hung.set()

    def test_failing_page_is_skipped(self, rasterizer: PageRasterizer, backend: FakeBackend) -> None:
        backend.failing_pages = {1}
        images = rasterizer.rasterize_bytes(PDF_BYTES, "doc.pdf")
        assert widths(images) == [32, 34]

    def test_missing_page_object_is_skipped(self, rasterizer: PageRasterizer, backend: FakeBackend) -> None:
        backend.missing_pages = {0}
        images = rasterizer.rasterize_bytes(PDF_BYTES, "doc.pdf")
        assert widths(images) == [33, 34]

    def test_invalid_page_size_is_skipped(self, rasterizer: PageRasterizer, backend: FakeBackend) -> None:
        backend.page_sizes = {1: (0.0, 842.0)}
        images = rasterizer.rasterize_bytes(PDF_BYTES, "doc.pdf")
        assert widths(images) == [32, 34]

    def test_degenerate_image_is_skipped(self, rasterizer: PageRasterizer, backend: FakeBackend) -> None:
        backend.degenerate_pages = {2}
        images = rasterizer.rasterize_bytes(PDF_BYTES, "doc.pdf")
        assert widths(images) == [32, 33]

    def test_all_pages_failing_raises_no_pages_rendered(
        self, rasterizer: PageRasterizer, backend: FakeBackend
    ) -> None:
        backend.failing_pages = {0, 1, 2}
        with pytest.raises(NoPagesRendered):
            rasterizer.rasterize_bytes(PDF_BYTES, "doc.pdf")
        assert backend.documents[0].closed

    def test_zero_page_document(self, rasterizer: PageRasterizer, backend: FakeBackend) -> None:
        backend.pages = 0
        with pytest.raises(EmptyDocument):
            rasterizer.rasterize_bytes(PDF_BYTES, "doc.pdf")
        assert backend.documents[0].closed


class TestResourceCleanup:
    """Every acquired handle is released on every exit path."""

    def test_pages_and_pixels_released(self, rasterizer: PageRasterizer, backend: FakeBackend) -> None:
        rasterizer.rasterize_bytes(PDF_BYTES, "doc.pdf")

        assert backend.documents[0].closed
        assert all(page.closed for page in backend.loaded_pages)
        assert all(pixels.released for pixels in backend.pixels)

    def test_page_closed_when_render_fails(self, rasterizer: PageRasterizer, backend: FakeBackend) -> None:
        backend.failing_pages = {0}
        rasterizer.rasterize_bytes(PDF_BYTES, "doc.pdf")

        assert backend.loaded_pages[0].closed

    def test_pixels_released_when_image_degenerate(self, rasterizer: PageRasterizer, backend: FakeBackend) -> None:
        backend.degenerate_pages = {0}
        rasterizer.rasterize_bytes(PDF_BYTES, "doc.pdf")

        assert backend.pixels[0].released

    def test_scale_passed_to_backend(self, rasterizer: PageRasterizer, backend: FakeBackend) -> None:
        backend.pages = 1
        backend.page_sizes = {0: (100.0, 50.0)}
        rasterizer.rasterize_bytes(PDF_BYTES, "doc.pdf")

        assert backend.scales == [2.0]


class TestTryRasterize:
    """Outcome-valued variant."""

    def test_success_outcome(self, tmp_path: Path, rasterizer: PageRasterizer) -> None:
        pdf_path = tmp_path / "doc.pdf"
        pdf_path.write_bytes(PDF_BYTES)

        outcome = rasterizer.try_rasterize(pdf_path)

        assert outcome.ok
        assert outcome.document == "doc.pdf"
        assert len(outcome.images) == 3

    def test_failure_outcome(self, tmp_path: Path, rasterizer: PageRasterizer) -> None:
        pdf_path = tmp_path / "doc.pdf"
        pdf_path.write_bytes(b"")

        outcome = rasterizer.try_rasterize(pdf_path)

        assert not outcome.ok
        assert isinstance(outcome.error, EmptySource)
        assert outcome.images == []
