"""Page rasterizer converting page-documents into page-image thumbnails."""

import io
import logging
import threading
import time
from concurrent.futures import Future, TimeoutError as FutureTimeout, wait
from pathlib import Path
from typing import Callable, List, Optional, Union

from ..utils.retry import linear_backoff, retry_with_backoff
from ..errors import (
    DecodeFailed,
    DegenerateImage,
    EmptyDocument,
    EmptySource,
    InvalidFormat,
    NoPagesRendered,
    PageRenderError,
    RasterizationError,
    RenderTimeout,
    RetryExhausted,
)
from ..schemas.common import RasterizationOutcome
from ..schemas.config import RasterConfig
from .backend import DocumentBackend, DocumentHandle, FitzBackend, PixelBuffer, scoped_resource

logger = logging.getLogger(__name__)


def compute_scale(width: float, height: float, config: RasterConfig) -> float:
    """Render scale that brings the long edge near target_long_edge.

    Clamped to [min_scale, max_scale] so huge pages are not blown up in
    memory and small pages are only upscaled modestly.
    """
    scale = config.target_long_edge / max(width, height)
    return min(config.max_scale, max(config.min_scale, scale))


def _run_in_thread(fn: Callable[[], bytes], name: str) -> Future:
    """Run fn in a daemon thread and return a Future for its result.

    A daemon thread is used so an abandoned (timed out) render never blocks
    interpreter exit.
    """
    future: Future = Future()
    future.set_running_or_notify_cancel()

    def runner():
        try:
            future.set_result(fn())
        except BaseException as e:
            future.set_exception(e)

    threading.Thread(target=runner, name=name, daemon=True).start()
    return future


class PageRasterizer:
    """Renders page-documents to encoded page images.

    Owns no persistent state: each call acquires and releases its own
    document, page and pixel resources. At most one page render is alive
    per document: a render abandoned after a timeout gets one more timeout
    to finish, and if it is still running the remaining pages are skipped.
    """

    def __init__(
        self,
        config: Optional[RasterConfig] = None,
        backend: Optional[DocumentBackend] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize rasterizer.

        Args:
            config: Rasterization settings (defaults to RasterConfig())
            backend: Document backend (defaults to FitzBackend)
            sleep: Sleep function for retry backoff (injected in tests)
        """
        self.config = config or RasterConfig()
        self.backend = backend or FitzBackend()
        self._sleep = sleep

    def rasterize(self, pdf_path: Union[str, Path], max_pages: Optional[int] = None) -> List[bytes]:
        """Render pages of a document file.

        Args:
            pdf_path: Path to a local page-document
            max_pages: Page ceiling, None = config.max_pages

        Returns:
            Encoded page images in page order

        Raises:
            RasterizationError: EmptySource, InvalidFormat, DecodeFailed,
                EmptyDocument or NoPagesRendered
        """
        path = Path(pdf_path)
        data = self._read_source(path)
        return self.rasterize_bytes(data, path.name, max_pages=max_pages)

    def try_rasterize(
        self, pdf_path: Union[str, Path], max_pages: Optional[int] = None
    ) -> RasterizationOutcome:
        """Like rasterize(), but return failures as an outcome value."""
        name = Path(pdf_path).name
        try:
            return RasterizationOutcome(document=name, images=self.rasterize(pdf_path, max_pages))
        except RasterizationError as e:
            return RasterizationOutcome(document=name, error=e)

    def rasterize_bytes(self, data: bytes, name: str, max_pages: Optional[int] = None) -> List[bytes]:
        """Render pages of an in-memory document.

        Args:
            data: Raw document bytes
            name: Display name used in errors and log lines
            max_pages: Page ceiling, None = config.max_pages

        Returns:
            Encoded page images in page order
        """
        limit = self.config.max_pages if max_pages is None else max_pages
        if limit < 1:
            raise ValueError(f"max_pages must be positive, got {limit}")

        self._validate_source(data, name)
        doc = self._open_with_retry(data, name)

        images: List[bytes] = []
        abandoned: List[Future] = []
        try:
            total_pages = doc.page_count
            if total_pages <= 0:
                raise EmptyDocument(name)

            num_pages = min(total_pages, limit)
            logger.info(
                f"Rendering {num_pages} pages from {name} "
                f"(Total pages: {total_pages}, limit: {limit})"
            )

            for page_num in range(1, num_pages + 1):
                image = self._render_page(doc, page_num, name, abandoned)
                if image is not None:
                    images.append(image)
                if not self._await_abandoned(abandoned):
                    logger.warning(
                        f"Stopping {name} after page {page_num} of {num_pages}: "
                        f"timed out render still running"
                    )
                    break
        finally:
            self._close_document(doc, name, abandoned)

        if not images:
            raise NoPagesRendered(name)

        logger.info(f"Successfully rendered {len(images)} pages from {name}")
        return images

    def _read_source(self, path: Path) -> bytes:
        """Read document bytes, retrying transient OS errors (locked files)."""
        try:
            return retry_with_backoff(
                path.read_bytes,
                attempts=self.config.open_attempts,
                delay=linear_backoff(self.config.backoff_unit_s),
                retry_on=(OSError,),
                sleep=self._sleep,
                label=f"Reading {path.name}",
            )
        except RetryExhausted as e:
            raise DecodeFailed(path.name, e.last_error, e.attempts) from e

    def _validate_source(self, data: bytes, name: str) -> None:
        if not data:
            raise EmptySource(name)

        signature = self.config.signature
        if data[: len(signature)] != signature:
            raise InvalidFormat(name, f"leading bytes {data[:len(signature)]!r}")

    def _open_with_retry(self, data: bytes, name: str) -> DocumentHandle:
        try:
            return retry_with_backoff(
                lambda: self.backend.open(data),
                attempts=self.config.open_attempts,
                delay=linear_backoff(self.config.backoff_unit_s),
                sleep=self._sleep,
                label=f"Opening {name}",
            )
        except RetryExhausted as e:
            raise DecodeFailed(name, e.last_error, e.attempts) from e

    def _render_page(
        self,
        doc: DocumentHandle,
        page_num: int,
        name: str,
        abandoned: List[Future],
    ) -> Optional[bytes]:
        """Render one page; page-level failures are logged and yield None."""

        def job() -> bytes:
            # Page and pixel buffer are released by the thread that holds them,
            # so a timed out render still cleans up once it finishes.
            with scoped_resource(doc.load_page(page_num - 1), "close", f"{name} page {page_num}") as page:
                if page is None:
                    raise PageRenderError("no usable page object")

                width, height = page.size()
                if width <= 0 or height <= 0:
                    raise PageRenderError(f"invalid page size {width}x{height}")

                scale = compute_scale(width, height, self.config)
                with scoped_resource(page.render(scale), "release", f"{name} page {page_num} pixels") as pixels:
                    return self._encode(pixels)

        future = _run_in_thread(job, name=f"render-{name}-p{page_num}")
        try:
            try:
                image = future.result(timeout=self.config.render_timeout_s)
            except FutureTimeout:
                abandoned.append(future)
                raise RenderTimeout(f"render exceeded {self.config.render_timeout_s}s") from None
        except PageRenderError as e:
            logger.warning(f"Page {page_num} of {name} skipped: {e}")
            return None
        except Exception as e:
            logger.warning(f"Failed to render page {page_num} of {name}: {e}")
            return None

        logger.debug(f"Rendered page {page_num} of {name} ({len(image)} bytes)")
        return image

    def _encode(self, pixels: PixelBuffer) -> bytes:
        img = pixels.to_image()
        buf = io.BytesIO()
        img.save(buf, format=self.config.image_format)
        image_bytes = buf.getvalue()

        if len(image_bytes) < self.config.min_encoded_bytes:
            raise DegenerateImage(f"encoded image is only {len(image_bytes)} bytes")
        return image_bytes

    def _await_abandoned(self, abandoned: List[Future]) -> bool:
        """Give timed out renders one more timeout; True once none is running."""
        if abandoned:
            _, not_done = wait(abandoned, timeout=self.config.render_timeout_s)
            abandoned[:] = list(not_done)
        return not abandoned

    def _close_document(self, doc: DocumentHandle, name: str, abandoned: List[Future]) -> None:
        if abandoned:
            # Closing under a running render is unsafe
            logger.warning(f"Leaving {name} open: a timed out render is still running")
            return

        try:
            doc.close()
        except Exception as e:
            logger.warning(f"Failed to close {name}: {e}")
