"""Batch rasterization scheduler - serial thumbnail generation for a batch."""

import logging
import threading
from typing import Callable, List, Optional, Protocol, Tuple

from ..errors import RasterizationError
from ..preprocessing.renderer import PageRasterizer
from ..schemas.archive import ArchiveRecord
from ..schemas.common import BatchReport, ProgressEvent
from ..schemas.config import SchedulerConfig
from ..utils.naming import display_name
from .batch import Batch
from .progress import CancellationToken, ProgressChannel

logger = logging.getLogger(__name__)

OPERATION = "pdf_screens"


class ThumbnailStore(Protocol):
    """Persistence collaborator for rendered page images."""

    def save_page_images(
        self, batch_id: str, archive_id: str, document_name: str, images: List[bytes]
    ) -> List[str]:
        """Store images and return the paths that were stored, in order."""
        ...


class BatchRasterizationScheduler:
    """Renders thumbnails for every pending page-document of a batch.

    Documents are processed one at a time: concurrent rendering exhausted
    resources and produced zero-byte reads on constrained machines.

    Features:
    - Skips failed archives and archives that already have thumbnails
    - Fixed pause between documents, recovery pause after a failure
    - Never raises for a document failure; returns a BatchReport
    - Structured progress events and human-readable status messages
    - Cooperative cancellation: no new document starts once cancelled
    """

    def __init__(
        self,
        rasterizer: PageRasterizer,
        store: ThumbnailStore,
        config: Optional[SchedulerConfig] = None,
        progress: Optional[ProgressChannel] = None,
        on_status: Optional[Callable[[str], None]] = None,
    ):
        """Initialize scheduler.

        Args:
            rasterizer: Page rasterizer used for every document
            store: Persistence collaborator for page images
            config: Scheduler settings (delays, batch raster limits)
            progress: Channel receiving ProgressEvent per step
            on_status: Receives human-readable status lines
        """
        self.config = config or SchedulerConfig()
        self.rasterizer = rasterizer
        self.store = store
        self.progress = progress or ProgressChannel()
        self._on_status = on_status
        self._busy = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._busy.locked()

    def pending_documents(self, batch: Batch) -> List[Tuple[ArchiveRecord, str]]:
        """(archive, document path) pairs the next run would process, in batch order."""
        pending = []
        for record in batch:
            if record.failed:
                continue
            if not record.pdf_files:
                continue
            # Already rendered: re-running must not duplicate thumbnails
            if record.has_thumbnails:
                continue
            pending.extend((record, pdf_path) for pdf_path in list(record.pdf_files))
        return pending

    def run(self, batch: Batch, cancel: Optional[CancellationToken] = None) -> BatchReport:
        """Render and store thumbnails for every pending document of the batch.

        Args:
            batch: Batch to process
            cancel: Optional cancellation token checked before each document

        Returns:
            BatchReport with attempted/succeeded/failed counts
        """
        if not self._busy.acquire(blocking=False):
            logger.warning(f"Rasterization already running, ignoring run request for batch {batch.batch_id}")
            return BatchReport()

        try:
            return self._run(batch, cancel or CancellationToken())
        finally:
            self._busy.release()

    def _run(self, batch: Batch, cancel: CancellationToken) -> BatchReport:
        report = BatchReport()
        pending = self.pending_documents(batch)
        total = len(pending)

        if total == 0:
            self._status("No page-documents need thumbnails")
            self._emit(0, 0, "Done", "No page-documents need thumbnails", complete=True)
            return report

        logger.info(f"Rasterizing {total} page-documents for batch {batch.batch_id}")
        self._status(f"Generating page screenshots for {total} documents...")

        reached = 0
        for step, (record, pdf_path) in enumerate(pending, start=1):
            if cancel.cancelled:
                report.cancelled = True
                break

            doc_name = display_name(pdf_path)
            label = f"{record.filename} / {doc_name}"

            if step > 1 and cancel.wait(self.config.inter_document_delay_s):
                report.cancelled = True
                break

            reached = step
            if record.id not in batch.registry:
                logger.info(f"Archive {record.id} removed, skipping {doc_name}")
                continue

            report.attempted += 1
            self._status(f"Generating page screenshots ({step}/{total}): {label}")
            self._emit(step, total, "Rendering", label)

            try:
                images = self.rasterizer.rasterize(pdf_path, max_pages=self.config.raster.max_pages)
                paths = self.store.save_page_images(batch.batch_id, record.id, doc_name, images)
            except RasterizationError as e:
                self._record_failure(report, label, e, step, total)
                cancel.wait(self.config.recovery_delay_s)
                continue
            except Exception as e:
                logger.exception(f"Unexpected failure while rasterizing {label}")
                self._record_failure(report, label, e, step, total)
                cancel.wait(self.config.recovery_delay_s)
                continue

            if not paths:
                self._record_failure(report, label, "no page images could be stored", step, total)
                cancel.wait(self.config.recovery_delay_s)
                continue

            batch.append_thumbnails(record.id, paths)
            report.succeeded += 1
            logger.info(f"Stored {len(paths)} thumbnails for {label}")

        summary = report.summary()
        if report.failed:
            message = f"Page screenshots finished: {summary}"
        else:
            message = f"Page screenshots finished: {report.succeeded} documents processed"
        if report.cancelled:
            message += " (cancelled)"

        logger.info(f"Batch {batch.batch_id} rasterization: attempted {report.attempted}, {summary}")
        self._status(message)
        self._emit(reached, total, "Done", message, complete=True)
        return report

    def _record_failure(self, report: BatchReport, label: str, error, step: int, total: int) -> None:
        report.failed += 1
        report.failures.append(f"{label}: {error}")
        logger.warning(f"Page screenshots failed for {label}: {error}")
        self._status(f"Page screenshots failed ({step}/{total}): {label} - {error}")

    def _status(self, message: str) -> None:
        if self._on_status is None:
            return
        try:
            self._on_status(message)
        except Exception as e:
            logger.warning(f"Status callback failed: {e}")

    def _emit(self, current: int, total: int, label: str, message: str, complete: bool = False) -> None:
        self.progress.emit(
            ProgressEvent(
                operation=OPERATION,
                current_step=current,
                total_steps=total,
                step_label=label,
                message=message,
                is_complete=complete,
            )
        )
