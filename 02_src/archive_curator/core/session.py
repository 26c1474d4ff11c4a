"""CuratorSession - one operator session over a single batch."""

import logging
import threading
from typing import Callable, List, Optional, Sequence

from ..errors import CuratorError, ExportError
from ..preprocessing.renderer import PageRasterizer
from ..schemas.archive import ArchiveRecord
from ..schemas.common import BatchReport
from ..schemas.config import CuratorConfig
from ..utils.naming import display_name
from .batch import Batch
from .collaborators import BundleWriter, ImportCollaborator, OpenCollaborator, ReportWriter
from .export import (
    BundleDescriptor,
    ReportDescriptor,
    apply_bundle_descriptor,
    build_bundle_descriptor,
    build_report_descriptor,
)
from .progress import CancellationToken, ProgressChannel
from .scheduler import BatchRasterizationScheduler
from .state import BatchStateManager

logger = logging.getLogger(__name__)


class CuratorSession:
    """Main entry point: import, rasterize, curate and export one batch.

    Holds the batch explicitly instead of module-level state. Importing a
    new batch discards the previous one together with its staged files.
    """

    def __init__(
        self,
        importer: ImportCollaborator,
        report_writer: Optional[ReportWriter] = None,
        bundle_writer: Optional[BundleWriter] = None,
        opener: Optional[OpenCollaborator] = None,
        config: Optional[CuratorConfig] = None,
        rasterizer: Optional[PageRasterizer] = None,
        on_status: Optional[Callable[[str], None]] = None,
    ):
        """Initialize session.

        Args:
            importer: Archive import collaborator
            report_writer: Tabular report writer (optional)
            bundle_writer: Bundled document writer (optional)
            opener: Platform open action (optional)
            config: Session configuration
            rasterizer: Page rasterizer (created from config if not provided)
            on_status: Receives every human-readable status line
        """
        self.config = config or CuratorConfig()
        self.importer = importer
        self.report_writer = report_writer
        self.bundle_writer = bundle_writer
        self.opener = opener
        self.rasterizer = rasterizer or PageRasterizer(self.config.scheduler.raster)
        self.progress = ProgressChannel()
        self._on_status = on_status

        self.status = ""
        self._batch: Optional[Batch] = None
        self._state: Optional[BatchStateManager] = None
        self._scheduler: Optional[BatchRasterizationScheduler] = None
        self._cancel: Optional[CancellationToken] = None
        self._worker: Optional[threading.Thread] = None

    def __enter__(self) -> "CuratorSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()

    # === Batch lifecycle ===

    @property
    def batch(self) -> Batch:
        if self._batch is None:
            raise CuratorError("No batch imported")
        return self._batch

    @property
    def has_batch(self) -> bool:
        return self._batch is not None

    def import_archives(self, paths: Sequence[str]) -> Batch:
        """Import archives through the collaborator and start a new batch."""
        if self._batch is not None:
            self.cleanup()

        self._set_status(f"Importing {len(paths)} archives...")
        batch_id, records = self.importer.import_archives(paths)

        self._batch = Batch.from_import(batch_id, records)
        self._state = BatchStateManager.for_batch(self.config.state_dir, batch_id)
        self._state.save_batch(self._batch.to_dict())
        self._scheduler = BatchRasterizationScheduler(
            rasterizer=self.rasterizer,
            store=self._state,
            config=self.config.scheduler,
            progress=self.progress,
            on_status=self._set_status,
        )

        self._set_status(f"Imported batch {batch_id} ({len(self._batch)} archives)")
        return self._batch

    def remove_archive(self, archive_id: str) -> ArchiveRecord:
        record = self.batch.remove_archive(archive_id)
        self._persist()
        self._set_status(f"Removed {record.filename}")
        return record

    def cleanup(self) -> None:
        """Stop rasterization, purge staged files and drop the batch.

        A render still running after the join timeout finishes on its own;
        the purged state manager refuses its writes.
        """
        self.cancel_rasterization()
        if self._worker is not None:
            self._worker.join(timeout=self.config.scheduler.raster.render_timeout_s)
            self._worker = None

        if self._state is not None:
            self._state.purge()
        if self._batch is not None:
            logger.info(f"Cleaned up batch {self._batch.batch_id}")

        self._batch = None
        self._state = None
        self._scheduler = None
        self._cancel = None

    # === Rasterization ===

    def rasterize(self, cancel: Optional[CancellationToken] = None) -> BatchReport:
        """Run the scheduler synchronously and persist the updated batch."""
        batch = self.batch
        state = self._state_manager()
        report = self._scheduler.run(batch, cancel=cancel)
        # No-op when cleanup purged this batch while the run was in flight
        state.save_batch(batch.to_dict())
        return report

    def start_rasterization(self) -> threading.Thread:
        """Run rasterization on a background thread; operator actions stay available."""
        if self._worker is not None and self._worker.is_alive():
            return self._worker

        self._cancel = CancellationToken()
        self._worker = threading.Thread(
            target=self.rasterize,
            kwargs={"cancel": self._cancel},
            name=f"rasterize-{self.batch.batch_id}",
            daemon=True,
        )
        self._worker.start()
        return self._worker

    def cancel_rasterization(self) -> None:
        if self._cancel is not None:
            self._cancel.cancel()

    # === Export ===

    def report_descriptor(self) -> ReportDescriptor:
        return build_report_descriptor(self.batch)

    def bundle_descriptor(self) -> BundleDescriptor:
        return build_bundle_descriptor(self.batch)

    def preview_bundle(self) -> List[ArchiveRecord]:
        """Archive records as the bundle writer would receive them."""
        return apply_bundle_descriptor(self.batch, self.bundle_descriptor())

    def save_descriptor(self, name: str = "bundle_selection") -> str:
        """Stage the bundle descriptor as YAML; returns its location."""
        return self._state_manager().save_result(name, self.bundle_descriptor().to_dict())

    def export_report(self) -> str:
        if self.report_writer is None:
            raise ExportError("No report writer configured")

        descriptor = self.report_descriptor()
        self._set_status(f"Exporting report for {len(descriptor.zip_ids)} archives...")
        try:
            out_path = self.report_writer.write_report(descriptor.batch_id, list(descriptor.zip_ids))
        except Exception as e:
            self._set_status(f"Export failed: {e}")
            raise ExportError(f"Report export failed: {e}") from e

        self._set_status(f"Report exported: {out_path}")
        return out_path

    def export_bundle(self) -> str:
        if self.bundle_writer is None:
            raise ExportError("No bundle writer configured")

        descriptor = self.bundle_descriptor()
        self._set_status("Exporting bundle...")
        try:
            out_path = self.bundle_writer.write_bundle(
                descriptor.batch_id, descriptor, self.config.embed_files
            )
        except Exception as e:
            self._set_status(f"Export failed: {e}")
            raise ExportError(f"Bundle export failed: {e}") from e

        self._set_status(f"Bundle exported: {out_path}")
        return out_path

    # === Misc ===

    def open_asset(self, path: str) -> str:
        """Open a path with the default handler; failures become status text."""
        if self.opener is None:
            return self._set_status("Opening files is not available")
        try:
            self.opener.open_path(path)
        except Exception as e:
            logger.warning(f"Failed to open {path}: {e}")
            return self._set_status(f"Failed to open {display_name(path)}: {e}")
        return self._set_status(f"Opened {display_name(path)}")

    def _state_manager(self) -> BatchStateManager:
        if self._state is None:
            raise CuratorError("No batch imported")
        return self._state

    def _persist(self) -> None:
        if self._state is not None and self._batch is not None:
            self._state.save_batch(self._batch.to_dict())

    def _set_status(self, message: str) -> str:
        self.status = message
        logger.info(message)
        if self._on_status is not None:
            try:
                self._on_status(message)
            except Exception as e:
                logger.warning(f"Status callback failed: {e}")
        return message
