"""Data schemas for archive_curator."""

from .archive import (
    ArchiveRecord,
    AssetCategory,
    DocumentFields,
    SupplementaryDocument,
    failed_status,
    is_failed,
)
from .common import BatchReport, ProgressEvent, RasterizationOutcome
from .config import CuratorConfig, RasterConfig, SchedulerConfig

__all__ = [
    "ArchiveRecord",
    "AssetCategory",
    "DocumentFields",
    "SupplementaryDocument",
    "failed_status",
    "is_failed",
    "BatchReport",
    "ProgressEvent",
    "RasterizationOutcome",
    "CuratorConfig",
    "RasterConfig",
    "SchedulerConfig",
]
