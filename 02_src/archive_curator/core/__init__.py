"""Core components: batch model, selection, scheduling, export and session."""

from .batch import Batch, ClassificationRegistry
from .selection import DocxSelection, SelectionModel, SelectionState
from .progress import CancellationToken, ProgressChannel, QueueProgressSink
from .state import (
    StorageBackend,
    MemoryStorage,
    DiskStorage,
    BatchStateManager,
)
from .scheduler import BatchRasterizationScheduler
from .export import (
    ArchiveExportSelection,
    BundleDescriptor,
    ReportDescriptor,
    apply_bundle_descriptor,
    build_bundle_descriptor,
    build_report_descriptor,
)
from .session import CuratorSession

__all__ = [
    # Batch and selection
    "Batch",
    "ClassificationRegistry",
    "DocxSelection",
    "SelectionModel",
    "SelectionState",
    # Progress
    "CancellationToken",
    "ProgressChannel",
    "QueueProgressSink",
    # State management
    "StorageBackend",
    "MemoryStorage",
    "DiskStorage",
    "BatchStateManager",
    # Scheduling
    "BatchRasterizationScheduler",
    # Export
    "ArchiveExportSelection",
    "BundleDescriptor",
    "ReportDescriptor",
    "apply_bundle_descriptor",
    "build_bundle_descriptor",
    "build_report_descriptor",
    # Session
    "CuratorSession",
]
