"""
Archive Curator - batch curation of archive contents with resilient page rasterization.

This package provides:
- PageRasterizer: Turn page-documents into bounded, retried page thumbnails
- BatchRasterizationScheduler: Serial thumbnail generation for a whole batch
- SelectionModel: Per-asset inclusion flags kept consistent with the registry
- Export descriptors for the report and bundle writers
"""

__version__ = "0.1.0"

# Core classes
from .core.batch import Batch, ClassificationRegistry
from .core.selection import SelectionModel, SelectionState
from .core.scheduler import BatchRasterizationScheduler
from .core.session import CuratorSession
from .core.export import BundleDescriptor, ReportDescriptor
from .preprocessing.renderer import PageRasterizer

# Schemas
from .schemas.archive import ArchiveRecord, AssetCategory, SupplementaryDocument
from .schemas.common import BatchReport, ProgressEvent
from .schemas.config import CuratorConfig, RasterConfig, SchedulerConfig

# Errors
from .errors import CuratorError, RasterizationError, SelectionError, ExportError

__all__ = [
    # Version
    "__version__",

    # Core classes
    "Batch",
    "ClassificationRegistry",
    "SelectionModel",
    "SelectionState",
    "BatchRasterizationScheduler",
    "CuratorSession",
    "BundleDescriptor",
    "ReportDescriptor",
    "PageRasterizer",

    # Schemas
    "ArchiveRecord",
    "AssetCategory",
    "SupplementaryDocument",
    "BatchReport",
    "ProgressEvent",
    "CuratorConfig",
    "RasterConfig",
    "SchedulerConfig",

    # Errors
    "CuratorError",
    "RasterizationError",
    "SelectionError",
    "ExportError",
]
