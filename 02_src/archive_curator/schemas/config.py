"""Configuration schemas for rasterization, scheduling and the curator session."""

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

PDF_SIGNATURE = b"%PDF"
INTERACTIVE_MAX_PAGES = 50


@dataclass
class RasterConfig:
    """Configuration for page rasterization.

    Attributes:
        max_pages: Maximum number of pages rendered per document
        target_long_edge: Long edge (in points at scale 1) the render scale aims for
        min_scale: Lower clamp for the render scale
        max_scale: Upper clamp for the render scale
        render_timeout_s: Per-page render timeout in seconds
        open_attempts: Attempts for reading and opening a document
        backoff_unit_s: Linear backoff unit; attempt n waits n * unit before retrying
        min_encoded_bytes: Encoded images smaller than this are treated as degenerate
        image_format: PIL format name for encoded pages
        signature: Leading bytes every accepted document must start with
    """

    max_pages: int = 20
    target_long_edge: float = 1200.0
    min_scale: float = 1.0
    max_scale: float = 2.0
    render_timeout_s: float = 30.0
    open_attempts: int = 3
    backoff_unit_s: float = 1.0
    min_encoded_bytes: int = 100
    image_format: str = "PNG"
    signature: bytes = PDF_SIGNATURE

    def __post_init__(self):
        if self.max_pages < 1:
            raise ValueError(f"max_pages must be positive, got {self.max_pages}")
        if self.open_attempts < 1:
            raise ValueError(f"open_attempts must be positive, got {self.open_attempts}")
        if self.min_scale <= 0 or self.min_scale > self.max_scale:
            raise ValueError(
                f"Invalid scale range: min_scale={self.min_scale}, max_scale={self.max_scale}"
            )
        if self.render_timeout_s <= 0:
            raise ValueError(f"render_timeout_s must be positive, got {self.render_timeout_s}")

    def interactive(self, max_pages: int = INTERACTIVE_MAX_PAGES) -> "RasterConfig":
        """Copy with the higher page ceiling used for single-document runs."""
        return replace(self, max_pages=max_pages)


@dataclass
class SchedulerConfig:
    """Configuration for the batch rasterization scheduler.

    Attributes:
        inter_document_delay_s: Pause before every document after the first
        recovery_delay_s: Pause after a failed document
        raster: Rasterization settings used for batch runs
    """

    inter_document_delay_s: float = 0.5
    recovery_delay_s: float = 1.0
    raster: RasterConfig = field(default_factory=RasterConfig)


@dataclass
class CuratorConfig:
    """Configuration for CuratorSession.

    Attributes:
        state_dir: Root directory for staged batch artifacts (None = in memory)
        log_level: Logging level (default: INFO)
        embed_files: Ask the bundle writer to embed files rather than link them
        scheduler: Scheduler settings
    """

    state_dir: Optional[Path] = None
    log_level: str = "INFO"
    embed_files: bool = True
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)

    @classmethod
    def from_env(cls) -> "CuratorConfig":
        """Build config from environment variables (and a .env file if present).

        Recognized variables:
            ARCHIVE_CURATOR_STATE_DIR, ARCHIVE_CURATOR_LOG_LEVEL,
            ARCHIVE_CURATOR_MAX_PAGES, ARCHIVE_CURATOR_RENDER_TIMEOUT
        """
        load_dotenv()

        state_dir = os.getenv("ARCHIVE_CURATOR_STATE_DIR")
        raster = RasterConfig()
        max_pages = os.getenv("ARCHIVE_CURATOR_MAX_PAGES")
        if max_pages:
            raster = replace(raster, max_pages=int(max_pages))
        timeout = os.getenv("ARCHIVE_CURATOR_RENDER_TIMEOUT")
        if timeout:
            raster = replace(raster, render_timeout_s=float(timeout))

        return cls(
            state_dir=Path(state_dir) if state_dir else None,
            log_level=os.getenv("ARCHIVE_CURATOR_LOG_LEVEL", "INFO"),
            scheduler=SchedulerConfig(raster=raster),
        )
