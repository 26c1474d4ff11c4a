"""Common data schemas."""

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

from ..errors import RasterizationError


@dataclass
class ProgressEvent:
    """Structured progress event.

    Attributes:
        operation: Operation type (e.g. "pdf_screens")
        current_step: Current step, monotonic within a run
        total_steps: Total number of steps
        step_label: Short label of the current step
        message: Human-readable detail
        is_complete: Terminal event of a run
    """
    operation: str
    current_step: int
    total_steps: int
    step_label: str
    message: str = ""
    is_complete: bool = False

    @property
    def fraction(self) -> float:
        if self.total_steps <= 0:
            return 0.0
        return min(1.0, self.current_step / self.total_steps)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class RasterizationOutcome:
    """Either rendered page images or a classified failure, never both.

    Attributes:
        document: Display name of the document
        images: Encoded page images in page order
        error: Terminal failure for the document
    """
    document: str
    images: List[bytes] = field(default_factory=list)
    error: Optional[RasterizationError] = None

    def __post_init__(self):
        if self.error is not None and self.images:
            raise ValueError("RasterizationOutcome cannot carry both images and an error")

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BatchReport:
    """Aggregate result of one scheduler run.

    Attributes:
        attempted: Documents the scheduler started
        succeeded: Documents that produced at least one stored page image
        failed: Documents that failed
        cancelled: Run stopped early on cancellation
        failures: "<archive> / <document>: <reason>" lines for failed documents
    """
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    cancelled: bool = False
    failures: List[str] = field(default_factory=list)

    def summary(self) -> str:
        text = f"succeeded: {self.succeeded}, failed: {self.failed}"
        if self.cancelled:
            text += " (cancelled)"
        return text
