"""Interfaces of the external collaborators the curator talks to.

Archive extraction, report writing, bundle writing and the native
"open with default handler" action live outside this package; only their
call shapes are defined here.
"""

from typing import List, Protocol, Sequence, Tuple

from ..schemas.archive import ArchiveRecord
from .export import BundleDescriptor


class ImportCollaborator(Protocol):
    """Extracts and classifies archives."""

    def import_archives(self, paths: Sequence[str]) -> Tuple[str, List[ArchiveRecord]]:
        """Return (batch_id, archive records with classified assets and no thumbnails)."""
        ...


class OpenCollaborator(Protocol):
    """Opens a path with the platform default handler (fire-and-forget)."""

    def open_path(self, path: str) -> None:
        ...


class ReportWriter(Protocol):
    def write_report(self, batch_id: str, archive_ids: List[str]) -> str:
        """Write the tabular report; return its output path."""
        ...


class BundleWriter(Protocol):
    def write_bundle(self, batch_id: str, descriptor: BundleDescriptor, embed_files: bool) -> str:
        """Write the bundled document; return its output path."""
        ...
