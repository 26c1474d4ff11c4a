"""Batch context: classification registry plus selection model."""

import logging
import threading
import time
from collections import OrderedDict
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from ..errors import UnknownArchive
from ..schemas.archive import ArchiveRecord, AssetCategory
from .selection import SelectionModel, SelectionState

logger = logging.getLogger(__name__)


class ClassificationRegistry:
    """Archive records of a batch, kept in import order."""

    def __init__(self) -> None:
        self._records: "OrderedDict[str, ArchiveRecord]" = OrderedDict()

    def __contains__(self, archive_id: str) -> bool:
        return archive_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[ArchiveRecord]:
        return iter(list(self._records.values()))

    def ids(self) -> List[str]:
        return list(self._records)

    def add(self, record: ArchiveRecord) -> None:
        if record.id in self._records:
            raise ValueError(f"Duplicate archive id in batch: {record.id}")
        self._records[record.id] = record

    def get(self, archive_id: str) -> ArchiveRecord:
        try:
            return self._records[archive_id]
        except KeyError:
            raise UnknownArchive(archive_id) from None

    def remove(self, archive_id: str) -> ArchiveRecord:
        try:
            return self._records.pop(archive_id)
        except KeyError:
            raise UnknownArchive(archive_id) from None


class Batch:
    """One import session: archive records and their selection states.

    Passed explicitly to the scheduler, export builder and session. The two
    stores change together only through add_archive(), append_thumbnails()
    and remove_archive(), each under the archive's mutation lock.
    """

    def __init__(self, batch_id: str, created_at: Optional[int] = None) -> None:
        self.batch_id = batch_id
        self.created_at = int(time.time()) if created_at is None else created_at
        self.registry = ClassificationRegistry()
        self.selection = SelectionModel()
        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    @classmethod
    def from_import(
        cls, batch_id: str, records: Iterable[ArchiveRecord], created_at: Optional[int] = None
    ) -> "Batch":
        """Build a batch from importer output, initializing selections 1:1."""
        batch = cls(batch_id, created_at=created_at)
        for record in records:
            batch.add_archive(record)
        logger.info(f"Batch {batch_id} created with {len(batch.registry)} archives")
        return batch

    def __len__(self) -> int:
        return len(self.registry)

    def __iter__(self) -> Iterator[ArchiveRecord]:
        return iter(self.registry)

    def archive_lock(self, archive_id: str) -> threading.RLock:
        """Mutation token guarding both stores for one archive."""
        with self._locks_guard:
            lock = self._locks.get(archive_id)
            if lock is None:
                lock = self._locks[archive_id] = threading.RLock()
            return lock

    def get(self, archive_id: str) -> Tuple[ArchiveRecord, SelectionState]:
        return self.registry.get(archive_id), self.selection.get(archive_id)

    def add_archive(self, record: ArchiveRecord) -> None:
        with self.archive_lock(record.id):
            self.registry.add(record)
            self.selection.initialize(record)

    def remove_archive(self, archive_id: str) -> ArchiveRecord:
        """Remove an archive from both stores as one operation.

        Waits for an in-flight thumbnail append on the same archive.

        Raises:
            UnknownArchive: If the archive is not in the batch; nothing changes
        """
        with self.archive_lock(archive_id):
            if archive_id not in self.registry or archive_id not in self.selection:
                raise UnknownArchive(archive_id)
            record = self.registry.remove(archive_id)
            self.selection.remove(archive_id)

        with self._locks_guard:
            self._locks.pop(archive_id, None)
        logger.info(f"Removed archive {archive_id} ({record.filename}) from batch {self.batch_id}")
        return record

    def append_thumbnails(self, archive_id: str, paths: List[str]) -> bool:
        """Append page thumbnails and their default-selected flags together.

        Returns:
            False if the archive was removed meanwhile (nothing appended)
        """
        with self.archive_lock(archive_id):
            if archive_id not in self.registry:
                logger.info(f"Archive {archive_id} removed before thumbnails landed, dropping {len(paths)}")
                return False
            self.registry.get(archive_id).append_thumbnails(paths)
            self.selection.append_flags(archive_id, AssetCategory.PDF_SCREENS, len(paths), True)
        return True

    # === Archive-level selection over the (optionally filtered) list ===

    def visible(self, filter_text: str = "") -> List[ArchiveRecord]:
        """Archives whose filename contains filter_text (case-insensitive)."""
        needle = filter_text.strip().lower()
        if not needle:
            return list(self.registry)
        return [r for r in self.registry if needle in r.filename.lower()]

    def stats(self, filter_text: str = "") -> Dict[str, int]:
        """Total and included counts over visible archives."""
        visible = self.visible(filter_text)
        selected = sum(1 for r in visible if self.selection.get(r.id).include)
        return {"total": len(visible), "selected": selected}

    def set_include_all(self, value: bool, filter_text: str = "") -> None:
        for record in self.visible(filter_text):
            self.selection.set_include(record.id, value)

    def invert_include(self, filter_text: str = "") -> None:
        for record in self.visible(filter_text):
            state = self.selection.get(record.id)
            state.include = not state.include

    # === Serialization (batch.json) ===

    def to_dict(self) -> Dict[str, Any]:
        return {
            "batch_id": self.batch_id,
            "created_at": self.created_at,
            "zips": [record.to_dict() for record in self.registry],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Batch":
        return cls.from_import(
            data["batch_id"],
            [ArchiveRecord.from_dict(z) for z in data.get("zips") or []],
            created_at=data.get("created_at"),
        )
