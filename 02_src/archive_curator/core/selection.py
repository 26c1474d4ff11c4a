"""Per-archive selection state mirroring every classified asset list."""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Union

from ..errors import IndexOutOfRange, UnknownArchive
from ..schemas.archive import ArchiveRecord, AssetCategory

logger = logging.getLogger(__name__)

CategoryLike = Union[AssetCategory, str]

# Raw page-documents start excluded: their thumbnails already cover them
DEFAULT_FLAGS = {
    AssetCategory.IMAGES: True,
    AssetCategory.VIDEOS: True,
    AssetCategory.PDF_FILES: False,
    AssetCategory.PDF_SCREENS: True,
    AssetCategory.EXCELS: True,
}


@dataclass
class DocxSelection:
    """Selection for one supplementary text document."""

    include_text: bool = True
    include_images: List[bool] = field(default_factory=list)


@dataclass
class SelectionState:
    """Which assets of one archive take part in export.

    Attributes:
        include: Whole archive participates in export
        include_original_zip: Embed the raw archive itself
        images, videos, pdf_files, pdf_screens, excels: One flag per asset
        additional_docx: One DocxSelection per supplementary document
    """

    include: bool = True
    include_original_zip: bool = False
    images: List[bool] = field(default_factory=list)
    videos: List[bool] = field(default_factory=list)
    pdf_files: List[bool] = field(default_factory=list)
    pdf_screens: List[bool] = field(default_factory=list)
    excels: List[bool] = field(default_factory=list)
    additional_docx: List[DocxSelection] = field(default_factory=list)

    @classmethod
    def for_record(cls, record: ArchiveRecord) -> "SelectionState":
        state = cls()
        for category, default in DEFAULT_FLAGS.items():
            state.flags(category).extend([default] * len(record.assets(category)))
        state.additional_docx = [
            DocxSelection(include_text=True, include_images=[True] * len(doc.image_files))
            for doc in record.additional_docx_files
        ]
        return state

    def flags(self, category: CategoryLike) -> List[bool]:
        """Live flag list of a category."""
        return getattr(self, AssetCategory.parse(category).value)


class SelectionModel:
    """Selection states of every archive in a batch.

    All flag writes go through this class. Lengths of flag lists only change
    via initialize() and append_flags(), which callers pair with the matching
    asset append.
    """

    def __init__(self) -> None:
        self._states: Dict[str, SelectionState] = {}

    def __contains__(self, archive_id: str) -> bool:
        return archive_id in self._states

    def __len__(self) -> int:
        return len(self._states)

    def __iter__(self) -> Iterator[str]:
        return iter(self._states)

    def initialize(self, record: ArchiveRecord) -> SelectionState:
        """Create default flags for an archive entering the batch."""
        if record.id in self._states:
            raise ValueError(f"Selection for archive {record.id} already initialized")

        state = SelectionState.for_record(record)
        self._states[record.id] = state
        logger.debug(
            f"Initialized selection for {record.id}: "
            + ", ".join(f"{c.value}={len(state.flags(c))}" for c in AssetCategory)
        )
        return state

    def get(self, archive_id: str) -> SelectionState:
        try:
            return self._states[archive_id]
        except KeyError:
            raise UnknownArchive(archive_id) from None

    def set_flag(self, archive_id: str, category: CategoryLike, index: int, value: bool) -> None:
        """Set one flag.

        Raises:
            IndexOutOfRange: If index is beyond the current flag count; re-read
                the length and retry (an append may be in flight)
        """
        flags = self.get(archive_id).flags(category)
        self._check_index(archive_id, AssetCategory.parse(category).value, index, len(flags))
        flags[index] = bool(value)

    def bulk_set(self, archive_id: str, category: CategoryLike, value: bool) -> None:
        flags = self.get(archive_id).flags(category)
        flags[:] = [bool(value)] * len(flags)

    def invert(self, archive_id: str, category: CategoryLike) -> None:
        flags = self.get(archive_id).flags(category)
        flags[:] = [not f for f in flags]

    def append_flags(self, archive_id: str, category: CategoryLike, count: int, value: bool = True) -> None:
        """Extend a category's flags; pair with the matching asset append."""
        if count < 0:
            raise ValueError(f"count must be >= 0, got {count}")
        self.get(archive_id).flags(category).extend([bool(value)] * count)

    def remove(self, archive_id: str) -> SelectionState:
        try:
            return self._states.pop(archive_id)
        except KeyError:
            raise UnknownArchive(archive_id) from None

    def set_include(self, archive_id: str, value: bool) -> None:
        self.get(archive_id).include = bool(value)

    def set_include_original_zip(self, archive_id: str, value: bool) -> None:
        self.get(archive_id).include_original_zip = bool(value)

    # === Supplementary documents ===

    def _docx(self, archive_id: str, doc_index: int) -> DocxSelection:
        docs = self.get(archive_id).additional_docx
        self._check_index(archive_id, "additional_docx", doc_index, len(docs))
        return docs[doc_index]

    def set_docx_text(self, archive_id: str, doc_index: int, value: bool) -> None:
        self._docx(archive_id, doc_index).include_text = bool(value)

    def set_docx_image(self, archive_id: str, doc_index: int, image_index: int, value: bool) -> None:
        images = self._docx(archive_id, doc_index).include_images
        self._check_index(archive_id, f"additional_docx[{doc_index}].images", image_index, len(images))
        images[image_index] = bool(value)

    def bulk_set_docx_images(self, archive_id: str, doc_index: int, value: bool) -> None:
        images = self._docx(archive_id, doc_index).include_images
        images[:] = [bool(value)] * len(images)

    def invert_docx_images(self, archive_id: str, doc_index: int) -> None:
        images = self._docx(archive_id, doc_index).include_images
        images[:] = [not f for f in images]

    # === Consistency ===

    def check_consistency(self, record: ArchiveRecord) -> List[str]:
        """Names of flag lists whose length differs from the record's assets."""
        state = self.get(record.id)
        mismatched = [
            c.value for c in AssetCategory if len(state.flags(c)) != len(record.assets(c))
        ]
        if len(state.additional_docx) != len(record.additional_docx_files):
            mismatched.append("additional_docx")
        else:
            for i, (sel, doc) in enumerate(zip(state.additional_docx, record.additional_docx_files)):
                if len(sel.include_images) != len(doc.image_files):
                    mismatched.append(f"additional_docx[{i}].images")
        return mismatched

    @staticmethod
    def _check_index(archive_id: str, category: str, index: int, length: int) -> None:
        if index < 0 or index >= length:
            raise IndexOutOfRange(archive_id, category, index, length)
