"""Export descriptors - index-based snapshots of the selection model.

Two consumers read these descriptors:
- the report writer, which is archive-level and only needs the ids of
  included archives (ReportDescriptor);
- the bundle writer, which needs per-asset indices (BundleDescriptor).

Building a descriptor performs no I/O.
"""

import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Sequence

from dateutil import parser as date_parser

from ..schemas.archive import ArchiveRecord, AssetCategory, DocumentFields
from .batch import Batch
from .selection import SelectionState

logger = logging.getLogger(__name__)

# Wire names of the per-category index lists
INDEX_KEYS = {
    AssetCategory.VIDEOS: "selected_video_indices",
    AssetCategory.IMAGES: "selected_image_indices",
    AssetCategory.PDF_FILES: "selected_pdf_indices",
    AssetCategory.EXCELS: "selected_excel_indices",
    AssetCategory.PDF_SCREENS: "selected_pdf_page_screenshot_indices",
}


def selected_indices(flags: Sequence[bool]) -> List[int]:
    """Ascending indices of true flags, e.g. [True, False, True] -> [0, 2]."""
    return [i for i, flag in enumerate(flags) if flag]


@dataclass
class DocxExportSelection:
    docx_index: int
    include_text: bool
    selected_image_indices: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "docx_index": self.docx_index,
            "include_text": self.include_text,
            "selected_image_indices": list(self.selected_image_indices),
        }


@dataclass
class ArchiveExportSelection:
    """Selected assets of one archive, as index lists."""

    zip_id: str
    include: bool
    include_original_zip: bool
    selected: Dict[AssetCategory, List[int]] = field(default_factory=dict)
    selected_additional_docx: List[DocxExportSelection] = field(default_factory=list)

    def indices(self, category) -> List[int]:
        return self.selected.get(AssetCategory.parse(category), [])

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "zip_id": self.zip_id,
            "include": self.include,
            "include_original_zip": self.include_original_zip,
        }
        for category, key in INDEX_KEYS.items():
            data[key] = list(self.indices(category))
        data["selected_additional_docx"] = [d.to_dict() for d in self.selected_additional_docx]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ArchiveExportSelection":
        return cls(
            zip_id=data["zip_id"],
            include=bool(data.get("include", True)),
            include_original_zip=bool(data.get("include_original_zip", False)),
            selected={
                category: [int(i) for i in data.get(key) or []]
                for category, key in INDEX_KEYS.items()
            },
            selected_additional_docx=[
                DocxExportSelection(
                    docx_index=int(d["docx_index"]),
                    include_text=bool(d.get("include_text", False)),
                    selected_image_indices=[int(i) for i in d.get("selected_image_indices") or []],
                )
                for d in data.get("selected_additional_docx") or []
            ],
        )


@dataclass
class BundleDescriptor:
    """Full per-asset descriptor consumed by the bundle writer."""

    batch_id: str
    zips: List[ArchiveExportSelection] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"batch_id": self.batch_id, "zips": [z.to_dict() for z in self.zips]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BundleDescriptor":
        return cls(
            batch_id=data.get("batch_id", ""),
            zips=[ArchiveExportSelection.from_dict(z) for z in data.get("zips") or []],
        )


@dataclass
class ReportDescriptor:
    """Archive-level descriptor consumed by the report writer."""

    batch_id: str
    zip_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"batch_id": self.batch_id, "zip_ids": list(self.zip_ids)}


def describe_archive(archive_id: str, state: SelectionState) -> ArchiveExportSelection:
    """Compact one selection state into index lists.

    Supplementary documents with text excluded and no selected images are
    left out entirely.
    """
    docs = []
    for doc_index, doc_sel in enumerate(state.additional_docx):
        image_indices = selected_indices(doc_sel.include_images)
        if not doc_sel.include_text and not image_indices:
            continue
        docs.append(DocxExportSelection(doc_index, doc_sel.include_text, image_indices))

    return ArchiveExportSelection(
        zip_id=archive_id,
        include=state.include,
        include_original_zip=state.include_original_zip,
        selected={category: selected_indices(state.flags(category)) for category in INDEX_KEYS},
        selected_additional_docx=docs,
    )


def build_bundle_descriptor(batch: Batch) -> BundleDescriptor:
    """Describe every archive of the batch, in batch order."""
    descriptor = BundleDescriptor(batch_id=batch.batch_id)
    for record in batch:
        with batch.archive_lock(record.id):
            state = batch.selection.get(record.id)
            descriptor.zips.append(describe_archive(record.id, state))
    return descriptor


def build_report_descriptor(batch: Batch) -> ReportDescriptor:
    """Ids of included archives, in batch order."""
    return ReportDescriptor(
        batch_id=batch.batch_id,
        zip_ids=[r.id for r in batch if batch.selection.get(r.id).include],
    )


def _pick(paths: Sequence[Any], indices: Sequence[int]) -> List[Any]:
    # Out-of-range indices are ignored, matching what bundle consumers do
    return [paths[i] for i in indices if 0 <= i < len(paths)]


def issued_at_key(record: ArchiveRecord) -> datetime:
    """Sort key from the archive's issue date.

    Missing dates sort first, unparseable dates sort last.
    """
    text = (record.fields.issued_at or "").strip()
    if not text:
        return datetime.min
    try:
        return date_parser.parse(text).replace(tzinfo=None)
    except (ValueError, OverflowError):
        logger.debug(f"Unparseable issue date for {record.id}: {text!r}")
        return datetime.max


def apply_bundle_descriptor(batch: Batch, descriptor: BundleDescriptor) -> List[ArchiveRecord]:
    """Resolve a bundle descriptor into filtered copies of the archive records.

    Only archives with include=True are kept. Each kept copy carries the
    include_original_zip choice of its selection. Supplementary documents whose
    text is excluded lose their full text and fields. The result is ordered
    by issue date (see issued_at_key).

    Args:
        batch: Batch the descriptor was built from
        descriptor: Bundle descriptor (possibly deserialized)

    Returns:
        Filtered ArchiveRecord copies, as a bundle writer would embed them
    """
    selections = {z.zip_id: z for z in descriptor.zips if z.include}
    out: List[ArchiveRecord] = []

    for record in batch:
        sel = selections.get(record.id)
        if sel is None:
            continue

        filtered = copy.deepcopy(record)
        filtered.include_original_zip = sel.include_original_zip
        for category in INDEX_KEYS:
            setattr(filtered, category.record_attr, _pick(record.assets(category), sel.indices(category)))

        docs = []
        for doc_sel in sel.selected_additional_docx:
            if not 0 <= doc_sel.docx_index < len(record.additional_docx_files):
                continue
            doc = copy.deepcopy(record.additional_docx_files[doc_sel.docx_index])
            if not doc_sel.include_text:
                doc.full_text = ""
                doc.fields = DocumentFields()
            doc.image_files = _pick(doc.image_files, doc_sel.selected_image_indices)
            docs.append(doc)
        filtered.additional_docx_files = docs
        out.append(filtered)

    # Stable: archives with equal dates keep batch order
    out.sort(key=issued_at_key)
    return out
