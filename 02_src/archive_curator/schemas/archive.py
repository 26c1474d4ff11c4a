"""Archive records produced by the import step and extended by rasterization."""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from ..errors import UnknownCategory

STATUS_PENDING = "pending"
STATUS_COMPLETED = "completed"
FAILED_PREFIX = "failed"


def failed_status(reason: str) -> str:
    """Build a failure status string, e.g. ``failed:corrupt zip``."""
    return f"{FAILED_PREFIX}:{reason}"


def is_failed(status: str) -> bool:
    return (status or "").startswith(FAILED_PREFIX)


class AssetCategory(str, Enum):
    """Asset categories shared by archive records and selection states."""

    IMAGES = "images"
    VIDEOS = "videos"
    PDF_FILES = "pdf_files"
    PDF_SCREENS = "pdf_screens"
    EXCELS = "excels"

    @property
    def record_attr(self) -> str:
        """Name of the matching path list on ArchiveRecord."""
        return _RECORD_ATTRS[self]

    @classmethod
    def parse(cls, value: Union["AssetCategory", str]) -> "AssetCategory":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise UnknownCategory(f"Unknown asset category: {value!r}") from None


_RECORD_ATTRS = {
    AssetCategory.IMAGES: "image_files",
    AssetCategory.VIDEOS: "video_files",
    AssetCategory.PDF_FILES: "pdf_files",
    AssetCategory.PDF_SCREENS: "pdf_page_screenshot_files",
    AssetCategory.EXCELS: "excel_files",
}


@dataclass
class DocumentFields:
    """Structured fields extracted from a text document.

    Attributes:
        instruction_no: Instruction number
        title: Document title
        issued_at: Issue date as found in the document (free-form)
        content: Instruction content
    """

    instruction_no: str = ""
    title: str = ""
    issued_at: str = ""
    content: str = ""

    def is_empty(self) -> bool:
        return not any((self.instruction_no, self.title, self.issued_at, self.content))


@dataclass
class SupplementaryDocument:
    """Supplementary text document found inside an archive.

    Attributes:
        name: Display name
        file_path: Source path of the extracted document
        fields: Extracted instruction-number/title/issue-date fields, if any
        full_text: Full extracted text
        image_files: Paths of images embedded in the document
        id: Optional identifier assigned by the importer
    """

    name: str
    file_path: str
    fields: Optional[DocumentFields] = None
    full_text: str = ""
    image_files: List[str] = field(default_factory=list)
    id: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SupplementaryDocument":
        fields_data = data.get("fields")
        return cls(
            name=data.get("name", ""),
            file_path=data.get("file_path", ""),
            fields=DocumentFields(**fields_data) if fields_data else None,
            full_text=data.get("full_text", ""),
            image_files=list(data.get("image_files") or []),
            id=data.get("id", ""),
        )


@dataclass
class ArchiveRecord:
    """One imported archive and its classified assets.

    Path lists are append-only for the lifetime of a batch; the only
    mutation offered here is appending rendered page thumbnails.
    include_original_zip is set only on copies resolved for a bundle.
    """

    id: str
    filename: str
    status: str = STATUS_PENDING
    has_sample: bool = False
    source_path: str = ""
    stored_path: str = ""
    extracted_dir: str = ""
    fields: DocumentFields = field(default_factory=DocumentFields)
    image_files: List[str] = field(default_factory=list)
    video_files: List[str] = field(default_factory=list)
    pdf_files: List[str] = field(default_factory=list)
    excel_files: List[str] = field(default_factory=list)
    pdf_page_screenshot_files: List[str] = field(default_factory=list)
    additional_docx_files: List[SupplementaryDocument] = field(default_factory=list)
    include_original_zip: bool = False

    @property
    def failed(self) -> bool:
        return is_failed(self.status)

    @property
    def has_thumbnails(self) -> bool:
        return len(self.pdf_page_screenshot_files) > 0

    def assets(self, category: Union[AssetCategory, str]) -> List[str]:
        """Return the path list for a category (live list, do not mutate)."""
        return getattr(self, AssetCategory.parse(category).record_attr)

    def append_thumbnails(self, paths: List[str]) -> None:
        self.pdf_page_screenshot_files.extend(paths)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ArchiveRecord":
        return cls(
            id=data["id"],
            filename=data.get("filename", ""),
            status=data.get("status", STATUS_PENDING),
            has_sample=bool(data.get("has_sample", False)),
            source_path=data.get("source_path", ""),
            stored_path=data.get("stored_path", ""),
            extracted_dir=data.get("extracted_dir", ""),
            fields=DocumentFields(**(data.get("fields") or data.get("word") or {})),
            image_files=list(data.get("image_files") or []),
            video_files=list(data.get("video_files") or []),
            pdf_files=list(data.get("pdf_files") or []),
            excel_files=list(data.get("excel_files") or []),
            pdf_page_screenshot_files=list(data.get("pdf_page_screenshot_files") or []),
            additional_docx_files=[
                SupplementaryDocument.from_dict(d)
                for d in data.get("additional_docx_files") or []
            ],
            include_original_zip=bool(data.get("include_original_zip", False)),
        )
