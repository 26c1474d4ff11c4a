"""Shared fixtures: generated page-documents, archive records, recorded sleeps."""

from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

import pytest

from archive_curator.schemas.archive import ArchiveRecord, DocumentFields, SupplementaryDocument


class SleepRecorder:
    """Stand-in for time.sleep that records requested durations."""

    def __init__(self) -> None:
        self.calls: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def sleeps() -> SleepRecorder:
    """Injected sleep function; tests assert on recorded durations."""
    return SleepRecorder()


@pytest.fixture
def make_pdf(tmp_path: Path) -> Callable[..., Path]:
    """Factory creating a real page-document with fitz.

    Each page carries "Test Page N" so pages render to distinct images.
    """
    import fitz

    def _make(
        name: str = "document.pdf",
        pages: int = 3,
        size: Tuple[float, float] = (595, 842),  # A4
    ) -> Path:
        pdf_path = tmp_path / name
        doc = fitz.open()
        for page_num in range(pages):
            page = doc.new_page(width=size[0], height=size[1])
            page.insert_text((20, 40), f"Test Page {page_num + 1}", fontsize=18)
        doc.save(pdf_path)
        doc.close()
        return pdf_path

    return _make


@pytest.fixture
def make_record() -> Callable[..., ArchiveRecord]:
    """Factory for archive records with generated asset paths."""

    def _make(
        archive_id: str = "zip_1",
        filename: Optional[str] = None,
        images: int = 0,
        videos: int = 0,
        pdfs: int = 0,
        excels: int = 0,
        screens: int = 0,
        docx_images: Sequence[int] = (),
        status: str = "completed",
        issued_at: str = "",
    ) -> ArchiveRecord:
        base = f"/staging/{archive_id}/extracted"
        return ArchiveRecord(
            id=archive_id,
            filename=filename or f"{archive_id}.zip",
            status=status,
            extracted_dir=base,
            fields=DocumentFields(title=f"Title {archive_id}", issued_at=issued_at),
            image_files=[f"{base}/img_{i}.jpg" for i in range(images)],
            video_files=[f"{base}/vid_{i}.mp4" for i in range(videos)],
            pdf_files=[f"{base}/doc_{i}.pdf" for i in range(pdfs)],
            excel_files=[f"{base}/sheet_{i}.xlsx" for i in range(excels)],
            pdf_page_screenshot_files=[f"{base}/pdf_screens/doc_0/page_{i + 1:03d}.png" for i in range(screens)],
            additional_docx_files=[
                SupplementaryDocument(
                    name=f"note_{d}.docx",
                    file_path=f"{base}/note_{d}.docx",
                    fields=DocumentFields(instruction_no=f"N-{d}", title=f"Note {d}"),
                    full_text=f"Full text of note {d}",
                    image_files=[f"{base}/note_{d}_img_{i}.png" for i in range(count)],
                )
                for d, count in enumerate(docx_images)
            ],
        )

    return _make
