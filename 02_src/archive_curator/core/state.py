"""Staging storage for batch metadata, page thumbnails and export descriptors."""

import json
import logging
import shutil
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

import yaml

from ..errors import CuratorError
from ..utils.naming import sanitize_file_stem, sanitize_path_component

logger = logging.getLogger(__name__)


class StorageBackend(Protocol):
    """Protocol for staging storage backends."""

    def save(self, key: str, value: Any) -> None:
        """Save value by key.

        Args:
            key: Storage key (e.g., "batch/meta", "thumbs/<archive>/<stem>/1")
            value: Value to save (bytes for thumbnails, dict otherwise)
        """
        ...

    def load(self, key: str, default: Any = None) -> Any:
        ...

    def exists(self, key: str) -> bool:
        ...

    def path_for(self, key: str) -> str:
        """Addressable location of a key, handed out to callers."""
        ...

    def purge(self) -> None:
        """Delete everything this backend staged."""
        ...


class MemoryStorage:
    """In-memory storage backend for experiments and testing."""

    def __init__(self) -> None:
        self._data: Dict[str, Any] = {}
        logger.info("Initialized MemoryStorage backend")

    def save(self, key: str, value: Any) -> None:
        self._data[key] = value
        logger.debug(f"MemoryStorage: saved key '{key}'")

    def load(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def exists(self, key: str) -> bool:
        return key in self._data

    def path_for(self, key: str) -> str:
        return f"memory://{key}"

    def purge(self) -> None:
        self._data.clear()


class DiskStorage:
    """File-based staging for one batch, with JSON/YAML/binary files.

    Layout under batch_dir:
        batch.json
        archives/<archive_id>/pdf_screens/<stem>/page_NNN.png
        results/<name>.yaml
    """

    def __init__(self, batch_dir: Path) -> None:
        self.batch_dir = Path(batch_dir)
        self.archives_dir = self.batch_dir / "archives"
        self.results_dir = self.batch_dir / "results"

        for directory in (self.archives_dir, self.results_dir):
            directory.mkdir(parents=True, exist_ok=True)

        logger.info(f"Initialized DiskStorage backend at {self.batch_dir}")

    def _get_file_path(self, key: str) -> tuple[Path, str]:
        """Parse key and determine file path and format.

        Returns:
            Tuple of (file_path, format) where format is "binary", "json", or "yaml"
        """
        parts = key.split("/", 1)

        if len(parts) != 2:
            raise ValueError(f"Invalid key format: '{key}'. Expected 'type/name'")

        key_type, name = parts

        if key_type == "batch":
            return self.batch_dir / "batch.json", "json"

        elif key_type == "thumbs":
            try:
                archive_id, stem, page = name.split("/")
                page_num = int(page)
            except ValueError:
                raise ValueError(
                    f"Invalid thumbnail key: '{key}'. Expected 'thumbs/<archive>/<stem>/<page>'"
                ) from None
            filename = f"page_{page_num:03d}.png"
            return self.archives_dir / archive_id / "pdf_screens" / stem / filename, "binary"

        elif key_type == "results":
            return self.results_dir / f"{name}.yaml", "yaml"

        else:
            raise ValueError(f"Unknown key type: '{key_type}'")

    def save(self, key: str, value: Any) -> None:
        file_path, format_type = self._get_file_path(key)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            if format_type == "binary":
                if not isinstance(value, bytes):
                    raise TypeError(f"Binary save requires bytes, got {type(value)}")
                file_path.write_bytes(value)

            elif format_type == "json":
                with file_path.open("w", encoding="utf-8") as f:
                    json.dump(value, f, ensure_ascii=False, indent=2)

            elif format_type == "yaml":
                with file_path.open("w", encoding="utf-8") as f:
                    yaml.safe_dump(value, f, allow_unicode=True, default_flow_style=False, sort_keys=False)

            logger.debug(f"DiskStorage: saved key '{key}' to {file_path}")

        except Exception as e:
            logger.error(f"DiskStorage: failed to save key '{key}': {e}")
            raise

    def load(self, key: str, default: Any = None) -> Any:
        file_path, format_type = self._get_file_path(key)

        if not file_path.exists():
            logger.debug(f"DiskStorage: key '{key}' not found, returning default")
            return default

        try:
            if format_type == "binary":
                return file_path.read_bytes()

            with file_path.open("r", encoding="utf-8") as f:
                if format_type == "json":
                    return json.load(f)
                return yaml.safe_load(f)

        except Exception as e:
            logger.error(f"DiskStorage: failed to load key '{key}': {e}")
            raise

    def exists(self, key: str) -> bool:
        file_path, _ = self._get_file_path(key)
        return file_path.exists()

    def path_for(self, key: str) -> str:
        file_path, _ = self._get_file_path(key)
        return str(file_path)

    def purge(self) -> None:
        shutil.rmtree(self.batch_dir, ignore_errors=True)
        logger.info(f"DiskStorage: purged {self.batch_dir}")


class BatchStateManager:
    """Staged artifacts of one batch over a pluggable storage backend.

    Also serves as the persistence collaborator for page thumbnails. Once
    purged the manager is closed: later writes are refused, so a render that
    outlives cleanup cannot recreate the staging directory.
    """

    def __init__(self, storage: StorageBackend) -> None:
        self.storage = storage
        self._lock = threading.Lock()
        self._closed = False
        logger.info(f"Initialized BatchStateManager with {type(storage).__name__}")

    @classmethod
    def for_batch(cls, state_dir: Optional[Path], batch_id: str) -> "BatchStateManager":
        """Disk staging under state_dir/batches/<batch_id>, or memory if state_dir is None."""
        if state_dir is None:
            return cls(MemoryStorage())
        return cls(DiskStorage(Path(state_dir) / "batches" / batch_id))

    @property
    def closed(self) -> bool:
        return self._closed

    def save_batch(self, batch_data: Dict[str, Any]) -> None:
        if not self._write("batch/meta", batch_data):
            logger.debug("Batch staging purged, batch metadata not saved")
            return
        logger.debug(f"Saved batch metadata ({len(batch_data.get('zips', []))} archives)")

    def load_batch(self) -> Optional[Dict[str, Any]]:
        return self.storage.load("batch/meta", default=None)

    def save_page_images(
        self,
        batch_id: str,
        archive_id: str,
        document_name: str,
        images: List[bytes],
    ) -> List[str]:
        """Persist page images of one document.

        Images that fail to save are skipped; the returned paths keep the
        submission order of the images that were stored. Nothing is
        returned once the batch staging has been purged.

        Args:
            batch_id: Batch identifier (for log lines)
            archive_id: Owning archive (sanitized into a single folder name)
            document_name: Source document name; its sanitized stem names the folder
            images: Encoded page images in page order

        Returns:
            Paths of stored images in submission order
        """
        folder = sanitize_path_component(archive_id)
        stem = self._unique_stem(folder, sanitize_file_stem(document_name))
        saved: List[str] = []

        for page_num, image in enumerate(images, start=1):
            key = f"thumbs/{folder}/{stem}/{page_num}"
            try:
                if not self._write(key, image):
                    break
            except Exception as e:
                logger.warning(
                    f"Failed to store page {page_num} of {document_name} "
                    f"(batch {batch_id}, archive {archive_id}): {e}"
                )
                continue
            saved.append(self.storage.path_for(key))

        if self._closed:
            logger.info(f"Batch staging purged, dropping page images of {document_name}")
            return []

        logger.info(
            f"Stored {len(saved)}/{len(images)} page images of {document_name} for archive {archive_id}"
        )
        return saved

    def _unique_stem(self, folder: str, stem: str) -> str:
        candidate = stem
        suffix = 2
        while self.storage.exists(f"thumbs/{folder}/{candidate}/1"):
            candidate = f"{stem}_{suffix}"
            suffix += 1
        return candidate

    def save_result(self, name: str, result: Any) -> str:
        """Save an export descriptor or other result in YAML format."""
        key = f"results/{name}"
        if not self._write(key, result):
            raise CuratorError(f"Cannot save result '{name}': batch staging was purged")
        logger.info(f"Saved result '{name}'")
        return self.storage.path_for(key)

    def load_result(self, name: str) -> Any:
        return self.storage.load(f"results/{name}", default=None)

    def purge(self) -> None:
        """Remove every staged artifact of the batch and refuse further writes."""
        with self._lock:
            self._closed = True
            self.storage.purge()

    def _write(self, key: str, value: Any) -> bool:
        with self._lock:
            if self._closed:
                return False
            self.storage.save(key, value)
            return True
