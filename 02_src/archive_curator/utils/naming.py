"""File naming helpers for staged artifacts."""

import re
from pathlib import PurePath

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def display_name(path: str) -> str:
    """Last path component, accepting both / and \\ separators."""
    return re.split(r"[\\/]", path.rstrip("\\/"))[-1] if path else ""


def sanitize_file_stem(name: str, fallback: str = "pdf") -> str:
    """Filesystem-safe stem of a file name.

    Keeps ASCII letters, digits, '-' and '_'; every other character becomes '_'.

    Args:
        name: File name or path, e.g. "Report v2 (final).pdf"
        fallback: Stem used when the name has none

    Returns:
        Sanitized stem, e.g. "Report_v2__final_"
    """
    stem = PurePath(display_name(name)).stem or fallback
    return _UNSAFE_CHARS.sub("_", stem)


def sanitize_path_component(name: str, fallback: str = "archive") -> str:
    """Single filesystem-safe path component, e.g. "../a/b" -> "___a_b"."""
    return _UNSAFE_CHARS.sub("_", name) or fallback
