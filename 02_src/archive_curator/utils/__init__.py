"""Utility helpers: retry combinator and file naming."""

from .naming import display_name, sanitize_file_stem, sanitize_path_component
from .retry import linear_backoff, retry_with_backoff

__all__ = [
    "display_name",
    "sanitize_file_stem",
    "sanitize_path_component",
    "linear_backoff",
    "retry_with_backoff",
]
