"""Preprocessing module for page-document rasterization."""

from .backend import DocumentBackend, FitzBackend, scoped_resource
from .renderer import PageRasterizer, compute_scale

__all__ = [
    "DocumentBackend",
    "FitzBackend",
    "scoped_resource",
    "PageRasterizer",
    "compute_scale",
]
