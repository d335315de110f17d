"""
Media storage for finished renders.
"""

from .repository import (
    AssetKind,
    FileSystemMediaRepository,
    InMemoryMediaRepository,
    MediaAsset,
    MediaRepository,
)

__all__ = [
    "AssetKind",
    "MediaAsset",
    "MediaRepository",
    "InMemoryMediaRepository",
    "FileSystemMediaRepository",
]
