"""Source-of-record loaders used on a total cache miss."""

from tiercache.loaders.base import CacheLoader
from tiercache.loaders.file_loader import FileBackedLoader

__all__ = ["CacheLoader", "FileBackedLoader"]
