"""Key-addressed bundle cache.

Archives sets of paths into one compressed bundle per key and restores
them, falling back through an ordered list of alternate keys.

Key components:
- CacheManager: Save/restore pipelines
- CacheConfig: Configuration management
- CacheFileEntry: Bundles found in the store
- locate_cache_file: Key matching and "most recent wins" selection
"""

from dircache.cache.config import CacheConfig
from dircache.cache.manager import CacheManager, restore_cache, save_cache
from dircache.cache.matching import CacheMatch, filter_cache_files, locate_cache_file
from dircache.cache.metadata import CacheFileEntry, scan_cache_files
from dircache.cache.validation import (
    ArchiveToolError,
    CacheError,
    ErrorKind,
    ExpansionError,
    ValidationError,
    check_key,
    check_paths,
    sanitize_key,
)

__all__ = [
    "CacheManager",
    "CacheConfig",
    "CacheMatch",
    "CacheFileEntry",
    "CacheError",
    "ErrorKind",
    "ValidationError",
    "ExpansionError",
    "ArchiveToolError",
    "check_key",
    "check_paths",
    "sanitize_key",
    "filter_cache_files",
    "locate_cache_file",
    "scan_cache_files",
    "save_cache",
    "restore_cache",
]
