"""dircache: key-addressed directory cache for build and CI hosts."""

__version__ = "0.1.0"

from dircache.cache import (
    ArchiveToolError,
    CacheConfig,
    CacheError,
    CacheManager,
    ErrorKind,
    ExpansionError,
    ValidationError,
    restore_cache,
    save_cache,
)

__all__ = [
    "CacheManager",
    "CacheConfig",
    "CacheError",
    "ErrorKind",
    "ValidationError",
    "ExpansionError",
    "ArchiveToolError",
    "save_cache",
    "restore_cache",
    "__version__",
]
