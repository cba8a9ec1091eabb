"""Storage layer: path expansion and the tar archive backend."""

from dircache.storage.archive import TarArchiver, run_streaming
from dircache.storage.paths import expand_paths, normalize_path

__all__ = [
    "TarArchiver",
    "run_streaming",
    "expand_paths",
    "normalize_path",
]
