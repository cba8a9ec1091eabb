"""Metadata about bundles already present in the store."""

import glob
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheFileEntry:
    """One candidate bundle found while scanning the store.

    Attributes:
        name: Filename of the bundle
        path: Path relative to the store directory
        mtime: Last modification time (seconds since the epoch)
        size: Size in bytes
    """

    name: str
    path: str
    mtime: float
    size: int

    @property
    def modified(self) -> datetime:
        """Modification time as an aware UTC datetime."""
        return datetime.fromtimestamp(self.mtime, tz=timezone.utc)


def scan_cache_files(store_dir: Path, matchers: Iterable[str]) -> List[CacheFileEntry]:
    """List the bundles in ``store_dir`` whose name starts with any matcher.

    Each matcher is turned into the pattern ``<matcher>*``; all patterns
    are scanned once and the results combined without duplicates.

    Args:
        store_dir: Store directory to scan
        matchers: Sanitized key tokens

    Returns:
        Entries sorted by filename; empty if the store does not exist
    """
    store_dir = Path(store_dir)
    if not store_dir.is_dir():
        logger.debug(f"Cache store {store_dir} does not exist")
        return []

    entries: Dict[str, CacheFileEntry] = {}
    for matcher in matchers:
        pattern = f"{glob.escape(matcher)}*"
        for relative in glob.glob(pattern, root_dir=store_dir):
            if relative in entries:
                continue
            try:
                stat = os.stat(store_dir / relative)
            except OSError as e:
                logger.debug(f"Skipping {relative}: {e}")
                continue
            if not (store_dir / relative).is_file():
                continue
            entries[relative] = CacheFileEntry(
                name=Path(relative).name,
                path=relative,
                mtime=stat.st_mtime,
                size=stat.st_size,
            )

    return [entries[key] for key in sorted(entries)]
