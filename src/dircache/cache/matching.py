"""Selection of the bundle to restore from an ordered list of key matchers."""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from dircache.cache.metadata import CacheFileEntry


@dataclass(frozen=True)
class CacheMatch:
    """Result of a successful lookup.

    Attributes:
        key: The matcher (sanitized key) that produced the hit
        entry: The bundle chosen for that matcher
    """

    key: str
    entry: CacheFileEntry


def filter_cache_files(
    matchers: Sequence[str], entries: Sequence[CacheFileEntry]
) -> Tuple[Optional[str], List[CacheFileEntry]]:
    """Find the first matcher that has any bundle.

    A bundle belongs to a matcher when the matcher occurs anywhere in
    its filename, not only as a prefix. Matchers are tried in order and
    later matchers are ignored once one has a match.

    Args:
        matchers: Sanitized keys, primary first then fallbacks
        entries: Bundles found in the store

    Returns:
        Tuple of (matching matcher or None, its bundles)
    """
    for matcher in matchers:
        potential = [entry for entry in entries if matcher in entry.name]
        if potential:
            return matcher, potential
    return None, []


def locate_cache_file(
    matchers: Sequence[str], entries: Sequence[CacheFileEntry]
) -> Optional[CacheMatch]:
    """Pick the most recently modified bundle of the first matching key.

    Args:
        matchers: Sanitized keys, primary first then fallbacks
        entries: Bundles found in the store

    Returns:
        CacheMatch, or None when no matcher has any bundle
    """
    key, potential = filter_cache_files(matchers, entries)
    if key is None:
        return None

    # Equal mtimes resolve to the later entry
    latest = potential[0]
    for entry in potential[1:]:
        if entry.mtime >= latest.mtime:
            latest = entry

    return CacheMatch(key=key, entry=latest)
