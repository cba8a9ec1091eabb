"""Expansion of path specs (literal paths or glob patterns) into existing entries."""

import asyncio
import glob
import logging
import os
from pathlib import Path
from typing import List, Optional, Sequence, Union

from dircache.cache.validation import ExpansionError

logger = logging.getLogger(__name__)


def _through_symlink(match: str, recursive_from: int, base_dir: Path) -> bool:
    """Check whether ``**`` reached ``match`` by descending into a symlinked directory.

    Only the directories matched at or after the first ``**`` segment are
    checked; the final component may itself be a symlink.
    """
    parts = Path(match).parts
    for depth in range(max(recursive_from, 1), len(parts)):
        if os.path.islink(base_dir.joinpath(*parts[:depth])):
            return True
    return False


def _glob_one(pattern: str, base_dir: Path) -> List[str]:
    """Glob a single pattern relative to ``base_dir``.

    Files and directories both match; ``**`` recurses without following
    symbolic links. Unreadable directories are skipped by ``glob`` rather
    than raising.
    """
    matches = glob.glob(pattern, root_dir=base_dir, recursive=True)
    pattern_parts = Path(pattern).parts
    if "**" in pattern_parts:
        recursive_from = pattern_parts.index("**") + 1
        matches = [
            m for m in matches if not _through_symlink(m, recursive_from, base_dir)
        ]
    return sorted(matches)


def _literal_exists(pattern: str, base_dir: Path) -> bool:
    return os.path.lexists(base_dir / pattern)


def normalize_path(path: str, base_dir: Path) -> str:
    """Express ``path`` relative to ``base_dir`` when it lies inside it.

    Paths outside ``base_dir`` are returned absolute so the archive can
    still reproduce them on restore.

    Examples:
        >>> normalize_path("/work/node_modules", Path("/work"))
        'node_modules'
        >>> normalize_path("/opt/tool", Path("/work"))
        '/opt/tool'
    """
    absolute = Path(os.path.normpath(base_dir / path))
    try:
        relative = absolute.relative_to(base_dir)
    except ValueError:
        return str(absolute)
    if relative == Path("."):
        return "."
    return str(relative)


async def expand_paths(
    patterns: Sequence[str], base_dir: Optional[Union[str, Path]] = None
) -> List[str]:
    """Resolve path specs to the concrete entries to archive.

    For each spec in order: glob matches are used when there are any;
    otherwise the spec is kept if it names an existing path; otherwise
    it is dropped with a warning.

    Args:
        patterns: Literal paths or glob patterns
        base_dir: Directory relative paths are resolved against (cwd if None)

    Returns:
        Normalized paths in first-seen order without duplicates

    Raises:
        ExpansionError: If no spec resolved to an existing path
    """
    base_dir = Path(os.path.abspath(base_dir if base_dir is not None else os.getcwd()))
    expanded: List[str] = []

    for pattern in patterns:
        matches = await asyncio.to_thread(_glob_one, pattern, base_dir)
        if matches:
            expanded.extend(matches)
            logger.debug(
                f"{pattern} -> found {len(matches)} match(es): {', '.join(matches)}"
            )
        elif await asyncio.to_thread(_literal_exists, pattern, base_dir):
            expanded.append(pattern)
            logger.debug(f"{pattern} -> exists as a literal path")
        else:
            logger.warning(f"{pattern} -> not found (skipping)")

    normalized = list(dict.fromkeys(normalize_path(p, base_dir) for p in expanded))

    if not normalized:
        raise ExpansionError("No valid paths found to cache after expansion")

    return normalized
