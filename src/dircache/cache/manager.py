"""Cache manager: the save and restore pipelines."""

import asyncio
import logging
import os
from pathlib import Path
from typing import List, Optional, Sequence, Union

from rich.filesize import decimal

from dircache.cache.config import CacheConfig
from dircache.cache.matching import CacheMatch, locate_cache_file
from dircache.cache.metadata import scan_cache_files
from dircache.cache.validation import (
    ArchiveToolError,
    check_key,
    check_paths,
    sanitize_key,
)
from dircache.storage.archive import TarArchiver
from dircache.storage.paths import expand_paths

logger = logging.getLogger(__name__)


class CacheManager:
    """Saves path sets as key-addressed bundles and restores them.

    Each call recomputes everything from its arguments and the filesystem;
    the manager keeps no state between calls.
    """

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        base_dir: Optional[Union[str, Path]] = None,
        archiver: Optional[TarArchiver] = None,
    ):
        """Initialize cache manager.

        Args:
            config: Cache configuration (defaults if None)
            base_dir: Directory paths are archived from and restored into
                (the current working directory at call time if None)
            archiver: Archive backend (a TarArchiver built from config if None)
        """
        self.config = config or CacheConfig()
        self._base_dir = Path(base_dir) if base_dir is not None else None
        self.archiver = archiver or TarArchiver(
            compress_program=self.config.compress_program
        )

    @property
    def base_dir(self) -> Path:
        if self._base_dir is not None:
            return Path(os.path.abspath(self._base_dir))
        return Path.cwd()

    @property
    def store_dir(self) -> Path:
        return self.config.store_dir

    def bundle_path(self, key: str) -> Path:
        """Path of the bundle a key is saved to."""
        return self.store_dir / self.config.bundle_name(sanitize_key(key))

    async def _remove_bundle(self, path: Path) -> None:
        """Delete a partial or corrupt bundle, logging instead of raising."""
        try:
            await asyncio.to_thread(path.unlink, missing_ok=True)
            logger.info(f"Removed invalid cache file {path}")
        except OSError as e:
            logger.warning(f"Failed to remove invalid cache file {path}: {e}")

    async def _handle_archive_failure(self, error: ArchiveToolError, path: Path) -> None:
        """Apply cleanup and the skip-failure policy to an archive failure.

        Raises:
            ArchiveToolError: Re-raised unless skip_failure is set
        """
        logger.warning(f"Error running tar: {error}")
        if self.config.cleanup_on_failure:
            await self._remove_bundle(path)
        if not self.config.skip_failure:
            raise error

    async def save(self, paths: Sequence[str], key: str) -> Optional[Path]:
        """Archive ``paths`` into the bundle for ``key``.

        Args:
            paths: Literal paths or glob patterns to cache
            key: Cache key

        Returns:
            Path of the written bundle, or None if the archive tool failed
            and skip_failure is set

        Raises:
            ValidationError: If paths is empty or the key is invalid
            ExpansionError: If no path exists
            ArchiveToolError: If tar fails and skip_failure is not set
        """
        check_paths(paths)
        check_key(key)
        logger.debug(f"Paths received for save: {list(paths)}")

        base_dir = self.base_dir
        expanded = await expand_paths(paths, base_dir)
        logger.debug(f"Final paths to cache ({len(expanded)} total): {expanded}")

        bundle = self.bundle_path(key)
        await asyncio.to_thread(self.store_dir.mkdir, parents=True, exist_ok=True)

        logger.info(f"Save cache: {bundle.name}")
        try:
            await self.archiver.pack(expanded, base_dir, bundle)
        except ArchiveToolError as e:
            await self._handle_archive_failure(e, bundle)
            return None

        size = (await asyncio.to_thread(bundle.stat)).st_size
        logger.info(f"Cache saved: {bundle.name} ({decimal(size)})")
        if logger.isEnabledFor(logging.DEBUG):
            await self._log_members(bundle)
        return bundle

    async def find(
        self, primary_key: str, restore_keys: Optional[Sequence[str]] = None
    ) -> Optional[CacheMatch]:
        """Look up the bundle restore would use, without extracting it.

        Args:
            primary_key: Preferred key
            restore_keys: Fallback keys, tried in order

        Returns:
            CacheMatch, or None on a miss
        """
        check_key(primary_key)
        matchers = self._matchers(primary_key, restore_keys)
        entries = await asyncio.to_thread(scan_cache_files, self.store_dir, matchers)
        return locate_cache_file(matchers, entries)

    @staticmethod
    def _matchers(
        primary_key: str, restore_keys: Optional[Sequence[str]]
    ) -> List[str]:
        keys = [primary_key, *(restore_keys or [])]
        return [sanitize_key(key) for key in keys]

    async def restore(
        self,
        paths: Sequence[str],
        primary_key: str,
        restore_keys: Optional[Sequence[str]] = None,
    ) -> Optional[str]:
        """Restore the best matching bundle into the base directory.

        Paths are not expanded here: the bundle already holds the entries
        captured at save time. They are only used to report what was
        restored.

        Args:
            paths: Paths that were cached
            primary_key: Preferred key
            restore_keys: Fallback keys, tried in order

        Returns:
            The matched (sanitized) key, or None on a miss or a skipped failure

        Raises:
            ValidationError: If paths is empty or the key is invalid
            ArchiveToolError: If tar fails and skip_failure is not set
        """
        check_key(primary_key)
        check_paths(paths)
        logger.debug(f"Paths received for restore: {list(paths)}")

        match = await self.find(primary_key, restore_keys)
        if match is None:
            logger.info(f"No cache found for key {primary_key}")
            return None

        entry = match.entry
        bundle = self.store_dir / entry.path
        base_dir = self.base_dir

        logger.info(
            "\n".join(
                [
                    f"Restoring cache: {entry.name}",
                    f"Created: {entry.modified.isoformat()}",
                    f"Size: {decimal(entry.size)}",
                ]
            )
        )

        try:
            await self.archiver.unpack(bundle, base_dir)
        except ArchiveToolError as e:
            await self._handle_archive_failure(e, bundle)
            return None

        if logger.isEnabledFor(logging.DEBUG):
            for expected in paths:
                state = "restored" if (base_dir / expected).exists() else "not in cache"
                logger.debug(f"{expected}: {state}")

        return match.key

    async def _log_members(self, bundle: Path) -> None:
        try:
            members = await self.archiver.list_members(bundle)
        except ArchiveToolError as e:
            logger.warning(f"Could not list cache file contents: {e}")
            return
        logger.debug(f"Cache file contents ({len(members)} entries)")
        for member in members:
            logger.debug(f"  {member}")


async def save_cache(
    paths: Sequence[str],
    key: str,
    config: Optional[CacheConfig] = None,
    base_dir: Optional[Union[str, Path]] = None,
) -> Optional[Path]:
    """Save ``paths`` under ``key``.

    Configuration is read from the environment when ``config`` is None.
    See CacheManager.save.
    """
    manager = CacheManager(config or CacheConfig.from_env(), base_dir=base_dir)
    return await manager.save(paths, key)


async def restore_cache(
    paths: Sequence[str],
    primary_key: str,
    restore_keys: Optional[Sequence[str]] = None,
    config: Optional[CacheConfig] = None,
    base_dir: Optional[Union[str, Path]] = None,
) -> Optional[str]:
    """Restore the bundle for ``primary_key`` or the first matching fallback.

    Configuration is read from the environment when ``config`` is None.
    See CacheManager.restore.
    """
    manager = CacheManager(config or CacheConfig.from_env(), base_dir=base_dir)
    return await manager.restore(paths, primary_key, restore_keys)
