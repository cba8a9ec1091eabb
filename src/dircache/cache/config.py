"""Cache configuration management."""

import json
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Mapping, Optional

DEFAULT_CACHE_DIR = Path("/media/cache")

_TRUE_VALUES = {"1", "true", "yes", "on"}


def parse_bool(value: Optional[str]) -> bool:
    """Interpret an environment/config string as a boolean flag."""
    if value is None:
        return False
    return value.strip().lower() in _TRUE_VALUES


def _first_env(env: Mapping[str, str], *names: str) -> Optional[str]:
    for name in names:
        value = env.get(name)
        if value:
            return value
    return None


@dataclass
class CacheConfig:
    """Configuration for the bundle store.

    Built once at the boundary (CLI, CI wrapper, test) and handed to
    the cache operations; nothing is read from the environment mid-operation.

    Attributes:
        cache_dir: Root directory shared by all namespaces
        namespace: Sub-directory scoping the store (e.g. 'owner/repo')
        skip_failure: Treat archive tool failures as a miss/not-saved instead of raising
        cleanup_on_failure: Delete partial or corrupt bundles after an archive failure
        compress_program: Compressor passed to ``tar -I`` (e.g. 'pigz'); gzip if None
        archive_extension: Extension appended to the sanitized key
    """

    cache_dir: Path = DEFAULT_CACHE_DIR
    namespace: str = ""
    skip_failure: bool = False
    cleanup_on_failure: bool = True
    compress_program: Optional[str] = None
    archive_extension: str = "tar.gz"

    def __post_init__(self):
        """Ensure cache_dir is an expanded Path object."""
        if self.cache_dir is None:
            self.cache_dir = DEFAULT_CACHE_DIR
        self.cache_dir = Path(self.cache_dir).expanduser()
        self.namespace = self.namespace or ""

    @property
    def store_dir(self) -> Path:
        """Directory holding the bundles for this namespace."""
        return self.cache_dir / self.namespace

    def bundle_name(self, token: str) -> str:
        """Filename of the bundle stored for a sanitized key."""
        return f"{token}.{self.archive_extension}"

    @classmethod
    def load(cls, config_path: Path) -> "CacheConfig":
        """Load configuration from a JSON file.

        Args:
            config_path: Path to config file

        Returns:
            CacheConfig instance (defaults if the file does not exist)

        Raises:
            ValueError: If the file contains unknown keys
        """
        config_path = Path(config_path)
        if not config_path.exists():
            return cls()

        with open(config_path, "r") as f:
            data = json.load(f)

        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(
                f"Unknown cache config keys in {config_path}: {', '.join(sorted(unknown))}"
            )

        if "cache_dir" in data:
            data["cache_dir"] = Path(data["cache_dir"])

        return cls(**data)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "CacheConfig":
        """Create configuration from environment variables.

        Environment variables:
            DIRCACHE_DIR (or CACHE_DIR): Cache root directory
            DIRCACHE_NAMESPACE (or GITHUB_REPOSITORY): Store namespace
            DIRCACHE_SKIP_FAILURE (or INPUT_SKIP-FAILURE): Suppress archive failures
            DIRCACHE_COMPRESS_PROGRAM: Compressor for tar, e.g. pigz

        Args:
            env: Mapping to read instead of ``os.environ``

        Returns:
            CacheConfig instance
        """
        if env is None:
            env = os.environ

        config = cls()

        cache_dir = _first_env(env, "DIRCACHE_DIR", "CACHE_DIR")
        if cache_dir:
            config.cache_dir = Path(cache_dir).expanduser()

        namespace = _first_env(env, "DIRCACHE_NAMESPACE", "GITHUB_REPOSITORY")
        if namespace:
            config.namespace = namespace

        skip_failure = _first_env(env, "DIRCACHE_SKIP_FAILURE", "INPUT_SKIP-FAILURE")
        if skip_failure:
            config.skip_failure = parse_bool(skip_failure)

        compress_program = env.get("DIRCACHE_COMPRESS_PROGRAM")
        if compress_program:
            config.compress_program = compress_program

        return config
