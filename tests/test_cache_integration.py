"""Integration tests for save/restore round trips with real tar.

These tests validate the end-to-end workflow: saving path sets, restoring
them by primary and fallback keys, and "most recent bundle wins" selection.
"""

import filecmp
import os
import shutil
from pathlib import Path

import pytest

from dircache import CacheConfig, restore_cache, save_cache
from dircache.cache.validation import ExpansionError, ValidationError

NAMESPACE = "integration-test"


@pytest.fixture
def cache_config(tmp_path):
    """Create test cache configuration."""
    return CacheConfig(cache_dir=tmp_path / "cache", namespace=NAMESPACE)


@pytest.fixture
def work_dir(tmp_path, monkeypatch):
    """Create a project directory with fixtures and make it the cwd."""
    work = tmp_path / "work"
    fixtures = work / "fixtures"
    (fixtures / "nested").mkdir(parents=True)
    (fixtures / "helloWorld.txt").write_text("Hello World!\n")
    (fixtures / "nested" / "data.bin").write_bytes(bytes(range(256)) * 16)
    monkeypatch.chdir(work)
    return work


def assert_same_tree(left: Path, right: Path) -> None:
    comparison = filecmp.dircmp(left, right)
    assert comparison.left_only == []
    assert comparison.right_only == []
    _, mismatch, errors = filecmp.cmpfiles(
        left, right, comparison.common_files, shallow=False
    )
    assert mismatch == [] and errors == []
    for sub in comparison.common_dirs:
        assert_same_tree(left / sub, right / sub)


class TestSaveAndRestore:
    """Round trips through the store."""

    async def test_creates_archive_file(self, work_dir, cache_config, tmp_path):
        """Test that save writes <cache>/<namespace>/<key>.tar.gz."""
        await save_cache(["fixtures"], "save-test", config=cache_config)
        assert (tmp_path / "cache" / NAMESPACE / "save-test.tar.gz").is_file()

    async def test_restores_identical_content(self, work_dir, cache_config):
        """Test that restore reproduces byte-identical files."""
        await save_cache(["fixtures"], "restore-test", config=cache_config)
        shutil.move(work_dir / "fixtures", work_dir / "backup")

        hit = await restore_cache(["fixtures"], "restore-test", config=cache_config)

        assert hit == "restore-test"
        assert_same_tree(work_dir / "fixtures", work_dir / "backup")

    async def test_absolute_paths(self, work_dir, cache_config):
        """Test that absolute paths inside the project round trip."""
        fixtures = str(work_dir / "fixtures")
        await save_cache([fixtures], "absolute-test", config=cache_config)
        shutil.move(work_dir / "fixtures", work_dir / "backup")

        await restore_cache([fixtures], "absolute-test", config=cache_config)

        assert_same_tree(work_dir / "fixtures", work_dir / "backup")

    async def test_restore_latest_archive(self, work_dir, cache_config):
        """Test that the newest of several matching bundles is restored."""
        hello = work_dir / "fixtures" / "helloWorld.txt"

        first = await save_cache(["fixtures"], "latest-archive-test-1", config=cache_config)
        hello.unlink()
        second = await save_cache(["fixtures"], "latest-archive-test-2", config=cache_config)
        os.utime(first, (1_000_000, 1_000_000))
        os.utime(second, (2_000_000, 2_000_000))

        shutil.rmtree(work_dir / "fixtures")
        hit = await restore_cache(["fixtures"], "latest-archive-test", config=cache_config)

        assert hit == "latest-archive-test"
        assert (work_dir / "fixtures" / "nested" / "data.bin").exists()
        assert not hello.exists()

    async def test_restore_from_fallback_key(self, work_dir, cache_config):
        """Test that a fallback key restores when the primary has no bundle."""
        await save_cache(["fixtures"], "fallback-test", config=cache_config)
        shutil.move(work_dir / "fixtures", work_dir / "backup")

        hit = await restore_cache(
            ["fixtures"],
            "fallback-test-doesnt-exist",
            ["no-such-fallback", "fallback-test"],
            config=cache_config,
        )

        assert hit == "fallback-test"
        assert_same_tree(work_dir / "fixtures", work_dir / "backup")

    async def test_first_fallback_wins_over_newer_later_fallback(
        self, work_dir, cache_config
    ):
        """Test that fallback order beats recency across keys."""
        hello = work_dir / "fixtures" / "helloWorld.txt"
        older = await save_cache(["fixtures"], "order-a", config=cache_config)
        hello.write_text("changed\n")
        newer = await save_cache(["fixtures"], "order-b", config=cache_config)
        os.utime(older, (1_000_000, 1_000_000))
        os.utime(newer, (2_000_000, 2_000_000))

        shutil.rmtree(work_dir / "fixtures")
        hit = await restore_cache(
            ["fixtures"], "primary-missing", ["order-a", "order-b"], config=cache_config
        )

        assert hit == "order-a"
        assert hello.read_text() == "Hello World!\n"

    async def test_miss_returns_none(self, work_dir, cache_config):
        """Test that a clean miss is not an error and extracts nothing."""
        await save_cache(["fixtures"], "present", config=cache_config)
        shutil.rmtree(work_dir / "fixtures")

        hit = await restore_cache(["fixtures"], "absent", ["also-absent"], config=cache_config)

        assert hit is None
        assert not (work_dir / "fixtures").exists()

    async def test_multiple_paths(self, work_dir, cache_config):
        """Test that several directories under one key all come back."""
        for name, content in (("dir1", "content of file 1"), ("dir2", "content of file 2")):
            (work_dir / name).mkdir()
            (work_dir / name / "file.txt").write_text(content)

        await save_cache(["dir2", "dir1"], "multiple-paths-test", config=cache_config)
        shutil.rmtree(work_dir / "dir1")
        shutil.rmtree(work_dir / "dir2")

        await restore_cache(["dir1", "dir2"], "multiple-paths-test", config=cache_config)

        assert (work_dir / "dir1" / "file.txt").read_text() == "content of file 1"
        assert (work_dir / "dir2" / "file.txt").read_text() == "content of file 2"

    async def test_nested_paths_and_globs(self, work_dir, cache_config):
        """Test glob-expanded nested directories keep their structure."""
        for package in ("a", "b"):
            modules = work_dir / "packages" / package / "node_modules" / "dep"
            modules.mkdir(parents=True)
            (modules / "index.js").write_text(f"module {package}")
        (work_dir / "packages" / "a" / "src.js").write_text("not cached")

        await save_cache(["packages/*/node_modules"], "glob-test", config=cache_config)
        shutil.rmtree(work_dir / "packages")

        await restore_cache(["packages/*/node_modules"], "glob-test", config=cache_config)

        for package in ("a", "b"):
            index = work_dir / "packages" / package / "node_modules" / "dep" / "index.js"
            assert index.read_text() == f"module {package}"
        assert not (work_dir / "packages" / "a" / "src.js").exists()

    async def test_paths_outside_project(self, work_dir, cache_config, tmp_path):
        """Test that directories outside the working directory round trip."""
        outside = tmp_path / "toolcache"
        outside.mkdir()
        (outside / "tool.txt").write_text("tool")

        await save_cache([str(outside)], "outside-test", config=cache_config)
        shutil.rmtree(outside)

        await restore_cache([str(outside)], "outside-test", config=cache_config)

        assert (outside / "tool.txt").read_text() == "tool"

    async def test_config_from_environment(self, work_dir, tmp_path, monkeypatch):
        """Test that the boundary reads configuration from the environment."""
        monkeypatch.setenv("DIRCACHE_DIR", str(tmp_path / "envcache"))
        monkeypatch.setenv("DIRCACHE_NAMESPACE", "env/ns")

        bundle = await save_cache(["fixtures"], "env-test")

        assert bundle == tmp_path / "envcache" / "env" / "ns" / "env-test.tar.gz"
        assert await restore_cache(["fixtures"], "env-test") == "env-test"


class TestSaveFailures:
    """Failures that must not leave a bundle behind."""

    async def test_empty_path_list(self, work_dir, cache_config):
        """Test that an empty list fails before any I/O."""
        with pytest.raises(ValidationError):
            await save_cache([], "empty-test", config=cache_config)
        assert not cache_config.store_dir.exists()

    async def test_nonexistent_path(self, work_dir, cache_config):
        """Test that only-missing paths fail after expansion."""
        with pytest.raises(ExpansionError):
            await save_cache(["does-not-exist"], "missing-test", config=cache_config)
        assert not (cache_config.store_dir / "missing-test.tar.gz").exists()

    async def test_corrupt_bundle_skipped_on_restore(self, work_dir, tmp_path):
        """Test that a corrupt bundle is deleted and treated as a miss."""
        config = CacheConfig(
            cache_dir=tmp_path / "cache", namespace=NAMESPACE, skip_failure=True
        )
        config.store_dir.mkdir(parents=True)
        corrupt = config.store_dir / "corrupt.tar.gz"
        corrupt.write_bytes(b"not an archive")

        assert await restore_cache(["fixtures"], "corrupt", config=config) is None
        assert not corrupt.exists()
