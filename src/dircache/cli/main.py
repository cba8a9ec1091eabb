"""Main CLI entry point for dircache.

Provides command-line access to saving, restoring, and listing cache bundles.
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.filesize import decimal
from rich.logging import RichHandler
from rich.table import Table

from dircache.cache import CacheConfig, CacheError, CacheManager, scan_cache_files

# Global console for Rich output
console = Console()


def setup_logging(verbose: int) -> None:
    """Route library logging through Rich on stderr."""
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose >= 2:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def build_config(
    config_file: Optional[str],
    cache_dir: Optional[str],
    namespace: Optional[str],
    skip_failure: Optional[bool],
) -> CacheConfig:
    """Resolve configuration from file or environment, then CLI overrides.

    Priority:
    1. Explicit CLI options
    2. --config JSON file (if given), otherwise environment variables
    3. Defaults
    """
    if config_file:
        config = CacheConfig.load(Path(config_file))
    else:
        config = CacheConfig.from_env()

    if cache_dir:
        config.cache_dir = Path(cache_dir).expanduser()
    if namespace is not None:
        config.namespace = namespace
    if skip_failure is not None:
        config.skip_failure = skip_failure

    return config


@click.group()
@click.option(
    "--cache-dir",
    type=click.Path(file_okay=False),
    help="Cache root directory (default: DIRCACHE_DIR, CACHE_DIR or /media/cache)",
)
@click.option(
    "--namespace",
    "-n",
    help="Store namespace (default: DIRCACHE_NAMESPACE or GITHUB_REPOSITORY)",
)
@click.option(
    "--skip-failure/--no-skip-failure",
    default=None,
    help="Treat tar failures as a cache miss instead of an error",
)
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False),
    help="JSON configuration file",
)
@click.option("--verbose", "-v", count=True, help="Increase log verbosity (-vv for debug)")
@click.pass_context
def cli(ctx, cache_dir, namespace, skip_failure, config_file, verbose):
    """dircache CLI - save and restore directories keyed by a cache key.

    Bundles live in <cache-dir>/<namespace>/<sanitized key>.tar.gz.
    """
    setup_logging(verbose)
    ctx.ensure_object(dict)
    try:
        ctx.obj["config"] = build_config(config_file, cache_dir, namespace, skip_failure)
    except (OSError, ValueError) as e:
        raise click.ClickException(f"Invalid configuration: {e}") from e


@cli.command("save")
@click.argument("paths", nargs=-1)
@click.option("--key", "-k", required=True, help="Cache key")
@click.pass_context
def save(ctx, paths, key):
    """Archive PATHS (files, directories or glob patterns) under KEY.

    Example:
        dircache save -k node-modules-$HASH node_modules 'packages/*/node_modules'
    """
    try:
        manager = CacheManager(ctx.obj["config"])
        bundle = asyncio.run(manager.save(list(paths), key))
    except (CacheError, OSError) as e:
        console.print(f"[red]✗[/red] Error: {e}", style="red")
        sys.exit(1)

    if bundle is None:
        console.print(f"[yellow]Cache not saved for key '{key}'[/yellow]")
        return

    console.print(f"[green]✓[/green] Saved cache '{key}'")
    console.print(f"  Path: {bundle}")


@cli.command("restore")
@click.argument("paths", nargs=-1)
@click.option("--key", "-k", required=True, help="Primary cache key")
@click.option(
    "--restore-key",
    "-r",
    "restore_keys",
    multiple=True,
    help="Fallback key, tried in order (can be used multiple times)",
)
@click.pass_context
def restore(ctx, paths, key, restore_keys):
    """Restore the bundle for KEY (or the first matching fallback).

    A miss is not an error: the command prints 'cache-miss' and exits 0.

    Example:
        dircache restore -k deps-linux-abc123 -r deps-linux- node_modules
    """
    try:
        manager = CacheManager(ctx.obj["config"])
        matched = asyncio.run(manager.restore(list(paths), key, list(restore_keys)))
    except (CacheError, OSError) as e:
        console.print(f"[red]✗[/red] Error: {e}", style="red")
        sys.exit(1)

    if matched is None:
        console.print("cache-miss")
    else:
        console.print(f"cache-hit: {matched}")


@cli.command("list")
@click.argument("prefix", required=False, default="")
@click.pass_context
def list_bundles(ctx, prefix):
    """List bundles in the store, newest first.

    Example:
        dircache list
        dircache list deps-linux-
    """
    config = ctx.obj["config"]
    entries = scan_cache_files(config.store_dir, [prefix])

    if not entries:
        console.print(f"[yellow]No cache bundles found in {config.store_dir}[/yellow]")
        return

    table = Table(title=f"Cache bundles ({len(entries)})")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Size", justify="right", style="green")
    table.add_column("Modified", style="blue")

    for entry in sorted(entries, key=lambda e: e.mtime, reverse=True):
        table.add_row(
            entry.name,
            decimal(entry.size),
            entry.modified.strftime("%Y-%m-%d %H:%M"),
        )

    console.print(table)


if __name__ == "__main__":
    cli()
