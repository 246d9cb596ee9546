"""
movieshelf - Application Entry Point

Usage:
    python -m movieshelf --add-root /media/movies
    python -m movieshelf --sync
    python -m movieshelf --watch

Or via the installed command:
    movieshelf
"""

from __future__ import annotations

import asyncio
import sys


def _print_progress(progress) -> None:
    if progress.total:
        print(f"\r[{progress.phase.value}] {progress.current}/{progress.total}", end="", flush=True)
    if progress.phase.value == "done":
        print(f"\r{progress.message}")


def _print_change(change) -> None:
    print(f"{change.type.value}: {change.path}")


async def _run_sync(rescan: bool) -> int:
    from movieshelf.application.library_manager import LibraryService

    service = LibraryService(progress_callback=_print_progress)
    result = await (service.rebuild() if rescan else service.reconcile())
    for item in result.failed_list:
        print(f"  failed: {item.path} ({item.reason})")
    return 1 if result.cancelled else 0


async def _run_watch() -> int:
    from movieshelf.application.library_manager import LibraryService

    service = LibraryService(progress_callback=_print_progress, change_callback=_print_change)
    await service.start()
    if not service.engines:
        print("No data roots to watch.", file=sys.stderr)
        await service.stop()
        return 1

    print("Watching for changes, press Ctrl+C to stop.")
    try:
        while True:
            await asyncio.sleep(3600)
    finally:
        await service.stop()


def run_cli(argv: list[str] | None = None) -> int:
    """
    Run the command line interface.

    Returns:
        int: Exit code.
    """
    import argparse

    parser = argparse.ArgumentParser(
        prog="movieshelf",
        description="Keep a movie catalog in sync with NFO folders on disk"
    )

    parser.add_argument(
        "--version", "-v",
        action="store_true",
        help="Show version information"
    )

    parser.add_argument(
        "--add-root",
        metavar="PATH",
        help="Add a data root"
    )

    parser.add_argument(
        "--remove-root",
        metavar="PATH",
        help="Remove a data root"
    )

    parser.add_argument(
        "--list-roots",
        action="store_true",
        help="List the configured data roots"
    )

    parser.add_argument(
        "--sync",
        action="store_true",
        help="Reconcile the catalog with the data roots"
    )

    parser.add_argument(
        "--rescan",
        action="store_true",
        help="Clear the catalog and import every data root again"
    )

    parser.add_argument(
        "--watch",
        action="store_true",
        help="Sync, then keep watching the data roots for changes"
    )

    parser.add_argument(
        "--log-level",
        metavar="LEVEL",
        help="Override the configured log level"
    )

    args = parser.parse_args(argv)

    if args.version:
        from movieshelf import __version__
        print(f"movieshelf v{__version__}")
        return 0

    try:
        from movieshelf.runtime.bootstrap import BootstrapError, bootstrap
        bootstrap(log_level=args.log_level)
    except BootstrapError as e:
        print(f"Failed to initialize runtime: {e}", file=sys.stderr)
        return 1

    from movieshelf.core.config import get_config_manager
    from movieshelf.domain.exceptions import MovieshelfError

    config = get_config_manager()

    if args.add_root:
        if config.add_data_root(args.add_root):
            print(f"Added data root: {args.add_root}")
        else:
            print(f"Already configured: {args.add_root}")
        return 0

    if args.remove_root:
        if config.remove_data_root(args.remove_root):
            print(f"Removed data root: {args.remove_root}")
            return 0
        print(f"Not configured: {args.remove_root}", file=sys.stderr)
        return 1

    if args.list_roots:
        for index, root in enumerate(config.get_data_roots()):
            print(f"[{index}] {root}")
        return 0

    try:
        if args.watch:
            return asyncio.run(_run_watch())
        if args.sync or args.rescan:
            return asyncio.run(_run_sync(rescan=args.rescan))
    except KeyboardInterrupt:
        return 130
    except MovieshelfError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    parser.print_help()
    return 0


def main() -> int:
    return run_cli()


if __name__ == "__main__":
    sys.exit(run_cli())
