"""CLI entrypoints for projector commands."""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict
from pathlib import Path
from typing import List

from .config import ConfigError, load_config
from .logging import configure_logging
from .orchestrator import DiscoveredProject, Orchestrator
from .stores import CacheManager

DEFAULT_PRUNE_HOURS = 168.0


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="projector",
        description="Discover development projects below a directory.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write debug logs to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser(
        "list",
        help="List project roots found under a directory.",
    )
    _add_verbose_option(list_parser, suppress_default=True)
    list_parser.add_argument(
        "path",
        nargs="?",
        default=None,
        help="Directory to scan (defaults to scan_directory from config, then cwd).",
    )
    list_parser.add_argument(
        "--depth",
        type=int,
        default=None,
        help="Maximum traversal depth.",
    )
    list_parser.add_argument(
        "--no-cache",
        action="store_true",
        help="Ignore cached analysis and do not write new entries.",
    )
    list_parser.add_argument(
        "--json",
        action="store_true",
        help="Emit results as JSON.",
    )

    cache_parser = subparsers.add_parser(
        "cache",
        help="Inspect or maintain the analysis cache.",
    )
    _add_verbose_option(cache_parser, suppress_default=True)
    actions = cache_parser.add_mutually_exclusive_group()
    actions.add_argument("--stats", action="store_true", help="Show cache statistics.")
    actions.add_argument("--clear", action="store_true", help="Remove every cache entry.")
    actions.add_argument("--prune", action="store_true", help="Remove old cache entries.")
    actions.add_argument("--location", action="store_true", help="Print the cache directory.")
    cache_parser.add_argument(
        "--max-age",
        type=float,
        default=DEFAULT_PRUNE_HOURS,
        help="Age in hours beyond which --prune removes entries (default: 168).",
    )

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for projector commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

    try:
        config = load_config()
    except ConfigError as exc:
        parser.exit(1, f"{exc}\n")

    if args.command == "list":
        if args.depth is not None and args.depth < 1:
            parser.exit(2, "--depth must be a positive integer\n")
        orchestrator = Orchestrator(config)
        try:
            projects = orchestrator.run_list(
                args.path,
                max_depth=args.depth,
                use_cache=not args.no_cache,
            )
        except (FileNotFoundError, NotADirectoryError) as exc:
            parser.exit(1, f"{exc}\n")
        except Exception as exc:  # pragma: no cover - defensive guard
            parser.exit(1, f"projector list failed: {exc}\nRun with --verbose for more details.\n")
        if args.json:
            print(json.dumps(_projects_payload(projects), indent=2))
        else:
            _print_projects(projects)
    elif args.command == "cache":
        cache = CacheManager.from_config(config)
        if args.clear:
            removed = cache.clear()
            print(f"Removed {removed} cache entries")
        elif args.prune:
            pruned = cache.prune(args.max_age)
            print(f"Pruned {pruned} cache entries older than {args.max_age:g}h")
        elif args.location:
            print(cache.location)
        else:
            entries = len(list(cache.location.glob("*.json"))) if cache.location.is_dir() else 0
            print(f"Location: {cache.location}")
            print(f"Entries:  {entries}")
            print(f"TTL:      {config.cache.ttl_hours:g}h")
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _print_projects(projects: List[DiscoveredProject]) -> None:
    if not projects:
        print("No projects found")
        return
    width = max(len(item.root.name) for item in projects)
    for item in projects:
        marker = "*" if item.from_cache else " "
        print(f"{marker} {item.root.name:<{width}}  {item.root.type.value:<8}  {_relativize(Path(item.root.path))}")


def _projects_payload(projects: List[DiscoveredProject]) -> list[dict[str, object]]:
    payload = []
    for item in projects:
        root = item.root
        payload.append(
            {
                "name": root.name,
                "path": root.path,
                "type": root.type.value,
                "languages": root.languages,
                "has_git": root.has_git,
                "last_modified": root.last_modified,
                "from_cache": item.from_cache,
                "analysis": asdict(item.analysis),
            }
        )
    return payload


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
