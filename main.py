"""
Monitor CLI for the persisted cache.

Usage:
    python main.py stats
    python main.py --log-level WARNING flush
    python main.py debug sales
    python main.py cleanup
    python main.py flush [namespace]
    python main.py example-env
"""

import argparse
import json
import sys

from lotto_cache.core.config import ConfigManager
from lotto_cache.core.exceptions import ConfigurationError, LottoCacheError
from lotto_cache.core.manager import CacheManager
from lotto_cache.core.registry import CacheRegistry
from lotto_cache.types.models import LogLevel
from lotto_cache.utils.tree_log import print_tree_section


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Inspect and maintain the lotto cache")
    parser.add_argument("--env-file", help="Path to the .env file (default: config/.env)")
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=[level.value for level in LogLevel],
        help="Override LOG_LEVEL for this run"
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser(
        "stats",
        help="Print the size of every namespace as reloaded from storage "
             "(hit counters live in each process and are not persisted)"
    )

    debug = commands.add_parser("debug", help="Dump the entries of one namespace as JSON")
    debug.add_argument("namespace")

    commands.add_parser("cleanup", help="Remove expired entries from every namespace")

    flush = commands.add_parser("flush", help="Clear one namespace, or all of them")
    flush.add_argument("namespace", nargs="?")

    example = commands.add_parser("example-env", help="Write an example .env file")
    example.add_argument("--path", default="config/.env.example")
    return parser


def run(args: argparse.Namespace) -> int:
    if args.command == "example-env":
        ConfigManager.create_example_env_file(args.path)
        print(f"Wrote {args.path}")
        return 0

    settings = ConfigManager(args.env_file).load_config()
    # One-shot process, no background sweeper
    settings.cleanup_interval = 0
    registry = CacheRegistry(settings)
    manager = CacheManager(registry)
    if args.log_level:
        manager.set_log_level(args.log_level)

    try:
        if args.command == "stats":
            for name, store in registry:
                entries = store.get_debug_info()["entries"]
                print_tree_section(name, [
                    ("size", f"{len(entries)}/{store.max_size}"),
                    ("expired", sum(1 for entry in entries if entry["is_expired"])),
                    ("persistent", store.persistent),
                ], emoji="📊")

        elif args.command == "debug":
            info = registry.get(args.namespace).get_debug_info()
            print(json.dumps(info, indent=2, default=str))

        elif args.command == "cleanup":
            removed = manager.cleanup()
            print_tree_section("Expired entries removed", removed.items(), emoji="🧹")

        elif args.command == "flush":
            if args.namespace:
                registry.get(args.namespace).clear()
                print_tree_section("Flushed", [("namespace", args.namespace)], emoji="🗑️")
            else:
                manager.clear_all()
                print_tree_section("Flushed", [("namespaces", ", ".join(registry.names()))], emoji="🗑️")
    finally:
        manager.destroy_all()
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return run(args)
    except ConfigurationError as e:
        print(e.get_troubleshooting_message(), file=sys.stderr)
        return 2
    except LottoCacheError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
