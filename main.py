"""
CLI entry point for tiercache.

Usage:
    python main.py get user:1
    python main.py put user:1 John Doe
    python main.py evict user:1
    python main.py clear
    python main.py warm user:1 user:2 product:1
    python main.py stats [--prometheus]
    python main.py metrics

Every command builds the cache described by ``config/config.yaml``
(or ``--config``), so state persists between invocations only through
layers that outlive the process, such as Redis.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from tiercache.config import get_settings
from tiercache.exceptions import TierCacheException
from tiercache.factory import build_cache


def cmd_get(cache, args):
    """Look up a key, loading it from the configured files on a miss."""
    print(json.dumps(cache.get(args.key)))


def cmd_put(cache, args):
    """Write a value to every layer."""
    cache.put(args.key, args.values)
    print(f"Stored {args.key} in {len(cache.layers)} layer(s)")


def cmd_evict(cache, args):
    """Remove a key from every layer."""
    cache.evict(args.key)
    print(f"Evicted {args.key}")


def cmd_clear(cache, args):
    """Empty every layer."""
    cache.clear()
    print("Cleared all layers")


def cmd_warm(cache, args):
    """Bulk-load keys from the configured files into every layer."""
    warmed = cache.warm(args.keys)
    print(f"Warmed {warmed}/{len(args.keys)} key(s)")


def cmd_stats(cache, args):
    """Show per-layer entry counts, or Prometheus metrics."""
    if args.prometheus:
        cmd_metrics(cache, args)
    else:
        print(json.dumps(cache.size(), indent=2))


def cmd_metrics(cache, args):
    """Print the Prometheus text exposition."""
    print(cache.metrics.get_prometheus_metrics(), end="")


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="tiercache - multi-layer cache"
    )
    parser.add_argument("--config", default=None, help="Path to config YAML")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # get
    p_get = subparsers.add_parser("get", help="Get a key (loads on miss)")
    p_get.add_argument("key")

    # put
    p_put = subparsers.add_parser("put", help="Store a value in every layer")
    p_put.add_argument("key")
    p_put.add_argument("values", nargs="+", help="Value fields")

    # evict
    p_evict = subparsers.add_parser("evict", help="Evict a key from every layer")
    p_evict.add_argument("key")

    # clear
    subparsers.add_parser("clear", help="Clear every layer")

    # warm
    p_warm = subparsers.add_parser("warm", help="Bulk-load keys from the source")
    p_warm.add_argument("keys", nargs="+")

    # stats
    p_stats = subparsers.add_parser("stats", help="Show layer sizes")
    p_stats.add_argument("--prometheus", action="store_true", help="Prometheus text output")

    # metrics
    subparsers.add_parser("metrics", help="Print Prometheus metrics")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    commands = {
        "get": cmd_get,
        "put": cmd_put,
        "evict": cmd_evict,
        "clear": cmd_clear,
        "warm": cmd_warm,
        "stats": cmd_stats,
        "metrics": cmd_metrics,
    }
    try:
        settings = get_settings(
            yaml_path=Path(args.config) if args.config else None,
            _force_reload=args.config is not None,
        )
        logging.basicConfig(
            level=getattr(logging, settings.logging.level.upper(), logging.INFO),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        cache = build_cache(settings)
        commands[args.command](cache, args)
    except TierCacheException as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
