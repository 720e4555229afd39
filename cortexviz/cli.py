#!/usr/bin/env python3
"""
cortexviz CLI
=============

Command-line interface for offline inspection.

Usage:
    cortexviz replay steps.jsonl                      # Replay a recorded journal
    cortexviz replay steps.jsonl --layer rgn-0/layer-3 --json
    cortexviz buckets --cap 200 values.txt            # Compress a number series
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional, TextIO

from cortexviz.compressor import combine_mean, read_buckets, sequence_compressor
from cortexviz.config import CortexVizConfig
from cortexviz.errors import CortexVizError
from cortexviz.journal import RecordedJournal
from cortexviz.session import CellSdrsSession

logger = logging.getLogger("cortexviz.cli")

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def load_config(args: argparse.Namespace) -> CortexVizConfig:
    """Config file, then environment, then command-line overrides."""
    config = CortexVizConfig.from_yaml(args.config) if args.config else CortexVizConfig()
    config = CortexVizConfig.from_env(config)
    if getattr(args, "hide_below", None) is not None:
        config.display.hide_below_count = args.hide_below
    if getattr(args, "threshold", None) is not None:
        config.clustering.default_threshold = args.threshold
    if args.log_level:
        config.log_level = args.log_level
    return config


def print_snapshot(snapshot, out: TextIO = sys.stdout) -> None:
    """Human-readable snapshot summary."""
    print(f"{snapshot.title}  step {snapshot.step}  threshold {snapshot.threshold}"
          f"{'  (stale)' if snapshot.stale else ''}", file=out)
    print(f"  {'SDR':>4}  {'size':>8}  {'growth':>8}  {'count':>6}  next", file=out)
    for sdr in snapshot.labels:
        count = sum(snapshot.label_counts.get(sdr, {}).values())
        growth = snapshot.growth.get(sdr)
        growth_s = f"{growth:+8.2f}" if growth is not None else f"{'':>8}"
        nxt = ",".join(str(s) for s in sorted(snapshot.transitions.successors(sdr)))
        print(f"  {sdr:>4}  {snapshot.sizes.get(sdr, 0.0):8.2f}  {growth_s}  {count:6.1f}  {nxt}",
              file=out)


def cmd_replay(args: argparse.Namespace) -> int:
    """Replay a recorded journal and print the final snapshot."""
    config = load_config(args)
    problems = config.validate()
    if problems:
        for p in problems:
            print(f"config: {p}", file=sys.stderr)
        return 2
    logging.getLogger().setLevel("DEBUG" if config.debug else config.log_level.upper())

    journal = RecordedJournal.from_jsonl(args.recording)
    if not journal.layers:
        print("Recording is empty", file=sys.stderr)
        return 1

    session = CellSdrsSession(journal, journal.layers, config=config)
    if args.layer:
        region, _, layer = args.layer.partition("/")
        if (region, layer) not in journal.layers:
            print(f"Layer {args.layer} not in recording", file=sys.stderr)
            return 1
        session.select(region, layer)

    asyncio.run(session.ingest_history(journal.steps, progress=not args.quiet))

    snapshot = session.snapshot
    if args.json:
        print(json.dumps(snapshot.to_dict(), indent=2, default=str))
    else:
        print_snapshot(snapshot)
    return 0


def read_values(path: Optional[str]) -> List[float]:
    f = open(path, "r") if path else sys.stdin
    try:
        return [float(line) for line in f if line.strip()]
    finally:
        if path:
            f.close()


def cmd_buckets(args: argparse.Namespace) -> int:
    """Compress a series of numbers with a capped mean compressor."""
    if args.cap < 1:
        print(f"--cap must be >= 1, got {args.cap}", file=sys.stderr)
        return 2
    log = sequence_compressor(combine_mean, max_bucket_count=args.cap, sample=0.0)
    log = log.extend(read_values(args.file))
    width, buckets = read_buckets(log)

    if args.json:
        print(json.dumps({"bucket_size": width, "buckets": buckets,
                          "unfilled": list(log.unfilled_bucket)}))
    else:
        print(f"bucket size: {width}")
        for i, b in enumerate(buckets):
            print(f"  [{i * width:>6}, {(i + 1) * width:>6})  {b:.4f}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="cortexviz - SDR tracking and time-series compression",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", "-c", type=Path, help="YAML config file")
    parser.add_argument("--log-level", choices=LOG_LEVELS, help="Log level")

    # also accepted after the subcommand; SUPPRESS keeps a value given before it
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", "-c", type=Path, default=argparse.SUPPRESS,
                        help="YAML config file")
    common.add_argument("--log-level", choices=LOG_LEVELS, default=argparse.SUPPRESS,
                        help="Log level")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # replay
    p = subparsers.add_parser("replay", parents=[common], help="Replay a recorded journal")
    p.add_argument("recording", type=Path, help="JSONL recording")
    p.add_argument("--layer", help="REGION/LAYER to show (default: first recorded)")
    p.add_argument("--hide-below", type=float, help="Hide SDRs with fewer attributed steps")
    p.add_argument("--threshold", type=float, help="Default learn-vote threshold")
    p.add_argument("--json", action="store_true", help="Output as JSON")
    p.add_argument("--quiet", "-q", action="store_true", help="No progress bar")
    p.set_defaults(func=cmd_replay)

    # buckets
    p = subparsers.add_parser("buckets", parents=[common], help="Compress a number series")
    p.add_argument("file", nargs="?", help="One number per line (default: stdin)")
    p.add_argument("--cap", type=int, default=200, help="Maximum bucket count")
    p.add_argument("--json", action="store_true", help="Output as JSON")
    p.set_defaults(func=cmd_buckets)

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level or "WARNING"),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if not args.command:
        parser.print_help()
        return 1

    try:
        return args.func(args)
    except CortexVizError as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
