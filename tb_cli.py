"""Command-line front end: bucket a range or an address file and report stats."""
import argparse
import logging
import re
import sys
import time
from typing import List, Optional, Sequence, Tuple

from bucket_engine import DEFAULT_K, MASK32, PRESETS, BucketEngine, Config, Histogram
from bucket_stats import StatsResult, compute_stats
from ipv4_text import format_ipv4, read_addresses

logger = logging.getLogger(__name__)

_HEX = re.compile(r"[0-9A-Fa-f]+")
_DECIMAL = re.compile(r"[0-9]+")

DESCRIPTION = "Turbo-Bucketizer: affine IPv4 bucketing and uniformity statistics"

EPILOG = """\
examples:
  tb-cli --demo 1000000 --k 12 --preset default
  tb-cli --from-file data/ips.txt --k 16 --preset wang --show-buckets 32
"""


class UsageError(ValueError):
    """Raised for malformed or missing command-line arguments."""


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # type: ignore[override]
        raise UsageError(message)


def parse_hex32(text: str) -> int:
    """Parse a 32-bit hex value with an optional 0x prefix."""
    digits = text[2:] if text[:2].lower() == "0x" else text
    if not _HEX.fullmatch(digits):
        raise argparse.ArgumentTypeError(f"invalid hex value: '{text}'")
    value = int(digits, 16)
    if value > MASK32:
        raise argparse.ArgumentTypeError(f"value out of 32-bit range: '{text}'")
    return value


def parse_count(text: str) -> int:
    """Parse a non-negative decimal integer."""
    if not _DECIMAL.fullmatch(text):
        raise argparse.ArgumentTypeError(f"invalid non-negative integer: '{text}'")
    return int(text)


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="tb-cli",
        description=DESCRIPTION,
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    mode = parser.add_mutually_exclusive_group(required=True)
    mode.add_argument(
        "--demo",
        metavar="N",
        type=parse_count,
        help="Analyze the IPv4 range [0, N) as 32-bit integers",
    )
    mode.add_argument(
        "--from-file",
        metavar="PATH",
        help="Read IPv4 addresses (one per line, dotted form)",
    )
    parser.add_argument(
        "--k",
        metavar="BITS",
        type=parse_count,
        default=DEFAULT_K,
        help=f"Number of bucket bits (default: {DEFAULT_K} => {1 << DEFAULT_K} buckets)",
    )
    parser.add_argument(
        "--a",
        metavar="HEX",
        type=parse_hex32,
        help=f"Affine multiplier (hex, default: 0x{PRESETS['default'][0]:08X})",
    )
    parser.add_argument(
        "--b",
        metavar="HEX",
        type=parse_hex32,
        help=f"Affine offset (hex, default: 0x{PRESETS['default'][1]:08X})",
    )
    parser.add_argument(
        "--preset",
        choices=sorted(PRESETS),
        help="Preset parameters (overridden by --a/--b if provided)",
    )
    parser.add_argument(
        "--show-buckets",
        metavar="N",
        nargs="?",
        const=0,
        type=parse_count,
        help="Print per-bucket counts (optionally limited to N buckets)",
    )
    parser.add_argument("--verbose", action="store_true", help="Log progress at INFO level")
    return parser


def resolve_config(args: argparse.Namespace) -> Config:
    """Build the engine config: preset first, explicit --a/--b on top."""
    multiplier, offset = PRESETS[args.preset or "default"]
    if args.a is not None:
        multiplier = args.a
    if args.b is not None:
        offset = args.b
    return Config(multiplier=multiplier, offset=offset, k=args.k)


def format_report(
    header: Sequence[str],
    config: Config,
    stats: StatsResult,
    counts: Histogram,
    show_buckets: Optional[int] = None,
) -> str:
    """Render the plain-text report printed by the CLI.

    ``show_buckets`` of None omits the bucket listing; 0 lists every bucket.
    """
    lines: List[str] = list(header)
    lines += [
        "",
        "Config:",
        f"  a = 0x{config.multiplier:X}",
        f"  b = 0x{config.offset:X}",
        f"  k = {config.k} (buckets = {config.bucket_count})",
        "",
        "Stats:",
        f"  sample_count = {stats.sample_count}",
        f"  bucket_count = {stats.bucket_count}",
        f"  mean         = {stats.mean:.4f}",
        f"  stddev       = {stats.stddev:.4f}",
        f"  chi2         = {stats.chi2:.4f}",
        f"  uniformity   = {stats.uniformity:.4f} %",
    ]
    if show_buckets is not None:
        limit = len(counts) if show_buckets == 0 else min(show_buckets, len(counts))
        lines += ["", f"Bucket counts (first {limit}):"]
        lines += [f"  [{i}] = {int(counts[i])}" for i in range(limit)]
    return "\n".join(lines) + "\n"


def run_demo(count: int, config: Config) -> Tuple[List[str], StatsResult, Histogram]:
    if count == 0:
        raise ValueError("Demo count N must be > 0")
    end = min(count, MASK32 + 1)
    engine = BucketEngine(config)

    started = time.perf_counter()
    counts = engine.distribution(0, end)
    logger.info("bucketed %d addresses in %.3fs", end, time.perf_counter() - started)

    stats = compute_stats(counts)
    header = ["Mode: demo", f"Range: [0, {end}) ({stats.sample_count} samples)"]
    return header, stats, counts


def run_from_file(path: str, config: Config) -> Tuple[List[str], StatsResult, Histogram]:
    addresses = read_addresses(path)
    if addresses.size == 0:
        raise ValueError(f"No valid IPv4 addresses found in file: {path}")
    logger.info(
        "loaded %d addresses from %s (first %s, last %s)",
        addresses.size,
        path,
        format_ipv4(int(addresses[0])),
        format_ipv4(int(addresses[-1])),
    )
    engine = BucketEngine(config)

    started = time.perf_counter()
    counts = engine.distribution(addresses)
    logger.info("bucketed %d addresses in %.3fs", addresses.size, time.perf_counter() - started)

    stats = compute_stats(counts)
    header = ["Mode: from-file", f"File: {path}"]
    return header, stats, counts


def main(argv: Optional[Sequence[str]] = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    parser = build_parser()
    if not argv:
        parser.print_help(sys.stdout)
        return 1

    try:
        args = parser.parse_args(argv)
        if args.verbose and not logging.getLogger().handlers:
            logging.basicConfig(level=logging.INFO)
        config = resolve_config(args)
        logger.info(
            "config: a=%#010x b=%#010x k=%d buckets=%d",
            config.multiplier,
            config.offset,
            config.k,
            config.bucket_count,
        )
        if args.demo is not None:
            header, stats, counts = run_demo(args.demo, config)
        else:
            header, stats, counts = run_from_file(args.from_file, config)
    except (ValueError, OSError, MemoryError) as exc:
        message = str(exc) or f"{type(exc).__name__} (try a smaller --k)"
        print(f"Error: {message}\n", file=sys.stderr)
        parser.print_usage(sys.stderr)
        return 1

    sys.stdout.write(format_report(header, config, stats, counts, args.show_buckets))
    return 0


if __name__ == "__main__":
    sys.exit(main())
