#!/usr/bin/env python3
"""
CLI for the Utility Provider Lookup engine.

Usage:
    python run_engine.py "301 W 2nd St, Austin, TX 78701"
    python run_engine.py --batch addresses.csv --output results.csv
    python run_engine.py --no-cache -v "123 Main St, Round Rock, TX"
"""

import argparse
import csv
import json
import logging
import sys
from pathlib import Path

from provider_lookup.config import Config
from provider_lookup.engine import LookupEngine
from provider_lookup.models import UTILITY_TYPES, ResolutionError


def setup_logging(verbose: bool = False):
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def single_lookup(engine: LookupEngine, address: str, use_cache: bool = True) -> int:
    """Resolve a single address and print the JSON payload. Returns an exit code."""
    outcome = engine.resolve(address, use_cache=use_cache)
    print(json.dumps(outcome.to_dict(), indent=2))
    return 1 if isinstance(outcome, ResolutionError) else 0


def read_addresses(input_csv: str) -> list:
    addresses = []
    with open(input_csv, "r", newline="") as f:
        reader = csv.DictReader(f)
        addr_col = None
        for col in reader.fieldnames or []:
            if col.lower() in ("address", "display", "full_address"):
                addr_col = col
                break
        if not addr_col:
            addr_col = (reader.fieldnames or ["address"])[0]
        for row in reader:
            addr = (row.get(addr_col) or "").strip()
            if addr:
                addresses.append(addr)
    return addresses


def batch_lookup(engine: LookupEngine, input_csv: str, output_csv: str,
                 delay_ms: int, use_cache: bool = True):
    """Batch resolution from CSV file."""
    addresses = read_addresses(input_csv)
    print(f"Loaded {len(addresses)} addresses from {input_csv}")
    results = engine.resolve_batch(addresses, use_cache=use_cache, delay_ms=delay_ms)

    header = ["address", "lat", "lng", "error"]
    for utype in UTILITY_TYPES:
        header += [f"{utype}_provider", f"{utype}_confidence"]

    with open(output_csv, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(header)
        for addr, r in zip(addresses, results):
            if isinstance(r, ResolutionError):
                writer.writerow([addr, "", "", r.message] + [""] * (2 * len(UTILITY_TYPES)))
                continue
            row = [r.address, r.location.latitude, r.location.longitude, ""]
            for utype in UTILITY_TYPES:
                pr = r.providers[utype]
                row += [pr.provider or "", pr.confidence.value]
            writer.writerow(row)

    print(f"Wrote {len(results)} results to {output_csv}")


def main():
    parser = argparse.ArgumentParser(description="Utility Provider Lookup")
    parser.add_argument("address", nargs="?", help="Address to resolve")
    parser.add_argument("--batch", help="Input CSV file for batch processing")
    parser.add_argument("--output", default="results.csv", help="Output CSV for batch mode")
    parser.add_argument("--delay", type=int, default=0, help="Extra delay between addresses (ms)")
    parser.add_argument("--no-cache", action="store_true", help="Disable cache")
    parser.add_argument("--overrides", help="Path to a local overrides JSON file")
    parser.add_argument("--timeout", type=float, default=None,
                        help="Resolution deadline for provider lookups (seconds)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")

    args = parser.parse_args()
    setup_logging(args.verbose)

    if not args.address and not args.batch:
        parser.print_help()
        sys.exit(1)

    config = Config(resolution_timeout=args.timeout)
    if args.overrides:
        config.overrides_file = Path(args.overrides)

    engine = LookupEngine(config)
    try:
        if args.batch:
            batch_lookup(engine, args.batch, args.output, args.delay, use_cache=not args.no_cache)
        else:
            sys.exit(single_lookup(engine, args.address, use_cache=not args.no_cache))
    finally:
        engine.cache.close()


if __name__ == "__main__":
    main()
