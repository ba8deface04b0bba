#!/usr/bin/env python3
"""
MIDI Carver — Entry Point.

Usage:
    python main.py disk.img                 # writes to disk.img's dir/mcut-out/
    python main.py disk.img -o recovered/   # custom output directory
    python main.py disk.img --preview       # report only, write nothing
"""

APP_VERSION = "1.0.0"

import os
import sys
import json
import time
import logging
import argparse


def cli_mode(args) -> int:
    from midicarve.mmap_reader import BlobLoadError
    from midicarve.scanner import MidiScanner
    from midicarve.signatures import CarvePolicy

    print("=" * 60)
    print(f"  MIDI Carver  v{APP_VERSION}")
    print("  Standard MIDI File carving from raw binary blobs")
    print("=" * 60)
    print()

    if args.output:
        output_dir = args.output
    else:
        output_dir = os.path.join(os.path.dirname(os.path.abspath(args.blob)), "mcut-out")

    policy = CarvePolicy(
        max_resync_distance=args.max_resync,
        min_backtrack=args.min_backtrack,
    )

    print(f"Input:      {args.blob}")
    print(f"Output:     {output_dir}")
    print(f"Mode:       {'Preview' if args.preview else 'Full recovery'}")
    print()

    scanner = MidiScanner(policy)
    scanner.set_file_found_callback(
        lambda rf: print(f"  [{rf.suffix:4s}] {rf.filename}  "
                         f"{rf.track_count} track(s)  {rf.size_human}"))

    if not args.preview:
        try:
            os.makedirs(output_dir, exist_ok=True)
        except OSError as e:
            logging.getLogger(__name__).error(
                "Could not create output directory %s: %s", output_dir, e)

    start = time.time()
    try:
        results = scanner.scan(args.blob, output_dir, preview_only=args.preview)
    except BlobLoadError as e:
        logging.getLogger(__name__).error("%s", e)
        return 1
    elapsed = time.time() - start

    carved = [rf for rf in results if not rf.is_refused]
    refused = len(results) - len(carved)

    print(f"\n{'=' * 60}")
    print(f"  Done in {elapsed:.1f}s — Carved {len(carved)} MIDI file(s)")
    print(f"{'=' * 60}")

    if carved:
        by_suffix: dict[str, list] = {}
        for rf in carved:
            by_suffix.setdefault(rf.suffix, []).append(rf)
        print()
        print(f"  {'Status':7s} {'Count':>6s}  {'Size':>10s}")
        print(f"  {'-'*7} {'-'*6}  {'-'*10}")
        for suffix in ("OK", "BAD", "ORPH"):
            files = by_suffix.get(suffix, [])
            if files:
                print(f"  {suffix:7s} {len(files):6d}  "
                      f"{_fmt(sum(f.size for f in files)):>10s}")
        print(f"\n  Total: {_fmt(sum(f.size for f in carved))}")
    if refused:
        print(f"  Refused (no tracks recovered): {refused}")

    if not args.preview:
        if carved:
            print(f"\n  Saved to: {output_dir}")
        if not args.no_log:
            log_path = os.path.join(output_dir, "recovery_log.json")
            try:
                with open(log_path, "w") as f:
                    json.dump(scanner.get_recovery_log(), f, indent=2, default=str)
                print(f"  Log: {log_path}")
            except OSError as e:
                logging.getLogger(__name__).error(
                    "Could not write recovery log %s: %s", log_path, e)
    else:
        print("  (Preview mode — files not saved)")
    print()
    return 0


def _fmt(n):
    s = float(n)
    for u in ("B", "KB", "MB", "GB"):
        if s < 1024:
            return f"{s:.1f} {u}"
        s /= 1024
    return f"{s:.1f} TB"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Recover MIDI files embedded in a raw binary blob.")
    parser.add_argument("blob", help="Disk image, dump, or other binary file to scan")
    parser.add_argument("-o", "--output", default="",
                        help="Output directory (default: mcut-out/ next to the blob)")
    parser.add_argument("--preview", action="store_true", help="Detect without saving")
    parser.add_argument("--no-log", action="store_true",
                        help="Don't write recovery_log.json")
    parser.add_argument("--max-resync", type=int, default=32768,
                        help="Bytes to search for an MTrk after losing sync")
    parser.add_argument("--min-backtrack", type=int, default=8,
                        help="Lowest track offset checked when backtracking for an MThd")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("-q", "--quiet", action="store_true",
                        help="Only log warnings and errors")
    parser.add_argument("--version", action="version", version=f"%(prog)s {APP_VERSION}")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    level = logging.INFO
    if args.verbose:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    return cli_mode(args)


if __name__ == "__main__":
    sys.exit(main())
