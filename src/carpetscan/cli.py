#!/usr/bin/env python3
"""CLI interface for carpetscan."""

import argparse
import json
import logging
import sys
from pathlib import Path

import cv2
from tqdm import tqdm

from .config import RecognizerConfig
from .database import ReferenceDatabase
from .engine import CarpetRecognizer
from .models import LocationContext

logger = logging.getLogger(__name__)


def main() -> None:
    """CLI entry point for carpetscan.

    Analyzes one or more carpet photos against a reference set and prints the
    ranked candidates for each.
    """
    parser = argparse.ArgumentParser(
        description="Identify venues by matching carpet photos to reference profiles",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    parser.add_argument("images", type=str, nargs="+", help="Carpet photo(s) to analyze")
    parser.add_argument("--references", type=str, default=None,
                       help="Reference JSON file (default: bundled sample set)")
    parser.add_argument("--top-k", type=int, default=5,
                       help="Number of candidates reported per image")
    parser.add_argument("--num-workers", type=int, default=1,
                       help="Threads used to score reference entries")
    parser.add_argument("--parallel-extraction", action="store_true",
                       help="Run color and texture extraction concurrently")
    parser.add_argument("--distance-km", type=float, default=None,
                       help="Distance to the nearest venue, enables location blending")
    parser.add_argument("--nearby-count", type=int, default=1,
                       help="Number of venues in range (used with --distance-km)")
    parser.add_argument("--json", action="store_true",
                       help="Print results as JSON")
    parser.add_argument("--debug", action="store_true",
                       help="Print per-image diagnostics")
    parser.add_argument("-v", "--verbose", action="store_true",
                       help="Enable debug logging")

    args = parser.parse_args()

    # Configure logging
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S"
    )

    if args.references is not None and not Path(args.references).is_file():
        print(f"Error: Reference file not found: {args.references}")
        sys.exit(1)

    try:
        references = (
            ReferenceDatabase.from_json(args.references)
            if args.references is not None
            else ReferenceDatabase.sample()
        )
        config = RecognizerConfig(
            top_k=args.top_k,
            num_workers=args.num_workers,
            parallel_extraction=args.parallel_extraction,
        )
        recognizer = CarpetRecognizer(references, config=config)
        location = None
        if args.distance_km is not None:
            location = LocationContext(
                distance_km=args.distance_km, nearby_count=args.nearby_count
            )
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)

    report = {}
    paths = [Path(p) for p in args.images]
    for path in tqdm(paths, desc="Analyzing carpets", disable=len(paths) < 2):
        img = cv2.imread(str(path))
        if img is None:
            logger.warning(f"Could not read image: {path}")
            continue
        rgb = cv2.cvtColor(img, cv2.COLOR_BGR2RGB)
        matches = recognizer.analyze(rgb, location=location)
        entry = {"matches": [m.model_dump(mode="json") for m in matches]}
        if not matches and recognizer.snapshot.gate is not None:
            entry["reason"] = recognizer.snapshot.gate.reason
        if args.debug:
            entry["debug"] = recognizer.debug_info()
        report[str(path)] = entry

    if args.json:
        print(json.dumps(report, indent=2))
        return

    for image, entry in report.items():
        print(f"\n{image}")
        if not entry["matches"]:
            print(f"  No match: {entry.get('reason', 'no candidates')}")
        for i, match in enumerate(entry["matches"], start=1):
            print(f"  {i}. {match['display_name']} - {match['confidence']:.1f}% "
                  f"(final {match['final_confidence']:.1f}%)")
            print(f"     {', '.join(match['reasoning'])}")
        if args.debug:
            print(f"  debug: {json.dumps(entry['debug'])}")


if __name__ == "__main__":
    main()
