"""Plan a trip from a JSON request file and print the itinerary.

Usage:
    python scripts/plan_trip.py request.json
    python scripts/plan_trip.py request.json --output itinerary.json
"""

import asyncio
import json
import logging
import sys
from pathlib import Path

from backend.tripgen.errors import PipelineError
from backend.tripgen.graph.runner import plan_trip


def main(request_path: str, output: str | None = None) -> int:
    """Run the pipeline for one request file.

    Returns:
        Process exit code.
    """
    request = json.loads(Path(request_path).read_text(encoding="utf-8"))
    try:
        itinerary = asyncio.run(plan_trip(request))
    except PipelineError as e:
        print(f"Planning failed: {e}", file=sys.stderr)
        return 1

    payload = itinerary.model_dump_json(indent=2)
    if output:
        Path(output).write_text(payload, encoding="utf-8")
        print(f"Itinerary written to {output}")
    else:
        print(payload)
    return 0


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Plan a trip itinerary")
    parser.add_argument("request", help="Path to a JSON trip request")
    parser.add_argument("--output", "-o", help="Write the itinerary JSON here")
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (default: INFO)",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    sys.exit(main(args.request, args.output))
