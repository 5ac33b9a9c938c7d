"""Poll unfinished enrichment batches and apply finished results.

Usage (from repository root):
    python backend/scripts/poll_batches.py

Usage (from backend directory):
    python scripts/poll_batches.py --rerun
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

# Make `autocanon` imports work whether the script is run from repo root or backend/.
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from autocanon.db.session import SessionLocal
from autocanon.services.batch_tracking import poll_pending_batch_jobs, rerun_stored_results


def parse_args() -> argparse.Namespace:
    """Parse script CLI arguments."""

    parser = argparse.ArgumentParser(description="Poll unfinished enrichment batches.")
    parser.add_argument("--limit", type=int, default=None, help="Maximum jobs to poll.")
    parser.add_argument(
        "--rerun",
        action="store_true",
        help="Also re-apply stored results for listings that are still unresolved.",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    output: dict[str, object] = {}
    with SessionLocal() as db:
        summary = poll_pending_batch_jobs(db, limit=args.limit)
        output["poll"] = summary.model_dump(mode="json")
        if args.rerun:
            output["rerun"] = rerun_stored_results(db).model_dump(mode="json")
    print(json.dumps(output, indent=2))


if __name__ == "__main__":
    main()
