"""Submit unresolved listings as one enrichment batch.

Usage (from repository root):
    python backend/scripts/submit_batch.py --site 28car --limit 50

Usage (from backend directory):
    python scripts/submit_batch.py
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
from autocanon.services.batch_submission import NoEligibleListingsError, submit_enrichment_batch


def parse_args() -> argparse.Namespace:
    """Parse script CLI arguments."""

    parser = argparse.ArgumentParser(description="Submit unresolved listings as an enrichment batch.")
    parser.add_argument("--site", default=None, help="Only select listings from this site.")
    parser.add_argument("--limit", type=int, default=None, help="Maximum listings in the batch.")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    with SessionLocal() as db:
        try:
            result = submit_enrichment_batch(db, site=args.site, limit=args.limit)
        except NoEligibleListingsError as exc:
            print(str(exc), file=sys.stderr)
            return 1
    print(json.dumps(result.model_dump(mode="json"), indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
