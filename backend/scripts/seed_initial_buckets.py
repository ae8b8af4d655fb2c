import argparse
import asyncio
import sys
from pathlib import Path

"""
Set the empty-bucket balance (first-time setup or after a physical count).

Existing delivery records are left as they are.

Run inside the api container:
  docker compose exec -T api uv run python scripts/seed_initial_buckets.py 12
"""

# Allow running from repo root by ensuring `backend/` is on sys.path
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from core.errors import LedgerError  # noqa: E402
from core.ledger import LedgerEngine  # noqa: E402
from db.database import create_db_and_tables  # noqa: E402
from db.store import get_store  # noqa: E402


async def seed(empty_buckets: int, dry_run: bool) -> int:
    await create_db_and_tables()
    ledger = LedgerEngine(get_store())

    current = await ledger.get_status()
    print(f"Current empty buckets: {current.empty_buckets}")
    if dry_run:
        print(f"[dry-run] Would set empty buckets to {empty_buckets}")
        return 0

    try:
        status = await ledger.set_initial_buckets(empty_buckets)
    except LedgerError as e:
        print(f"Refused: {e.message}")
        return 1
    print(f"Empty buckets set to {status.empty_buckets}")
    return 0


def main():
    p = argparse.ArgumentParser()
    p.add_argument("empty_buckets", type=int, help="New empty-bucket balance (>= 0)")
    p.add_argument("--dry-run", action="store_true", help="Only print the current and new balance")
    args = p.parse_args()

    sys.exit(asyncio.run(seed(args.empty_buckets, args.dry_run)))


if __name__ == "__main__":
    main()
