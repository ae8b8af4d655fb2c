"""
Delete the empty-bucket balance and ALL delivery records.

Run inside docker (recommended):
  docker exec -i water-api sh -lc "cd /app && PYTHONPATH=/app uv run python scripts/clear_ledger.py --yes"
"""

from __future__ import annotations

import argparse
import asyncio

from core.ledger import LedgerEngine
from db.database import create_db_and_tables
from db.store import get_store


async def main(confirmed: bool) -> None:
    await create_db_and_tables()
    ledger = LedgerEngine(get_store())

    if not confirmed:
        status = await ledger.get_status()
        print(f"Would delete the balance ({status.empty_buckets} empty buckets) and every record. Re-run with --yes.")
        return

    deleted = await ledger.clear_all()
    print(f"Deleted keys: {deleted}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--yes", action="store_true", help="Really delete everything")
    args = parser.parse_args()
    asyncio.run(main(args.yes))
