"""Delete unlocked quotes that expired long ago.

Usage: python -m scripts.cleanup_expired_quotes [--days N]
"""

from __future__ import annotations

import argparse
import asyncio
from datetime import timedelta

from app.db.session import get_sessionmaker
from app.services import quote_service


async def cleanup(days: int) -> int:
    sessionmaker = get_sessionmaker()
    async with sessionmaker() as session:
        return await quote_service.cleanup_expired_quotes(
            session, older_than=timedelta(days=days)
        )


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--days", type=int, default=7, help="Age past expiry to keep")
    args = parser.parse_args()
    removed = asyncio.run(cleanup(args.days))
    print(f"Removed {removed} expired quote(s).")


if __name__ == "__main__":
    main()
