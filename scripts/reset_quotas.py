"""Zero every user's monthly audit counter.

Run from cron (or any scheduler) at the start of each billing month:

    AUDITFLOW_DATABASE_URL=postgresql+asyncpg://... python scripts/reset_quotas.py

Usage:
    python scripts/reset_quotas.py [--database-url sqlite+aiosqlite:///auditflow_local.db]
"""

import argparse
import asyncio

from auditflow.config import settings
from auditflow.db.engine import create_db_engine, create_session_factory
from auditflow.services.user_service import reset_monthly_usage
from auditflow.storage.sql import SqlStorage


async def reset_quotas(database_url: str) -> int:
    engine = create_db_engine(database_url)
    storage = SqlStorage(create_session_factory(engine), engine=engine)
    try:
        return await reset_monthly_usage(storage)
    finally:
        await storage.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Reset monthly audit counters")
    parser.add_argument(
        "--database-url",
        default=settings.effective_database_url,
        help="SQLAlchemy async URL (default: from AUDITFLOW_ settings)",
    )
    args = parser.parse_args()
    count = asyncio.run(reset_quotas(args.database_url))
    print(f"Reset audit counters for {count} users")
