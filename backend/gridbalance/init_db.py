"""Database initialization script.

Usage:
    python -m gridbalance.init_db              # create tables
    python -m gridbalance.init_db --backfill   # create tables, then ingest the last 8 days
"""

import argparse
import asyncio

from gridbalance.config import settings
from gridbalance.database import build_engine, build_session_factory, create_tables
from gridbalance.services import IngestionService, ReeApiClient


async def backfill(engine) -> None:
    """Ingest today and the previous 8 days once."""
    async with ReeApiClient(
        base_url=settings.ree_api_base_url,
        timeout=settings.request_timeout,
        max_retries=settings.fetch_max_retries,
        retry_delay=settings.fetch_retry_delay,
        timezone=settings.ree_timezone,
    ) as client:
        service = IngestionService(client, build_session_factory(engine))
        stored = await service.ingest_historical(start_offset=0)
        print(f"Stored {len(stored)} days: {', '.join(day.isoformat() for day in stored)}")

        summary = await service.summary()
        print(
            f"Database now holds {summary.balances} balances, {summary.categories} categories, "
            f"{summary.sources} sources and {summary.values} values"
        )


async def main(run_backfill: bool) -> None:
    engine = build_engine(settings.database_url)
    try:
        print("Creating database tables...")
        await create_tables(engine)
        print("Tables created successfully!")

        if run_backfill:
            print("\nBackfilling recent balances from REE...")
            await backfill(engine)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Initialize the power grid balance database")
    parser.add_argument(
        "--backfill", action="store_true", help="Ingest the last 8 days after creating tables"
    )
    args = parser.parse_args()
    asyncio.run(main(args.backfill))
