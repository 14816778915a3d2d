"""Script to create the schema directly from table metadata (development only)."""

import asyncio

from app.database import engine
from app.models import metadata


async def init_db(drop_existing: bool = False) -> None:
    """Create every table known to the models, optionally dropping them first."""
    async with engine.begin() as conn:
        if drop_existing:
            await conn.run_sync(metadata.drop_all)
        await conn.run_sync(metadata.create_all)

    await engine.dispose()
    print(f"✓ Created tables: {', '.join(sorted(metadata.tables))}")


if __name__ == "__main__":
    import sys

    asyncio.run(init_db(drop_existing="--drop" in sys.argv[1:]))
