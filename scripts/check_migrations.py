"""Fail if either message store's schema has drifted from the SQLAlchemy models."""

from __future__ import annotations

import asyncio

from alembic.autogenerate import compare_metadata
from alembic.migration import MigrationContext
from sqlalchemy.ext.asyncio import create_async_engine

from app import models  # noqa: F401  # Ensure models are registered
from app.config import settings
from app.database import Base


def _diff_schema(connection) -> list[object]:
    context = MigrationContext.configure(connection, opts={"compare_type": True})
    return compare_metadata(context, Base.metadata)


async def _check(label: str, url: str) -> bool:
    engine = create_async_engine(url)
    try:
        async with engine.connect() as conn:
            diffs = await conn.run_sync(_diff_schema)
    finally:
        await engine.dispose()

    if not diffs:
        print(f"{label}: schema matches models.")
        return True
    print(f"{label}: {len(diffs)} difference(s) from models:")
    for diff in diffs:
        print(f"  {diff}")
    return False


async def main() -> int:
    stores = [("primary", settings.database_url)]
    if settings.live_store_url != settings.database_url:
        stores.append(("live", settings.live_store_url))

    results = [await _check(label, url) for label, url in stores]
    return 0 if all(results) else 1


if __name__ == "__main__":
    raise SystemExit(asyncio.run(main()))
