"""Database migrations module.

Migrations are versioned SQL files in this directory (``001_initial.sql``)
applied in order and recorded in ``schema_migrations``.
"""

import logging
from pathlib import Path
from typing import Any

from datepoll.db.core import _get_connection

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent

_CREATE_MIGRATIONS_TABLE = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    version INTEGER PRIMARY KEY,
    applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    description TEXT
);
"""


async def get_current_version() -> int:
    """Get the current migration version from the database."""
    async with _get_connection() as conn:
        await conn.execute(_CREATE_MIGRATIONS_TABLE)
        cur = await conn.execute("SELECT COALESCE(MAX(version), 0) FROM schema_migrations")
        row = await cur.fetchone()
        return int(row[0]) if row and row[0] else 0


def list_migrations() -> list[dict[str, Any]]:
    """All migration files, ordered by version."""
    migrations = []
    for path in sorted(MIGRATIONS_DIR.glob("*.sql")):
        # "001_initial.sql" -> 1
        try:
            version = int(path.stem.split("_")[0])
        except ValueError:
            continue
        migrations.append({
            "version": version,
            "filename": path.name,
            "description": "_".join(path.stem.split("_")[1:]),
            "path": path,
        })
    return migrations


async def get_pending_migrations() -> list[dict[str, Any]]:
    current = await get_current_version()
    return [m for m in list_migrations() if m["version"] > current]


async def apply_migration(version: int, sql: str, description: str = "") -> None:
    """Apply a single migration and record it, in one transaction."""
    async with _get_connection(autocommit=False) as conn:
        async with conn.transaction():
            await conn.execute(sql)
            await conn.execute(
                "INSERT INTO schema_migrations (version, description) VALUES (%s, %s)",
                (version, description),
            )
    logger.info("Applied migration %d: %s", version, description)


async def run_migrations() -> int:
    """Run all pending migrations. Returns the number applied."""
    pending = await get_pending_migrations()
    for migration in pending:
        await apply_migration(
            migration["version"],
            migration["path"].read_text(),
            migration["description"],
        )
    if pending:
        logger.info("Applied %d migrations", len(pending))
    else:
        logger.debug("No pending migrations")
    return len(pending)
