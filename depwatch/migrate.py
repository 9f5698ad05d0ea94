"""
Database migration script for the depwatch repositories table.

Usage:
    python -m depwatch.migrate [--postgres-url URL]
"""
import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List

import psycopg2


logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"


def migration_files(migrations_dir: Path = MIGRATIONS_DIR) -> List[Path]:
    """Return migration files in the order they must be applied."""
    return sorted(migrations_dir.glob("*.sql"))


def apply_migrations(conn, migrations_dir: Path = MIGRATIONS_DIR) -> int:
    """
    Apply all SQL migrations on an open connection.

    Migrations are written with IF NOT EXISTS so reapplying them is safe.

    Args:
        conn: psycopg2 connection
        migrations_dir: Directory holding ``NNN_name.sql`` files

    Returns:
        Number of migrations applied
    """
    files = migration_files(migrations_dir)

    try:
        for migration_file in files:
            logger.info(f"Running migration: {migration_file.name}")

            with open(migration_file, 'r') as f:
                sql = f.read()

            with conn.cursor() as cur:
                cur.execute(sql)

            conn.commit()
    except Exception:
        conn.rollback()
        raise

    return len(files)


def run_migrations(postgres_url: str) -> int:
    """
    Connect to Postgres and run all SQL migrations in order.

    Args:
        postgres_url: PostgreSQL connection URL

    Returns:
        Number of migrations applied
    """
    conn = psycopg2.connect(postgres_url)
    try:
        return apply_migrations(conn)
    finally:
        conn.close()


def main():
    logging.basicConfig(level=logging.INFO, format="%(message)s")

    parser = argparse.ArgumentParser(description="Run depwatch database migrations")
    parser.add_argument(
        "--postgres-url",
        default=os.getenv("POSTGRES_URL"),
        help="PostgreSQL connection URL (default: $POSTGRES_URL)"
    )

    args = parser.parse_args()

    if not args.postgres_url:
        print("POSTGRES_URL is required. Set it in your environment or pass --postgres-url.", file=sys.stderr)
        sys.exit(1)

    print("depwatch - Database Migration")
    print("=" * 60)
    print(f"Database: {args.postgres_url.split('@')[1] if '@' in args.postgres_url else args.postgres_url}")
    print()

    try:
        count = run_migrations(args.postgres_url)
    except Exception as e:
        print(f"\n❌ Migration failed: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"\n✅ {count} migration(s) completed successfully")


if __name__ == "__main__":
    main()
