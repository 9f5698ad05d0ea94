"""
Repository store backed by Postgres or SQLite.

Holds the single ``repositories`` table that every collector writes to and
the dashboard reads from. Rows are unique by ``full_name``.
"""
import json
import logging
import sqlite3
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from depwatch.models import RepositoryData


logger = logging.getLogger(__name__)


SQLITE_SCHEMA = """
CREATE TABLE IF NOT EXISTS repositories (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    full_name TEXT NOT NULL UNIQUE,
    name TEXT NOT NULL,
    owner TEXT NOT NULL,
    url TEXT NOT NULL,
    homepage TEXT,
    stars INTEGER DEFAULT 0,
    forks INTEGER DEFAULT 0,
    created_at TEXT,
    updated_at TEXT,
    last_seen TEXT,
    saved_at TEXT,
    source TEXT NOT NULL DEFAULT '[]',
    default_branch TEXT,
    deleted_at TEXT
);

CREATE INDEX IF NOT EXISTS idx_repositories_owner ON repositories(owner);
CREATE INDEX IF NOT EXISTS idx_repositories_stars ON repositories(stars DESC);
CREATE INDEX IF NOT EXISTS idx_repositories_forks ON repositories(forks DESC);
CREATE INDEX IF NOT EXISTS idx_repositories_created_at ON repositories(created_at);
CREATE INDEX IF NOT EXISTS idx_repositories_updated_at ON repositories(updated_at);
CREATE INDEX IF NOT EXISTS idx_repositories_last_seen ON repositories(last_seen);
CREATE INDEX IF NOT EXISTS idx_repositories_deleted_at ON repositories(deleted_at);
"""

REPOSITORY_COLUMNS = (
    "id, full_name, name, owner, url, homepage, stars, forks, "
    "created_at, updated_at, last_seen, saved_at, source, default_branch, deleted_at"
)

SORT_FIELDS = ("id", "stars", "forks", "name", "owner", "created_at", "updated_at", "last_seen")


def resolve_sort(sort_by: Optional[str], sort_order: Optional[str]) -> Tuple[str, str]:
    """
    Map user-supplied sort options onto the whitelist.

    Unknown fields fall back to ``id``; anything other than ``asc`` is DESC.

    Returns:
        (column, "ASC" | "DESC")
    """
    field = sort_by if sort_by in SORT_FIELDS else "id"
    order = "ASC" if (sort_order or "").lower() == "asc" else "DESC"
    return field, order


@dataclass
class SaveSummary:
    """Outcome of saving a batch of repositories."""
    saved_count: int = 0
    updated_count: int = 0
    error_count: int = 0


@dataclass
class RepositoryPage:
    """One page of repositories plus the unpaginated match count."""
    repositories: List[Dict[str, Any]]
    total_count: int


class RepositoryStore:
    """
    Repositories table with Postgres and SQLite backends.

    SQLite stores ``source`` as a JSON array and timestamps as ISO-8601
    strings; Postgres uses native arrays and timestamptz columns.
    """

    def __init__(
        self,
        backend: str = "sqlite",
        postgres_url: Optional[str] = None,
        sqlite_path: Optional[Path] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize repository store.

        Args:
            backend: "postgres" or "sqlite"
            postgres_url: PostgreSQL connection URL (if backend is postgres)
            sqlite_path: SQLite database file (if backend is sqlite; in-memory when omitted)
            clock: Source of "now" for last_seen/saved_at/deleted_at
        """
        self.backend = backend
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = threading.RLock()

        if backend == "sqlite":
            path = str(sqlite_path) if sqlite_path else ":memory:"
            if sqlite_path:
                Path(sqlite_path).parent.mkdir(parents=True, exist_ok=True)
            # The dashboard serves requests from a thread pool
            self.conn = sqlite3.connect(path, check_same_thread=False)
            self.conn.row_factory = sqlite3.Row
        elif backend == "postgres":
            if not postgres_url:
                raise ValueError("postgres_url required for postgres backend")
            import psycopg2
            self.conn = psycopg2.connect(postgres_url)
        else:
            raise ValueError(f"Unknown backend: {backend}")

    @classmethod
    def from_config(cls, config) -> 'RepositoryStore':
        """Open the store described by a DepwatchConfig."""
        if config.backend == "postgres":
            return cls(backend="postgres", postgres_url=config.postgres_url)
        return cls(backend="sqlite", sqlite_path=config.sqlite_path)

    def init_schema(self):
        """Create the repositories table if it does not exist."""
        if self.backend == "sqlite":
            with self._lock:
                self.conn.executescript(SQLITE_SCHEMA)
                self.conn.commit()
        else:
            from depwatch.migrate import apply_migrations
            with self._lock:
                apply_migrations(self.conn)

    # Low-level helpers

    def _sql(self, query: str) -> str:
        """Translate %s placeholders for sqlite3."""
        if self.backend == "sqlite":
            return query.replace("%s", "?").replace("ILIKE", "LIKE")
        return query

    def _encode(self, value: Any) -> Any:
        """Adapt a Python value for the active backend."""
        if self.backend == "sqlite":
            if isinstance(value, datetime):
                return value.isoformat()
            if isinstance(value, list):
                return json.dumps(value)
        return value

    def _decode_row(self, row: Dict[str, Any]) -> Dict[str, Any]:
        """Normalize a fetched row to plain Python values."""
        if 'source' in row:
            source = row['source']
            if isinstance(source, str):
                source = json.loads(source) if source else []
            row['source'] = list(source or [])
        return row

    def _execute(self, query: str, params: Sequence[Any] = ()) -> int:
        """Run a write statement and commit. Returns the affected row count."""
        params = [self._encode(p) for p in params]
        with self._lock:
            try:
                if self.backend == "sqlite":
                    cur = self.conn.execute(self._sql(query), params)
                    rowcount = cur.rowcount
                else:
                    with self.conn.cursor() as cur:
                        cur.execute(query, params)
                        rowcount = cur.rowcount
                self.conn.commit()
            except Exception:
                self.conn.rollback()
                raise
        return rowcount

    def _fetchall(self, query: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        """Run a read query and return rows as dicts."""
        params = [self._encode(p) for p in params]
        with self._lock:
            try:
                if self.backend == "sqlite":
                    cur = self.conn.execute(self._sql(query), params)
                    rows = [dict(r) for r in cur.fetchall()]
                else:
                    from psycopg2.extras import RealDictCursor
                    with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
                        cur.execute(query, params)
                        rows = [dict(r) for r in cur.fetchall()]
                    # End the read transaction so the connection is not left idle in transaction
                    self.conn.commit()
            except Exception:
                self.conn.rollback()
                raise
        return [self._decode_row(r) for r in rows]

    def _fetchone(self, query: str, params: Sequence[Any] = ()) -> Optional[Dict[str, Any]]:
        rows = self._fetchall(query, params)
        return rows[0] if rows else None

    # Writes

    def upsert_repository(self, repo: RepositoryData) -> bool:
        """
        Insert or update a repository by full_name.

        On conflict stars, forks, updated_at, homepage and default_branch are
        refreshed, last_seen is bumped and source becomes the distinct union of
        the stored and incoming tags. saved_at is only set on insert.

        Args:
            repo: Normalized repository record

        Returns:
            True if a new row was inserted, False if an existing row was updated
        """
        now = self.clock()

        with self._lock:
            existing = self._fetchone(
                "SELECT source FROM repositories WHERE full_name = %s",
                (repo.full_name,)
            )

            if self.backend == "postgres":
                source_value = list(repo.source)
                source_update = "ARRAY(SELECT DISTINCT unnest(repositories.source || EXCLUDED.source))"
            else:
                # sqlite has no array type; merge the JSON lists here
                merged = list(existing['source']) if existing else []
                for tag in repo.source:
                    if tag not in merged:
                        merged.append(tag)
                source_value = merged
                source_update = "EXCLUDED.source"

            query = f"""
                INSERT INTO repositories (
                    full_name, name, owner, url, homepage, stars, forks,
                    created_at, updated_at, default_branch, source, last_seen, saved_at
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                ON CONFLICT (full_name)
                DO UPDATE SET
                    stars = EXCLUDED.stars,
                    forks = EXCLUDED.forks,
                    updated_at = EXCLUDED.updated_at,
                    homepage = EXCLUDED.homepage,
                    default_branch = COALESCE(EXCLUDED.default_branch, repositories.default_branch),
                    source = {source_update},
                    last_seen = EXCLUDED.last_seen
            """
            self._execute(query, (
                repo.full_name,
                repo.name,
                repo.owner,
                repo.url,
                repo.homepage,
                repo.stars,
                repo.forks,
                repo.created_at,
                repo.updated_at,
                repo.default_branch,
                source_value,
                now,
                now
            ))

        return existing is None

    def process_repositories(self, repositories: List[RepositoryData]) -> SaveSummary:
        """
        Save a batch of repositories, counting new vs updated rows.

        A failure on one repository is logged and counted; the rest of the
        batch is still saved.
        """
        logger.info(f"Saving {len(repositories)} repositories to database...")
        summary = SaveSummary()
        total = len(repositories)

        for i, repo in enumerate(repositories, start=1):
            progress = f"[{i}/{total}]"
            try:
                inserted = self.upsert_repository(repo)
            except Exception as e:
                summary.error_count += 1
                logger.error(f"{progress} Error saving repository {repo.full_name}: {e}")
                continue

            if inserted:
                summary.saved_count += 1
            else:
                summary.updated_count += 1
            logger.info(f"{progress} Processed: {repo.full_name} ({'saved' if inserted else 'updated'})")

        logger.info(
            f"Database operation completed: {summary.saved_count} new repositories saved, "
            f"{summary.updated_count} repositories updated"
        )
        return summary

    def set_deleted(self, repo_id: int, deleted: bool):
        """Mark a repository as gone (deleted_at = now) or restore it."""
        self._execute(
            "UPDATE repositories SET deleted_at = %s WHERE id = %s",
            (self.clock() if deleted else None, repo_id)
        )

    def set_default_branch(self, repo_id: int, default_branch: Optional[str]):
        self._execute(
            "UPDATE repositories SET default_branch = %s WHERE id = %s",
            (default_branch, repo_id)
        )

    # Reads

    def repository_exists(self, full_name: str) -> bool:
        return self._fetchone(
            "SELECT id FROM repositories WHERE full_name = %s", (full_name,)
        ) is not None

    def url_exists(self, url: str) -> bool:
        return self._fetchone(
            "SELECT id FROM repositories WHERE url = %s", (url,)
        ) is not None

    def get_repository(self, full_name: str) -> Optional[Dict[str, Any]]:
        return self._fetchone(
            f"SELECT {REPOSITORY_COLUMNS} FROM repositories WHERE full_name = %s",
            (full_name,)
        )

    def list_repositories(
        self,
        page: int = 1,
        limit: int = 30,
        sort_by: str = "id",
        sort_order: str = "desc",
        search: str = ""
    ) -> RepositoryPage:
        """
        Get one page of repositories.

        Args:
            page: 1-based page number
            limit: Page size
            sort_by: Column from SORT_FIELDS (others fall back to id)
            sort_order: "asc" or "desc"
            search: Case-insensitive substring of full_name, name or owner

        Returns:
            RepositoryPage with the rows and the total match count
        """
        field, order = resolve_sort(sort_by, sort_order)
        offset = (page - 1) * limit

        where = ""
        params: List[Any] = []
        if search:
            where = "WHERE (full_name ILIKE %s OR name ILIKE %s OR owner ILIKE %s)"
            pattern = f"%{search}%"
            params = [pattern, pattern, pattern]

        count_row = self._fetchone(f"SELECT COUNT(*) AS count FROM repositories {where}", params)
        total_count = int(count_row['count']) if count_row else 0

        rows = self._fetchall(
            f"""
            SELECT {REPOSITORY_COLUMNS}
            FROM repositories
            {where}
            ORDER BY {field} {order} NULLS LAST, id {order}
            LIMIT %s OFFSET %s
            """,
            params + [limit, offset]
        )
        return RepositoryPage(repositories=rows, total_count=total_count)

    def get_stats(self, top_n: int = 10, recent_days: int = 7) -> Dict[str, Any]:
        """
        Aggregate statistics for the dashboard overview.

        Returns:
            Dict with total_repos, source_stats, top_stars, recent_repos,
            totals and top_owners
        """
        total_row = self._fetchone("SELECT COUNT(*) AS count FROM repositories")
        total_repos = int(total_row['count']) if total_row else 0

        if self.backend == "postgres":
            source_query = """
                SELECT unnest(source) AS source, COUNT(*) AS count
                FROM repositories
                GROUP BY unnest(source)
                ORDER BY count DESC, source ASC
            """
        else:
            source_query = """
                SELECT tag.value AS source, COUNT(*) AS count
                FROM repositories, json_each(repositories.source) AS tag
                GROUP BY tag.value
                ORDER BY count DESC, tag.value ASC
            """
        source_stats = [
            {'source': row['source'], 'count': int(row['count'])}
            for row in self._fetchall(source_query)
        ]

        top_stars = self._fetchall(
            """
            SELECT full_name, name, owner, stars, forks, url, source
            FROM repositories
            ORDER BY stars DESC, id ASC
            LIMIT %s
            """,
            (top_n,)
        )

        cutoff = self.clock() - timedelta(days=recent_days)
        recent_row = self._fetchone(
            "SELECT COUNT(*) AS count FROM repositories WHERE created_at >= %s",
            (cutoff,)
        )
        recent_repos = int(recent_row['count']) if recent_row else 0

        totals_row = self._fetchone(
            """
            SELECT
                COALESCE(SUM(stars), 0) AS total_stars,
                COALESCE(SUM(forks), 0) AS total_forks
            FROM repositories
            """
        ) or {}

        top_owners = [
            {
                'owner': row['owner'],
                'repo_count': int(row['repo_count']),
                'total_stars': int(row['total_stars'] or 0)
            }
            for row in self._fetchall(
                """
                SELECT owner, COUNT(*) AS repo_count, SUM(stars) AS total_stars
                FROM repositories
                GROUP BY owner
                ORDER BY repo_count DESC, owner ASC
                LIMIT %s
                """,
                (top_n,)
            )
        ]

        return {
            'total_repos': total_repos,
            'source_stats': source_stats,
            'top_stars': top_stars,
            'recent_repos': recent_repos,
            'totals': {
                'total_stars': int(totals_row.get('total_stars') or 0),
                'total_forks': int(totals_row.get('total_forks') or 0)
            },
            'top_owners': top_owners
        }

    def export_rows(self) -> List[Dict[str, Any]]:
        """All repositories ordered by id."""
        return self._fetchall(f"SELECT {REPOSITORY_COLUMNS} FROM repositories ORDER BY id")

    def rows_for_online_check(self) -> List[Dict[str, Any]]:
        return self._fetchall(
            "SELECT id, full_name, url, deleted_at FROM repositories ORDER BY id"
        )

    def rows_for_branch_update(self) -> List[Dict[str, Any]]:
        return self._fetchall(
            "SELECT id, full_name, default_branch FROM repositories WHERE deleted_at IS NULL ORDER BY id"
        )

    def close(self):
        """Close backend connection."""
        with self._lock:
            self.conn.close()
