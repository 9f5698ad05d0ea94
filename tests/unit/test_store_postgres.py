"""
Unit tests for the Postgres branches of RepositoryStore (connection mocked).
"""
import pytest
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

from depwatch.migrate import migration_files
from depwatch.models import RepositoryData
from depwatch.store import RepositoryStore


NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class TestPostgresStore:
    """Check the SQL and parameters sent to psycopg2."""

    @pytest.fixture(autouse=True)
    def setup(self):
        self.conn = MagicMock()
        self.cursor = self.conn.cursor.return_value.__enter__.return_value
        with patch('psycopg2.connect', return_value=self.conn) as connect:
            self.store = RepositoryStore(
                backend="postgres",
                postgres_url="postgresql://u:p@localhost/depwatch",
                clock=lambda: NOW
            )
            self.connect = connect
        yield

    def executed(self):
        return [(c[0][0], c[0][1] if len(c[0]) > 1 else None) for c in self.cursor.execute.call_args_list]

    def test_connects_with_url(self):
        self.connect.assert_called_once_with("postgresql://u:p@localhost/depwatch")

    def test_init_schema_applies_migration_files(self):
        self.store.init_schema()

        statements = [sql for sql, _ in self.executed()]
        assert statements == [f.read_text() for f in migration_files()]
        assert 'CREATE TABLE IF NOT EXISTS repositories' in statements[0]
        assert self.conn.commit.call_count == len(statements)

    def test_upsert_merges_sources_with_distinct_unnest(self):
        self.cursor.fetchall.return_value = []
        repo = RepositoryData(
            full_name='alice/app', name='app', owner='alice', url='https://github.com/alice/app',
            stars=4, source=['dependents-api', 'initial-commit']
        )

        inserted = self.store.upsert_repository(repo)

        assert inserted is True
        select_sql, select_params = self.executed()[0]
        assert 'SELECT source FROM repositories WHERE full_name = %s' in select_sql
        assert select_params == ['alice/app']

        insert_sql, params = self.executed()[1]
        assert 'ON CONFLICT (full_name)' in insert_sql
        assert 'source = ARRAY(SELECT DISTINCT unnest(repositories.source || EXCLUDED.source))' in insert_sql
        assert '?' not in insert_sql
        assert params[0] == 'alice/app'
        # Lists and datetimes go to psycopg2 as-is, not JSON or ISO strings
        assert params[10] == ['dependents-api', 'initial-commit']
        assert params[11] == NOW
        assert params[12] == NOW

    def test_upsert_reports_update_for_known_repo(self):
        self.cursor.fetchall.return_value = [{'source': ['dependents-api']}]
        repo = RepositoryData(
            full_name='alice/app', name='app', owner='alice', url='https://github.com/alice/app',
            source='initial-commit'
        )

        assert self.store.upsert_repository(repo) is False
        _, params = self.executed()[1]
        assert params[10] == ['initial-commit']

    def test_failed_write_rolls_back(self):
        self.cursor.fetchall.return_value = []
        self.cursor.execute.side_effect = [None, RuntimeError("deadlock detected")]
        repo = RepositoryData(full_name='alice/app', name='app', owner='alice', url='https://github.com/alice/app')

        with pytest.raises(RuntimeError):
            self.store.upsert_repository(repo)

        self.conn.rollback.assert_called_once()

    def test_stats_group_by_unnested_source(self):
        self.cursor.fetchall.side_effect = [
            [{'count': 3}],
            [{'source': 'dependents-api', 'count': 3}, {'source': 'initial-commit', 'count': 1}],
            [{'full_name': 'alice/app', 'name': 'app', 'owner': 'alice', 'stars': 5, 'forks': 1,
              'url': 'https://github.com/alice/app', 'source': ['dependents-api']}],
            [{'count': 1}],
            [{'total_stars': 5, 'total_forks': 1}],
            [{'owner': 'alice', 'repo_count': 2, 'total_stars': 5}],
        ]

        stats = self.store.get_stats()

        source_sql, _ = self.executed()[1]
        assert 'SELECT unnest(source) AS source, COUNT(*) AS count' in source_sql
        assert 'GROUP BY unnest(source)' in source_sql
        assert 'json_each' not in source_sql
        assert stats['total_repos'] == 3
        assert stats['source_stats'] == [
            {'source': 'dependents-api', 'count': 3},
            {'source': 'initial-commit', 'count': 1}
        ]
        assert stats['top_stars'][0]['source'] == ['dependents-api']
        assert stats['top_owners'] == [{'owner': 'alice', 'repo_count': 2, 'total_stars': 5}]

    def test_search_uses_ilike(self):
        self.cursor.fetchall.side_effect = [[{'count': 0}], []]

        self.store.list_repositories(search='Alice')

        statements = [sql for sql, _ in self.executed()]
        assert any('ILIKE %s' in sql for sql in statements)
        assert all('?' not in sql for sql in statements)
