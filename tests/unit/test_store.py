"""
Unit tests for RepositoryStore against a real SQLite database.
"""
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from depwatch.models import RepositoryData
from depwatch.store import RepositoryStore, resolve_sort


def make_repo(full_name, stars=0, forks=0, source='dependents-api', created_at=None, **kwargs):
    owner, name = full_name.split('/')
    return RepositoryData(
        full_name=full_name,
        name=name,
        owner=owner,
        url=f'https://github.com/{full_name}',
        stars=stars,
        forks=forks,
        source=source,
        created_at=created_at,
        **kwargs
    )


class TestResolveSort:
    """Test sort whitelist."""

    def test_known_field(self):
        assert resolve_sort('stars', 'asc') == ('stars', 'ASC')

    def test_unknown_field_falls_back_to_id(self):
        assert resolve_sort('full_name; DROP TABLE repositories', 'asc') == ('id', 'ASC')

    def test_anything_but_asc_is_desc(self):
        assert resolve_sort('forks', 'sideways') == ('forks', 'DESC')
        assert resolve_sort(None, None) == ('id', 'DESC')


class TestUpsert:
    """Test insert/update semantics keyed by full_name."""

    def test_insert_then_update(self, store):
        assert store.upsert_repository(make_repo('alice/app', stars=1)) is True
        assert store.upsert_repository(make_repo('alice/app', stars=9)) is False

        row = store.get_repository('alice/app')
        assert row['stars'] == 9
        assert store.export_rows()[0]['full_name'] == 'alice/app'
        assert len(store.export_rows()) == 1

    def test_sources_merged_without_duplicates(self, store):
        store.upsert_repository(make_repo('alice/app', source='scrape-dependents'))
        store.upsert_repository(make_repo('alice/app', source='dependents-api'))
        store.upsert_repository(make_repo('alice/app', source='scrape-dependents'))

        assert store.get_repository('alice/app')['source'] == ['scrape-dependents', 'dependents-api']

    def test_saved_at_kept_and_last_seen_bumped(self, tmp_path):
        times = iter([
            datetime(2025, 1, 1, tzinfo=timezone.utc),
            datetime(2025, 1, 2, tzinfo=timezone.utc),
        ])
        repo_store = RepositoryStore(backend="sqlite", sqlite_path=tmp_path / "db.sqlite", clock=lambda: next(times))
        repo_store.init_schema()

        repo_store.upsert_repository(make_repo('alice/app'))
        repo_store.upsert_repository(make_repo('alice/app'))

        row = repo_store.get_repository('alice/app')
        assert row['saved_at'].startswith('2025-01-01')
        assert row['last_seen'].startswith('2025-01-02')
        repo_store.close()

    def test_missing_default_branch_keeps_stored_value(self, store):
        store.upsert_repository(make_repo('alice/app', default_branch='main'))
        store.upsert_repository(make_repo('alice/app', default_branch=None))

        assert store.get_repository('alice/app')['default_branch'] == 'main'

    def test_process_repositories_counts(self, store):
        store.upsert_repository(make_repo('alice/old'))

        summary = store.process_repositories([
            make_repo('alice/old'),
            make_repo('bob/new'),
            make_repo('carol/new'),
        ])

        assert summary.saved_count == 2
        assert summary.updated_count == 1
        assert summary.error_count == 0

    def test_process_repositories_continues_after_error(self, store):
        real_upsert = store.upsert_repository

        def flaky(repo):
            if repo.full_name == 'bad/repo':
                raise RuntimeError("constraint violated")
            return real_upsert(repo)

        with patch.object(store, 'upsert_repository', side_effect=flaky):
            summary = store.process_repositories([make_repo('bad/repo'), make_repo('good/repo')])

        assert summary.error_count == 1
        assert summary.saved_count == 1
        assert store.repository_exists('good/repo')
        assert not store.repository_exists('bad/repo')

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            RepositoryStore(backend="mysql")

    def test_postgres_requires_url(self):
        with pytest.raises(ValueError):
            RepositoryStore(backend="postgres")


class TestLifecycle:
    """Test deleted_at and default_branch maintenance."""

    def test_set_deleted_and_restore(self, store):
        store.upsert_repository(make_repo('alice/app'))
        repo_id = store.get_repository('alice/app')['id']

        store.set_deleted(repo_id, True)
        assert store.get_repository('alice/app')['deleted_at'] is not None
        assert store.rows_for_branch_update() == []

        store.set_deleted(repo_id, False)
        assert store.get_repository('alice/app')['deleted_at'] is None
        assert [r['full_name'] for r in store.rows_for_branch_update()] == ['alice/app']

    def test_set_default_branch(self, store):
        store.upsert_repository(make_repo('alice/app'))
        repo_id = store.get_repository('alice/app')['id']

        store.set_default_branch(repo_id, 'develop')

        assert store.get_repository('alice/app')['default_branch'] == 'develop'

    def test_url_exists(self, store):
        store.upsert_repository(make_repo('alice/app'))

        assert store.url_exists('https://github.com/alice/app')
        assert not store.url_exists('https://github.com/alice/other')

    def test_rows_for_online_check(self, store):
        store.upsert_repository(make_repo('alice/app'))

        rows = store.rows_for_online_check()

        assert rows == [{
            'id': rows[0]['id'],
            'full_name': 'alice/app',
            'url': 'https://github.com/alice/app',
            'deleted_at': None
        }]


class TestListRepositories:
    """Test pagination, sorting and search."""

    @pytest.fixture(autouse=True)
    def seed(self, store):
        store.upsert_repository(make_repo('alice/alpha', stars=10))
        store.upsert_repository(make_repo('bob/beta', stars=30))
        store.upsert_repository(make_repo('carol/gamma', stars=20))
        store.upsert_repository(make_repo('alice/delta', stars=0))

    def test_default_order_is_newest_first(self, store):
        page = store.list_repositories()

        assert page.total_count == 4
        assert [r['full_name'] for r in page.repositories] == [
            'alice/delta', 'carol/gamma', 'bob/beta', 'alice/alpha'
        ]

    def test_sort_by_stars(self, store):
        page = store.list_repositories(sort_by='stars', sort_order='desc')

        assert [r['stars'] for r in page.repositories] == [30, 20, 10, 0]

    def test_pagination(self, store):
        page = store.list_repositories(page=2, limit=3, sort_by='stars', sort_order='asc')

        assert page.total_count == 4
        assert [r['full_name'] for r in page.repositories] == ['bob/beta']

    def test_search_is_case_insensitive(self, store):
        page = store.list_repositories(search='ALICE')

        assert page.total_count == 2
        assert {r['owner'] for r in page.repositories} == {'alice'}

    def test_search_matches_name(self, store):
        page = store.list_repositories(search='gam')

        assert [r['full_name'] for r in page.repositories] == ['carol/gamma']

    def test_invalid_sort_falls_back(self, store):
        page = store.list_repositories(sort_by='nope', sort_order='asc')

        assert [r['full_name'] for r in page.repositories][0] == 'alice/alpha'


class TestStats:
    """Test dashboard aggregates."""

    def test_stats(self, store):
        now = datetime.now(timezone.utc)
        store.upsert_repository(make_repo('alice/a', stars=10, forks=1, source=['dependents-api', 'scrape-dependents'],
                                          created_at=now - timedelta(days=1)))
        store.upsert_repository(make_repo('alice/b', stars=5, forks=2, source='dependents-api',
                                          created_at=now - timedelta(days=30)))
        store.upsert_repository(make_repo('bob/c', stars=50, forks=0, source='initial-commit'))

        stats = store.get_stats(top_n=2)

        assert stats['total_repos'] == 3
        assert stats['source_stats'] == [
            {'source': 'dependents-api', 'count': 2},
            {'source': 'initial-commit', 'count': 1},
            {'source': 'scrape-dependents', 'count': 1},
        ]
        assert [r['full_name'] for r in stats['top_stars']] == ['bob/c', 'alice/a']
        assert stats['recent_repos'] == 1
        assert stats['totals'] == {'total_stars': 65, 'total_forks': 3}
        assert stats['top_owners'] == [
            {'owner': 'alice', 'repo_count': 2, 'total_stars': 15},
            {'owner': 'bob', 'repo_count': 1, 'total_stars': 50},
        ]

    def test_empty_stats(self, store):
        stats = store.get_stats()

        assert stats['total_repos'] == 0
        assert stats['source_stats'] == []
        assert stats['totals'] == {'total_stars': 0, 'total_forks': 0}
