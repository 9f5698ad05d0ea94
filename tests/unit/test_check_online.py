"""
Unit tests for the repository online check.
"""
import pytest
import requests
from unittest.mock import Mock

from depwatch.collectors.check_online import OnlineChecker
from depwatch.models import RepositoryData


@pytest.fixture
def session():
    return Mock()


@pytest.fixture
def checker(session):
    return OnlineChecker(session=session, sleep=Mock())


def add_repo(store, full_name):
    owner, name = full_name.split('/')
    store.upsert_repository(RepositoryData(
        full_name=full_name, name=name, owner=owner, url=f'https://github.com/{full_name}', source='x'
    ))
    return store.get_repository(full_name)['id']


class TestHeadWithRetry:
    """Test HEAD request retries."""

    def test_head_success(self, checker, session, make_response):
        session.head.return_value = make_response(200)

        assert checker.head_with_retry('https://github.com/a/b').status_code == 200
        session.get.assert_not_called()

    def test_405_falls_back_to_get(self, checker, session, make_response):
        session.head.return_value = make_response(405)
        session.get.return_value = make_response(200)

        assert checker.head_with_retry('https://github.com/a/b').status_code == 200
        session.get.assert_called_once()

    def test_429_waits_retry_after(self, checker, session, make_response):
        session.head.side_effect = [
            make_response(429, headers={'retry-after': '12'}),
            make_response(404),
        ]

        assert checker.head_with_retry('https://github.com/a/b').status_code == 404
        checker.sleep.assert_called_once_with(12)

    def test_429_default_wait(self, checker, session, make_response):
        session.head.side_effect = [make_response(429), make_response(200)]

        checker.head_with_retry('https://github.com/a/b')

        checker.sleep.assert_called_once_with(30)

    def test_transport_errors_back_off_linearly(self, checker, session, make_response):
        session.head.side_effect = [
            requests.ConnectionError("reset"),
            requests.Timeout("slow"),
            make_response(200),
        ]

        assert checker.head_with_retry('https://github.com/a/b').status_code == 200
        assert [c[0][0] for c in checker.sleep.call_args_list] == [5, 10]

    def test_final_get_after_exhausting_retries(self, checker, session, make_response):
        session.head.return_value = make_response(429, headers={'retry-after': '1'})
        session.get.return_value = make_response(404)

        assert checker.head_with_retry('https://github.com/a/b').status_code == 404
        assert session.head.call_count == 5
        session.get.assert_called_once()


class TestRun:
    """Test deleted/restored bookkeeping."""

    def test_marks_deleted_and_restores(self, checker, session, store, make_response):
        gone_id = add_repo(store, 'alice/gone')
        back_id = add_repo(store, 'alice/back')
        add_repo(store, 'alice/fine')
        store.set_deleted(back_id, True)

        statuses = {
            'https://github.com/alice/gone': 404,
            'https://github.com/alice/back': 200,
            'https://github.com/alice/fine': 301,
        }
        session.head.side_effect = lambda url, **kwargs: make_response(statuses[url])

        summary = checker.run(store)

        assert summary.total == 3
        assert summary.marked_deleted == 1
        assert summary.restored == 1
        assert summary.unchanged == 1
        assert summary.errors == 0
        assert store.get_repository('alice/gone')['deleted_at'] is not None
        assert store.get_repository('alice/back')['deleted_at'] is None
        assert gone_id != back_id

    def test_already_deleted_404_unchanged(self, checker, session, store, make_response):
        repo_id = add_repo(store, 'alice/gone')
        store.set_deleted(repo_id, True)
        session.head.return_value = make_response(404)

        summary = checker.run(store)

        assert summary.unchanged == 1
        assert summary.marked_deleted == 0

    def test_errors_counted_and_paced(self, checker, session, store):
        add_repo(store, 'alice/app')
        session.head.side_effect = requests.ConnectionError("down")
        session.get.side_effect = requests.ConnectionError("down")

        summary = checker.run(store)

        assert summary.errors == 1
        checker.sleep.assert_called_with(1.0)
        assert store.get_repository('alice/app')['deleted_at'] is None
