"""
Pytest configuration for unit tests.

Sets up test-wide fixtures and environment configuration.
"""
import pytest
import os
from unittest.mock import Mock

from depwatch.store import RepositoryStore

# Set environment variables at module import time (before any test modules import depwatch config)
os.environ["GITHUB_TOKEN"] = "test-token-12345"
os.environ["DEPWATCH_BACKEND"] = "sqlite"
os.environ.pop("POSTGRES_URL", None)


@pytest.fixture
def store(tmp_path):
    """SQLite-backed repository store in a temp directory."""
    repo_store = RepositoryStore(backend="sqlite", sqlite_path=tmp_path / "repositories.db")
    repo_store.init_schema()
    yield repo_store
    repo_store.close()


@pytest.fixture
def make_response():
    """Build a mock requests.Response."""
    def _make(status_code=200, json_data=None, headers=None, text=''):
        response = Mock()
        response.status_code = status_code
        response.ok = 200 <= status_code < 400
        response.headers = headers or {}
        response.text = text
        response.json.return_value = json_data if json_data is not None else {}
        return response
    return _make


@pytest.fixture
def repo_meta():
    """Build a GET /repos/{owner}/{repo} payload."""
    def _meta(full_name='alice/app', stars=5, forks=1, fork=False, default_branch='main', **overrides):
        owner, name = full_name.split('/')
        meta = {
            'full_name': full_name,
            'name': name,
            'owner': {'login': owner},
            'html_url': f'https://github.com/{full_name}',
            'homepage': None,
            'stargazers_count': stars,
            'forks_count': forks,
            'created_at': '2024-01-01T00:00:00Z',
            'updated_at': '2024-02-01T00:00:00Z',
            'default_branch': default_branch,
            'fork': fork,
        }
        meta.update(overrides)
        return meta
    return _meta
