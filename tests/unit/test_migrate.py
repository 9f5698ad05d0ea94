"""
Unit tests for Postgres migrations (connection mocked).
"""
import pytest
from unittest.mock import MagicMock

from depwatch.migrate import apply_migrations, migration_files


def test_migration_files_in_order():
    names = [f.name for f in migration_files()]

    assert names == ['001_repositories.sql', '002_repository_lifecycle.sql']


def test_migrations_create_unique_full_name():
    sql = migration_files()[0].read_text()

    assert 'CREATE TABLE IF NOT EXISTS repositories' in sql
    assert 'full_name VARCHAR(255) NOT NULL UNIQUE' in sql


def test_apply_migrations_commits_each_file():
    conn = MagicMock()
    cursor = conn.cursor.return_value.__enter__.return_value

    count = apply_migrations(conn)

    assert count == 2
    assert cursor.execute.call_count == 2
    assert conn.commit.call_count == 2
    conn.rollback.assert_not_called()


def test_apply_migrations_rolls_back_on_error():
    conn = MagicMock()
    cursor = conn.cursor.return_value.__enter__.return_value
    cursor.execute.side_effect = RuntimeError("syntax error")

    with pytest.raises(RuntimeError):
        apply_migrations(conn)

    conn.rollback.assert_called_once()
    conn.commit.assert_not_called()


def test_apply_migrations_custom_dir(tmp_path):
    (tmp_path / "002_second.sql").write_text("SELECT 2;")
    (tmp_path / "001_first.sql").write_text("SELECT 1;")
    conn = MagicMock()
    cursor = conn.cursor.return_value.__enter__.return_value

    apply_migrations(conn, tmp_path)

    assert [c[0][0] for c in cursor.execute.call_args_list] == ["SELECT 1;", "SELECT 2;"]
