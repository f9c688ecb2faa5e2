"""Tests for the Alembic migration run against a SQLite database file."""

from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, text
from sqlalchemy.exc import IntegrityError

ROOT = Path(__file__).resolve().parents[2]


def _alembic_config() -> Config:
    # No ini file: keeps the test run's logging configuration untouched.
    cfg = Config()
    cfg.set_main_option("script_location", str(ROOT / "alembic"))
    return cfg


def _insert_version(conn, number: int, status: str) -> None:
    conn.execute(
        text(
            "INSERT INTO process_versions (version_id, process_id, version_number, config, "
            "environment, status, created_at) VALUES "
            "(:vid, 'proc-1', :n, '{}', 'SANDBOX', :status, '2026-03-01 12:00:00')"
        ),
        {"vid": f"{number:032x}", "n": number, "status": status},
    )


@pytest.fixture
def migrated_db(tmp_path, monkeypatch):
    db_file = tmp_path / "migrations.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{db_file}")
    command.upgrade(_alembic_config(), "head")
    engine = create_engine(f"sqlite:///{db_file}")
    yield engine
    engine.dispose()


class TestMigrations:
    def test_one_active_index_is_partial(self, migrated_db) -> None:
        with migrated_db.begin() as conn:
            conn.execute(text(
                "INSERT INTO processes (process_id, tenant_id, name, created_at) "
                "VALUES ('proc-1', 'tenant-a', 'P', '2026-03-01 12:00:00')"
            ))
            _insert_version(conn, 1, "DEPRECATED")
            _insert_version(conn, 2, "DEPRECATED")
            _insert_version(conn, 3, "ACTIVE")

        with pytest.raises(IntegrityError):
            with migrated_db.begin() as conn:
                _insert_version(conn, 4, "ACTIVE")

    def test_downgrade_removes_tables(self, migrated_db) -> None:
        command.downgrade(_alembic_config(), "base")
        with migrated_db.connect() as conn:
            names = {
                row[0] for row in conn.execute(
                    text("SELECT name FROM sqlite_master WHERE type = 'table'")
                )
            }
        assert not {"processes", "process_versions", "response_cache"} & names
