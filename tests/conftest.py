import pytest

from app import config
from app.core import database


@pytest.fixture
def db(tmp_path, monkeypatch):
    """Fresh SQLite database in a temp dir."""
    monkeypatch.setattr(config, "DB_PATH", tmp_path / "recovery.db")
    database.close_connection()
    database.init_db()
    yield database
    database.close_connection()
