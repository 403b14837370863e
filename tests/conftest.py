import logging

import pytest

from penny.db import SqliteStore, get_connection, init_db


@pytest.fixture(autouse=True)
def fresh_logging(monkeypatch):
    """Let each test configure the penny logger from scratch."""
    monkeypatch.setattr("penny.log._configured", False)
    logger = logging.getLogger("penny")
    handlers, level = list(logger.handlers), logger.level
    yield
    for h in list(logger.handlers):
        if h not in handlers:
            logger.removeHandler(h)
    logger.setLevel(level)


@pytest.fixture
def db(tmp_path):
    """Provide an initialized temp DB connection."""
    db_path = tmp_path / "test.db"
    conn = get_connection(db_path)
    init_db(conn)
    yield conn
    conn.close()


@pytest.fixture
def store(db):
    return SqliteStore(db)
