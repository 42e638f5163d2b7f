from __future__ import annotations

import bcrypt
import pytest

import db
import storage


@pytest.fixture(scope="session")
def admin_hash() -> str:
    return bcrypt.hashpw(b"admin123", bcrypt.gensalt(rounds=4)).decode("utf-8")


@pytest.fixture
def store(tmp_path, monkeypatch, admin_hash):
    """Fresh SQLite store with the default admin profile."""
    monkeypatch.setattr(db, "DB_FILE", tmp_path / "test.db")
    db.init_db(admin_hash)
    return db


@pytest.fixture
def upload_dir(tmp_path, monkeypatch):
    target = tmp_path / "uploads"
    monkeypatch.setattr(storage, "UPLOAD_DIR", target)
    return target
