from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from userservice.database import Database, StoreError, resolve_database_path


@pytest.fixture()
def database(tmp_path: Path) -> Database:
    db_path = tmp_path / "users.sqlite3"
    db = Database(db_path)
    db.initialize()
    return db


def test_create_user_assigns_increasing_ids(database: Database) -> None:
    first = database.create_user("Ana", "ana@x.com")
    second = database.create_user("Bruno", "bruno@x.com")

    assert first.id == 1
    assert second.id == 2
    assert database.get_user(first.id) == first


def test_list_users_preserves_insertion_order(database: Database) -> None:
    assert database.list_users() == []

    created = [database.create_user(f"User {n}", f"user{n}@x.com") for n in range(3)]

    assert database.list_users() == created


def test_email_is_not_unique(database: Database) -> None:
    database.create_user("One", "same@x.com")
    database.create_user("Two", "same@x.com")

    assert len(database.list_users()) == 2


def test_get_missing_user_returns_none(database: Database) -> None:
    assert database.get_user(42) is None


def test_update_overwrites_both_fields(database: Database) -> None:
    user = database.create_user("Ana", "ana@x.com")

    assert database.update_user(user.id, name="Ana B", email="ab@x.com") is True

    refreshed = database.get_user(user.id)
    assert refreshed is not None
    assert (refreshed.name, refreshed.email) == ("Ana B", "ab@x.com")


def test_update_missing_user_is_a_noop(database: Database) -> None:
    assert database.update_user(7, name="Ghost", email="ghost@x.com") is False
    assert database.list_users() == []


def test_delete_user(database: Database) -> None:
    user = database.create_user("Ana", "ana@x.com")

    assert database.delete_user(user.id) is True
    assert database.get_user(user.id) is None
    assert database.delete_user(user.id) is False


def test_initialize_is_idempotent(database: Database) -> None:
    database.create_user("Ana", "ana@x.com")
    database.initialize()

    assert len(database.list_users()) == 1


def test_driver_errors_become_store_errors(tmp_path: Path) -> None:
    db = Database(tmp_path / "empty.sqlite3")

    with pytest.raises(StoreError, match="no such table"):
        db.list_users()


def test_store_error_chains_driver_exception(tmp_path: Path) -> None:
    db = Database(tmp_path / "empty.sqlite3")

    with pytest.raises(StoreError) as excinfo:
        db.create_user("Ana", "ana@x.com")

    assert isinstance(excinfo.value.__cause__, sqlite3.Error)


def test_out_of_range_id_becomes_store_error(database: Database) -> None:
    with pytest.raises(StoreError):
        database.get_user(2**64)
    with pytest.raises(StoreError):
        database.delete_user(-(2**64))


def test_resolve_database_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    assert resolve_database_path(str(tmp_path / "custom.db")) == (tmp_path / "custom.db").resolve()

    monkeypatch.chdir(tmp_path)
    assert resolve_database_path(None) == (tmp_path / "data.db").resolve()
