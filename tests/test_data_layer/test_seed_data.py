"""
Tests for demo seed data (ORM).

Uses db_session fixture: in-memory SQLite, rolled back after each test.
"""
from __future__ import annotations

from cinema.db.init_db import _has_seed_data, _seed
from cinema.domain.enums import GlobalRole
from cinema.security.auth import load_actor
from cinema.stores.sqlalchemy_store import SqlAlchemyEntityStore


def test_seed_only_on_empty_database(db_session):
    assert _has_seed_data(db_session) is False

    _seed(db_session)

    assert _has_seed_data(db_session) is True


def test_seeded_role_strings_normalize_on_load(db_session):
    _seed(db_session)
    store = SqlAlchemyEntityStore(db_session)

    assert load_actor(store, 1).global_role is GlobalRole.ADMIN
    assert load_actor(store, 2).global_role is GlobalRole.USER
    assert load_actor(store, 4).global_role is GlobalRole.USER
    assert store.get_user(5).active is False
