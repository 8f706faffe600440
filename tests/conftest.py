"""Pytest fixtures for the memorial application."""

from __future__ import annotations

import os
import sys
from typing import Callable, Iterator

import pytest
from flask import Flask

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from candlelight import create_app  # noqa: E402
from candlelight.extensions import db as _db  # noqa: E402
from candlelight.models import User  # noqa: E402
from candlelight.services import accounts  # noqa: E402

PASSWORD = "correct-horse"


@pytest.fixture()
def app() -> Iterator[Flask]:
    application = create_app("testing")
    with application.app_context():
        _db.create_all()
    try:
        yield application
    finally:
        with application.app_context():
            _db.session.remove()
            _db.drop_all()


@pytest.fixture()
def app_ctx(app) -> Iterator[Flask]:
    """Keep an application context open for service-level tests."""
    with app.app_context():
        yield app


@pytest.fixture()
def db_session(app_ctx):
    """Provide a database session bound to the test app."""
    return _db.session


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def make_user(app) -> Callable[..., int]:
    """Create an account and return its id."""

    def _make_user(username: str, *, admin: bool = False, name: str | None = None) -> int:
        with app.app_context():
            if admin:
                user = accounts.create_admin(
                    username=username, password=PASSWORD, name=name or username.title()
                )
            else:
                user = accounts.register(
                    username=username, password=PASSWORD, name=name or username.title()
                )
            return user.id

    return _make_user


@pytest.fixture()
def get_user(app) -> Callable[[int], User]:
    """Load an account inside the currently active application context."""

    def _get_user(user_id: int) -> User:
        user = _db.session.get(User, user_id)
        assert user is not None
        return user

    return _get_user


@pytest.fixture()
def login(client) -> Callable[..., None]:
    def _login(username: str, password: str = PASSWORD) -> None:
        response = client.post(
            "/api/login", json={"username": username, "password": password}
        )
        assert response.status_code == 200, response.get_json()

    return _login
