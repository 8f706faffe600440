"""Session authentication wiring and route guards."""

from __future__ import annotations

from functools import wraps
from typing import Any, Callable, TypeVar

from flask_login import current_user

from .errors import Unauthorized
from .extensions import db, login_manager
from .models import User
from .services.accounts import require_admin

F = TypeVar("F", bound=Callable[..., Any])


@login_manager.user_loader
def load_user(user_id: str) -> User | None:
    # Reloaded on every request so role changes apply immediately.
    try:
        return db.session.get(User, int(user_id))
    except (TypeError, ValueError):
        return None


@login_manager.unauthorized_handler
def unauthorized() -> None:
    raise Unauthorized()


def admin_required(fn: F) -> F:
    @wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        require_admin(current_user._get_current_object())
        return fn(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


def viewer() -> User | None:
    """The signed-in account, or ``None`` for anonymous visitors."""
    if current_user.is_authenticated:
        return current_user._get_current_object()
    return None
