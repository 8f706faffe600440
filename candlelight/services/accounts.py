"""Account registration, authentication and administration."""

from __future__ import annotations

import logging
from typing import Optional

from flask import current_app, has_app_context
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from werkzeug.security import check_password_hash, generate_password_hash

from ..errors import Conflict, Forbidden, NotFound, StorageFailure, Unauthorized, ValidationError
from ..extensions import db
from ..models import Candle, Tribute, User
from . import tributes as tribute_service

LOGGER = logging.getLogger(__name__)
_DEFAULT_MIN_PASSWORD_LENGTH = 8
_DUMMY_PASSWORD_HASH = generate_password_hash("candlelight-unknown-account")


def _min_password_length() -> int:
    if has_app_context():
        return int(
            current_app.config.get("MIN_PASSWORD_LENGTH", _DEFAULT_MIN_PASSWORD_LENGTH)
        )
    return _DEFAULT_MIN_PASSWORD_LENGTH


def _check_password_strength(password: str | None) -> str:
    password = password or ""
    minimum = _min_password_length()
    if len(password) < minimum:
        raise ValidationError(
            f"Passwords must be at least {minimum} characters long."
        )
    return password


def require_admin(acting: User | None) -> User:
    """Return ``acting`` when it is a signed-in admin, else raise."""
    if acting is None or not getattr(acting, "is_authenticated", False):
        raise Unauthorized()
    if not acting.is_admin:
        raise Forbidden("Administrator access required.")
    return acting


def register(
    *,
    username: str,
    password: str,
    name: str,
    email: Optional[str] = None,
    logger: Optional[logging.Logger] = None,
) -> User:
    """Create a regular (never admin) account."""
    log = logger or LOGGER
    username = (username or "").strip()
    name = (name or "").strip()
    if not username:
        raise ValidationError("Username is required.")
    if not name:
        raise ValidationError("Name is required.")
    _check_password_strength(password)

    if get_account_by_username(username) is not None:
        raise Conflict("Username already exists.")

    user = User(
        username=username,
        password_hash=generate_password_hash(password),
        name=name,
        email=email.strip().lower() if email and email.strip() else None,
        is_admin=False,
    )
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise Conflict("Username already exists.") from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        log.exception("Failed to register account %s", username)
        raise StorageFailure("Registration failed.") from exc

    log.info("Registered account %s (%s)", user.id, user.username)
    return user


def create_admin(*, username: str, password: str, name: str) -> User:
    """Create an admin account, or promote and re-key an existing one."""
    user = get_account_by_username(username.strip())
    if user is None:
        user = User(username=username.strip(), name=name.strip() or username.strip())
        db.session.add(user)
    user.password_hash = generate_password_hash(_check_password_strength(password))
    user.is_admin = True
    _commit("Failed to create admin account")
    LOGGER.info("Ensured admin account %s", user.username)
    return user


def authenticate(username: str, password: str) -> User:
    """Return the account matching the credentials or raise ``Unauthorized``."""
    user = get_account_by_username((username or "").strip())
    # Unknown usernames still pay for one hash check.
    stored_hash = user.password_hash if user is not None else _DUMMY_PASSWORD_HASH
    if not check_password_hash(stored_hash, password or "") or user is None:
        raise Unauthorized("Invalid credentials.")
    return user


def get_account(account_id: int) -> User:
    user = db.session.get(User, account_id)
    if user is None:
        raise NotFound("User not found.")
    return user


def get_account_by_username(username: str) -> User | None:
    return db.session.execute(
        select(User).where(User.username == username)
    ).scalar_one_or_none()


def list_accounts() -> list[User]:
    return list(db.session.execute(select(User).order_by(User.username.asc())).scalars())


def update_role(acting: User, target_id: int, *, is_admin: bool) -> User:
    """Change an account's admin flag; admins cannot demote themselves."""
    require_admin(acting)
    target = get_account(target_id)
    if target.id == acting.id and not is_admin:
        raise Forbidden("You cannot remove your own admin privileges.")

    target.is_admin = bool(is_admin)
    _commit("Failed to update user role")
    LOGGER.info(
        "Account %s set admin=%s for account %s", acting.id, target.is_admin, target.id
    )
    return target


def reset_password(acting: User, target_id: int, *, new_password: str) -> User:
    require_admin(acting)
    target = get_account(target_id)
    target.password_hash = generate_password_hash(
        _check_password_strength(new_password)
    )
    _commit("Failed to reset password")
    LOGGER.info("Account %s reset the password of account %s", acting.id, target.id)
    return target


def delete_account(acting: User, target_id: int) -> None:
    """Remove an account with its tributes and candles.

    Candles the account lit on other tributes are removed with the matching
    counter decrements so every remaining tribute keeps an accurate count.
    """
    require_admin(acting)
    target = get_account(target_id)
    if target.id == acting.id:
        raise Forbidden("You cannot delete your own account.")

    try:
        lit_ids = db.session.execute(
            select(Candle.tribute_id).where(Candle.user_id == target.id)
        ).scalars().all()
        db.session.execute(delete(Candle).where(Candle.user_id == target.id))
        for tribute_id in lit_ids:
            tribute_service.adjust_candle_count(tribute_id, -1)

        owned_ids = db.session.execute(
            select(Tribute.id).where(Tribute.user_id == target.id)
        ).scalars().all()
        if owned_ids:
            db.session.execute(delete(Candle).where(Candle.tribute_id.in_(owned_ids)))
            db.session.execute(delete(Tribute).where(Tribute.id.in_(owned_ids)))
        db.session.execute(delete(User).where(User.id == target.id))
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        LOGGER.exception("Failed to delete account %s", target_id)
        raise StorageFailure("Failed to delete user.") from exc

    LOGGER.info(
        "Account %s deleted account %s (%s tributes, %s candles)",
        acting.id,
        target_id,
        len(owned_ids),
        len(lit_ids),
    )


def _commit(failure_message: str) -> None:
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        LOGGER.exception(failure_message)
        raise StorageFailure(failure_message + ".") from exc
