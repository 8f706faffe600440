"""Service helpers for tributes and the candles lit on them."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from sqlalchemy import case, delete, insert, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..errors import Forbidden, NotFound, StorageFailure, ValidationError
from ..extensions import db
from ..models import Candle, Tribute, User

LOGGER = logging.getLogger(__name__)
MEDIA_TYPES = ("image", "video")


@dataclass(slots=True)
class TributePage:
    """Simple pagination payload for tribute listings."""

    items: list[Tribute]
    page: int
    per_page: int
    has_next: bool
    has_prev: bool
    next_page: int | None
    prev_page: int | None


@dataclass(slots=True, frozen=True)
class CandleToggle:
    """Outcome of a toggle: whether the caller's candle is now lit."""

    tribute_id: int
    lit: bool
    candle_count: int


def create_tribute(
    *,
    owner: User,
    content: str,
    media_url: Optional[str] = None,
    media_type: Optional[str] = None,
    logger: Optional[logging.Logger] = None,
) -> Tribute:
    """Persist a tribute owned by ``owner``."""
    log = logger or LOGGER

    text = (content or "").strip()
    if not text:
        raise ValidationError("Tribute content cannot be empty.")

    url = (media_url or "").strip() or None
    kind = (media_type or "").strip().lower() or None
    if kind is not None and kind not in MEDIA_TYPES:
        raise ValidationError("Media type must be 'image' or 'video'.")
    if url is None:
        kind = None
    elif kind is None:
        raise ValidationError("A media type is required when media is attached.")

    tribute = Tribute(
        user_id=owner.id,
        content=text,
        media_url=url,
        media_type=kind,
        candle_count=0,
    )
    db.session.add(tribute)
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        log.exception("Failed to create tribute for account %s", owner.id)
        raise StorageFailure("Failed to create tribute.") from exc

    log.info("Account %s created tribute %s", owner.id, tribute.id)
    return tribute


def get_tribute(tribute_id: int) -> Tribute:
    tribute = db.session.get(Tribute, tribute_id)
    if tribute is None:
        raise NotFound("Tribute not found.")
    return tribute


def paginate_tributes(
    *,
    page: int,
    per_page: int,
    max_per_page: int | None = None,
) -> TributePage:
    """Return a paginated batch of tributes ordered by newest first."""

    page_number = page if page > 0 else 1
    limit = per_page if per_page > 0 else 1

    if max_per_page is not None and max_per_page > 0:
        limit = min(limit, max_per_page)

    offset = (page_number - 1) * limit
    models = list(
        db.session.execute(
            select(Tribute)
            .order_by(Tribute.created_at.desc(), Tribute.id.desc())
            .offset(offset)
            .limit(limit + 1)
        ).scalars()
    )

    has_next = len(models) > limit
    items = models[:-1] if has_next else models
    has_prev = page_number > 1

    return TributePage(
        items=items,
        page=page_number,
        per_page=limit,
        has_next=has_next,
        has_prev=has_prev,
        next_page=page_number + 1 if has_next else None,
        prev_page=page_number - 1 if has_prev else None,
    )


def delete_tribute(tribute_id: int, acting: User) -> None:
    """Delete a tribute and its candles; only the owner or an admin may."""
    tribute = get_tribute(tribute_id)
    if tribute.user_id != acting.id and not acting.is_admin:
        raise Forbidden("Only the author or an administrator can delete this tribute.")

    try:
        removed = db.session.execute(
            delete(Candle).where(Candle.tribute_id == tribute.id)
        ).rowcount
        db.session.delete(tribute)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        LOGGER.exception("Failed to delete tribute %s", tribute_id)
        raise StorageFailure("Failed to delete tribute.") from exc

    LOGGER.info(
        "Account %s deleted tribute %s with %s candles", acting.id, tribute_id, removed
    )


def has_lit(account: User | None, tribute_id: int) -> bool:
    """Whether ``account`` currently has a candle lit on the tribute."""
    if account is None or not getattr(account, "is_authenticated", False):
        return False
    return (
        db.session.execute(
            select(Candle.id).where(
                Candle.user_id == account.id, Candle.tribute_id == tribute_id
            )
        ).first()
        is not None
    )


def lit_tribute_ids(account: User | None, tribute_ids: Iterable[int]) -> set[int]:
    ids = list(tribute_ids)
    if not ids or account is None or not getattr(account, "is_authenticated", False):
        return set()
    return set(
        db.session.execute(
            select(Candle.tribute_id).where(
                Candle.user_id == account.id, Candle.tribute_id.in_(ids)
            )
        ).scalars()
    )


def list_candles(tribute_id: int) -> list[Candle]:
    return list(
        db.session.execute(
            select(Candle).where(Candle.tribute_id == tribute_id).order_by(Candle.id)
        ).scalars()
    )


def toggle_candle(account: User, tribute_id: int) -> CandleToggle:
    """Light the caller's candle on a tribute, or put it out if already lit.

    The candle row and the tribute's counter change in one transaction. The
    insert tolerates a concurrent duplicate and the counter only moves by the
    number of rows actually inserted or deleted.
    """
    try:
        tribute = db.session.execute(
            select(Tribute).where(Tribute.id == tribute_id).with_for_update()
        ).scalar_one_or_none()
        if tribute is None:
            raise NotFound("Tribute not found.")

        if has_lit(account, tribute.id):
            removed = db.session.execute(
                delete(Candle).where(
                    Candle.user_id == account.id, Candle.tribute_id == tribute.id
                )
            ).rowcount
            if removed:
                adjust_candle_count(tribute.id, -removed)
            lit = False
        else:
            inserted = _insert_candle(account.id, tribute.id)
            if inserted:
                adjust_candle_count(tribute.id, inserted)
            lit = True

        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        LOGGER.exception(
            "Failed to toggle candle for account %s on tribute %s",
            account.id,
            tribute_id,
        )
        raise StorageFailure("Failed to toggle candle.") from exc
    except NotFound:
        db.session.rollback()
        raise

    count = db.session.execute(
        select(Tribute.candle_count).where(Tribute.id == tribute_id)
    ).scalar_one()
    LOGGER.info(
        "Account %s %s a candle on tribute %s (count=%s)",
        account.id,
        "lit" if lit else "put out",
        tribute_id,
        count,
    )
    return CandleToggle(tribute_id=tribute_id, lit=lit, candle_count=count)


def adjust_candle_count(tribute_id: int, delta: int) -> None:
    """Shift a tribute's counter by ``delta`` without letting it go negative.

    Callers own the surrounding transaction.
    """
    new_value = Tribute.candle_count + delta
    db.session.execute(
        update(Tribute)
        .where(Tribute.id == tribute_id)
        .values(candle_count=case((new_value < 0, 0), else_=new_value))
        .execution_options(synchronize_session="fetch")
    )


def _insert_candle(account_id: int, tribute_id: int) -> int:
    """Insert the (account, tribute) candle, returning the rows written."""
    values = {"user_id": account_id, "tribute_id": tribute_id}
    table = Candle.__table__
    dialect = db.session.get_bind().dialect.name

    if dialect == "postgresql":
        stmt = pg_insert(table).values(**values).on_conflict_do_nothing(
            index_elements=["user_id", "tribute_id"]
        )
    elif dialect == "sqlite":
        stmt = sqlite_insert(table).values(**values).on_conflict_do_nothing(
            index_elements=["user_id", "tribute_id"]
        )
    else:
        try:
            with db.session.begin_nested():
                db.session.execute(insert(table).values(**values))
        except IntegrityError:
            return 0
        return 1

    return db.session.execute(stmt).rowcount or 0
