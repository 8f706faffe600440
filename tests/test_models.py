"""Tests for model serialisation."""

from __future__ import annotations

from candlelight.models import Candle, GalleryImage, Tribute, User


def test_user_to_dict_never_exposes_password(app_ctx, db_session):
    user = User(username="alice", password_hash="hashed", name="Alice")
    db_session.add(user)
    db_session.commit()

    payload = user.to_dict()

    assert payload["username"] == "alice"
    assert payload["is_admin"] is False
    assert payload["created_at"].endswith("+00:00")
    assert "password_hash" not in payload
    assert user.to_summary() == {"id": user.id, "username": "alice", "name": "Alice"}


def test_tribute_to_dict_includes_author_summary(app_ctx, db_session):
    user = User(username="bob", password_hash="hashed", name="Bob")
    db_session.add(user)
    db_session.commit()
    tribute = Tribute(user_id=user.id, content="Remembering")
    db_session.add(tribute)
    db_session.commit()

    payload = tribute.to_dict(has_lit_candle=True)

    assert payload["candle_count"] == 0
    assert payload["has_lit_candle"] is True
    assert payload["user"] == {"id": user.id, "username": "bob", "name": "Bob"}
    assert payload["media_url"] is None


def test_candle_and_gallery_defaults(app_ctx, db_session):
    user = User(username="carol", password_hash="hashed", name="Carol")
    db_session.add(user)
    db_session.commit()
    tribute = Tribute(user_id=user.id, content="Light")
    image = GalleryImage(image_url="https://example.com/a.jpg")
    db_session.add_all([tribute, image])
    db_session.commit()
    candle = Candle(user_id=user.id, tribute_id=tribute.id)
    db_session.add(candle)
    db_session.commit()

    assert candle.to_dict()["tribute_id"] == tribute.id
    assert candle.created_at is not None
    assert image.to_dict() == {
        "id": image.id,
        "image_url": "https://example.com/a.jpg",
        "caption": None,
        "is_featured": False,
        "display_order": 0,
    }
