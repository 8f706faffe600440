"""Database models for the memorial application."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from flask_login import UserMixin

from .extensions import db


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _isoformat(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat()


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(120))
    is_admin = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(
        db.DateTime(timezone=True), default=_utcnow, nullable=False
    )

    tributes = db.relationship("Tribute", back_populates="owner", lazy="select")

    def to_summary(self) -> dict[str, Any]:
        return {"id": self.id, "username": self.username, "name": self.name}

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "name": self.name,
            "email": self.email,
            "is_admin": self.is_admin,
            "created_at": _isoformat(self.created_at),
        }


class Tribute(db.Model):
    __tablename__ = "tributes"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, index=True
    )
    content = db.Column(db.Text, nullable=False)
    media_url = db.Column(db.Text)
    media_type = db.Column(db.String(16))
    created_at = db.Column(
        db.DateTime(timezone=True), default=_utcnow, nullable=False, index=True
    )
    # Kept in step with the candles table by services.tributes only.
    candle_count = db.Column(db.Integer, nullable=False, default=0)

    owner = db.relationship("User", back_populates="tributes", lazy="joined")

    def to_dict(self, *, has_lit_candle: bool = False) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "content": self.content,
            "media_url": self.media_url,
            "media_type": self.media_type,
            "created_at": _isoformat(self.created_at),
            "candle_count": self.candle_count,
            "user": self.owner.to_summary() if self.owner else None,
            "has_lit_candle": has_lit_candle,
        }


class Candle(db.Model):
    __tablename__ = "candles"
    __table_args__ = (
        db.UniqueConstraint("user_id", "tribute_id", name="uq_candle_user_tribute"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, index=True
    )
    tribute_id = db.Column(
        db.Integer, db.ForeignKey("tributes.id"), nullable=False, index=True
    )
    created_at = db.Column(
        db.DateTime(timezone=True), default=_utcnow, nullable=False
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "tribute_id": self.tribute_id,
            "created_at": _isoformat(self.created_at),
        }


class GalleryImage(db.Model):
    __tablename__ = "gallery_images"

    id = db.Column(db.Integer, primary_key=True)
    image_url = db.Column(db.Text, nullable=False)
    storage_key = db.Column(db.String(512))
    caption = db.Column(db.String(255))
    is_featured = db.Column(db.Boolean, nullable=False, default=False)
    display_order = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "image_url": self.image_url,
            "caption": self.caption,
            "is_featured": self.is_featured,
            "display_order": self.display_order,
        }


class Setting(db.Model):
    __tablename__ = "settings"

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(64), unique=True, nullable=False, index=True)
    value = db.Column(db.Text, nullable=False)

    def to_dict(self) -> dict[str, Any]:
        return {"key": self.key, "value": self.value}


class FuneralProgram(db.Model):
    __tablename__ = "funeral_program"

    id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.String(120), nullable=False)
    time = db.Column(db.String(120), nullable=False)
    location = db.Column(db.String(255), nullable=False)
    address = db.Column(db.String(255), nullable=False)
    stream_link = db.Column(db.Text)
    program_pdf_url = db.Column(db.Text)
    description = db.Column(db.Text)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date,
            "time": self.time,
            "location": self.location,
            "address": self.address,
            "stream_link": self.stream_link,
            "program_pdf_url": self.program_pdf_url,
            "description": self.description,
        }
