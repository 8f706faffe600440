"""Site content administration: settings, funeral programme and gallery."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from ..errors import NotFound, StorageFailure, ValidationError
from ..extensions import db
from ..models import FuneralProgram, GalleryImage, Setting
from . import s3

LOGGER = logging.getLogger(__name__)

RESOURCE_SLOTS = (1, 2, 3)

# Recognized setting keys and what reads them.
SETTING_KEYS: dict[str, str] = {
    "siteTitle": "Title shown in the page header",
    "backgroundImage": "Header background image URL",
    "tributeImage": "Portrait image URL",
    "footerMessage": "Footer quotation text",
    "contactEmail": "Family contact email",
    "contactPhone": "Family contact phone number",
    **{f"resourceName{slot}": f"Footer resource link {slot} label" for slot in RESOURCE_SLOTS},
    **{f"resourceLink{slot}": f"Footer resource link {slot} URL" for slot in RESOURCE_SLOTS},
}

PROGRAM_REQUIRED_FIELDS = ("date", "time", "location", "address")
PROGRAM_OPTIONAL_FIELDS = ("stream_link", "program_pdf_url", "description")
GALLERY_FIELDS = ("image_url", "caption", "is_featured", "display_order")


@dataclass(slots=True, frozen=True)
class ResourceLink:
    name: str
    url: str


@dataclass(slots=True)
class SiteSettings:
    """Typed view over the settings table."""

    site_title: str | None = None
    background_image: str | None = None
    tribute_image: str | None = None
    footer_message: str | None = None
    contact_email: str | None = None
    contact_phone: str | None = None
    resources: list[ResourceLink] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "site_title": self.site_title,
            "background_image": self.background_image,
            "tribute_image": self.tribute_image,
            "footer_message": self.footer_message,
            "contact_email": self.contact_email,
            "contact_phone": self.contact_phone,
            "resources": [{"name": r.name, "url": r.url} for r in self.resources],
        }


# -- settings -----------------------------------------------------------------


def get_all_settings() -> dict[str, str]:
    rows = db.session.execute(select(Setting).order_by(Setting.key)).scalars()
    return {row.key: row.value for row in rows}


def get_setting(key: str) -> str:
    row = _find_setting(key)
    if row is None:
        raise NotFound("Setting not found.")
    return row.value


def upsert_setting(key: str, value: str) -> Setting:
    """Create the setting if missing, otherwise overwrite its value."""
    if key not in SETTING_KEYS:
        raise ValidationError(
            f"Unknown setting {key!r}.",
            details={"allowed": sorted(SETTING_KEYS)},
        )
    if value is None or not str(value).strip():
        raise ValidationError("Value is required.")

    row = _find_setting(key)
    if row is None:
        row = Setting(key=key, value=str(value))
        db.session.add(row)
    else:
        row.value = str(value)
    _commit("Failed to update setting")
    LOGGER.info("Updated setting %s", key)
    return row


def load_site_settings() -> SiteSettings:
    raw = get_all_settings()
    resources = []
    for slot in RESOURCE_SLOTS:
        name = raw.get(f"resourceName{slot}")
        url = raw.get(f"resourceLink{slot}")
        if name and url:
            resources.append(ResourceLink(name=name, url=url))
    return SiteSettings(
        site_title=raw.get("siteTitle"),
        background_image=raw.get("backgroundImage"),
        tribute_image=raw.get("tributeImage"),
        footer_message=raw.get("footerMessage"),
        contact_email=raw.get("contactEmail"),
        contact_phone=raw.get("contactPhone"),
        resources=resources,
    )


def _find_setting(key: str) -> Setting | None:
    return db.session.execute(
        select(Setting).where(Setting.key == key)
    ).scalar_one_or_none()


# -- funeral programme -------------------------------------------------------


def find_funeral_program() -> FuneralProgram | None:
    return db.session.execute(
        select(FuneralProgram).order_by(FuneralProgram.id).limit(1)
    ).scalar_one_or_none()


def get_funeral_program() -> FuneralProgram:
    program = find_funeral_program()
    if program is None:
        raise NotFound("Funeral program not found.")
    return program


def upsert_funeral_program(fields: Mapping[str, Any]) -> FuneralProgram:
    """Create the single programme row or patch the provided fields on it."""
    allowed = PROGRAM_REQUIRED_FIELDS + PROGRAM_OPTIONAL_FIELDS
    unknown = sorted(set(fields) - set(allowed))
    if unknown:
        raise ValidationError(f"Unknown funeral program fields: {', '.join(unknown)}.")

    cleaned = {name: _clean_text(value) for name, value in fields.items()}
    for name in PROGRAM_REQUIRED_FIELDS:
        if name in cleaned and cleaned[name] is None:
            raise ValidationError(f"{name.replace('_', ' ').capitalize()} is required.")

    program = find_funeral_program()
    if program is None:
        missing = [name for name in PROGRAM_REQUIRED_FIELDS if not cleaned.get(name)]
        if missing:
            raise ValidationError(
                "Missing required funeral program fields.",
                details={name: ["This field is required."] for name in missing},
            )
        program = FuneralProgram(**cleaned)
        db.session.add(program)
    else:
        for name, value in cleaned.items():
            setattr(program, name, value)

    _commit("Failed to update funeral program")
    LOGGER.info("Updated funeral program fields: %s", ", ".join(sorted(cleaned)))
    return program


# -- gallery -----------------------------------------------------------------


def list_gallery(*, limit: Optional[int] = None, offset: int = 0) -> list[GalleryImage]:
    query = select(GalleryImage).order_by(
        GalleryImage.display_order.asc(), GalleryImage.id.asc()
    )
    if offset > 0:
        query = query.offset(offset)
    if limit is not None:
        query = query.limit(max(limit, 0))
    return list(db.session.execute(query).scalars())


def list_featured() -> list[GalleryImage]:
    return list(
        db.session.execute(
            select(GalleryImage)
            .where(GalleryImage.is_featured.is_(True))
            .order_by(GalleryImage.display_order.asc(), GalleryImage.id.asc())
        ).scalars()
    )


def get_gallery_image(image_id: int) -> GalleryImage:
    image = db.session.get(GalleryImage, image_id)
    if image is None:
        raise NotFound("Gallery image not found.")
    return image


def create_gallery_image(
    *,
    image_url: str,
    caption: Optional[str] = None,
    is_featured: bool = False,
    display_order: int = 0,
    storage_key: Optional[str] = None,
) -> GalleryImage:
    url = _clean_text(image_url)
    if url is None:
        raise ValidationError("Image URL is required.")

    image = GalleryImage(
        image_url=url,
        caption=_clean_text(caption),
        is_featured=bool(is_featured),
        display_order=int(display_order or 0),
        storage_key=storage_key,
    )
    db.session.add(image)
    _commit("Failed to create gallery image")
    LOGGER.info("Created gallery image %s", image.id)
    return image


def update_gallery_image(image_id: int, fields: Mapping[str, Any]) -> GalleryImage:
    image = get_gallery_image(image_id)
    unknown = sorted(set(fields) - set(GALLERY_FIELDS))
    if unknown:
        raise ValidationError(f"Unknown gallery fields: {', '.join(unknown)}.")

    if "image_url" in fields:
        url = _clean_text(fields["image_url"])
        if url is None:
            raise ValidationError("Image URL is required.")
        if url != image.image_url:
            image.storage_key = None
        image.image_url = url
    if "caption" in fields:
        image.caption = _clean_text(fields["caption"])
    if "is_featured" in fields:
        image.is_featured = bool(fields["is_featured"])
    if "display_order" in fields:
        image.display_order = int(fields["display_order"] or 0)

    _commit("Failed to update gallery image")
    LOGGER.info("Updated gallery image %s", image.id)
    return image


def delete_gallery_image(image_id: int) -> None:
    image = get_gallery_image(image_id)
    storage_key = image.storage_key
    db.session.delete(image)
    _commit("Failed to delete gallery image")

    if storage_key:
        try:
            s3.delete_object(storage_key)
        except s3.S3Error:
            LOGGER.warning(
                "Failed to delete stored object for gallery image %s",
                image_id,
                exc_info=True,
            )
    LOGGER.info("Deleted gallery image %s", image_id)


def _clean_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _commit(failure_message: str) -> None:
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        LOGGER.exception(failure_message)
        raise StorageFailure(failure_message + ".") from exc
