"""First-run seeding of the admin account and default site content."""

from __future__ import annotations

import logging
from typing import Optional

from ..extensions import db
from ..models import User
from . import accounts, content

LOGGER = logging.getLogger(__name__)

DEFAULT_SETTINGS = {
    "backgroundImage": "https://images.unsplash.com/photo-1507525428034-b723cf961d3e",
    "tributeImage": "https://images.unsplash.com/photo-1552058544-f2b08422138a",
    "footerMessage": (
        '"As long as we live, they too will live, for they are now a part of us, '
        'as we remember them."'
    ),
}

DEFAULT_PROGRAM = {
    "date": "Saturday, October 21, 2023",
    "time": "1:00 PM - 3:00 PM",
    "location": "Seaside Memorial Chapel",
    "address": "1234 Coastal Highway, Oceanview, CA 92123",
    "stream_link": "https://example.com/stream",
    "program_pdf_url": "https://example.com/program.pdf",
}

DEFAULT_GALLERY_IMAGE = {
    "image_url": "https://images.unsplash.com/photo-1472791108553-c9405341e398",
    "caption": "At the beach",
    "is_featured": True,
    "display_order": 1,
}


def ensure_admin(
    *, username: Optional[str], password: Optional[str], name: str = "Administrator"
) -> Optional[User]:
    """Create or promote the configured admin; no-op without credentials."""
    if not username or not password:
        LOGGER.info("No admin credentials supplied; skipping admin bootstrap")
        return None
    return accounts.create_admin(username=username, password=password, name=name)


def seed_default_content() -> bool:
    """Seed sample content when the settings table is empty.

    Returns ``True`` when anything was written."""
    if content.get_all_settings():
        LOGGER.info("Settings already present; skipping default content")
        return False

    for key, value in DEFAULT_SETTINGS.items():
        content.upsert_setting(key, value)
    if content.find_funeral_program() is None:
        content.upsert_funeral_program(DEFAULT_PROGRAM)
    if not content.list_gallery(limit=1):
        content.create_gallery_image(**DEFAULT_GALLERY_IMAGE)

    LOGGER.info("Default content initialized")
    return True


def bootstrap(
    *,
    admin_username: Optional[str],
    admin_password: Optional[str],
    admin_name: str = "Administrator",
    create_tables: bool = True,
    seed_samples: bool = True,
) -> None:
    if create_tables:
        db.create_all()
    ensure_admin(username=admin_username, password=admin_password, name=admin_name)
    if seed_samples:
        seed_default_content()
