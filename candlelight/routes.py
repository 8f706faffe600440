"""HTTP routes for the memorial API."""

from __future__ import annotations

from typing import Any

from flask import Blueprint, current_app, jsonify, request, session
from flask_login import current_user, login_required, login_user, logout_user
from flask_wtf.csrf import generate_csrf

from .auth import admin_required, viewer
from .errors import ValidationError
from .forms import (
    FuneralProgramForm,
    GalleryImageForm,
    GalleryImageUpdateForm,
    ImageUploadForm,
    LoginForm,
    PasswordResetForm,
    RegisterForm,
    RoleForm,
    SettingForm,
    TributeForm,
    form_errors,
    submitted_fields,
)
from .services import accounts, content, storage, tributes

api_bp = Blueprint("api", __name__, url_prefix="/api")


def _parse_positive_int(
    raw_value: str | None,
    *,
    default: int,
    maximum: int | None = None,
) -> int:
    """Parse a positive integer from user input with sane fallbacks."""

    if raw_value is None:
        return default

    try:
        parsed = int(raw_value)
    except (TypeError, ValueError):
        return default

    if parsed <= 0:
        return default

    if maximum is not None and parsed > maximum:
        return maximum

    return parsed


def _parse_offset(raw_value: str | None) -> int:
    try:
        return max(int(raw_value), 0) if raw_value is not None else 0
    except (TypeError, ValueError):
        return 0


def _validated(form_cls: type, **kwargs: Any):
    form = form_cls(**kwargs)
    if not form.validate_on_submit():
        errors = form_errors(form)
        first = next(iter(errors.values()), ["Invalid request."])[0]
        raise ValidationError(first, details=errors)
    return form


# -- session ------------------------------------------------------------------


@api_bp.route("/csrf-token", methods=["GET"])
def csrf_token():
    return jsonify({"csrf_token": generate_csrf()})


@api_bp.route("/register", methods=["POST"])
def register():
    form = _validated(RegisterForm)
    user = accounts.register(
        username=form.username.data,
        password=form.password.data,
        name=form.name.data,
        email=form.email.data,
        logger=current_app.logger,
    )
    session.permanent = True
    login_user(user)
    return jsonify(user.to_dict()), 201


@api_bp.route("/login", methods=["POST"])
def login():
    form = _validated(LoginForm)
    user = accounts.authenticate(form.username.data, form.password.data)
    session.clear()
    session.permanent = True
    login_user(user)
    current_app.logger.info("Account %s logged in", user.id)
    return jsonify(user.to_dict())


@api_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    account_id = current_user.id
    logout_user()
    session.clear()
    current_app.logger.info("Account %s logged out", account_id)
    return jsonify({"message": "Logged out successfully."})


@api_bp.route("/user", methods=["GET"])
@login_required
def current_account():
    return jsonify(current_user.to_dict())


# -- tributes -----------------------------------------------------------------


@api_bp.route("/tributes", methods=["GET"])
def list_tributes():
    config = current_app.config
    default_per_page = int(config.get("TRIBUTES_PER_PAGE", 5))
    max_per_page = int(config.get("TRIBUTES_MAX_PER_PAGE", default_per_page))

    page = _parse_positive_int(request.args.get("page"), default=1)
    per_page = _parse_positive_int(
        request.args.get("per_page"),
        default=default_per_page,
        maximum=max_per_page,
    )
    result = tributes.paginate_tributes(
        page=page, per_page=per_page, max_per_page=max_per_page
    )
    lit = tributes.lit_tribute_ids(viewer(), (item.id for item in result.items))

    return jsonify(
        {
            "tributes": [
                item.to_dict(has_lit_candle=item.id in lit) for item in result.items
            ],
            "meta": {
                "page": result.page,
                "per_page": result.per_page,
                "count": len(result.items),
                "has_next": result.has_next,
                "has_prev": result.has_prev,
                "next_page": result.next_page,
                "prev_page": result.prev_page,
            },
        }
    )


@api_bp.route("/tributes/<int:tribute_id>", methods=["GET"])
def get_tribute(tribute_id: int):
    tribute = tributes.get_tribute(tribute_id)
    return jsonify(
        tribute.to_dict(has_lit_candle=tributes.has_lit(viewer(), tribute.id))
    )


@api_bp.route("/tributes", methods=["POST"])
@login_required
def create_tribute():
    form = _validated(TributeForm)
    tribute = tributes.create_tribute(
        owner=current_user._get_current_object(),
        content=form.content.data,
        media_url=form.media_url.data,
        media_type=form.media_type.data,
        logger=current_app.logger,
    )
    return jsonify(tribute.to_dict(has_lit_candle=False)), 201


@api_bp.route("/tributes/<int:tribute_id>", methods=["DELETE"])
@login_required
def delete_tribute(tribute_id: int):
    tributes.delete_tribute(tribute_id, current_user._get_current_object())
    return jsonify({"message": "Tribute deleted successfully."})


@api_bp.route("/tributes/<int:tribute_id>/candle", methods=["POST"])
@login_required
def toggle_candle(tribute_id: int):
    outcome = tributes.toggle_candle(current_user._get_current_object(), tribute_id)
    return jsonify(
        {
            "tribute_id": outcome.tribute_id,
            "lit": outcome.lit,
            "candle_count": outcome.candle_count,
        }
    )


# -- gallery ------------------------------------------------------------------


@api_bp.route("/gallery", methods=["GET"])
def list_gallery():
    max_limit = int(current_app.config.get("GALLERY_MAX_PER_PAGE", 100))
    raw_limit = request.args.get("limit")
    limit = (
        _parse_positive_int(raw_limit, default=max_limit, maximum=max_limit)
        if raw_limit is not None
        else None
    )
    images = content.list_gallery(
        limit=limit, offset=_parse_offset(request.args.get("offset"))
    )
    return jsonify([image.to_dict() for image in images])


@api_bp.route("/gallery/featured", methods=["GET"])
def list_featured_gallery():
    return jsonify([image.to_dict() for image in content.list_featured()])


@api_bp.route("/gallery/<int:image_id>", methods=["GET"])
def get_gallery_image(image_id: int):
    return jsonify(content.get_gallery_image(image_id).to_dict())


@api_bp.route("/gallery", methods=["POST"])
@admin_required
def create_gallery_image():
    form = _validated(GalleryImageForm)
    image = content.create_gallery_image(
        image_url=form.image_url.data,
        caption=form.caption.data,
        is_featured=form.is_featured.data,
        display_order=form.display_order.data or 0,
    )
    return jsonify(image.to_dict()), 201


@api_bp.route("/gallery/upload", methods=["POST"])
@admin_required
def upload_gallery_image():
    form = _validated(ImageUploadForm)
    stored = storage.store_upload(
        form.image.data, "gallery", logger=current_app.logger
    )
    image = content.create_gallery_image(
        image_url=stored.url,
        caption=form.caption.data,
        is_featured=form.is_featured.data,
        display_order=form.display_order.data or 0,
        storage_key=stored.key,
    )
    return jsonify(image.to_dict()), 201


@api_bp.route("/uploads", methods=["POST"])
@admin_required
def upload_image():
    form = _validated(ImageUploadForm)
    stored = storage.store_upload(
        form.image.data,
        form.category.data or "site",
        logger=current_app.logger,
    )
    return jsonify(stored.to_dict()), 201


@api_bp.route("/gallery/<int:image_id>", methods=["PUT", "PATCH"])
@admin_required
def update_gallery_image(image_id: int):
    form = _validated(GalleryImageUpdateForm)
    image = content.update_gallery_image(image_id, submitted_fields(form))
    return jsonify(image.to_dict())


@api_bp.route("/gallery/<int:image_id>", methods=["DELETE"])
@admin_required
def delete_gallery_image(image_id: int):
    content.delete_gallery_image(image_id)
    return jsonify({"message": "Gallery image deleted successfully."})


# -- settings & programme -----------------------------------------------------


@api_bp.route("/settings", methods=["GET"])
def list_settings():
    return jsonify(content.get_all_settings())


@api_bp.route("/settings/<key>", methods=["GET"])
def get_setting(key: str):
    return jsonify({"key": key, "value": content.get_setting(key)})


@api_bp.route("/settings/<key>", methods=["PUT"])
@admin_required
def update_setting(key: str):
    form = _validated(SettingForm)
    setting = content.upsert_setting(key, form.value.data)
    return jsonify(setting.to_dict())


@api_bp.route("/funeral-program", methods=["GET"])
def get_funeral_program():
    return jsonify(content.get_funeral_program().to_dict())


@api_bp.route("/funeral-program", methods=["PUT"])
@admin_required
def update_funeral_program():
    form = _validated(FuneralProgramForm)
    program = content.upsert_funeral_program(submitted_fields(form))
    return jsonify(program.to_dict())


@api_bp.route("/site", methods=["GET"])
def site_overview():
    program = content.find_funeral_program()
    return jsonify(
        {
            "settings": content.load_site_settings().to_dict(),
            "featured_gallery": [image.to_dict() for image in content.list_featured()],
            "funeral_program": program.to_dict() if program else None,
        }
    )


# -- user administration ------------------------------------------------------


@api_bp.route("/users", methods=["GET"])
@admin_required
def list_users():
    return jsonify([user.to_dict() for user in accounts.list_accounts()])


@api_bp.route("/users/<int:user_id>/role", methods=["PUT"])
@admin_required
def update_user_role(user_id: int):
    form = _validated(RoleForm)
    user = accounts.update_role(
        current_user._get_current_object(), user_id, is_admin=form.is_admin.data
    )
    return jsonify(user.to_dict())


@api_bp.route("/users/<int:user_id>/reset-password", methods=["PUT"])
@admin_required
def reset_user_password(user_id: int):
    form = _validated(PasswordResetForm)
    user = accounts.reset_password(
        current_user._get_current_object(),
        user_id,
        new_password=form.new_password.data,
    )
    return jsonify({"message": f"Password reset for {user.username}."})


@api_bp.route("/users/<int:user_id>", methods=["DELETE"])
@admin_required
def delete_user(user_id: int):
    accounts.delete_account(current_user._get_current_object(), user_id)
    return jsonify({"message": "User deleted successfully."})
