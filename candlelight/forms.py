"""WTForms definitions for the memorial API.

Flask-WTF reads JSON request bodies as form data, so the same forms validate
both JSON and multipart submissions."""

from __future__ import annotations

from typing import Any

from flask import current_app
from flask_wtf import FlaskForm
from flask_wtf.file import FileField, FileRequired
from werkzeug.datastructures import FileStorage
from wtforms import BooleanField, IntegerField, PasswordField, StringField, TextAreaField
from wtforms.validators import (
    AnyOf,
    DataRequired,
    Email,
    Length,
    Optional,
    URL,
    ValidationError,
)

from .services.tributes import MEDIA_TYPES

FLAG_TRUE_VALUES = (True, "true", "True", "1", "yes", "on", "y")
FLAG_FALSE_VALUES = (False, "false", "False", "0", "no", "off", "")


class _PlainTextMixin:
    """Accept strings and numbers from JSON bodies; reject other values."""

    def process_formdata(self, valuelist: list[Any]) -> None:
        if not valuelist:
            return
        value = valuelist[0]
        if value is None or isinstance(value, str):
            self.data = value
        elif isinstance(value, (int, float)) and not isinstance(value, bool):
            self.data = str(value)
        else:
            self.data = None
            raise ValueError("Must be a text value.")


class TextField(_PlainTextMixin, StringField):
    pass


class LongTextField(_PlainTextMixin, TextAreaField):
    pass


class SecretField(_PlainTextMixin, PasswordField):
    pass


class FlagField(BooleanField):
    false_values = FLAG_FALSE_VALUES


class WholeNumberField(IntegerField):
    def process_formdata(self, valuelist: list[Any]) -> None:
        if not valuelist:
            return
        value = valuelist[0]
        if value is None:
            self.data = None
            return
        if isinstance(value, bool) or not isinstance(value, (int, str)):
            self.data = None
            raise ValueError(self.gettext("Not a valid integer value."))
        super().process_formdata(valuelist)


class RegisterForm(FlaskForm):
    username = TextField("Username", validators=[DataRequired(), Length(max=80)])
    password = SecretField("Password", validators=[DataRequired()])
    name = TextField("Name", validators=[DataRequired(), Length(max=120)])
    email = TextField("Email", validators=[Optional(), Email(), Length(max=120)])

    def validate_password(self, field: SecretField) -> None:
        minimum = int(current_app.config.get("MIN_PASSWORD_LENGTH", 8))
        if len(field.data or "") < minimum:
            raise ValidationError(f"Passwords must be at least {minimum} characters long.")


class LoginForm(FlaskForm):
    username = TextField("Username", validators=[DataRequired()])
    password = SecretField("Password", validators=[DataRequired()])


class TributeForm(FlaskForm):
    content = LongTextField("Tribute", validators=[DataRequired(), Length(max=5000)])
    media_url = TextField(
        "Media URL", validators=[Optional(), URL(require_tld=False), Length(max=2048)]
    )
    media_type = TextField(
        "Media type",
        validators=[Optional(), AnyOf(MEDIA_TYPES, message="Must be 'image' or 'video'.")],
    )

    def validate_media_url(self, field: TextField) -> None:
        if field.data and not self.media_type.data:
            raise ValidationError("A media type is required when media is attached.")


class GalleryImageForm(FlaskForm):
    image_url = TextField("Image URL", validators=[DataRequired()])
    caption = TextField("Caption", validators=[Optional(), Length(max=255)])
    is_featured = FlagField("Featured")
    display_order = WholeNumberField("Order", validators=[Optional()])


class GalleryImageUpdateForm(GalleryImageForm):
    image_url = TextField("Image URL", validators=[Optional()])


class ImageUploadForm(FlaskForm):
    image = FileField("Image", validators=[FileRequired("No image file provided.")])
    category = TextField("Category", validators=[Optional(), Length(max=64)])
    caption = TextField("Caption", validators=[Optional(), Length(max=255)])
    is_featured = FlagField("Featured")
    display_order = WholeNumberField("Order", validators=[Optional()])

    def validate_image(self, field: FileField) -> None:
        storage = field.data
        if not isinstance(storage, FileStorage) or not storage.filename:
            return
        mimetype = storage.mimetype or ""
        if mimetype and not mimetype.startswith("image/"):
            raise ValidationError("Only image files are allowed.")


class SettingForm(FlaskForm):
    value = LongTextField("Value", validators=[DataRequired(message="Value is required.")])


class FuneralProgramForm(FlaskForm):
    date = TextField("Date", validators=[Optional(), Length(max=120)])
    time = TextField("Time", validators=[Optional(), Length(max=120)])
    location = TextField("Location", validators=[Optional(), Length(max=255)])
    address = TextField("Address", validators=[Optional(), Length(max=255)])
    stream_link = TextField("Stream link", validators=[Optional(), Length(max=2048)])
    program_pdf_url = TextField("Program PDF", validators=[Optional(), Length(max=2048)])
    description = LongTextField("Description", validators=[Optional(), Length(max=5000)])


class RoleForm(FlaskForm):
    is_admin = FlagField("Administrator")

    def validate_is_admin(self, field: FlagField) -> None:
        if not field.raw_data:
            raise ValidationError("This field is required.")
        # Exact matches only; anything else must not fall through to True.
        value = field.raw_data[0]
        if value not in FLAG_TRUE_VALUES and value not in FLAG_FALSE_VALUES:
            raise ValidationError("Must be true or false.")


class PasswordResetForm(FlaskForm):
    new_password = SecretField("New password", validators=[DataRequired()])


def submitted_fields(form: FlaskForm, *, exclude: tuple[str, ...] = ()) -> dict[str, Any]:
    """Data for the fields present in the request, for partial updates."""
    return {
        name: field.data
        for name, field in form._fields.items()
        if name not in exclude and name != "csrf_token" and field.raw_data
    }


def form_errors(form: FlaskForm) -> dict[str, list[str]]:
    return {name: list(errors) for name, errors in form.errors.items()}
