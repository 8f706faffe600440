"""Amazon S3 object storage for uploaded site images."""

from __future__ import annotations

import logging
import mimetypes
from pathlib import PurePosixPath
from typing import Any
from uuid import uuid4

import boto3
from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError
from flask import current_app

LOGGER = logging.getLogger(__name__)
_CACHE_CONTROL = "public, max-age=31536000, immutable"
_CLIENT_KEY = "candlelight_s3_client"
_ACL_REJECTED_KEY = "candlelight_s3_acl_rejected"
_KNOWN_EXTENSIONS = {"image/webp": ".webp", "image/jpeg": ".jpg", "image/png": ".png"}


class S3Error(RuntimeError):
    """Base exception for S3 helper failures."""


class S3ConfigurationError(S3Error):
    """Raised when no bucket is configured."""


class S3UploadError(S3Error):
    pass


class S3DeleteError(S3Error):
    pass


def is_configured() -> bool:
    return bool(current_app.config.get("S3_BUCKET_NAME"))


def upload_bytes(
    payload: bytes,
    *,
    content_type: str,
    category: str = "uploads",
    filename_hint: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> tuple[str, str]:
    """Store ``payload`` under ``category`` and return ``(key, public_url)``."""
    if not isinstance(payload, (bytes, bytearray)) or not payload:
        raise ValueError("payload must be non-empty bytes")

    bucket = _bucket_name()
    key = build_key(category, filename_hint=filename_hint, content_type=content_type)
    params: dict[str, Any] = {
        "Bucket": bucket,
        "Key": key,
        "Body": bytes(payload),
        "ContentType": content_type,
        "CacheControl": _CACHE_CONTROL,
    }
    if metadata:
        params["Metadata"] = {str(k): str(v) for k, v in metadata.items() if v is not None}

    acl = _object_acl()
    if acl and not current_app.extensions.get(_ACL_REJECTED_KEY):
        params["ACL"] = acl

    client = _client()
    try:
        client.put_object(**params)
    except ClientError as exc:
        code = exc.response.get("Error", {}).get("Code")
        if code != "AccessControlListNotSupported" or "ACL" not in params:
            raise S3UploadError(f"Failed to upload object {key!r}: {exc}") from exc
        # Buckets with ACLs disabled reject the header; remember and retry once.
        LOGGER.warning("Bucket %s rejects ACLs; retrying upload without ACL", bucket)
        current_app.extensions[_ACL_REJECTED_KEY] = True
        params.pop("ACL")
        try:
            client.put_object(**params)
        except (BotoCoreError, ClientError) as retry_exc:
            raise S3UploadError(
                f"Failed to upload object {key!r}: {retry_exc}"
            ) from retry_exc
    except BotoCoreError as exc:
        raise S3UploadError(f"Failed to upload object {key!r}: {exc}") from exc

    LOGGER.debug("Uploaded %s bytes to s3://%s/%s", len(payload), bucket, key)
    return key, build_public_url(key)


def delete_object(key: str, *, ignore_missing: bool = True) -> None:
    if not key:
        return
    bucket = _bucket_name()
    normalised = key.lstrip("/")

    try:
        _client().delete_object(Bucket=bucket, Key=normalised)
    except ClientError as exc:
        code = exc.response.get("Error", {}).get("Code")
        if ignore_missing and code in {"NoSuchKey", "404"}:
            LOGGER.debug("S3 object %s already absent", normalised)
            return
        raise S3DeleteError(f"Failed to delete object {normalised!r}: {exc}") from exc
    except BotoCoreError as exc:
        raise S3DeleteError(f"Failed to delete object {normalised!r}: {exc}") from exc

    LOGGER.debug("Deleted s3://%s/%s", bucket, normalised)


def build_key(
    category: str, *, filename_hint: str | None = None, content_type: str = ""
) -> str:
    """``<prefix><category>/<random>.<ext>``, with path separators normalised."""
    folder = "/".join(
        part for part in category.replace("\\", "/").split("/") if part not in {"", ".", ".."}
    )
    name = f"{uuid4().hex}{_extension_for(filename_hint, content_type)}"
    key = f"{folder}/{name}" if folder else name
    return f"{_bucket_prefix()}{key}"


def build_public_url(key: str) -> str:
    if not key:
        raise ValueError("key must be provided")
    normalised = key.lstrip("/")
    base_url = (current_app.config.get("S3_PUBLIC_BASE_URL") or "").strip()
    if base_url:
        base = base_url.rstrip("/")
        if not base.lower().startswith(("https://", "http://")):
            base = f"https://{base}"
        return f"{base}/{normalised}"

    bucket = _bucket_name()
    region = _region()
    if region and region != "us-east-1":
        return f"https://{bucket}.s3.{region}.amazonaws.com/{normalised}"
    return f"https://{bucket}.s3.amazonaws.com/{normalised}"


def _extension_for(filename_hint: str | None, content_type: str) -> str:
    mime = (content_type or "").split(";", 1)[0].strip().lower()
    guessed = _KNOWN_EXTENSIONS.get(mime) or mimetypes.guess_extension(mime)
    if guessed:
        return ".jpg" if guessed == ".jpe" else guessed.lower()
    if filename_hint:
        return PurePosixPath(filename_hint).suffix.lower()
    return ""


def _client() -> BaseClient:
    client = current_app.extensions.get(_CLIENT_KEY)
    if client is not None:
        return client

    kwargs: dict[str, Any] = {}
    region = _region()
    if region:
        kwargs["region_name"] = region
    endpoint_url = current_app.config.get("S3_ENDPOINT_URL")
    if endpoint_url:
        kwargs["endpoint_url"] = endpoint_url

    client = boto3.client("s3", **kwargs)
    current_app.extensions[_CLIENT_KEY] = client
    return client


def _object_acl() -> str | None:
    acl = current_app.config.get("S3_OBJECT_ACL")
    if acl:
        return str(acl)
    if _as_bool(current_app.config.get("S3_USE_OAC")):
        return None
    return "public-read"


def _bucket_prefix() -> str:
    prefix = (current_app.config.get("S3_BUCKET_PREFIX") or "").strip()
    prefix = prefix.replace("\\", "/").lstrip("/")
    if prefix and not prefix.endswith("/"):
        prefix = f"{prefix}/"
    return prefix


def _bucket_name() -> str:
    bucket = current_app.config.get("S3_BUCKET_NAME")
    if not bucket:
        raise S3ConfigurationError("S3 bucket name is not configured")
    return str(bucket)


def _region() -> str | None:
    region = current_app.config.get("AWS_REGION")
    if region:
        return str(region)
    return boto3.session.Session().region_name


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)
