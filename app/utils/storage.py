"""
Cupid: Avatar storage.

Avatars land on local disk under ``UPLOAD_DIR`` (served at
``UPLOAD_URL_PREFIX``) unless ``GCS_BUCKET_NAME`` is configured, in which case
they are uploaded to the bucket and referenced by public URL.
"""

import asyncio
import uuid
from pathlib import Path

import structlog
from google.api_core import exceptions as gcs_exceptions
from google.cloud import storage as gcs_storage
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from app.config import Settings
from app.errors import InvalidInput

logger = structlog.get_logger("cupid.storage")

_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
}

UPLOAD_ATTEMPTS = 3

_RETRYABLE_GCS_ERRORS = (
    gcs_exceptions.TooManyRequests,
    gcs_exceptions.InternalServerError,
    gcs_exceptions.ServiceUnavailable,
    gcs_exceptions.GatewayTimeout,
)


def _is_retryable_gcs_error(exc: BaseException) -> bool:
    """Rate limits and transient 5xx from the bucket are worth retrying."""
    return isinstance(exc, _RETRYABLE_GCS_ERRORS)


def get_bucket(settings: Settings):
    client = gcs_storage.Client(project=settings.GCP_PROJECT_ID or None)
    return client.bucket(settings.GCS_BUCKET_NAME)


def validate_avatar(data: bytes, content_type: str | None, settings: Settings) -> str:
    """Return the effective content type or raise ``InvalidInput``."""
    content_type = (content_type or "").split(";")[0].strip().lower()
    if not content_type.startswith("image/"):
        raise InvalidInput("Avatar must be an image")
    if content_type not in _EXTENSIONS:
        raise InvalidInput("Unsupported image type")
    if not data:
        raise InvalidInput("Avatar file is empty")
    if len(data) > settings.MAX_AVATAR_BYTES:
        raise InvalidInput("Avatar file too large")
    return content_type


def _write_local(directory: Path, name: str, data: bytes) -> None:
    directory.mkdir(parents=True, exist_ok=True)
    (directory / name).write_bytes(data)


def _upload_gcs(settings: Settings, path: str, data: bytes, content_type: str) -> str:
    bucket = get_bucket(settings)
    blob = bucket.blob(path)
    blob.upload_from_string(data, content_type=content_type)
    return blob.public_url


async def save_avatar(
    data: bytes,
    filename: str | None,
    content_type: str | None,
    settings: Settings,
) -> str:
    """Persist an avatar and return the URL clients should use for it."""
    content_type = validate_avatar(data, content_type, settings)
    name = f"{uuid.uuid4().hex}{_EXTENSIONS[content_type]}"

    if settings.uses_gcs:
        path = f"avatars/{name}"
        async for attempt in AsyncRetrying(
            retry=retry_if_exception(_is_retryable_gcs_error),
            stop=stop_after_attempt(UPLOAD_ATTEMPTS),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=8),
            reraise=True,
        ):
            with attempt:
                logger.debug(
                    "avatar_upload_attempt",
                    path=path,
                    attempt_number=attempt.retry_state.attempt_number,
                )
                url = await asyncio.to_thread(
                    _upload_gcs, settings, path, data, content_type
                )
        logger.info(
            "avatar_uploaded", backend="gcs", path=path, original=filename, size=len(data)
        )
        return url

    await asyncio.to_thread(_write_local, Path(settings.UPLOAD_DIR), name, data)
    logger.info(
        "avatar_uploaded", backend="local", name=name, original=filename, size=len(data)
    )
    return f"{settings.UPLOAD_URL_PREFIX}/{name}"


def check_storage(settings: Settings) -> str:
    """Readiness probe helper: report the storage backend state."""
    if settings.uses_gcs:
        if not get_bucket(settings).exists():
            raise RuntimeError(f"bucket {settings.GCS_BUCKET_NAME} not found")
        return "gcs"
    directory = Path(settings.UPLOAD_DIR)
    if not directory.is_dir():
        raise RuntimeError(f"upload directory {directory} missing")
    return "local"
