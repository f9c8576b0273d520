"""Local blob storage for generated images, addressed through signed URLs."""

from __future__ import annotations

import mimetypes
import uuid
from pathlib import Path

from flask import current_app, url_for

from ..utils.signed_urls import sign_media_path, verify_media_path


class UploadFailure(Exception):
    """Writing the media file failed."""


def media_root() -> Path:
    configured = current_app.config.get("MEDIA_ROOT")
    return Path(configured) if configured else Path(current_app.instance_path) / "media"


def _signing() -> tuple[str, str]:
    config = current_app.config
    return config.get("MEDIA_URL_SECRET") or config["JWT_SECRET_KEY"], config.get("MEDIA_URL_SALT", "practice-media")


def upload_bytes(data: bytes, mime_type: str, folder: str = "generated") -> str:
    """Store ``data`` and return the public URL that serves it."""

    extension = mimetypes.guess_extension(mime_type or "") or ".bin"
    relative = f"{folder}/{uuid.uuid4().hex}{extension}"
    target = media_root() / relative
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
    except OSError as exc:
        raise UploadFailure(str(exc)) from exc
    secret, salt = _signing()
    return url_for("media_bp.serve_media", token=sign_media_path(secret, salt, relative))


def resolve_media_path(token: str) -> Path:
    """Map a signed token back to a file inside the media root; raises ``BadSignature`` or ``FileNotFoundError``."""

    secret, salt = _signing()
    relative = verify_media_path(token, secret, salt)
    root = media_root().resolve()
    path = (root / relative).resolve()
    if root not in path.parents or not path.is_file():
        raise FileNotFoundError(relative)
    return path
