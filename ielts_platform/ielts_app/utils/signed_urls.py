"""Signed tokens that stand in for media file paths in public URLs."""

from __future__ import annotations

from itsdangerous import BadSignature, URLSafeSerializer


def _serializer(secret: str, salt: str) -> URLSafeSerializer:
    return URLSafeSerializer(secret_key=secret, salt=salt)


def sign_media_path(secret: str, salt: str, relative_path: str) -> str:
    return _serializer(secret, salt).dumps({"path": relative_path})


def verify_media_path(token: str, secret: str, salt: str) -> str:
    """Return the relative path inside the token or raise ``BadSignature``."""

    payload = _serializer(secret, salt).loads(token)
    path = payload.get("path") if isinstance(payload, dict) else None
    if not isinstance(path, str) or not path:
        raise BadSignature("Media token carries no path")
    return path
