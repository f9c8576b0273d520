"""Storage and lookup of the learner's model API key."""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import User, UserSecret
from ..utils.security import SecretDecryptionError, decrypt_secret, encrypt_secret
from .practice_errors import MissingApiKeyError

GEMINI_SECRET_NAME = "gemini_api_key"


def _encryption_key() -> str:
    key = current_app.config.get("APP_ENCRYPTION_KEY") or ""
    if not key:
        raise RuntimeError("APP_ENCRYPTION_KEY is not configured")
    return key


def _secret_for(user: User) -> UserSecret | None:
    return UserSecret.query.filter_by(user_id=user.id, secret_name=GEMINI_SECRET_NAME).first()


def store_api_key(user: User, api_key: str) -> UserSecret:
    secret = _secret_for(user)
    if secret is None:
        secret = UserSecret(user_id=user.id, secret_name=GEMINI_SECRET_NAME)
        db.session.add(secret)
    secret.encrypted_value = encrypt_secret(api_key.strip(), _encryption_key())
    db.session.commit()
    return secret


def delete_api_key(user: User) -> bool:
    secret = _secret_for(user)
    if secret is None:
        return False
    db.session.delete(secret)
    db.session.commit()
    return True


def has_api_key(user: User) -> bool:
    return _secret_for(user) is not None


def resolve_api_key(user: User, header_key: str | None = None) -> str:
    """Request header first, then the stored key, then the server-wide key."""

    if header_key and header_key.strip():
        return header_key.strip()
    secret = _secret_for(user)
    if secret is not None:
        try:
            return decrypt_secret(secret.encrypted_value, _encryption_key())
        except SecretDecryptionError:
            current_app.logger.warning("Stored API key for user %s could not be decrypted", user.id)
    fallback = current_app.config.get("GEMINI_API_KEY") or ""
    if fallback:
        return fallback
    raise MissingApiKeyError()
