"""Security helpers (password hashing, JWT tokens, secret encryption)."""

from __future__ import annotations

import base64
import os
from typing import Any, Dict

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from flask_jwt_extended import create_access_token
from werkzeug.security import check_password_hash, generate_password_hash

NONCE_BYTES = 12
KEY_BYTES = 32


class SecretDecryptionError(ValueError):
    """Stored ciphertext could not be decrypted with the configured key."""


def hash_password(plain_password: str) -> str:
    """Hash a plaintext password using Werkzeug's PBKDF2 defaults."""

    return generate_password_hash(plain_password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    return check_password_hash(password_hash, plain_password)


def generate_access_token(user) -> str:
    """Create a JWT access token embedding the user's ID and role."""

    claims: Dict[str, Any] = {"role": user.role}
    return create_access_token(identity=str(user.id), additional_claims=claims)


def _aes_key(encryption_key: str) -> bytes:
    raw = encryption_key.encode("utf-8")[:KEY_BYTES]
    if len(raw) < KEY_BYTES:
        raise ValueError("APP_ENCRYPTION_KEY must be at least 32 bytes long")
    return raw


def encrypt_secret(plaintext: str, encryption_key: str) -> str:
    """AES-GCM encrypt; the 12-byte nonce is prepended and the result base64 encoded."""

    nonce = os.urandom(NONCE_BYTES)
    ciphertext = AESGCM(_aes_key(encryption_key)).encrypt(nonce, plaintext.encode("utf-8"), None)
    return base64.b64encode(nonce + ciphertext).decode("ascii")


def decrypt_secret(token: str, encryption_key: str) -> str:
    try:
        blob = base64.b64decode(token)
        nonce, ciphertext = blob[:NONCE_BYTES], blob[NONCE_BYTES:]
        return AESGCM(_aes_key(encryption_key)).decrypt(nonce, ciphertext, None).decode("utf-8")
    except (InvalidTag, ValueError) as exc:
        raise SecretDecryptionError("Stored secret could not be decrypted") from exc
