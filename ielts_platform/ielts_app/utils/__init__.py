"""Utility helpers (security, encryption, signed media URLs)."""

from .security import (
    SecretDecryptionError,
    decrypt_secret,
    encrypt_secret,
    generate_access_token,
    hash_password,
    verify_password,
)
from .signed_urls import sign_media_path, verify_media_path

__all__ = [
    "SecretDecryptionError",
    "decrypt_secret",
    "encrypt_secret",
    "generate_access_token",
    "hash_password",
    "verify_password",
    "sign_media_path",
    "verify_media_path",
]
