"""Serialization / validation schemas (Marshmallow)."""

from .user_schema import ApiKeySchema, LoginSchema, RegisterSchema, UserSchema
from .practice_schema import (
    GenerateRequestSchema,
    ListeningConfigSchema,
    ReadingConfigSchema,
    WritingConfigSchema,
)

__all__ = [
    "ApiKeySchema",
    "LoginSchema",
    "RegisterSchema",
    "UserSchema",
    "GenerateRequestSchema",
    "ListeningConfigSchema",
    "ReadingConfigSchema",
    "WritingConfigSchema",
]
