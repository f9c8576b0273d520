"""Business logic modules (model gateway, prompt catalog, assembly, etc.)."""

from . import (
    answer_normalizer,
    api_key_service,
    bank_service,
    content_assembler,
    gemini_gateway,
    json_extractor,
    media_storage,
    practice_service,
    prompt_catalog,
    quota_service,
)

__all__ = [
    "answer_normalizer",
    "api_key_service",
    "bank_service",
    "content_assembler",
    "gemini_gateway",
    "json_extractor",
    "media_storage",
    "practice_service",
    "prompt_catalog",
    "quota_service",
]
