"""REST API blueprints (auth, practice, media, metrics)."""

from __future__ import annotations

from .auth_bp import auth_bp
from .media_bp import media_bp
from .metrics_bp import metrics_bp
from .practice_bp import practice_bp

BLUEPRINTS = (
    (auth_bp, "/api/auth"),
    (practice_bp, "/api/practice"),
    (media_bp, "/api/media"),
    (metrics_bp, ""),
)

__all__ = [
    "BLUEPRINTS",
    "auth_bp",
    "media_bp",
    "metrics_bp",
    "practice_bp",
]
