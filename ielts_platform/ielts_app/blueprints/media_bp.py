"""Serves generated images (map, flowchart, table and chart visuals) by signed token."""

from __future__ import annotations

from flask import Blueprint, abort, current_app, send_file
from itsdangerous import BadSignature

from ..services.media_storage import resolve_media_path

media_bp = Blueprint("media_bp", __name__)


@media_bp.get("/<path:token>")
def serve_media(token: str):
    try:
        path = resolve_media_path(token)
    except (BadSignature, FileNotFoundError):
        abort(404)
    response = send_file(path)
    response.headers["Cache-Control"] = f"private, max-age={current_app.config.get('MEDIA_CACHE_MAX_AGE', 86400)}"
    return response
