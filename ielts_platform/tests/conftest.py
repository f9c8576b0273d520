"""Pytest configuration for ensuring project modules resolve correctly."""

from __future__ import annotations

import json
import sys
import threading
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import pytest

from ielts_app import create_app
from ielts_app.extensions import db
from ielts_app.services.gemini_gateway import (
    AudioResult,
    FailureKind,
    GatewayState,
    GeneratedImage,
    TextResult,
)


class FakeGateway:
    """Stands in for GeminiGateway; replies come from a queue or a responder callable."""

    def __init__(self):
        self.replies = []
        self.responder = None
        self.prompts = []
        self.audio_calls = []
        self.image_prompts = []
        self.audio = AudioResult(audio=b"\x00\x01\x02\x03", sample_rate=24000, attempts=1)
        self.image = None
        self._lock = threading.Lock()

    def queue(self, *replies):
        self.replies.extend(replies)

    def generate_text(self, api_key, prompt, **kwargs):
        with self._lock:
            self.prompts.append(prompt)
            reply = self.responder(prompt) if self.responder else self.replies.pop(0)
        if isinstance(reply, TextResult):
            return reply
        text = reply if isinstance(reply, str) else json.dumps(reply)
        return TextResult(state=GatewayState.SUCCESS, text=text, model="fake-model", tokens_used=120)

    def generate_audio(self, api_key, script, voices=None):
        self.audio_calls.append((script, voices))
        return self.audio

    def generate_image(self, api_key, prompt):
        self.image_prompts.append(prompt)
        return self.image


def quota_result() -> TextResult:
    return TextResult(
        state=GatewayState.QUOTA_EXCEEDED,
        failure=FailureKind.QUOTA_EXCEEDED,
        error="QUOTA_EXCEEDED: The Gemini API rate limit for this key has been reached.",
    )


def png_image() -> GeneratedImage:
    return GeneratedImage(data=b"\x89PNG\r\n\x1a\nfake", mime_type="image/png")


@pytest.fixture()
def app_with_db(tmp_path):
    app = create_app("test")
    app.config["MEDIA_ROOT"] = str(tmp_path / "media")
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app_with_db):
    return app_with_db.test_client()


@pytest.fixture()
def user_token(client):
    register = client.post(
        "/api/auth/register",
        json={"email": "learner@example.com", "password": "StrongPass123!", "username": "learner"},
    )
    assert register.status_code == 201, register.get_json()
    return register.get_json()["access_token"]


@pytest.fixture()
def auth_headers(user_token):
    return {"Authorization": f"Bearer {user_token}", "X-Gemini-Api-Key": "test-gemini-key"}


@pytest.fixture()
def fake_gateway(app_with_db):
    gateway = FakeGateway()
    app_with_db.extensions["gemini_gateway"] = gateway
    return gateway
