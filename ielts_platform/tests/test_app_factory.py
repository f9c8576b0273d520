"""Smoke tests for the Flask application factory."""

from __future__ import annotations

import pytest

from ielts_app import create_app


@pytest.fixture(scope="module")
def app():
    app = create_app("test")
    yield app


def test_app_creation(app):
    assert app is not None
    assert app.config["TESTING"] is True
    assert app.config["AUTO_CREATE_SCHEMA"] is False


@pytest.mark.parametrize(
    "endpoint",
    [
        "/api/auth/ping",
        "/api/practice/ping",
    ],
)
def test_ping_endpoints(app, endpoint):
    client = app.test_client()
    response = client.get(endpoint)
    assert response.status_code == 200
    payload = response.get_json()
    assert payload["status"] == "ok"


def test_catalog_lists_every_module(app):
    resp = app.test_client().get("/api/practice/catalog")
    assert resp.status_code == 200
    modules = resp.get_json()["modules"]
    assert set(modules) == {"reading", "listening", "writing", "speaking"}
    reading = {entry["questionType"]: entry["defaultCount"] for entry in modules["reading"]}
    assert reading["TRUE_FALSE_NOT_GIVEN"] == 5
    assert reading["MULTIPLE_CHOICE_MULTIPLE"] == 3
    listening = {entry["questionType"]: entry["defaultCount"] for entry in modules["listening"]}
    assert listening["MULTIPLE_CHOICE_MULTIPLE"] == 2
    assert [entry["questionType"] for entry in modules["writing"]] == ["TASK_1", "TASK_2", "FULL_TEST"]


def test_missing_token_returns_json_401(app):
    resp = app.test_client().get("/api/practice/usage")
    assert resp.status_code == 401
    body = resp.get_json()
    assert body["error"] == "Unauthorized"
    assert "message" in body


def test_seed_user_cli_creates_account(app_with_db):
    runner = app_with_db.test_cli_runner()
    result = runner.invoke(args=["seed-user", "--email", "Cli@Example.com", "--password", "StrongPass123!"])
    assert result.exit_code == 0, result.output
    assert "Created user cli@example.com" in result.output

    again = runner.invoke(args=["seed-user", "--email", "cli@example.com", "--password", "StrongPass123!"])
    assert "already exists" in again.output


def test_usage_show_cli_reports_unknown_user(app_with_db):
    runner = app_with_db.test_cli_runner()
    result = runner.invoke(args=["usage", "show", "--user-id", "999"])
    assert result.exit_code != 0
    assert "User 999 not found" in result.output


def test_bank_publish_cli(app_with_db):
    from ielts_app.extensions import db
    from ielts_app.models import GeneratedTest, User
    from ielts_app.utils.security import hash_password

    user = User(email="bank@example.com", password_hash=hash_password("StrongPass123!"))
    db.session.add(user)
    db.session.commit()
    record = GeneratedTest(
        id="bank-test-1",
        user_id=user.id,
        module="reading",
        question_type="TRUE_FALSE_NOT_GIVEN",
        difficulty="medium",
        topic="Bees",
        payload={"testId": "bank-test-1"},
    )
    db.session.add(record)
    db.session.commit()

    runner = app_with_db.test_cli_runner()
    result = runner.invoke(args=["bank", "publish", "bank-test-1"])
    assert result.exit_code == 0, result.output
    assert "published" in result.output
    assert db.session.get(GeneratedTest, "bank-test-1").is_published is True

    result = runner.invoke(args=["bank", "publish", "bank-test-1", "--unpublish"])
    assert "unpublished" in result.output
    assert runner.invoke(args=["bank", "publish", "missing"]).exit_code != 0
