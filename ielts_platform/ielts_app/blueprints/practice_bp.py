"""Practice generation endpoints: generate, history, test bank, usage and catalog."""

from __future__ import annotations

import random
from http import HTTPStatus

from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import current_user, jwt_required
from marshmallow import ValidationError

from ..extensions import limiter
from ..schemas import GenerateRequestSchema
from ..services import bank_service, practice_service, quota_service
from ..services.practice_errors import PracticeGenerationError
from ..services.prompt_catalog import MODULES, default_question_count, supported_question_types

practice_bp = Blueprint("practice_bp", __name__)

generate_schema = GenerateRequestSchema()

API_KEY_HEADER = "X-Gemini-Api-Key"
MAX_HISTORY = 100


def require_admin() -> bool:
    return current_user is not None and current_user.role == "admin"


@practice_bp.errorhandler(ValidationError)
def handle_validation_error(err: ValidationError):
    return jsonify({"errors": err.messages}), HTTPStatus.BAD_REQUEST


@practice_bp.errorhandler(PracticeGenerationError)
def handle_generation_error(exc: PracticeGenerationError):
    return jsonify(exc.to_dict()), exc.status


@practice_bp.get("/ping")
def ping():
    return jsonify({"module": "practice", "status": "ok"})


@practice_bp.post("/generate")
@jwt_required()
@limiter.limit(lambda: current_app.config.get("RATE_LIMIT_GENERATE", "10 per minute"))
def generate():
    payload = generate_schema.load(request.get_json() or {})
    header_key = (request.headers.get(API_KEY_HEADER) or "").strip() or None
    body = practice_service.generate_practice(current_user, payload, header_key=header_key)
    return jsonify(body)


@practice_bp.get("/tests")
@jwt_required()
def list_tests():
    module = request.args.get("module")
    limit = min(request.args.get("limit", default=20, type=int) or 20, MAX_HISTORY)
    return jsonify({"tests": practice_service.list_tests(current_user, module=module, limit=limit)})


@practice_bp.get("/tests/<test_id>")
@jwt_required()
def get_test(test_id: str):
    body = practice_service.get_test(current_user, test_id)
    if body is None:
        return jsonify({"message": "Test not found"}), HTTPStatus.NOT_FOUND
    return jsonify(body)


@practice_bp.post("/tests/<test_id>/publish")
@jwt_required()
def publish_test(test_id: str):
    return _set_published(test_id, True)


@practice_bp.delete("/tests/<test_id>/publish")
@jwt_required()
def unpublish_test(test_id: str):
    return _set_published(test_id, False)


def _set_published(test_id: str, published: bool):
    if not require_admin():
        return jsonify({"message": "Admin access required"}), HTTPStatus.FORBIDDEN
    record = bank_service.set_published(test_id, published)
    if record is None:
        return jsonify({"message": "Test not found"}), HTTPStatus.NOT_FOUND
    return jsonify({"testId": record.id, "isPublished": record.is_published})


@practice_bp.get("/smart-test")
@jwt_required()
def smart_test():
    module = (request.args.get("module") or "").lower()
    if module not in MODULES:
        return jsonify({"error": "Module is required"}), HTTPStatus.BAD_REQUEST
    exclude = [item.strip() for item in (request.args.get("exclude") or "").split(",") if item.strip()]
    record = bank_service.pick_smart_test(
        current_user,
        module,
        random.Random(),
        topic=request.args.get("topic") or None,
        exclude_ids=exclude,
    )
    if record is None:
        return jsonify({"error": "No tests available", "code": "NO_TESTS"}), HTTPStatus.NOT_FOUND
    return jsonify(bank_service.serve(current_user, record))


@practice_bp.get("/usage")
@jwt_required()
def usage():
    return jsonify(quota_service.get_usage_summary(current_user.id))


@practice_bp.get("/catalog")
def catalog():
    modules = {
        module: [
            {"questionType": question_type, "defaultCount": default_question_count(module, question_type)}
            for question_type in supported_question_types(module)
        ]
        for module in MODULES
    }
    return jsonify({"modules": modules})
