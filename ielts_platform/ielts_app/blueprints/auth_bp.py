"""Authentication endpoints (register/login/me) and the learner's Gemini key."""

from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, jsonify, request
from flask_jwt_extended import current_user, jwt_required
from marshmallow import ValidationError
from sqlalchemy import func

from ..extensions import db
from ..models import User
from ..schemas import ApiKeySchema, LoginSchema, RegisterSchema, UserSchema
from ..services import api_key_service
from ..utils import generate_access_token, hash_password, verify_password

auth_bp = Blueprint("auth_bp", __name__)

register_schema = RegisterSchema()
login_schema = LoginSchema()
user_schema = UserSchema()
api_key_schema = ApiKeySchema()


@auth_bp.errorhandler(ValidationError)
def handle_validation_error(err: ValidationError):
    return jsonify({"errors": err.messages}), HTTPStatus.BAD_REQUEST


@auth_bp.get("/ping")
def ping():
    return jsonify({"module": "auth", "status": "ok"})


@auth_bp.post("/register")
def register():
    payload = register_schema.load(request.get_json() or {})
    email = payload["email"].lower()
    if User.query.filter_by(email=email).first():
        return (
            jsonify({"message": "Email already registered"}),
            HTTPStatus.CONFLICT,
        )

    username = None
    if payload.get("username"):
        username = payload["username"].lower()
        if User.query.filter(func.lower(User.username) == username).first():
            return (
                jsonify({"message": "Username already taken"}),
                HTTPStatus.CONFLICT,
            )

    user = User(
        email=email,
        username=username,
        password_hash=hash_password(payload["password"]),
        role="student",
    )
    db.session.add(user)
    db.session.commit()

    return (
        jsonify(
            {
                "access_token": generate_access_token(user),
                "user": user_schema.dump(user),
            }
        ),
        HTTPStatus.CREATED,
    )


@auth_bp.post("/login")
def login():
    payload = login_schema.load(request.get_json() or {})
    identifier = payload["identifier"].strip()

    if "@" in identifier:
        user = User.query.filter_by(email=identifier.lower()).first()
    else:
        user = User.query.filter(func.lower(User.username) == identifier.lower()).first()
    if not user or not verify_password(payload["password"], user.password_hash):
        return (
            jsonify({"message": "Invalid email or password"}),
            HTTPStatus.UNAUTHORIZED,
        )

    if not user.is_active:
        return jsonify({"error": "account_disabled"}), HTTPStatus.FORBIDDEN

    return jsonify({"access_token": generate_access_token(user), "user": user_schema.dump(user)})


@auth_bp.get("/me")
@jwt_required()
def me():
    return jsonify({"user": user_schema.dump(current_user)})


@auth_bp.put("/api-key")
@jwt_required()
def put_api_key():
    payload = api_key_schema.load(request.get_json() or {})
    api_key_service.store_api_key(current_user, payload["api_key"].strip())
    return jsonify({"hasApiKey": True})


@auth_bp.delete("/api-key")
@jwt_required()
def delete_api_key():
    removed = api_key_service.delete_api_key(current_user)
    if not removed:
        return jsonify({"message": "No API key stored"}), HTTPStatus.NOT_FOUND
    return jsonify({"hasApiKey": False})
