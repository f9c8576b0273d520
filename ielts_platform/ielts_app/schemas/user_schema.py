"""Schemas for user-related payloads."""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, fields, validate


class RegisterSchema(Schema):
    email = fields.Email(required=True)
    password = fields.String(required=True, validate=validate.Length(min=8))
    username = fields.String(validate=validate.Length(min=3, max=64))

    class Meta:
        unknown = EXCLUDE


class LoginSchema(Schema):
    identifier = fields.String(required=True)
    password = fields.String(required=True)


class UserSchema(Schema):
    id = fields.Integer(dump_only=True)
    email = fields.Email(dump_only=True)
    username = fields.String(dump_only=True)
    role = fields.String(dump_only=True)
    is_active = fields.Boolean(dump_only=True)
    created_at = fields.DateTime(dump_only=True)
    has_api_key = fields.Method("get_has_api_key", dump_only=True)

    def get_has_api_key(self, user) -> bool:
        return user.secrets.count() > 0


class ApiKeySchema(Schema):
    api_key = fields.String(
        required=True,
        data_key="apiKey",
        validate=validate.Length(min=10, max=256),
    )
