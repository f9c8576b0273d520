"""initial practice schema: users, secrets, daily usage and generated tests

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    table_names = inspector.get_table_names()

    if "users" not in table_names:
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("username", sa.String(length=64), nullable=True),
            sa.Column("password_hash", sa.String(length=255), nullable=False),
            sa.Column("role", sa.String(length=32), nullable=False, server_default="student"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column(
                "created_at",
                sa.DateTime(timezone=True),
                nullable=False,
                server_default=sa.text("CURRENT_TIMESTAMP"),
            ),
        )
        op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)
        op.create_index(op.f("ix_users_username"), "users", ["username"], unique=True)

    if "user_secrets" not in table_names:
        op.create_table(
            "user_secrets",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("secret_name", sa.String(length=64), nullable=False),
            sa.Column("encrypted_value", sa.Text(), nullable=False),
            sa.Column(
                "created_at",
                sa.DateTime(timezone=True),
                nullable=False,
                server_default=sa.text("CURRENT_TIMESTAMP"),
            ),
            sa.Column(
                "updated_at",
                sa.DateTime(timezone=True),
                nullable=False,
                server_default=sa.text("CURRENT_TIMESTAMP"),
            ),
            sa.UniqueConstraint("user_id", "secret_name", name="uq_user_secret_name"),
        )
        op.create_index(op.f("ix_user_secrets_user_id"), "user_secrets", ["user_id"])

    if "model_daily_usage" not in table_names:
        op.create_table(
            "model_daily_usage",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("usage_date", sa.Date(), nullable=False),
            sa.Column("tokens_used", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("requests_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("quota_exhausted", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column(
                "last_updated_at",
                sa.DateTime(timezone=True),
                nullable=False,
                server_default=sa.text("CURRENT_TIMESTAMP"),
            ),
            sa.UniqueConstraint("user_id", "usage_date", name="uq_model_usage_user_date"),
        )
        op.create_index(op.f("ix_model_daily_usage_user_id"), "model_daily_usage", ["user_id"])
        op.create_index(op.f("ix_model_daily_usage_usage_date"), "model_daily_usage", ["usage_date"])

    if "generated_tests" not in table_names:
        op.create_table(
            "generated_tests",
            sa.Column("id", sa.String(length=36), primary_key=True),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("module", sa.String(length=16), nullable=False),
            sa.Column("question_type", sa.String(length=64), nullable=False),
            sa.Column("difficulty", sa.String(length=16), nullable=False),
            sa.Column("topic", sa.String(length=255), nullable=False),
            sa.Column("payload", sa.JSON(), nullable=False),
            sa.Column("tokens_used", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("saved_to_bank", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("is_published", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("times_used", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("source_test_id", sa.String(length=36), nullable=True),
            sa.Column(
                "created_at",
                sa.DateTime(timezone=True),
                nullable=False,
                server_default=sa.text("CURRENT_TIMESTAMP"),
            ),
        )
        op.create_index(op.f("ix_generated_tests_user_id"), "generated_tests", ["user_id"])
        op.create_index(op.f("ix_generated_tests_module"), "generated_tests", ["module"])
        op.create_index(op.f("ix_generated_tests_is_published"), "generated_tests", ["is_published"])
        op.create_index(op.f("ix_generated_tests_source_test_id"), "generated_tests", ["source_test_id"])


def downgrade():
    op.drop_index(op.f("ix_generated_tests_source_test_id"), table_name="generated_tests")
    op.drop_index(op.f("ix_generated_tests_is_published"), table_name="generated_tests")
    op.drop_index(op.f("ix_generated_tests_module"), table_name="generated_tests")
    op.drop_index(op.f("ix_generated_tests_user_id"), table_name="generated_tests")
    op.drop_table("generated_tests")
    op.drop_index(op.f("ix_model_daily_usage_usage_date"), table_name="model_daily_usage")
    op.drop_index(op.f("ix_model_daily_usage_user_id"), table_name="model_daily_usage")
    op.drop_table("model_daily_usage")
    op.drop_index(op.f("ix_user_secrets_user_id"), table_name="user_secrets")
    op.drop_table("user_secrets")
    op.drop_index(op.f("ix_users_username"), table_name="users")
    op.drop_index(op.f("ix_users_email"), table_name="users")
    op.drop_table("users")
