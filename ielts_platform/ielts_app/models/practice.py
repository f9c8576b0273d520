from __future__ import annotations

from .user import utcnow
from ..extensions import db


class GeneratedTest(db.Model):
    """One immutable generation result, stored exactly as returned to the client."""

    __tablename__ = "generated_tests"

    id = db.Column(db.String(36), primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    module = db.Column(db.String(16), nullable=False, index=True)
    question_type = db.Column(db.String(64), nullable=False)
    difficulty = db.Column(db.String(16), nullable=False)
    topic = db.Column(db.String(255), nullable=False)
    payload = db.Column(db.JSON, nullable=False)
    tokens_used = db.Column(db.Integer, nullable=False, default=0)
    saved_to_bank = db.Column(db.Boolean, nullable=False, default=False)
    is_published = db.Column(db.Boolean, nullable=False, default=False, index=True)
    times_used = db.Column(db.Integer, nullable=False, default=0)
    source_test_id = db.Column(db.String(36), index=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    user = db.relationship("User", backref=db.backref("generated_tests", lazy="dynamic"))

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<GeneratedTest {self.id} {self.module}/{self.question_type}>"
