from __future__ import annotations

from .user import utcnow
from ..extensions import db


class ModelDailyUsage(db.Model):
    """Per-user, per-day token counter for the generative model."""

    __tablename__ = "model_daily_usage"
    __table_args__ = (
        db.UniqueConstraint("user_id", "usage_date", name="uq_model_usage_user_date"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    usage_date = db.Column(db.Date, nullable=False, index=True)
    tokens_used = db.Column(db.Integer, nullable=False, default=0)
    requests_count = db.Column(db.Integer, nullable=False, default=0)
    quota_exhausted = db.Column(db.Boolean, nullable=False, default=False)
    last_updated_at = db.Column(
        db.DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<ModelDailyUsage user_id={self.user_id} date={self.usage_date} tokens={self.tokens_used}>"
