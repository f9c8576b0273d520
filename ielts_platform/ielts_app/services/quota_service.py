"""Advisory per-user daily token accounting.

Counters are read-then-write upserts without locking; two concurrent requests
from one user may double count, which is acceptable for an advisory figure.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Dict

from flask import current_app

from ..extensions import db
from ..models import ModelDailyUsage


def _today() -> date:
    return datetime.now(timezone.utc).date()


def _daily_limit() -> int:
    return int(current_app.config.get("GEMINI_FREE_DAILY_LIMIT", 1_500_000))


def _get_or_create(user_id: int, usage_date: date) -> ModelDailyUsage:
    row = ModelDailyUsage.query.filter_by(user_id=user_id, usage_date=usage_date).first()
    if row is None:
        row = ModelDailyUsage(
            user_id=user_id,
            usage_date=usage_date,
            tokens_used=0,
            requests_count=0,
            quota_exhausted=False,
        )
        db.session.add(row)
    return row


def record_usage(user_id: int, tokens: int, *, usage_date: date | None = None) -> ModelDailyUsage:
    row = _get_or_create(user_id, usage_date or _today())
    row.tokens_used = (row.tokens_used or 0) + max(int(tokens or 0), 0)
    row.requests_count = (row.requests_count or 0) + 1
    db.session.commit()
    current_app.logger.info(
        "Recorded %s tokens for user %s", tokens, user_id, extra={"user_id": user_id, "tokens": tokens}
    )
    return row


def mark_quota_exhausted(user_id: int, *, usage_date: date | None = None) -> ModelDailyUsage:
    """Pin today's counter at the daily ceiling after the provider reports a rate limit."""

    row = _get_or_create(user_id, usage_date or _today())
    row.tokens_used = max(row.tokens_used or 0, _daily_limit())
    row.requests_count = row.requests_count or 0
    row.quota_exhausted = True
    db.session.commit()
    current_app.logger.warning("Quota exhausted for user %s", user_id, extra={"user_id": user_id})
    return row


def get_usage_summary(user_id: int, *, usage_date: date | None = None) -> Dict[str, Any]:
    usage_date = usage_date or _today()
    row = ModelDailyUsage.query.filter_by(user_id=user_id, usage_date=usage_date).first()
    limit = _daily_limit()
    tokens = row.tokens_used if row else 0
    ratio = float(current_app.config.get("QUOTA_WARNING_RATIO", 0.8))
    percent = round(min(tokens / limit, 1.0) * 100, 1) if limit else 100.0
    return {
        "date": usage_date.isoformat(),
        "tokens_used": tokens,
        "requests_count": row.requests_count if row else 0,
        "daily_limit": limit,
        "remaining": max(limit - tokens, 0),
        "percent_used": percent,
        "quota_exhausted": bool(row.quota_exhausted) if row else False,
        "warning": bool(limit) and tokens >= limit * ratio,
    }
