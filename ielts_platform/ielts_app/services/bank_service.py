"""Published test bank: curated tests served before any model tokens are spent."""

from __future__ import annotations

import copy
import random
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable

from flask import current_app

from ..extensions import db
from ..models import GeneratedTest, User

CANDIDATE_POOL = 10
SINGLE_CHOICE_TYPES = ("MULTIPLE_CHOICE", "MULTIPLE_CHOICE_SINGLE")


def _published(module: str):
    return GeneratedTest.query.filter_by(module=module, is_published=True)


def find_preset(
    module: str,
    question_type: str,
    difficulty: str,
    rng: random.Random,
    *,
    topic: str | None = None,
) -> GeneratedTest | None:
    """Pick one of the least-used published tests matching the request, if any."""

    query = _published(module).filter_by(difficulty=difficulty)
    if question_type in SINGLE_CHOICE_TYPES:
        query = query.filter(GeneratedTest.question_type.in_(SINGLE_CHOICE_TYPES))
    else:
        query = query.filter(GeneratedTest.question_type == question_type)
    if topic and topic.strip():
        query = query.filter(GeneratedTest.topic.ilike(f"%{topic.strip()}%"))
    candidates = query.order_by(GeneratedTest.times_used.asc()).limit(CANDIDATE_POOL).all()
    return rng.choice(candidates) if candidates else None


def pick_smart_test(
    user: User,
    module: str,
    rng: random.Random,
    *,
    topic: str | None = None,
    exclude_ids: Iterable[str] = (),
) -> GeneratedTest | None:
    """Prefer published tests the user has not been served yet, then the least used."""

    query = _published(module)
    if topic:
        query = query.filter(GeneratedTest.topic == topic)
    excluded = set(exclude_ids)
    candidates = [record for record in query.all() if record.id not in excluded]
    if not candidates:
        return None

    served = {
        source_id
        for (source_id,) in db.session.query(GeneratedTest.source_test_id).filter(
            GeneratedTest.user_id == user.id,
            GeneratedTest.source_test_id.isnot(None),
        )
    }
    unseen = [record for record in candidates if record.id not in served] or candidates
    lowest = min(record.times_used or 0 for record in unseen)
    return rng.choice([record for record in unseen if (record.times_used or 0) == lowest])


def serve(user: User, preset: GeneratedTest) -> Dict[str, Any]:
    """Hand ``preset`` to ``user`` under a fresh test id and keep the run in their history."""

    preset.times_used = (preset.times_used or 0) + 1
    body = copy.deepcopy(preset.payload)
    body.update(
        {
            "testId": str(uuid.uuid4()),
            "generatedAt": datetime.now(timezone.utc).isoformat(),
            "tokensUsed": 0,
            "isPreset": True,
            "presetId": preset.id,
        }
    )
    db.session.add(
        GeneratedTest(
            id=body["testId"],
            user_id=user.id,
            module=preset.module,
            question_type=preset.question_type,
            difficulty=preset.difficulty,
            topic=preset.topic,
            payload=body,
            tokens_used=0,
            source_test_id=preset.id,
        )
    )
    db.session.commit()
    current_app.logger.info(
        "Served published %s test %s",
        preset.module,
        preset.id,
        extra={"practice_module": preset.module, "user_id": user.id},
    )
    return body


def set_published(test_id: str, published: bool) -> GeneratedTest | None:
    record = db.session.get(GeneratedTest, test_id)
    if record is None:
        return None
    record.is_published = published
    db.session.commit()
    return record
