from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func, text

from activity_details import describe, parse_details
from errors import ValidationError
from extensions import db
from models_activity import ActivityCategory, ActivityEntry

logger = logging.getLogger(__name__)


# Display colors for the points breakdown chart.
CATEGORY_COLORS: dict[str, str] = {
    ActivityCategory.VIDEO.value: "#0071CE",
    ActivityCategory.INCIDENT.value: "#FF7A00",
    ActivityCategory.TRAINING.value: "#28a745",
}
DEFAULT_COLOR = "#6c757d"

CATEGORY_LABELS: dict[str, str] = {
    ActivityCategory.VIDEO.value: "Videos watched",
    ActivityCategory.INCIDENT.value: "Near-misses reported",
    ActivityCategory.TRAINING.value: "Trainings completed",
    ActivityCategory.MEDAL.value: "Medals",
    ActivityCategory.INTERACTION.value: "Interactions",
}

# Always present in the breakdown, even at zero.
BREAKDOWN_BASE_CATEGORIES = (
    ActivityCategory.VIDEO.value,
    ActivityCategory.INCIDENT.value,
    ActivityCategory.TRAINING.value,
)


def normalize_user_id(user_id: Any, field: str = "userId") -> str:
    if isinstance(user_id, bool) or not isinstance(user_id, (str, int)):
        raise ValidationError("is required", field=field)
    value = str(user_id).strip()
    if not value or len(value) > 64:
        raise ValidationError("must be 1-64 characters", field=field, value=user_id)
    return value


def normalize_category(category: Any) -> ActivityCategory:
    try:
        return ActivityCategory(category)
    except ValueError:
        allowed = ", ".join(c.value for c in ActivityCategory)
        raise ValidationError(f"must be one of: {allowed}", field="category", value=category) from None


def normalize_points(points: Any) -> int:
    # bool is an int subclass.
    if isinstance(points, bool) or not isinstance(points, int):
        raise ValidationError("must be an integer", field="points", value=points)
    if points < 0:
        raise ValidationError("must not be negative", field="points", value=points)
    return points


def _normalize_activity_id(activity_id: Any) -> str:
    if isinstance(activity_id, bool) or not isinstance(activity_id, (str, int)):
        raise ValidationError("is required", field="activityId")
    value = str(activity_id).strip()
    if not value or len(value) > 128:
        raise ValidationError("must be 1-128 characters", field="activityId", value=activity_id)
    return value


def append_activity(
    user_id: Any,
    category: Any,
    activity_id: Any,
    points: Any,
    details: Optional[dict] = None,
    commit: bool = True,
) -> ActivityEntry:
    """Write one immutable ledger entry and add its points to the user.

    The increment is a single ``points = points + :p`` statement so concurrent
    appends for the same user never lose an update. A missing user row is an
    anomaly, not a failure: the entry is still valid history.

    With ``commit=False`` the caller owns the transaction (used when the entry
    must land atomically with another row, e.g. a like or a medal award).
    """
    user_id = normalize_user_id(user_id)
    category = normalize_category(category)
    activity_id = _normalize_activity_id(activity_id)
    points = normalize_points(points)
    if details is not None and not isinstance(details, dict):
        raise ValidationError("must be an object", field="details")

    typed = parse_details(category.value, details)
    payload = typed.to_dict()

    entry = ActivityEntry(
        user_id=user_id,
        category=category.value,
        activity_id=activity_id,
        points=points,
        details_json=json.dumps(payload, separators=(",", ":"), ensure_ascii=False) if payload else None,
        scope_category=typed.scope_category,
        timestamp=datetime.utcnow(),
    )
    db.session.add(entry)
    db.session.flush()

    if points:
        result = db.session.execute(
            text("UPDATE users SET points = points + :p WHERE id = :u"),
            {"p": points, "u": user_id},
        )
        if result.rowcount == 0:
            logger.warning(
                f"Points increment skipped: user {user_id} not found "
                f"({category.value}/{activity_id}, +{points})"
            )

    if commit:
        db.session.commit()
        logger.info(f"Logged {category.value} activity {activity_id} for user {user_id} (+{points} points)")

    return entry


def record_activity(
    user_id: Any,
    category: Any,
    activity_id: Any,
    points: Any,
    details: Optional[dict] = None,
) -> tuple[ActivityEntry, list]:
    """Append to the ledger, then run achievement evaluation.

    Returns ``(entry, newly_awarded_medals)``. Evaluation failures are logged
    and swallowed: the activity itself is already committed.
    """
    # Imported here: medals.py writes its award entries through this module.
    from medals import evaluate_for_activity

    entry = append_activity(user_id, category, activity_id, points, details)

    try:
        new_medals = evaluate_for_activity(entry.user_id, entry.category, entry.details)
    except Exception:
        db.session.rollback()
        logger.error(
            f"Achievement evaluation failed for user {entry.user_id} after activity {entry.id}",
            exc_info=True,
        )
        new_medals = []

    return entry, new_medals


def count_activities(user_id: str, category: ActivityCategory, scope_category: Optional[str] = None) -> int:
    query = db.session.query(func.count(ActivityEntry.id)).filter(
        ActivityEntry.user_id == user_id,
        ActivityEntry.category == category.value,
    )
    if scope_category:
        query = query.filter(ActivityEntry.scope_category == scope_category)
    return int(query.scalar() or 0)


def list_for_user(user_id: Any, limit: int) -> list[dict]:
    """Most recent entries first, each with a derived ``description``."""
    user_id = normalize_user_id(user_id)
    rows = (
        ActivityEntry.query.filter(ActivityEntry.user_id == user_id)
        .order_by(ActivityEntry.timestamp.desc(), ActivityEntry.id.desc())
        .limit(limit)
        .all()
    )

    out = []
    for row in rows:
        data = row.to_dict()
        data["description"] = describe(row.category, data["details"])
        data["date"] = data["timestamp"]
        out.append(data)
    return out


def points_breakdown(user_id: Any) -> list[dict]:
    user_id = normalize_user_id(user_id)
    rows = (
        db.session.query(ActivityEntry.category, func.coalesce(func.sum(ActivityEntry.points), 0))
        .filter(ActivityEntry.user_id == user_id)
        .group_by(ActivityEntry.category)
        .all()
    )
    totals = {category: int(total or 0) for category, total in rows}
    for category in BREAKDOWN_BASE_CATEGORIES:
        totals.setdefault(category, 0)

    ordered = [c for c in BREAKDOWN_BASE_CATEGORIES] + sorted(c for c in totals if c not in BREAKDOWN_BASE_CATEGORIES)
    return [
        {
            "category": category,
            "label": CATEGORY_LABELS.get(category, category.capitalize()),
            "points": totals[category],
            "color": CATEGORY_COLORS.get(category, DEFAULT_COLOR),
        }
        for category in ordered
    ]
