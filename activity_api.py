"""Activity ledger APIs.

Routes:
- POST /api/activities
- GET  /api/activities/user/<userId>?limit=N
- GET  /api/activities/feed?limit=N
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from activity import list_for_user, record_activity
from deadline import Deadline
from errors import ValidationError
from feed import build_feed

logger = logging.getLogger(__name__)

activity_api = Blueprint("activity_api", __name__)


def _limit_arg(default: int, maximum: int) -> int:
    raw = request.args.get("limit")
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError("must be a positive integer", field="limit", value=raw) from None
    if value < 1:
        raise ValidationError("must be a positive integer", field="limit", value=raw)
    return min(value, maximum)


@activity_api.post("/api/activities")
def post_activity():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("request body must be a JSON object")
    for name in ("userId", "category", "activityId", "points"):
        if data.get(name) is None:
            raise ValidationError("is required", field=name)

    entry, new_medals = record_activity(
        data.get("userId"),
        data.get("category"),
        data.get("activityId"),
        data.get("points"),
        data.get("details"),
    )

    return jsonify(
        {
            "id": str(entry.id),
            "activityId": entry.activity_id,
            "points": int(entry.points or 0),
            "newMedals": [m.to_dict() for m in new_medals],
        }
    ), 201


@activity_api.get("/api/activities/user/<user_id>")
def get_user_activities(user_id):
    cfg = current_app.config
    limit = _limit_arg(cfg["ACTIVITY_DEFAULT_LIMIT"], cfg["FEED_MAX_LIMIT"])
    return jsonify(list_for_user(user_id, limit))


@activity_api.get("/api/activities/feed")
def get_feed():
    cfg = current_app.config
    limit = _limit_arg(cfg["FEED_DEFAULT_LIMIT"], cfg["FEED_MAX_LIMIT"])
    return jsonify(build_feed(limit, deadline=Deadline.from_request()))
