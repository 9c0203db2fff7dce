"""Points breakdown, per-user ranking and the leaderboard.

Routes:
- GET /api/stats/user/<userId>/points-breakdown
- GET /api/stats/user/<userId>/ranking
- GET /api/stats/leaderboard

Ranking loads every user once per call; fine for a single site's workforce,
not for an open-ended user base.

Ordering:
- ranking: points desc, then account age (created_at asc), then id asc.
- leaderboard: points desc, medal count desc, name asc, id asc.
- topMedals: hardest medal first (required_count desc), then most recent.
"""

import logging
from collections import defaultdict

from flask import Blueprint, jsonify
from sqlalchemy import func

from activity import normalize_user_id, points_breakdown
from deadline import Deadline
from errors import NotFoundError
from extensions import db
from models_medals import Medal, UserMedal
from models_users import User

logger = logging.getLogger(__name__)

stats_api = Blueprint("stats_api", __name__)

TOP_MEDALS = 3


def get_ranking(user_id, deadline=None) -> dict:
    user_id = normalize_user_id(user_id)
    rows = (
        db.session.query(User.id, User.points)
        .order_by(User.points.desc(), User.created_at.asc(), User.id.asc())
        .all()
    )
    if deadline is not None:
        deadline.check("ranking")

    for position, (uid, points) in enumerate(rows, start=1):
        if uid == user_id:
            return {"position": position, "totalUsers": len(rows), "points": int(points or 0)}
    raise NotFoundError("User", user_id)


def get_leaderboard(deadline=None) -> list[dict]:
    users = User.query.all()
    if deadline is not None:
        deadline.check("leaderboard users")

    # Awards of deleted definitions stay as history but are not counted.
    medal_counts = dict(
        db.session.query(UserMedal.user_id, func.count(UserMedal.id))
        .join(Medal, Medal.id == UserMedal.medal_id)
        .group_by(UserMedal.user_id)
        .all()
    )
    awards = (
        db.session.query(UserMedal.user_id, UserMedal.date_earned, Medal)
        .join(Medal, Medal.id == UserMedal.medal_id)
        .order_by(UserMedal.user_id, Medal.required_count.desc(), UserMedal.date_earned.desc(), Medal.id.asc())
        .all()
    )
    if deadline is not None:
        deadline.check("leaderboard medals")

    top_medals = defaultdict(list)
    for uid, date_earned, medal in awards:
        if len(top_medals[uid]) < TOP_MEDALS:
            top_medals[uid].append(
                {
                    "id": medal.id,
                    "name": medal.name,
                    "imageSrc": medal.image_src,
                    "requiredCount": int(medal.required_count or 0),
                    "dateEarned": date_earned.isoformat() + "Z" if date_earned else None,
                }
            )

    board = [
        {
            "userId": u.id,
            "name": u.display_name(),
            "points": int(u.points or 0),
            "medalCount": int(medal_counts.get(u.id, 0)),
            "topMedals": top_medals.get(u.id, []),
        }
        for u in users
    ]
    board.sort(key=lambda e: (-e["points"], -e["medalCount"], e["name"], e["userId"]))
    for rank, entry in enumerate(board, start=1):
        entry["rank"] = rank
    return board


@stats_api.get("/api/stats/user/<user_id>/points-breakdown")
def get_points_breakdown(user_id):
    return jsonify(points_breakdown(user_id))


@stats_api.get("/api/stats/user/<user_id>/ranking")
def get_user_ranking(user_id):
    return jsonify(get_ranking(user_id, Deadline.from_request()))


@stats_api.get("/api/stats/leaderboard")
def get_leaderboard_route():
    return jsonify(get_leaderboard(Deadline.from_request()))
