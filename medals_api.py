"""Medal catalog APIs.

Routes:
- GET    /api/medals
- GET    /api/medals/user/<userId>
- GET    /api/medals/user/<userId>/unacquired
- POST   /api/medals/assign/<userId>/<medalId>   (admin)
- POST   /api/medals                             (admin)
- PUT    /api/medals/<medalId>                   (admin)
- DELETE /api/medals/<medalId>                   (admin)
"""

from flask import Blueprint, jsonify, request

from auth import admin_required
from errors import ValidationError
from medals import (
    assign_directly,
    create_medal,
    delete_medal,
    list_medals,
    unacquired_medals,
    update_medal,
    user_medals,
)

medals_api = Blueprint("medals_api", __name__)


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("request body must be a JSON object")
    return data


@medals_api.get("/api/medals")
def get_medals():
    return jsonify([m.to_dict() for m in list_medals()])


@medals_api.get("/api/medals/user/<user_id>")
def get_user_medals(user_id):
    return jsonify(user_medals(user_id))


@medals_api.get("/api/medals/user/<user_id>/unacquired")
def get_unacquired_medals(user_id):
    return jsonify(unacquired_medals(user_id))


@medals_api.post("/api/medals/assign/<user_id>/<medal_id>")
@admin_required
def assign_medal(user_id, medal_id):
    medal, created = assign_directly(user_id, medal_id)
    if not created:
        return jsonify({"assigned": False, "message": "Medal already owned", "medal": medal.to_dict()})
    return jsonify({"assigned": True, "medal": medal.to_dict()}), 201


@medals_api.post("/api/medals")
@admin_required
def post_medal():
    medal = create_medal(_json_body())
    return jsonify(medal.to_dict()), 201


@medals_api.put("/api/medals/<medal_id>")
@admin_required
def put_medal(medal_id):
    medal = update_medal(medal_id, _json_body())
    return jsonify(medal.to_dict())


@medals_api.delete("/api/medals/<medal_id>")
@admin_required
def remove_medal(medal_id):
    delete_medal(medal_id)
    return jsonify({"deleted": True, "id": medal_id})
