"""Likes and comments on content items.

Routes:
- POST   /api/interactions/like                          (identity)
- DELETE /api/interactions/like                          (identity)
- GET    /api/interactions/like/<itemType>/<itemId>
- POST   /api/interactions/comment                       (identity)
- GET    /api/interactions/comment/<itemType>/<itemId>?page=&limit=

Assumptions:
- One like per (user, item, item type), enforced by a unique constraint. A
  duplicate like, including one lost to a concurrent request, is "already
  liked", never an error.
- The like row, its interaction ledger entry and the +1 point are committed
  together.
- Unliking does not take the point back.
"""

import logging
import math
import re

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from activity import append_activity
from activity_details import InteractionDetails
from auth import current_identity, identity_required
from errors import NotFoundError, ValidationError
from extensions import db
from feed import find_item_title
from models_activity import ActivityCategory
from models_interactions import COMMENT_MAX_LENGTH, Comment, ItemType, Like

logger = logging.getLogger(__name__)

interactions_api = Blueprint("interactions_api", __name__)

INTERACTION_POINTS = 1

_ITEM_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def _norm_item_id(item_id) -> str:
    value = (item_id or "").strip() if isinstance(item_id, str) else ""
    if not _ITEM_ID_RE.match(value):
        raise ValidationError("must be 1-64 letters, digits, '-' or '_'", field="itemId", value=item_id)
    return value


def _norm_item_type(item_type) -> ItemType:
    try:
        return ItemType(item_type)
    except ValueError:
        allowed = ", ".join(t.value for t in ItemType)
        raise ValidationError(f"must be one of: {allowed}", field="itemType", value=item_type) from None


def _positive_int_arg(name: str, default: int) -> int:
    raw = request.args.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError("must be a positive integer", field=name, value=raw) from None
    if value < 1:
        raise ValidationError("must be a positive integer", field=name, value=raw)
    return value


def like_count(item_id: str, item_type: ItemType) -> int:
    return int(
        db.session.query(func.count(Like.id))
        .filter(Like.item_id == item_id, Like.item_type == item_type.value)
        .scalar()
        or 0
    )


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------

def add_like(user_id: str, item_id: str, item_type: ItemType, user_name: str = "") -> bool:
    """Returns True when this call created the like, False when it already existed."""
    existing = Like.query.filter_by(user_id=user_id, item_id=item_id, item_type=item_type.value).first()
    if existing is not None:
        return False

    details = InteractionDetails(
        action="like",
        item_type=item_type.value,
        item_title=find_item_title(item_type, item_id),
        user_name=user_name or None,
    )

    db.session.add(Like(user_id=user_id, item_id=item_id, item_type=item_type.value))
    try:
        append_activity(
            user_id, ActivityCategory.INTERACTION, item_id, INTERACTION_POINTS, details.to_dict(), commit=False
        )
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        logger.warning(f"Concurrent like for {item_type.value}/{item_id} by user {user_id}; already liked")
        return False

    logger.info(f"User {user_id} liked {item_type.value}/{item_id}")
    return True


def remove_like(user_id: str, item_id: str, item_type: ItemType) -> None:
    deleted = Like.query.filter_by(user_id=user_id, item_id=item_id, item_type=item_type.value).delete(
        synchronize_session=False
    )
    db.session.commit()
    if not deleted:
        raise NotFoundError("Like", f"{item_type.value}/{item_id}")
    logger.info(f"User {user_id} unliked {item_type.value}/{item_id}")


def get_like_info(item_id: str, item_type: ItemType, caller_user_id=None) -> dict:
    user_has_liked = False
    if caller_user_id:
        user_has_liked = (
            Like.query.filter_by(user_id=caller_user_id, item_id=item_id, item_type=item_type.value).first()
            is not None
        )
    return {"likeCount": like_count(item_id, item_type), "userHasLiked": user_has_liked}


def add_comment(user_id: str, user_name: str, item_id: str, item_type: ItemType, text) -> Comment:
    if not isinstance(text, str):
        raise ValidationError("is required", field="text")
    text = text.strip()
    if not text or len(text) > COMMENT_MAX_LENGTH:
        raise ValidationError(f"must be between 1 and {COMMENT_MAX_LENGTH} characters", field="text")

    details = InteractionDetails(
        action="comment",
        item_type=item_type.value,
        item_title=find_item_title(item_type, item_id),
        user_name=user_name or None,
        comment_text=text,
    )

    comment = Comment(user_id=user_id, user_name=user_name, item_id=item_id, item_type=item_type.value, text=text)
    db.session.add(comment)
    append_activity(
        user_id, ActivityCategory.INTERACTION, item_id, INTERACTION_POINTS, details.to_dict(), commit=False
    )
    db.session.commit()

    logger.info(f"User {user_id} commented on {item_type.value}/{item_id}")
    return comment


def list_comments(item_id: str, item_type: ItemType, page: int, page_size: int) -> dict:
    if page < 1:
        raise ValidationError("must be a positive integer", field="page", value=page)
    if page_size < 1:
        raise ValidationError("must be a positive integer", field="limit", value=page_size)

    base = Comment.query.filter(Comment.item_id == item_id, Comment.item_type == item_type.value)
    total = base.order_by(None).count()
    rows = (
        base.order_by(Comment.created_at.desc(), Comment.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return {
        "comments": [c.to_dict() for c in rows],
        "currentPage": page,
        "totalPages": math.ceil(total / page_size),
        "totalComments": total,
    }


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

def _item_from_body():
    data = request.get_json(silent=True) or {}
    return _norm_item_id(data.get("itemId")), _norm_item_type(data.get("itemType")), data


@interactions_api.post("/api/interactions/like")
@identity_required
def post_like():
    item_id, item_type, _ = _item_from_body()
    identity = current_identity()

    created = add_like(identity.user_id, item_id, item_type, identity.display_name())
    return jsonify(
        {
            "liked": True,
            "created": created,
            "message": "Liked" if created else "Already liked",
            "likeCount": like_count(item_id, item_type),
        }
    ), (201 if created else 200)


@interactions_api.delete("/api/interactions/like")
@identity_required
def delete_like():
    item_id, item_type, _ = _item_from_body()

    remove_like(current_identity().user_id, item_id, item_type)
    return jsonify({"liked": False, "likeCount": like_count(item_id, item_type)})


@interactions_api.get("/api/interactions/like/<item_type>/<item_id>")
def get_like(item_type, item_id):
    item_type = _norm_item_type(item_type)
    item_id = _norm_item_id(item_id)
    identity = current_identity()

    return jsonify(get_like_info(item_id, item_type, identity.user_id if identity else None))


@interactions_api.post("/api/interactions/comment")
@identity_required
def post_comment():
    item_id, item_type, data = _item_from_body()
    identity = current_identity()

    comment = add_comment(identity.user_id, identity.display_name(), item_id, item_type, data.get("text"))
    return jsonify(comment.to_dict()), 201


@interactions_api.get("/api/interactions/comment/<item_type>/<item_id>")
def get_comments(item_type, item_id):
    item_type = _norm_item_type(item_type)
    item_id = _norm_item_id(item_id)
    cfg = current_app.config

    page = _positive_int_arg("page", 1)
    page_size = _positive_int_arg("limit", cfg["COMMENTS_DEFAULT_PAGE_SIZE"])
    if page_size > cfg["COMMENTS_MAX_PAGE_SIZE"]:
        raise ValidationError(f"must be at most {cfg['COMMENTS_MAX_PAGE_SIZE']}", field="limit", value=page_size)

    return jsonify(list_comments(item_id, item_type, page, page_size))
