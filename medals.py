"""Achievement rule engine and medal catalog.

Evaluation runs synchronously after a ledger append whose category maps to a
trigger action. Awards are deduplicated by the (user_id, medal_id) unique
constraint: an IntegrityError on insert means another request already awarded
the medal, which is success from the caller's point of view.

Each award and its ``medal`` ledger entry are committed together, so a user
never holds a medal without the matching history row.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from activity import append_activity, count_activities, normalize_user_id
from activity_details import MedalDetails
from errors import ConflictError, NotFoundError, ValidationError
from extensions import db
from models_activity import ActivityCategory
from models_medals import SCOPED_TRIGGER_ACTIONS, Medal, TriggerAction, UserMedal

logger = logging.getLogger(__name__)


CATEGORY_TRIGGERS: dict[ActivityCategory, TriggerAction] = {
    ActivityCategory.INCIDENT: TriggerAction.ITEM_REPORTED,
    ActivityCategory.VIDEO: TriggerAction.ITEM_WATCHED,
    ActivityCategory.TRAINING: TriggerAction.TRAINING_COMPLETED,
}

TRIGGER_CATEGORIES: dict[TriggerAction, ActivityCategory] = {v: k for k, v in CATEGORY_TRIGGERS.items()}

_SLUG_STRIP_RE = re.compile(r"[^a-z0-9-]")
_SLUG_SPACE_RE = re.compile(r"\s+")


def slugify(value: str) -> str:
    slug = _SLUG_SPACE_RE.sub("-", (value or "").strip().lower())
    slug = _SLUG_STRIP_RE.sub("", slug)
    return re.sub(r"-{2,}", "-", slug).strip("-")


def trigger_for_category(category: Any) -> Optional[TriggerAction]:
    try:
        return CATEGORY_TRIGGERS.get(ActivityCategory(category))
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------

def evaluate(user_id: str, trigger_action: TriggerAction, details: Optional[dict] = None) -> list[Medal]:
    """Award every not-yet-held medal whose threshold the user now meets.

    Returns the medals newly awarded by *this* call. A medal won by a
    concurrent evaluation is not returned here.
    """
    trigger_action = TriggerAction(trigger_action)
    details = details or {}

    definitions = (
        Medal.query.filter(Medal.trigger_action == trigger_action.value)
        .order_by(Medal.required_count.asc(), Medal.id.asc())
        .all()
    )
    if not definitions:
        return []

    held = {
        row.medal_id
        for row in db.session.query(UserMedal.medal_id).filter(UserMedal.user_id == user_id).all()
    }
    candidates = [m for m in definitions if m.id not in held]
    if not candidates:
        return []

    scoped = trigger_action in SCOPED_TRIGGER_ACTIONS
    activity_category = str(details.get("category") or "").strip() or None
    if scoped:
        candidates = [
            m for m in candidates if not m.trigger_category or m.trigger_category == activity_category
        ]
        if not candidates:
            return []

    category = TRIGGER_CATEGORIES[trigger_action]
    counts: dict[Optional[str], int] = {}
    awarded: list[Medal] = []

    for medal in candidates:
        medal_id = medal.id
        try:
            scope = medal.trigger_category if scoped and medal.trigger_category else None
            if scope not in counts:
                counts[scope] = count_activities(user_id, category, scope)
            if counts[scope] < int(medal.required_count or 0):
                continue
            if _award(user_id, medal):
                awarded.append(medal)
        except Exception:
            # Awards already committed by this call are still reported.
            db.session.rollback()
            logger.error(f"Evaluating medal {medal_id} for user {user_id} failed", exc_info=True)

    return awarded


def evaluate_for_activity(user_id: str, category: Any, details: Optional[dict] = None) -> list[Medal]:
    """Entry point used by the ledger; medal/interaction entries never evaluate."""
    trigger_action = trigger_for_category(category)
    if trigger_action is None:
        return []
    return evaluate(user_id, trigger_action, details)


def _award(user_id: str, medal: Medal, manual: bool = False) -> bool:
    medal_id = medal.id
    details = MedalDetails(
        name=medal.name,
        description=medal.description,
        image_src=medal.image_src,
        manual=manual,
    )

    db.session.add(UserMedal(user_id=user_id, medal_id=medal_id))
    try:
        append_activity(
            user_id,
            ActivityCategory.MEDAL,
            medal_id,
            0,
            details.to_dict(),
            commit=False,
        )
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        logger.warning(f"Medal {medal_id} already awarded to user {user_id}; skipping")
        return False

    logger.info(f"Awarded medal {medal_id} to user {user_id}{' (manual)' if manual else ''}")
    return True


def assign_directly(user_id: Any, medal_id: str) -> tuple[Medal, bool]:
    """Manual award. Returns ``(medal, created)``; ``created`` is False when already held."""
    user_id = normalize_user_id(user_id)
    medal = db.session.get(Medal, medal_id)
    if medal is None:
        raise NotFoundError("Medal", medal_id)

    already = UserMedal.query.filter_by(user_id=user_id, medal_id=medal.id).first()
    if already is not None:
        return medal, False

    return medal, _award(user_id, medal, manual=True)


# ---------------------------------------------------------------------------
# Catalog reads
# ---------------------------------------------------------------------------

def list_medals() -> list[Medal]:
    return Medal.query.order_by(Medal.trigger_action.asc(), Medal.required_count.asc(), Medal.id.asc()).all()


def user_medals(user_id: Any) -> list[dict]:
    user_id = normalize_user_id(user_id)
    rows = (
        db.session.query(UserMedal, Medal)
        .join(Medal, Medal.id == UserMedal.medal_id)
        .filter(UserMedal.user_id == user_id)
        .order_by(UserMedal.date_earned.desc(), UserMedal.id.desc())
        .all()
    )
    out = []
    for award, medal in rows:
        out.append({**medal.to_dict(), "acquired": True, "dateEarned": award.to_dict()["dateEarned"]})
    return out


def unacquired_medals(user_id: Any) -> list[dict]:
    user_id = normalize_user_id(user_id)
    held = select(UserMedal.medal_id).where(UserMedal.user_id == user_id)
    rows = (
        Medal.query.filter(Medal.id.notin_(held))
        .order_by(Medal.trigger_action.asc(), Medal.required_count.asc(), Medal.id.asc())
        .all()
    )
    return [{**m.to_dict(), "acquired": False} for m in rows]


# ---------------------------------------------------------------------------
# Catalog admin
# ---------------------------------------------------------------------------

def _clean_fields(data: dict) -> dict:
    """Pick the writable camelCase fields present in ``data``."""
    fields = {}
    if "name" in data:
        fields["name"] = (data.get("name") or "").strip() if isinstance(data.get("name"), str) else ""
    if "description" in data:
        desc = data.get("description")
        fields["description"] = desc.strip() if isinstance(desc, str) else ""
    if "imageSrc" in data:
        img = data.get("imageSrc")
        fields["image_src"] = img.strip() or None if isinstance(img, str) else None
    if "triggerAction" in data:
        fields["trigger_action"] = data.get("triggerAction")
    if "triggerCategory" in data:
        cat = data.get("triggerCategory")
        fields["trigger_category"] = cat.strip() or None if isinstance(cat, str) else None
    if "requiredCount" in data:
        fields["required_count"] = data.get("requiredCount")
    return fields


def _validate_definition(values: dict) -> None:
    if not values.get("name"):
        raise ValidationError("is required", field="name")
    if not values.get("description"):
        raise ValidationError("is required", field="description")

    try:
        action = TriggerAction(values.get("trigger_action"))
    except ValueError:
        allowed = ", ".join(a.value for a in TriggerAction)
        raise ValidationError(
            f"must be one of: {allowed}", field="triggerAction", value=values.get("trigger_action")
        ) from None
    values["trigger_action"] = action.value

    count = values.get("required_count")
    if isinstance(count, bool) or not isinstance(count, int) or count < 1:
        raise ValidationError("must be a positive integer", field="requiredCount", value=count)

    if action in SCOPED_TRIGGER_ACTIONS and not values.get("trigger_category"):
        raise ValidationError(f"is required for {action.value}", field="triggerCategory")


def create_medal(data: dict) -> Medal:
    raw_id = data.get("id")
    medal_id = slugify(raw_id if isinstance(raw_id, str) else "")
    if not medal_id or len(medal_id) > 80:
        raise ValidationError("must contain letters or digits (max 80)", field="id", value=raw_id)

    values = {"required_count": 1, **_clean_fields(data)}
    _validate_definition(values)

    if db.session.get(Medal, medal_id) is not None:
        raise ConflictError(f"Medal '{medal_id}' already exists")

    medal = Medal(id=medal_id, **values)
    db.session.add(medal)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"Medal '{medal_id}' already exists") from None

    logger.info(f"Created medal {medal_id} ({medal.trigger_action} x{medal.required_count})")
    return medal


def update_medal(medal_id: str, data: dict) -> Medal:
    medal = db.session.get(Medal, medal_id)
    if medal is None:
        raise NotFoundError("Medal", medal_id)

    merged = {
        "name": medal.name,
        "description": medal.description,
        "image_src": medal.image_src,
        "trigger_action": medal.trigger_action,
        "trigger_category": medal.trigger_category,
        "required_count": medal.required_count,
    }
    merged.update(_clean_fields(data))
    _validate_definition(merged)

    for key, value in merged.items():
        setattr(medal, key, value)
    db.session.commit()

    logger.info(f"Updated medal {medal_id}")
    return medal


def delete_medal(medal_id: str) -> None:
    medal = db.session.get(Medal, medal_id)
    if medal is None:
        raise NotFoundError("Medal", medal_id)
    db.session.delete(medal)
    db.session.commit()
    logger.info(f"Deleted medal {medal_id}; existing awards kept")
