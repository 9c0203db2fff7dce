"""Typed views over the open ``details`` bag of a ledger entry.

The wire format is a flat camelCase dict. Each category gets a small dataclass
so callers read ``details.title`` instead of poking at keys; anything the
dataclass does not know about is kept in ``extra`` and written back untouched.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from models_activity import ActivityCategory


def _str_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _split(raw: Dict[str, Any], known: tuple[str, ...]) -> tuple[Dict[str, Any], Dict[str, Any]]:
    picked = {k: raw.get(k) for k in known}
    extra = {k: v for k, v in raw.items() if k not in known}
    return picked, extra


def _merge(values: Dict[str, Any], extra: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(extra)
    out.update({k: v for k, v in values.items() if v is not None})
    return out


@dataclass
class VideoDetails:
    title: Optional[str] = None
    category: Optional[str] = None
    count: Optional[int] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def scope_category(self) -> Optional[str]:
        return self.category

    def to_dict(self) -> Dict[str, Any]:
        return _merge({"title": self.title, "category": self.category, "count": self.count}, self.extra)


@dataclass
class IncidentDetails:
    title: Optional[str] = None
    type: Optional[str] = None
    category: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def scope_category(self) -> Optional[str]:
        return self.category

    def to_dict(self) -> Dict[str, Any]:
        return _merge({"title": self.title, "type": self.type, "category": self.category}, self.extra)


@dataclass
class TrainingDetails:
    title: Optional[str] = None
    category: Optional[str] = None
    is_full_course: bool = False
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def scope_category(self) -> Optional[str]:
        return self.category

    def to_dict(self) -> Dict[str, Any]:
        return _merge(
            {
                "title": self.title,
                "category": self.category,
                "isFullCourse": True if self.is_full_course else None,
            },
            self.extra,
        )


@dataclass
class MedalDetails:
    name: Optional[str] = None
    description: Optional[str] = None
    image_src: Optional[str] = None
    manual: bool = False
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def scope_category(self) -> Optional[str]:
        return None

    def to_dict(self) -> Dict[str, Any]:
        return _merge(
            {
                "name": self.name,
                "description": self.description,
                "imageSrc": self.image_src,
                "manual": True if self.manual else None,
            },
            self.extra,
        )


@dataclass
class InteractionDetails:
    action: Optional[str] = None  # "like" | "comment"
    item_type: Optional[str] = None
    item_title: Optional[str] = None
    user_name: Optional[str] = None
    comment_text: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def scope_category(self) -> Optional[str]:
        return None

    def to_dict(self) -> Dict[str, Any]:
        return _merge(
            {
                "action": self.action,
                "itemType": self.item_type,
                "itemTitle": self.item_title,
                "userName": self.user_name,
                "commentText": self.comment_text,
            },
            self.extra,
        )


@dataclass
class GenericDetails:
    """Fallback for categories this module does not model."""

    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def scope_category(self) -> Optional[str]:
        return _str_or_none(self.data.get("category"))

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.data)


def _parse_video(raw: Dict[str, Any]) -> VideoDetails:
    picked, extra = _split(raw, ("title", "category", "count"))
    count = picked["count"]
    if isinstance(count, bool) or not isinstance(count, int):
        count = None
    return VideoDetails(
        title=_str_or_none(picked["title"]),
        category=_str_or_none(picked["category"]),
        count=count,
        extra=extra,
    )


def _parse_incident(raw: Dict[str, Any]) -> IncidentDetails:
    picked, extra = _split(raw, ("title", "type", "category"))
    return IncidentDetails(
        title=_str_or_none(picked["title"]),
        type=_str_or_none(picked["type"]),
        category=_str_or_none(picked["category"]),
        extra=extra,
    )


def _parse_training(raw: Dict[str, Any]) -> TrainingDetails:
    picked, extra = _split(raw, ("title", "category", "isFullCourse"))
    return TrainingDetails(
        title=_str_or_none(picked["title"]),
        category=_str_or_none(picked["category"]),
        is_full_course=bool(picked["isFullCourse"]),
        extra=extra,
    )


def _parse_medal(raw: Dict[str, Any]) -> MedalDetails:
    picked, extra = _split(raw, ("name", "description", "imageSrc", "manual"))
    return MedalDetails(
        name=_str_or_none(picked["name"]),
        description=_str_or_none(picked["description"]),
        image_src=_str_or_none(picked["imageSrc"]),
        manual=bool(picked["manual"]),
        extra=extra,
    )


def _parse_interaction(raw: Dict[str, Any]) -> InteractionDetails:
    picked, extra = _split(raw, ("action", "itemType", "itemTitle", "userName", "commentText"))
    return InteractionDetails(
        action=_str_or_none(picked["action"]),
        item_type=_str_or_none(picked["itemType"]),
        item_title=_str_or_none(picked["itemTitle"]),
        user_name=_str_or_none(picked["userName"]),
        comment_text=picked["commentText"] if isinstance(picked["commentText"], str) else None,
        extra=extra,
    )


_PARSERS: Dict[ActivityCategory, Callable[[Dict[str, Any]], Any]] = {
    ActivityCategory.VIDEO: _parse_video,
    ActivityCategory.INCIDENT: _parse_incident,
    ActivityCategory.TRAINING: _parse_training,
    ActivityCategory.MEDAL: _parse_medal,
    ActivityCategory.INTERACTION: _parse_interaction,
}


def parse_details(category: str, raw: Optional[Dict[str, Any]]):
    """Return the typed details for ``category`` (GenericDetails when unknown)."""
    raw = dict(raw or {})
    try:
        parser = _PARSERS[ActivityCategory(category)]
    except ValueError:
        return GenericDetails(data=raw)
    return parser(raw)


def describe(category: str, raw: Optional[Dict[str, Any]]) -> str:
    """Human-readable one-liner for an activity history row.

    Display only: pure function of ``category`` and ``details``.
    """
    details = parse_details(category, raw)

    if isinstance(details, VideoDetails):
        if details.title:
            return f"Watched video: '{details.title}'"
        if details.count and details.count > 1:
            return f"Watched {details.count} safety videos"
        return "Watched a safety video"

    if isinstance(details, IncidentDetails):
        if details.title:
            return f"Reported near-miss: '{details.title}'"
        if details.type:
            return f"Reported a near-miss of type {details.type}"
        return "Reported a near-miss"

    if isinstance(details, TrainingDetails):
        if details.title:
            return f"Completed training: '{details.title}'"
        if details.is_full_course:
            return "Completed a full safety course"
        return "Completed a training module"

    if isinstance(details, MedalDetails):
        if details.name:
            return f"Unlocked achievement: '{details.name}'"
        return "Unlocked an achievement"

    if isinstance(details, InteractionDetails):
        target = f"'{details.item_title}'" if details.item_title else "an item"
        if details.action == "like":
            return f"Liked {target}"
        if details.action == "comment":
            return f"Commented on {target}"
        return f"Interacted with {target}"

    return "Performed an activity on the platform"
