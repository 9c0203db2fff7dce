"""Unified feed over the content collections.

Each source fetches its own ``limit`` most recent items; the merged list is
sorted and truncated to ``limit`` *before* counts are loaded, so the counts
cost is one grouped query per interaction type over at most ``limit`` ids.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from errors import ValidationError
from extensions import db
from models_content import Accident, AwarenessDocument, NearMissReport
from models_interactions import Comment, ItemType, Like

logger = logging.getLogger(__name__)


@dataclass
class FeedSource:
    """One content collection the feed can read from."""

    item_type: ItemType
    model: type
    title_column: str
    time_column: str
    type: str = "document"
    document_type: Optional[str] = None

    @property
    def name(self) -> str:
        return self.item_type.value

    def fetch(self, limit: int) -> list[dict]:
        title_col = getattr(self.model, self.title_column)
        time_col = getattr(self.model, self.time_column)
        rows = (
            db.session.query(self.model.id, title_col, time_col)
            .order_by(time_col.desc(), self.model.id.desc())
            .limit(limit)
            .all()
        )
        return [
            {
                "id": str(item_id),
                "type": self.type,
                "documentType": self.document_type,
                "itemType": self.item_type.value,
                "title": title,
                "timestamp": timestamp,
            }
            for item_id, title, timestamp in rows
        ]

    def find_title(self, item_id: str) -> Optional[str]:
        title_col = getattr(self.model, self.title_column)
        row = db.session.query(title_col).filter(self.model.id == item_id).first()
        return row[0] if row else None


DEFAULT_SOURCES: tuple[FeedSource, ...] = (
    FeedSource(ItemType.QA, NearMissReport, "title", "date", type="qa"),
    FeedSource(ItemType.ACCIDENT, Accident, "name", "created_at", document_type="Acidente"),
    FeedSource(ItemType.SENSIBILIZACAO, AwarenessDocument, "name", "created_at", document_type="Sensibilizacao"),
)

_SOURCES_BY_TYPE = {source.item_type: source for source in DEFAULT_SOURCES}


def find_item_title(item_type: ItemType, item_id: str) -> Optional[str]:
    """Title of a content item, or None when it is unknown or unreadable."""
    source = _SOURCES_BY_TYPE.get(ItemType(item_type))
    if source is None:
        return None
    try:
        return source.find_title(item_id)
    except SQLAlchemyError:
        db.session.rollback()
        logger.warning(f"Title lookup failed for {source.name}/{item_id}", exc_info=True)
        return None


def _grouped_counts(model, ids: list[str]) -> dict[tuple[str, str], int]:
    rows = (
        db.session.query(model.item_type, model.item_id, func.count(model.id))
        .filter(model.item_id.in_(ids))
        .group_by(model.item_type, model.item_id)
        .all()
    )
    return {(item_type, item_id): int(count) for item_type, item_id, count in rows}


def _sort_key(item: dict):
    ts = item["timestamp"] or datetime.min
    return ts, item["id"]


def build_feed(limit: int, sources: Optional[Iterable[FeedSource]] = None, deadline=None) -> list[dict]:
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise ValidationError("must be a positive integer", field="limit", value=limit)

    merged: list[dict] = []
    for source in sources if sources is not None else DEFAULT_SOURCES:
        if deadline is not None and deadline.expired():
            logger.warning(f"Feed deadline reached before source {source.name}; returning partial feed")
            break
        try:
            merged.extend(source.fetch(limit))
        except Exception as exc:
            if isinstance(exc, SQLAlchemyError):
                db.session.rollback()
            logger.warning(f"Feed source {source.name} unavailable; excluding it", exc_info=True)

    merged.sort(key=_sort_key, reverse=True)
    items = merged[:limit]
    if not items:
        return []

    ids = sorted({item["id"] for item in items})
    like_counts = _grouped_counts(Like, ids)
    comment_counts = _grouped_counts(Comment, ids)

    for item in items:
        key = (item["itemType"], item["id"])
        item["likeCount"] = like_counts.get(key, 0)
        item["commentCount"] = comment_counts.get(key, 0)
        item["timestamp"] = item["timestamp"].isoformat() + "Z" if item["timestamp"] else None
    return items
