import enum
import json
from datetime import datetime

from sqlalchemy import Column, DateTime, Index, Integer, String, Text

from extensions import db


class ActivityCategory(str, enum.Enum):
    VIDEO = "video"
    INCIDENT = "incident"
    TRAINING = "training"
    MEDAL = "medal"
    INTERACTION = "interaction"


class ActivityEntry(db.Model):
    """Append-only engagement ledger.

    Rows are never updated or deleted; they are the source of truth for a
    user's points and for achievement counts. ``scope_category`` mirrors
    ``details["category"]`` so category-scoped counts stay a plain indexed COUNT.
    """

    __tablename__ = "activity_entries"

    id = Column(Integer, primary_key=True)
    # No FK to users: entries for unknown users are still valid history.
    user_id = Column(String(64), nullable=False, index=True)
    category = Column(String(20), nullable=False)
    activity_id = Column(String(128), nullable=False)
    points = Column(Integer, nullable=False, default=0)
    details_json = Column(Text, nullable=True)
    scope_category = Column(String(80), nullable=True)
    timestamp = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_activity_user_timestamp", "user_id", "timestamp"),
        Index("idx_activity_user_category_scope", "user_id", "category", "scope_category"),
        Index("idx_activity_timestamp", "timestamp"),
    )

    @property
    def details(self) -> dict:
        if not self.details_json:
            return {}
        try:
            data = json.loads(self.details_json)
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    def to_dict(self):
        return {
            "id": str(self.id),
            "userId": self.user_id,
            "category": self.category,
            "activityId": self.activity_id,
            "points": int(self.points or 0),
            "details": self.details,
            "timestamp": self.timestamp.isoformat() + "Z" if self.timestamp else None,
        }
