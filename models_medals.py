"""Achievement ("medal") catalog and awards.

Locked rules:
- A definition is identified by a stable slug.
- ``trigger_category`` scopes itemWatched / trainingCompleted medals to a
  sub-category; it is required for those two actions.
- A user holds a given medal at most once, ever (unique (user_id, medal_id)).
"""

import enum
from datetime import datetime

from sqlalchemy import Column, DateTime, Index, Integer, String, Text, UniqueConstraint

from extensions import db


class TriggerAction(str, enum.Enum):
    ITEM_REPORTED = "itemReported"
    ITEM_WATCHED = "itemWatched"
    TRAINING_COMPLETED = "trainingCompleted"


# Actions whose medals must name a trigger category.
SCOPED_TRIGGER_ACTIONS = frozenset({TriggerAction.ITEM_WATCHED, TriggerAction.TRAINING_COMPLETED})


class Medal(db.Model):
    __tablename__ = "medals"

    id = Column(String(80), primary_key=True)
    name = Column(String(120), nullable=False)
    description = Column(Text, nullable=False, default="")
    image_src = Column(String(500), nullable=True)
    trigger_action = Column(String(32), nullable=False, index=True)
    trigger_category = Column(String(80), nullable=True)
    required_count = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "imageSrc": self.image_src,
            "triggerAction": self.trigger_action,
            "triggerCategory": self.trigger_category,
            "requiredCount": int(self.required_count or 0),
            "created_at": self.created_at.isoformat() + "Z" if self.created_at else None,
            "updated_at": self.updated_at.isoformat() + "Z" if self.updated_at else None,
        }


class UserMedal(db.Model):
    __tablename__ = "user_medals"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(64), nullable=False, index=True)
    # Plain string: awards outlive a deleted definition.
    medal_id = Column(String(80), nullable=False)
    date_earned = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "medal_id", name="uq_user_medal"),
        Index("idx_user_medals_medal", "medal_id"),
    )

    def to_dict(self):
        return {
            "userId": self.user_id,
            "medalId": self.medal_id,
            "dateEarned": self.date_earned.isoformat() + "Z" if self.date_earned else None,
        }
