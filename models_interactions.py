"""Likes and comments against content items.

- One like per (user, item, item type), enforced by a unique constraint so that
  concurrent likes collapse to a single row.
- Comments are immutable once written; the author's name is denormalized at
  write time.
"""

import enum
from datetime import datetime

from sqlalchemy import Column, DateTime, Index, Integer, String, Text, UniqueConstraint

from extensions import db


class ItemType(str, enum.Enum):
    QA = "qa"
    ACCIDENT = "accident"
    SENSIBILIZACAO = "sensibilizacao"


COMMENT_MAX_LENGTH = 500


class Like(db.Model):
    __tablename__ = "likes"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(64), nullable=False, index=True)
    item_id = Column(String(64), nullable=False)
    item_type = Column(String(20), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "item_id", "item_type", name="uq_like_user_item"),
        Index("idx_likes_item", "item_type", "item_id"),
    )

    def to_dict(self):
        return {
            "id": str(self.id),
            "userId": self.user_id,
            "itemId": self.item_id,
            "itemType": self.item_type,
            "createdAt": self.created_at.isoformat() + "Z" if self.created_at else None,
        }


class Comment(db.Model):
    __tablename__ = "comments"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(64), nullable=False, index=True)
    user_name = Column(String(120), nullable=False)
    item_id = Column(String(64), nullable=False)
    item_type = Column(String(20), nullable=False)
    text = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_comments_item_created", "item_type", "item_id", "created_at"),
    )

    def to_dict(self):
        return {
            "id": str(self.id),
            "user": {"id": self.user_id, "name": self.user_name},
            "itemId": self.item_id,
            "itemType": self.item_type,
            "text": self.text,
            "createdAt": self.created_at.isoformat() + "Z" if self.created_at else None,
        }
