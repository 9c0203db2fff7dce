"""User projection owned by the identity side of the platform.

The engine only reads ``name`` and mutates ``points``; ``points`` is changed
exclusively through an atomic ``UPDATE ... SET points = points + :n`` in
activity.py.
"""

from datetime import datetime

from sqlalchemy import Column, DateTime, Index, Integer, String

from extensions import db


class User(db.Model):
    __tablename__ = "users"

    id = Column(String(64), primary_key=True)
    name = Column(String(120), nullable=False, default="")
    email = Column(String(255), nullable=True, unique=True)
    points = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_users_points", "points"),
    )

    def display_name(self) -> str:
        return self.name or f"User {self.id[:5]}"

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.display_name(),
            "email": self.email,
            "points": int(self.points or 0),
            "created_at": self.created_at.isoformat() + "Z" if self.created_at else None,
        }
