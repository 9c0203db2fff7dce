"""Minimal item store for the content the engine decorates.

These tables belong to the content side of the platform; the engine only needs
an id, a title and a recency timestamp from each, which is all they carry here.
"""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, String

from extensions import db


def _new_id() -> str:
    return uuid.uuid4().hex


class NearMissReport(db.Model):
    """Near-miss ("quase acidente") report, item type ``qa``."""

    __tablename__ = "near_miss_reports"

    id = Column(String(64), primary_key=True, default=_new_id)
    title = Column(String(255), nullable=False)
    reported_by = Column(String(64), nullable=True)
    date = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)


class Accident(db.Model):
    __tablename__ = "accidents"

    id = Column(String(64), primary_key=True, default=_new_id)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)


class AwarenessDocument(db.Model):
    """Awareness ("sensibilização") document, item type ``sensibilizacao``."""

    __tablename__ = "awareness_documents"

    id = Column(String(64), primary_key=True, default=_new_id)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
