"""
Step entry model.

One row per recorded step count. Health-sync clients write one row per
(user, date, source) and update it in place on later syncs.
"""

import uuid

from sqlalchemy import Column, String, Integer, Float, Date, DateTime, Uuid, Index
from .base import Base, utcnow


class StepEntry(Base):
    __tablename__ = "step_entries"
    __table_args__ = (
        Index("ix_step_entries_user_date", "user_id", "date"),
        Index("ix_step_entries_user_source", "user_id", "source"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, nullable=False, index=True)
    step_count = Column(Integer, nullable=False)
    distance_meters = Column(Float)
    date = Column(Date, nullable=False)
    recorded_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    source = Column(String(100))

    def __init__(self, **kwargs):
        kwargs.setdefault("id", uuid.uuid4())
        kwargs.setdefault("recorded_at", utcnow())
        super().__init__(**kwargs)

    def __repr__(self):
        return f"<StepEntry(user_id={self.user_id}, date={self.date}, steps={self.step_count})>"
