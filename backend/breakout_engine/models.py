"""
Database Models

- EngineSnapshot: durable key -> JSON snapshot of engine state
"""

from datetime import datetime

from sqlalchemy import Column, DateTime, String, Text

from breakout_engine.database import Base


class EngineSnapshot(Base):
    __tablename__ = "engine_snapshots"

    key = Column(String, primary_key=True)
    payload = Column(Text, nullable=False)  # JSON document
    saved_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
