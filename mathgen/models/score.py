from sqlalchemy import Column, DateTime, Integer, String

from mathgen.core.database import Base, utcnow


class ScoreSummary(Base):
    __tablename__ = "score_summaries"

    client_id = Column(String(64), primary_key=True)
    total_attempts = Column(Integer, nullable=False, default=0)
    correct_count = Column(Integer, nullable=False, default=0)
    current_streak = Column(Integer, nullable=False, default=0)
    best_streak = Column(Integer, nullable=False, default=0)
    points = Column(Integer, nullable=False, default=0)
    last_updated = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
