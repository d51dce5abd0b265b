from sqlalchemy import JSON, Column, DateTime, ForeignKey, String

from mathgen.core.database import Base, new_id, utcnow


class Solution(Base):
    __tablename__ = "math_problem_solutions"

    id = Column(String(36), primary_key=True, default=new_id)
    session_id = Column(
        String(36),
        ForeignKey("math_problem_sessions.id"),
        nullable=False,
        unique=True,
    )
    steps = Column(JSON, nullable=False)  # list of strings, last is "Final answer: <n>"
    created_at = Column(DateTime(timezone=True), default=utcnow)
