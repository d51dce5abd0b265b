from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from mathgen.core.database import Base, new_id, utcnow

MAX_HINTS = 5


class Hint(Base):
    __tablename__ = "math_problem_hints"

    id = Column(String(36), primary_key=True, default=new_id)
    session_id = Column(
        String(36), ForeignKey("math_problem_sessions.id"), nullable=False, index=True
    )
    hint_number = Column(Integer, nullable=False)
    hint_text = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        UniqueConstraint("session_id", "hint_number", name="uq_hint_number"),
        CheckConstraint(
            f"hint_number >= 1 AND hint_number <= {MAX_HINTS}",
            name="ck_hint_number_range",
        ),
    )
