from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Index, String, Text

from mathgen.core.database import Base, new_id, utcnow


class Submission(Base):
    __tablename__ = "math_problem_submissions"

    id = Column(String(36), primary_key=True, default=new_id)
    session_id = Column(
        String(36), ForeignKey("math_problem_sessions.id"), nullable=False, index=True
    )
    user_answer = Column(Float, nullable=False)
    is_correct = Column(Boolean, nullable=False)
    feedback_text = Column(Text, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        # At most one correct submission per session.
        Index(
            "uq_submission_one_correct",
            "session_id",
            unique=True,
            sqlite_where=(is_correct == True),  # noqa: E712
            postgresql_where=(is_correct == True),  # noqa: E712
        ),
    )
