import enum

from sqlalchemy import Column, DateTime, Enum, Float, String, Text

from mathgen.core.database import Base, new_id, utcnow


class Difficulty(str, enum.Enum):
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"


class ProblemType(str, enum.Enum):
    ADDITION = "addition"
    SUBTRACTION = "subtraction"
    MULTIPLICATION = "multiplication"
    DIVISION = "division"
    MIXED = "mixed"


class ProblemSession(Base):
    __tablename__ = "math_problem_sessions"

    id = Column(String(36), primary_key=True, default=new_id)
    problem_text = Column(Text, nullable=False)
    correct_answer = Column(Float, nullable=False)
    difficulty = Column(
        Enum(Difficulty, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=Difficulty.MEDIUM,
    )
    problem_type = Column(
        Enum(ProblemType, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=ProblemType.ADDITION,
    )
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    revealed_at = Column(DateTime(timezone=True), nullable=True)  # set once, never reset
