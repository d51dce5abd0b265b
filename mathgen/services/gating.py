"""
Submission and hint gating for a problem session.

A session starts Open. Solving it (first correct submission) and revealing
its solution are independent, absorbing flags. Submit guards are evaluated
in one fixed order: Revealed first, then Solved.
"""

import enum
from dataclasses import dataclass
from typing import Optional

from mathgen.models.hint import MAX_HINTS


class GateRejection(enum.Enum):
    SOLUTION_REVEALED = (
        "solution_revealed",
        409,
        "Solution already revealed. Submissions are disabled for this problem.",
    )
    ALREADY_SOLVED = ("already_solved", 409, "This problem has already been solved.")
    MAX_HINTS = ("max_hints", 429, "Maximum number of hints reached for this problem.")

    def __init__(self, code: str, status_code: int, message: str):
        self.code = code
        self.status_code = status_code
        self.message = message


class GateState(enum.Enum):
    OPEN = "open"
    SOLVED = "solved"
    REVEALED = "revealed"


@dataclass(frozen=True)
class SessionGate:
    solved: bool = False
    revealed: bool = False
    hint_count: int = 0

    @property
    def state(self) -> GateState:
        if self.revealed:
            return GateState.REVEALED
        if self.solved:
            return GateState.SOLVED
        return GateState.OPEN

    def check_submission(self) -> Optional[GateRejection]:
        if self.revealed:
            return GateRejection.SOLUTION_REVEALED
        if self.solved:
            return GateRejection.ALREADY_SOLVED
        return None

    def check_hint(self) -> Optional[GateRejection]:
        if self.hint_count >= MAX_HINTS:
            return GateRejection.MAX_HINTS
        return None
