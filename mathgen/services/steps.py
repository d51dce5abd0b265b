"""
Structural checks for generated step-by-step solutions.

A valid sequence has a tier-dependent number of working steps followed by a
final step that reads exactly ``Final answer: <number>``, where the number is
in ``format_number`` form.
"""

import math
import re
from dataclasses import dataclass, field
from numbers import Real
from typing import Any, List, Optional

from mathgen.models.problem import Difficulty
from mathgen.services.formatter import format_number, round_answer

FINAL_PREFIX = "Final answer: "
MAX_STEP_LENGTH = 160

LOOSE_FINAL_RE = re.compile(
    r"^\s*final\s*answer\s*[:=]?\s*(-?\d+(?:\.\d+)?)\s*\.?\s*$", re.IGNORECASE
)
FINAL_LABEL_RE = re.compile(r"^\s*final\s*answer\b", re.IGNORECASE)


@dataclass(frozen=True)
class StepProfile:
    min_working: int
    max_working: int

    @property
    def min_total(self) -> int:
        return self.min_working + 1

    @property
    def max_total(self) -> int:
        return self.max_working + 1


DEFAULT_PROFILE = StepProfile(min_working=1, max_working=14)

STEP_PROFILES = {
    Difficulty.EASY: StepProfile(min_working=1, max_working=6),
    Difficulty.MEDIUM: StepProfile(min_working=2, max_working=10),
    Difficulty.HARD: StepProfile(min_working=2, max_working=14),
}


def profile_for(difficulty: Optional[Difficulty]) -> StepProfile:
    return STEP_PROFILES.get(difficulty, DEFAULT_PROFILE)


@dataclass(frozen=True)
class StepValidation:
    ok: bool
    steps: List[str] = field(default_factory=list)
    final_answer: Optional[float] = None
    reason: Optional[str] = None
    repaired: bool = False


def final_step(value: Real) -> str:
    return f"{FINAL_PREFIX}{format_number(value)}"


def parse_final_step(step: str) -> Optional[float]:
    """Read the number out of a final step, tolerating minor drift in the wording."""
    match = LOOSE_FINAL_RE.match(step)
    if not match:
        return None
    return float(match.group(1))


def _usable_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, Real):
        return None
    value = float(value)
    return round_answer(value) if math.isfinite(value) else None


def validate_steps(
    steps: Any,
    profile: StepProfile = DEFAULT_PROFILE,
    final_answer: Any = None,
) -> StepValidation:
    """
    Check a generated ``steps`` list and resolve the answer it arrives at.

    The number in the final step wins over ``final_answer``; the separate
    field is only used when the final step is missing or unreadable. A final
    step whose number is valid but not canonically written is rewritten, and
    the resolved answer is rounded the same way it is displayed.
    ``final_answer`` on the result is set whenever an answer could be
    resolved, even if the sequence itself is rejected.
    """
    fallback = _usable_number(final_answer)

    if not isinstance(steps, list) or not all(isinstance(s, str) for s in steps):
        return StepValidation(
            ok=False, final_answer=fallback, reason="steps must be a list of strings"
        )

    cleaned = [s.strip() for s in steps]
    repaired = False

    parsed = parse_final_step(cleaned[-1]) if cleaned else None
    if parsed is not None:
        answer = round_answer(parsed)
        canonical = final_step(answer)
        if cleaned[-1] != canonical:
            cleaned[-1] = canonical
            repaired = True
    elif fallback is not None:
        answer = fallback
        if cleaned and FINAL_LABEL_RE.match(cleaned[-1]):
            cleaned[-1] = final_step(answer)
        else:
            cleaned.append(final_step(answer))
        repaired = True
    else:
        return StepValidation(
            ok=False, reason="no final answer in steps or final_answer field"
        )

    if any(not s for s in cleaned):
        return StepValidation(ok=False, final_answer=answer, reason="empty step")

    working = [
        s if len(s) <= MAX_STEP_LENGTH else s[:MAX_STEP_LENGTH].rstrip()
        for s in cleaned[:-1]
    ]
    cleaned = working + cleaned[-1:]

    if not profile.min_total <= len(cleaned) <= profile.max_total:
        return StepValidation(
            ok=False,
            final_answer=answer,
            reason=(
                f"expected {profile.min_total}-{profile.max_total} steps, "
                f"got {len(cleaned)}"
            ),
        )

    return StepValidation(
        ok=True, steps=cleaned, final_answer=answer, repaired=repaired
    )
