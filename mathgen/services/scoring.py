from dataclasses import asdict, dataclass, replace
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

from mathgen.core.datastore import Datastore
from mathgen.core.errors import (
    ErrorKind,
    PersistenceError,
    is_transient_persistence_error,
)
from mathgen.core.retry import RetryPolicy
from mathgen.models.score import ScoreSummary

CORRECT_POINTS = 10
INCORRECT_PENALTY = 2
HINT_PENALTIES = (0, 2, 3, 4, 5)


@dataclass(frozen=True)
class ScoreState:
    total_attempts: int = 0
    correct_count: int = 0
    current_streak: int = 0
    best_streak: int = 0
    points: int = 0

    @property
    def accuracy(self) -> float:
        if self.total_attempts <= 0:
            return 0
        ratio = Decimal(self.correct_count * 100) / Decimal(self.total_attempts)
        return float(ratio.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))

    @classmethod
    def from_row(cls, row: Optional[ScoreSummary]) -> Optional["ScoreState"]:
        if row is None:
            return None
        return cls(
            total_attempts=row.total_attempts or 0,
            correct_count=row.correct_count or 0,
            current_streak=row.current_streak or 0,
            best_streak=row.best_streak or 0,
            points=row.points or 0,
        )

    def to_payload(self, client_id: str) -> dict:
        return {"client_id": client_id, **asdict(self), "accuracy": self.accuracy}


@dataclass(frozen=True)
class SubmissionEvent:
    correct: bool


@dataclass(frozen=True)
class HintEvent:
    hint_number: int  # 1-indexed within the session


ScoreEvent = Union[SubmissionEvent, HintEvent]


def hint_penalty(hint_number: int) -> int:
    if hint_number < 1:
        raise ValueError("hint_number starts at 1")
    return HINT_PENALTIES[min(hint_number, len(HINT_PENALTIES)) - 1]


def apply_event(prior: Optional[ScoreState], event: ScoreEvent) -> ScoreState:
    """Compute the next score state. Pure: no I/O, no clock."""
    state = prior or ScoreState()

    if isinstance(event, SubmissionEvent):
        if event.correct:
            streak = state.current_streak + 1
            return ScoreState(
                total_attempts=state.total_attempts + 1,
                correct_count=state.correct_count + 1,
                current_streak=streak,
                best_streak=max(state.best_streak, streak),
                points=max(0, state.points + CORRECT_POINTS),
            )
        return replace(
            state,
            total_attempts=state.total_attempts + 1,
            current_streak=0,
            points=max(0, state.points - INCORRECT_PENALTY),
        )

    if isinstance(event, HintEvent):
        return replace(state, points=max(0, state.points - hint_penalty(event.hint_number)))

    raise TypeError(f"unknown score event {event!r}")


def _retry_score_write(exc: Exception) -> bool:
    # Two first-ever writes for one client race on the primary key.
    if isinstance(exc, PersistenceError) and exc.kind is ErrorKind.UNIQUE_VIOLATION:
        return True
    return is_transient_persistence_error(exc)


async def record_event(
    datastore: Datastore,
    client_id: str,
    event: ScoreEvent,
    read_policy: RetryPolicy,
    write_policy: RetryPolicy,
) -> ScoreState:
    """
    Read the client's score, apply ``event`` and write it back as one upsert.

    The read is repeated on every write attempt, so losing the race to create
    a client's first row applies ``event`` on top of the row that won.
    """

    async def read_apply_write() -> ScoreState:
        row = await read_policy.run(
            lambda: datastore.get_score(client_id),
            retry_if=is_transient_persistence_error,
            label="score read",
        )
        state = apply_event(ScoreState.from_row(row), event)
        await datastore.save_score(client_id, **asdict(state))
        return state

    return await write_policy.run(
        read_apply_write, retry_if=_retry_score_write, label="score write"
    )
