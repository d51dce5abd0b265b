import unittest
from types import SimpleNamespace
from unittest.mock import AsyncMock

from mathgen.core.errors import ErrorKind, PersistenceError
from mathgen.core.retry import RetryPolicy
from mathgen.services.scoring import (
    HintEvent,
    ScoreState,
    SubmissionEvent,
    apply_event,
    hint_penalty,
    record_event,
)


class ApplyEventTests(unittest.TestCase):
    def test_first_correct_answer(self):
        state = apply_event(None, SubmissionEvent(correct=True))
        self.assertEqual(
            state,
            ScoreState(
                total_attempts=1,
                correct_count=1,
                current_streak=1,
                best_streak=1,
                points=10,
            ),
        )

    def test_incorrect_answers_never_go_negative(self):
        state = None
        for _ in range(3):
            state = apply_event(state, SubmissionEvent(correct=False))
        self.assertEqual(state.points, 0)
        self.assertEqual(state.total_attempts, 3)
        self.assertEqual(state.correct_count, 0)

    def test_incorrect_answer_resets_streak_but_keeps_best(self):
        state = ScoreState(
            total_attempts=3, correct_count=3, current_streak=3, best_streak=3, points=30
        )
        state = apply_event(state, SubmissionEvent(correct=False))
        self.assertEqual(state.current_streak, 0)
        self.assertEqual(state.best_streak, 3)
        self.assertEqual(state.points, 28)

        state = apply_event(state, SubmissionEvent(correct=True))
        self.assertEqual(state.current_streak, 1)
        self.assertEqual(state.best_streak, 3)

    def test_hint_sequence_deductions(self):
        state = ScoreState(points=20)
        deductions = []
        for n in range(1, 6):
            before = state.points
            state = apply_event(state, HintEvent(hint_number=n))
            deductions.append(before - state.points)
        self.assertEqual(deductions, [0, 2, 3, 4, 5])
        self.assertEqual(state.points, 6)

    def test_hint_deductions_clamp_at_zero(self):
        state = ScoreState(points=4)
        for n in range(1, 6):
            state = apply_event(state, HintEvent(hint_number=n))
        self.assertEqual(state.points, 0)

    def test_hint_only_changes_points(self):
        prior = ScoreState(
            total_attempts=2, correct_count=1, current_streak=1, best_streak=1, points=8
        )
        state = apply_event(prior, HintEvent(hint_number=2))
        self.assertEqual(state, ScoreState(2, 1, 1, 1, 6))

    def test_does_not_mutate_prior(self):
        prior = ScoreState(points=5)
        apply_event(prior, SubmissionEvent(correct=True))
        self.assertEqual(prior.points, 5)

    def test_penalty_schedule(self):
        self.assertEqual([hint_penalty(n) for n in range(1, 7)], [0, 2, 3, 4, 5, 5])
        with self.assertRaises(ValueError):
            hint_penalty(0)


class AccuracyTests(unittest.TestCase):
    def test_accuracy_rounds_to_one_decimal(self):
        self.assertEqual(ScoreState().accuracy, 0)
        self.assertEqual(ScoreState(total_attempts=3, correct_count=2).accuracy, 66.7)
        self.assertEqual(ScoreState(total_attempts=8, correct_count=1).accuracy, 12.5)

    def test_payload_includes_accuracy(self):
        payload = ScoreState(total_attempts=2, correct_count=1).to_payload("abc")
        self.assertEqual(payload["client_id"], "abc")
        self.assertEqual(payload["accuracy"], 50.0)


class RecordEventTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.policy = RetryPolicy(max_attempts=3, base_delay=0)
        self.datastore = AsyncMock()

    async def test_writes_next_state(self):
        self.datastore.get_score.return_value = None
        state = await record_event(
            self.datastore, "abc", SubmissionEvent(correct=True), self.policy, self.policy
        )
        self.assertEqual(state.points, 10)
        self.datastore.save_score.assert_awaited_once_with(
            "abc",
            total_attempts=1,
            correct_count=1,
            current_streak=1,
            best_streak=1,
            points=10,
        )

    async def test_lost_first_write_builds_on_winning_row(self):
        winner = SimpleNamespace(
            total_attempts=1, correct_count=1, current_streak=1, best_streak=1, points=10
        )
        self.datastore.get_score.side_effect = [None, winner]
        self.datastore.save_score.side_effect = [
            PersistenceError(ErrorKind.UNIQUE_VIOLATION),
            None,
        ]

        state = await record_event(
            self.datastore, "abc", SubmissionEvent(correct=True), self.policy, self.policy
        )

        self.assertEqual(state.points, 20)
        self.assertEqual(state.current_streak, 2)
        self.assertEqual(state.total_attempts, 2)
        self.assertEqual(self.datastore.get_score.await_count, 2)
        self.assertEqual(self.datastore.save_score.await_args.kwargs["points"], 20)

    async def test_constraint_errors_are_not_retried(self):
        self.datastore.get_score.return_value = None
        self.datastore.save_score.side_effect = PersistenceError(
            ErrorKind.CONSTRAINT_VIOLATION
        )
        with self.assertRaises(PersistenceError):
            await record_event(
                self.datastore, "abc", HintEvent(hint_number=2), self.policy, self.policy
            )
        self.assertEqual(self.datastore.save_score.await_count, 1)


if __name__ == "__main__":
    unittest.main()
