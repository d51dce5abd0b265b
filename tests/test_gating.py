import unittest

from mathgen.services.gating import GateRejection, GateState, SessionGate


class SessionGateTests(unittest.TestCase):
    def test_open_session_accepts_submissions(self):
        gate = SessionGate()
        self.assertEqual(gate.state, GateState.OPEN)
        self.assertIsNone(gate.check_submission())

    def test_solved_session_rejects_submissions(self):
        gate = SessionGate(solved=True)
        self.assertEqual(gate.state, GateState.SOLVED)
        self.assertIs(gate.check_submission(), GateRejection.ALREADY_SOLVED)

    def test_revealed_takes_precedence_over_solved(self):
        self.assertIs(
            SessionGate(revealed=True).check_submission(),
            GateRejection.SOLUTION_REVEALED,
        )
        self.assertIs(
            SessionGate(solved=True, revealed=True).check_submission(),
            GateRejection.SOLUTION_REVEALED,
        )

    def test_hint_limit(self):
        self.assertIsNone(SessionGate(hint_count=4).check_hint())
        rejection = SessionGate(hint_count=5).check_hint()
        self.assertIs(rejection, GateRejection.MAX_HINTS)
        self.assertEqual(rejection.status_code, 429)
        self.assertEqual(rejection.code, "max_hints")


if __name__ == "__main__":
    unittest.main()
