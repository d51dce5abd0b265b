import unittest

from mathgen.services.formatter import answers_match, format_number, round_answer


class FormatNumberTests(unittest.TestCase):
    def test_integers_have_no_decimal_point(self):
        for value in (0, 15, -7, 15.0, 1200, 10**6):
            self.assertNotIn(".", format_number(value), value)
        self.assertEqual(format_number(15.0), "15")

    def test_non_integers_have_two_decimals(self):
        for value in (0.5, 3.14159, -2.25, 99.994, 12.345):
            text = format_number(value)
            self.assertEqual(len(text.split(".")[1]), 2, text)

    def test_rounds_half_up(self):
        self.assertEqual(format_number(1.245), "1.25")
        self.assertEqual(format_number(2.675), "2.68")
        self.assertEqual(format_number(0.125), "0.13")

    def test_pads_to_two_decimals(self):
        self.assertEqual(format_number(12.5), "12.50")

    def test_rounding_to_a_whole_number_drops_decimals(self):
        self.assertEqual(format_number(12.999), "13")
        self.assertEqual(format_number(99.995), "100")
        self.assertEqual(format_number(-0.001), "0")

    def test_round_answer(self):
        self.assertEqual(round_answer(12.999), 13.0)
        self.assertEqual(round_answer(1.245), 1.25)
        self.assertEqual(round_answer(7), 7)

    def test_rejects_non_numbers(self):
        with self.assertRaises(TypeError):
            format_number(True)
        with self.assertRaises(TypeError):
            format_number("15")
        with self.assertRaises(ValueError):
            format_number(float("nan"))


class AnswersMatchTests(unittest.TestCase):
    def test_compares_formatted_values(self):
        self.assertTrue(answers_match(15, 15.0))
        self.assertTrue(answers_match(12.5, 12.50))
        self.assertTrue(answers_match(0.333, 1 / 3))
        self.assertTrue(answers_match(13.00, 12.999))
        self.assertFalse(answers_match(14, 15))


if __name__ == "__main__":
    unittest.main()
