import unittest

import tenline

Case = tenline.IdentifierCase


class IdentifierCaseTests(unittest.TestCase):
    def test_classification(self) -> None:
        cases = {
            "value": Case.NEUTRAL,
            "x": Case.NEUTRAL,
            "MAX": Case.NEUTRAL,
            "Value": Case.NEUTRAL,
            "final_value": Case.SNAKE,
            "_private": Case.SNAKE,
            "MAX_SIZE": Case.SNAKE,
            "actualFinalValue": Case.CAMEL,
            "Counter2Go": Case.CAMEL,
        }
        for name, expected in cases.items():
            with self.subTest(name=name):
                self.assertEqual(tenline.classify_identifier_case(name), expected)

    def test_mixed_names_take_the_earlier_signal(self) -> None:
        self.assertEqual(tenline.classify_identifier_case("get_userName"), Case.SNAKE)
        self.assertEqual(tenline.classify_identifier_case("getUser_name"), Case.CAMEL)

    def test_screaming_snake_case(self) -> None:
        for name in ("RATE", "MAX_SIZE", "TAU", "X1", "_GUARD_H_"):
            with self.subTest(name=name):
                self.assertTrue(tenline.is_screaming_snake_case(name))
        for name in ("rate", "pi", "Max", "maxSize", "__", "123"):
            with self.subTest(name=name):
                self.assertFalse(tenline.is_screaming_snake_case(name))


if __name__ == "__main__":
    unittest.main()
