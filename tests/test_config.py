import io
import os
import tempfile
import unittest
from unittest import mock

import tenline


class ConfigTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)

    def write(self, name, text):
        path = os.path.join(self._tmp.name, name)
        with open(path, "w", encoding="utf-8") as handle:
            handle.write(text)
        return path

    def test_defaults(self) -> None:
        config = tenline.Config()
        self.assertEqual(config.max_function_lines, 10)
        self.assertEqual(config.debug_guard, "DEBUG")
        self.assertTrue(config.count_jump_statements)
        self.assertTrue(all(config.rule_enabled(rule_id) for rule_id in tenline.RULE_IDS))

    def test_load_full_file(self) -> None:
        path = self.write("tenline.yaml", (
            "max_function_lines: 12\n"
            "debug_guard: TRACE\n"
            "count_jump_statements: false\n"
            "rules:\n"
            "  identifier-case: false\n"
        ))
        config = tenline.load_config_from_yaml(path)
        self.assertEqual(config.max_function_lines, 12)
        self.assertEqual(config.debug_guard, "TRACE")
        self.assertFalse(config.count_jump_statements)
        self.assertFalse(config.rule_enabled("identifier-case"))
        self.assertTrue(config.rule_enabled("global-variable"))

    def test_empty_file_gives_defaults(self) -> None:
        path = self.write("empty.yaml", "")
        self.assertEqual(tenline.load_config_from_yaml(path), tenline.Config())

    def test_unknown_keys_warn(self) -> None:
        path = self.write("extra.yaml", "colour: blue\nrules:\n  no-goto: true\n")
        with mock.patch("sys.stderr", new_callable=io.StringIO) as stderr:
            config = tenline.load_config_from_yaml(path)
        self.assertEqual(config, tenline.Config())
        self.assertIn("Unknown configuration key 'colour'", stderr.getvalue())
        self.assertIn("Unknown rule 'no-goto'", stderr.getvalue())

    def test_invalid_values_raise(self) -> None:
        bad_documents = [
            "max_function_lines: 0\n",
            "max_function_lines: true\n",
            "max_function_lines: ten\n",
            "debug_guard: 3\n",
            "count_jump_statements: maybe\n",
            "rules: [global-variable]\n",
            "rules:\n  macro-case: 1\n",
            "- just\n- a list\n",
        ]
        for index, text in enumerate(bad_documents):
            with self.subTest(text=text):
                path = self.write(f"bad{index}.yaml", text)
                with self.assertRaises(tenline.ConfigError) as ctx:
                    tenline.load_config_from_yaml(path)
                self.assertEqual(ctx.exception.path, path)

    def test_malformed_yaml(self) -> None:
        path = self.write("broken.yaml", "rules: {global-variable: [\n")
        with self.assertRaises(tenline.ConfigError):
            tenline.load_config_from_yaml(path)

    def test_missing_file(self) -> None:
        with self.assertRaises(tenline.ConfigError) as ctx:
            tenline.load_config_from_yaml(os.path.join(self._tmp.name, "absent.yaml"))
        self.assertIn("not found", ctx.exception.reason)

    def test_default_config_in_working_directory(self) -> None:
        self.write(tenline.DEFAULT_CONFIG_NAME, "max_function_lines: 4\n")
        previous = os.getcwd()
        os.chdir(self._tmp.name)
        self.addCleanup(os.chdir, previous)
        self.assertEqual(tenline.resolve_config().max_function_lines, 4)


if __name__ == "__main__":
    unittest.main()
