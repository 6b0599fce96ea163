from __future__ import annotations

import tempfile
import textwrap
import unittest
from pathlib import Path

from core.config_loader import load_config_file, merge_mappings
from localexec.config import TransportOptions, load_options


class ConfigLoaderTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_unsupported_extension(self) -> None:
        path = self.root / "transport.ini"
        path.write_text("[transport]\n")
        with self.assertRaises(ValueError):
            load_config_file(path)

    def test_root_must_be_mapping(self) -> None:
        path = self.root / "transport.json"
        path.write_text("[1, 2]")
        with self.assertRaises(TypeError):
            load_config_file(path)

    def test_empty_yaml_is_empty_mapping(self) -> None:
        path = self.root / "transport.yaml"
        path.write_text("")
        self.assertEqual(load_config_file(path), {})

    def test_merge_mappings_is_deep(self) -> None:
        merged = merge_mappings({"a": {"b": 1, "c": 2}, "d": 1}, {"a": {"c": 3}, "e": 4})
        self.assertEqual(merged, {"a": {"b": 1, "c": 3}, "d": 1, "e": 4})


class LoadOptionsTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_defaults(self) -> None:
        options = load_options()
        self.assertEqual(options, TransportOptions())
        self.assertEqual(options.pipe_attempts, 100)
        self.assertEqual(options.pipe_interval, 0.1)
        self.assertIsNone(options.response_timeout)
        self.assertTrue(options.prefer_session)

    def test_toml_transport_table(self) -> None:
        path = self.root / "localexec.toml"
        path.write_text(
            textwrap.dedent(
                """
                [transport]
                powershell = "pwsh"
                pipe_attempts = 20
                response_timeout = 90
                """
            )
        )
        options = load_options(path)
        self.assertEqual(options.powershell, "pwsh")
        self.assertEqual(options.pipe_attempts, 20)
        self.assertEqual(options.response_timeout, 90)

    def test_yaml_root_mapping(self) -> None:
        path = self.root / "localexec.yml"
        path.write_text("prefer_session: false\nlog_level: debug\n")
        options = load_options(path)
        self.assertFalse(options.prefer_session)
        self.assertEqual(options.log_level, "debug")

    def test_json_with_overrides(self) -> None:
        path = self.root / "localexec.json"
        path.write_text('{"transport": {"pipe_interval": 0.25, "log_level": "error"}}')
        options = load_options(path, {"log_level": "info", "response_timeout": None})
        self.assertEqual(options.pipe_interval, 0.25)
        self.assertEqual(options.log_level, "info")
        self.assertIsNone(options.response_timeout)

    def test_unknown_option(self) -> None:
        path = self.root / "localexec.json"
        path.write_text('{"transport": {"sudo": true}}')
        with self.assertRaises(ValueError) as ctx:
            load_options(path)
        self.assertIn("sudo", str(ctx.exception))

    def test_transport_must_be_mapping(self) -> None:
        path = self.root / "localexec.json"
        path.write_text('{"transport": "fast"}')
        with self.assertRaises(TypeError):
            load_options(path)

    def test_invalid_values(self) -> None:
        cases = [
            ({"pipe_attempts": 0}, ValueError),
            ({"pipe_attempts": "10"}, TypeError),
            ({"pipe_attempts": True}, TypeError),
            ({"pipe_interval": -1}, ValueError),
            ({"response_timeout": 0}, ValueError),
            ({"response_timeout": "soon"}, TypeError),
            ({"prefer_session": "yes"}, TypeError),
            ({"powershell": ""}, TypeError),
            ({"log_level": "verbose"}, ValueError),
        ]
        for overrides, error in cases:
            with self.subTest(overrides=overrides):
                with self.assertRaises(error):
                    load_options(overrides=overrides)


if __name__ == "__main__":
    unittest.main()
