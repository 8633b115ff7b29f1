import json
import os
import sys
import tempfile
import unittest
from pathlib import Path
from unittest import mock

_SCRIPTS_DIR = Path(__file__).resolve().parents[1] / "plugins" / "cogmem-memory" / "scripts"
if str(_SCRIPTS_DIR) not in sys.path:
    sys.path.insert(0, str(_SCRIPTS_DIR))

import cogmem_config as config  # noqa: E402


class ApiKeyTests(unittest.TestCase):
    def test_env_key_wins(self) -> None:
        with mock.patch.dict(os.environ, {"COGMEMAI_API_KEY": "  env-key  "}):
            self.assertEqual("env-key", config.resolve_api_key(Path("/nonexistent.json")))

    def test_falls_back_to_claude_mcp_config(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / ".claude.json"
            path.write_text(
                json.dumps({"mcpServers": {"cogmemai": {"env": {"COGMEMAI_API_KEY": "file-key"}}}}),
                encoding="utf-8",
            )
            with mock.patch.dict(os.environ, {"COGMEMAI_API_KEY": ""}):
                self.assertEqual("file-key", config.resolve_api_key(path))

    def test_bad_claude_config_yields_empty_key(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / ".claude.json"
            path.write_text('{"mcpServers": []}', encoding="utf-8")
            with mock.patch.dict(os.environ, {"COGMEMAI_API_KEY": ""}):
                self.assertEqual("", config.resolve_api_key(path))
                self.assertEqual("", config.resolve_api_key(Path(tmp) / "missing.json"))


class ProjectIdTests(unittest.TestCase):
    def test_normalize_remote_forms(self) -> None:
        self.assertEqual("acme/shop", config.normalize_remote("https://github.com/acme/shop.git\n"))
        self.assertEqual("acme/shop", config.normalize_remote("git@github.com:acme/shop.git"))
        self.assertEqual("", config.normalize_remote(""))

    def test_override_and_directory_fallback(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            cwd = Path(tmp) / "my-service"
            cwd.mkdir()
            with mock.patch.dict(os.environ, {"COGMEMAI_PROJECT_ID": "pinned/id"}):
                self.assertEqual("pinned/id", config.detect_project_id(cwd))
            with mock.patch.dict(os.environ, {"COGMEMAI_PROJECT_ID": ""}):
                self.assertEqual("my-service", config.detect_project_id(cwd))


class EnvParsingTests(unittest.TestCase):
    def test_invalid_values_fall_back(self) -> None:
        env = {"X_INT": "abc", "X_NEG": "-5", "X_FLOAT": "0", "X_BOOL": "off"}
        with mock.patch.dict(os.environ, env):
            self.assertEqual(7, config.int_env("X_INT", 7))
            self.assertEqual(0, config.int_env("X_NEG", 7))
            self.assertEqual(2.5, config.float_env("X_FLOAT", 2.5))
            self.assertFalse(config.bool_env("X_BOOL", True))
            self.assertTrue(config.bool_env("X_MISSING", True))

    def test_load_config_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            env = {"HOME": tmp, "COGMEMAI_API_KEY": "", "COGMEMAI_PROJECT_ID": "acme/shop", "COGMEMAI_API_URL": "https://x.test/v1/"}
            with mock.patch.dict(os.environ, env):
                loaded = config.load_config({"cwd": tmp})
        self.assertEqual("https://x.test/v1", loaded.api_url)
        self.assertEqual("", loaded.api_key)
        self.assertEqual("acme/shop", loaded.project_id)
        self.assertEqual(5.0, loaded.hook_timeout)
        self.assertEqual(8.0, loaded.hook_deadline)
        self.assertEqual(900, loaded.extract_cooldown_seconds)


if __name__ == "__main__":
    unittest.main()
