import importlib.util
import json
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path

_SCRIPT_PATH = Path(__file__).resolve().parents[1] / "scripts" / "install_claude_hooks.py"
_SPEC = importlib.util.spec_from_file_location("install_claude_hooks", _SCRIPT_PATH)
_MODULE = importlib.util.module_from_spec(_SPEC)
assert _SPEC and _SPEC.loader
sys.modules[_SPEC.name] = _MODULE
_SPEC.loader.exec_module(_MODULE)


class MergeHooksTests(unittest.TestCase):
    def test_adds_all_three_events(self) -> None:
        settings = {"theme": "dark"}
        added = _MODULE.merge_hooks(settings, "cogmem-hook")
        self.assertEqual(["PreCompact", "UserPromptSubmit", "Stop"], added)
        self.assertEqual("dark", settings["theme"])
        entry = settings["hooks"]["UserPromptSubmit"][0]["hooks"][0]
        self.assertEqual({"type": "command", "command": "cogmem-hook --mode context_reload", "timeout": 10}, entry)

    def test_merge_is_idempotent(self) -> None:
        settings = {}
        _MODULE.merge_hooks(settings, "cogmem-hook")
        snapshot = json.dumps(settings, sort_keys=True)
        self.assertEqual([], _MODULE.merge_hooks(settings, "cogmem-hook"))
        self.assertEqual(snapshot, json.dumps(settings, sort_keys=True))

    def test_keeps_unrelated_hooks(self) -> None:
        other = {"hooks": [{"type": "command", "command": "notify-send done"}]}
        settings = {"hooks": {"Stop": [other]}}
        _MODULE.merge_hooks(settings, "cogmem-hook")
        self.assertEqual(2, len(settings["hooks"]["Stop"]))
        self.assertEqual(other, settings["hooks"]["Stop"][0])

    def test_load_settings_tolerates_bad_files(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "settings.json"
            self.assertEqual({}, _MODULE.load_settings(path))
            path.write_text("[]", encoding="utf-8")
            self.assertEqual({}, _MODULE.load_settings(path))


class InstallCliTests(unittest.TestCase):
    def test_writes_settings_and_flag_dir(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            settings_path = Path(tmp) / "claude" / "settings.json"
            flag_dir = Path(tmp) / "flags"
            result = subprocess.run(
                [
                    sys.executable,
                    str(_SCRIPT_PATH),
                    "--settings",
                    str(settings_path),
                    "--command",
                    "python3 /opt/cogmem/cogmem_hooks.py",
                    "--flag-dir",
                    str(flag_dir),
                ],
                capture_output=True,
                text=True,
            )
            self.assertEqual(result.returncode, 0, msg=f"stderr:\n{result.stderr}")
            settings = json.loads(settings_path.read_text(encoding="utf-8"))
            self.assertTrue(flag_dir.is_dir())
        command = settings["hooks"]["PreCompact"][0]["hooks"][0]["command"]
        self.assertEqual("python3 /opt/cogmem/cogmem_hooks.py --mode pre_compact", command)
        self.assertIn("PreCompact", result.stdout)


if __name__ == "__main__":
    unittest.main()
