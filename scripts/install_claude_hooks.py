#!/usr/bin/env python3
"""Install or update CogmemAi hook entries in Claude Code settings."""

from __future__ import annotations

import argparse
import json
import os
from pathlib import Path
from typing import Any

DEFAULT_COMMAND = "cogmem-hook"
DEFAULT_FLAG_DIR = "~/.cogmemai"

# (Claude hook event, hook mode, timeout seconds)
HOOKS = (
    ("PreCompact", "pre_compact", 15),
    ("UserPromptSubmit", "context_reload", 10),
    ("Stop", "stop", 20),
)


def _has_command(entries: Any, command: str) -> bool:
    if not isinstance(entries, list):
        return False
    for entry in entries:
        hooks = entry.get("hooks") if isinstance(entry, dict) else None
        if not isinstance(hooks, list):
            continue
        for hook in hooks:
            if isinstance(hook, dict) and isinstance(hook.get("command"), str) and command in hook["command"]:
                return True
    return False


def merge_hooks(settings: dict[str, Any], base_command: str) -> list[str]:
    """Add missing CogmemAi hooks to ``settings`` in place; returns the events that were added."""
    hooks = settings.get("hooks")
    if not isinstance(hooks, dict):
        hooks = {}
        settings["hooks"] = hooks

    added: list[str] = []
    for event, mode, timeout in HOOKS:
        command = f"{base_command} --mode {mode}"
        entries = hooks.get(event)
        if not isinstance(entries, list):
            entries = []
            hooks[event] = entries
        if _has_command(entries, command):
            continue
        entries.append({"hooks": [{"type": "command", "command": command, "timeout": timeout}]})
        added.append(event)
    return added


def load_settings(path: Path) -> dict[str, Any]:
    try:
        parsed = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return {}
    return parsed if isinstance(parsed, dict) else {}


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--settings",
        default=os.path.expanduser("~/.claude/settings.json"),
        help="Path to Claude Code settings.json",
    )
    parser.add_argument(
        "--command",
        default=DEFAULT_COMMAND,
        help="Hook executable (e.g. 'python3 /path/to/cogmem_hooks.py')",
    )
    parser.add_argument(
        "--flag-dir",
        default=os.getenv("COGMEMAI_FLAG_DIR", DEFAULT_FLAG_DIR),
        help="Directory for hook coordination flags",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    settings_path = Path(args.settings).expanduser()
    settings_path.parent.mkdir(parents=True, exist_ok=True)

    settings = load_settings(settings_path)
    added = merge_hooks(settings, args.command.strip() or DEFAULT_COMMAND)
    settings_path.write_text(json.dumps(settings, indent=2) + "\n", encoding="utf-8")
    Path(args.flag_dir).expanduser().mkdir(parents=True, exist_ok=True)

    print(f"Updated Claude settings: {settings_path}")
    print("Hooks added:", ", ".join(added) if added else "none (already installed)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
