"""Environment-driven settings shared by the CogmemAi hook scripts."""

from __future__ import annotations

import json
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any

VERSION = "2.6.0"

_DEFAULT_API_URL = "https://hifriendbot.com/wp-json/hifriendbot/v1"
_DEFAULT_FLAG_DIR = "~/.cogmemai"
_DEFAULT_SESSION_EXPIRY_SECONDS = 4 * 60 * 60
_DEFAULT_COMPACTION_FLAG_MAX_AGE = 60 * 60
_DEFAULT_STALE_FLAG_MAX_AGE = 24 * 60 * 60
_DEFAULT_SUMMARY_COOLDOWN_SECONDS = 30 * 60
_DEFAULT_EXTRACT_COOLDOWN_SECONDS = 15 * 60
_DEFAULT_HOOK_TIMEOUT_SECONDS = 5.0
_DEFAULT_TOOL_TIMEOUT_SECONDS = 30.0
_DEFAULT_HOOK_DEADLINE_SECONDS = 8.0


@dataclass(frozen=True)
class Config:
    api_url: str
    api_key: str
    flag_dir: Path
    project_id: str
    enabled: bool
    recall_hint: bool
    smart_recall: bool
    auto_extract: bool
    hook_timeout: float
    tool_timeout: float
    hook_deadline: float
    session_expiry_seconds: int
    compaction_flag_max_age: int
    stale_flag_max_age: int
    summary_cooldown_seconds: int
    extract_cooldown_seconds: int


def bool_env(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() not in {"0", "false", "no", "off", ""}


def int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return max(0, int(value))
    except ValueError:
        return default


def float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        parsed = float(value)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def resolve_flag_dir() -> Path:
    return Path(os.getenv("COGMEMAI_FLAG_DIR", "").strip() or _DEFAULT_FLAG_DIR).expanduser()


def resolve_api_url() -> str:
    raw = os.getenv("COGMEMAI_API_URL", "").strip()
    return (raw or _DEFAULT_API_URL).rstrip("/")


def resolve_api_key(claude_config: Path | None = None) -> str:
    """Return the API key from the environment or the Claude MCP server config.

    Hooks run as plain shell commands, outside the MCP server process, so the
    key is often only present in ``~/.claude.json`` under the ``cogmemai``
    server entry.
    """
    env_key = os.getenv("COGMEMAI_API_KEY", "").strip()
    if env_key:
        return env_key

    path = claude_config or Path.home() / ".claude.json"
    try:
        parsed = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return ""
    if not isinstance(parsed, dict):
        return ""
    servers = parsed.get("mcpServers")
    server = servers.get("cogmemai") if isinstance(servers, dict) else None
    env = server.get("env") if isinstance(server, dict) else None
    key = env.get("COGMEMAI_API_KEY") if isinstance(env, dict) else None
    return key.strip() if isinstance(key, str) else ""


def normalize_remote(remote: str) -> str:
    cleaned = remote.strip()
    if cleaned.endswith(".git"):
        cleaned = cleaned[: -len(".git")]
    if cleaned.startswith(("http://", "https://")):
        cleaned = cleaned.split("://", 1)[1]
        cleaned = cleaned.split("/", 1)[1] if "/" in cleaned else cleaned
    elif cleaned.startswith("git@") and ":" in cleaned:
        cleaned = cleaned.split(":", 1)[1]
    return cleaned


def detect_project_id(cwd: Path) -> str:
    override = os.getenv("COGMEMAI_PROJECT_ID", "").strip()
    if override:
        return override
    try:
        out = subprocess.check_output(
            ["git", "-C", str(cwd), "remote", "get-url", "origin"],
            stderr=subprocess.DEVNULL,
            timeout=3,
        )
    except (OSError, subprocess.SubprocessError):
        out = b""
    remote = normalize_remote(out.decode("utf-8", errors="ignore"))
    if remote:
        return remote
    return cwd.name or "unknown"


def load_config(payload: dict[str, Any]) -> Config:
    cwd_raw = payload.get("cwd")
    cwd = Path(cwd_raw) if isinstance(cwd_raw, str) and cwd_raw else Path.cwd()
    return Config(
        api_url=resolve_api_url(),
        api_key=resolve_api_key(),
        flag_dir=resolve_flag_dir(),
        project_id=detect_project_id(cwd),
        enabled=bool_env("COGMEMAI_HOOKS_ENABLED", True),
        recall_hint=bool_env("COGMEMAI_RECALL_HINT", False),
        smart_recall=bool_env("COGMEMAI_SMART_RECALL", True),
        auto_extract=bool_env("COGMEMAI_AUTO_EXTRACT", True),
        hook_timeout=float_env("COGMEMAI_HOOK_TIMEOUT_SECONDS", _DEFAULT_HOOK_TIMEOUT_SECONDS),
        tool_timeout=float_env("COGMEMAI_TOOL_TIMEOUT_SECONDS", _DEFAULT_TOOL_TIMEOUT_SECONDS),
        hook_deadline=float_env("COGMEMAI_HOOK_DEADLINE_SECONDS", _DEFAULT_HOOK_DEADLINE_SECONDS),
        session_expiry_seconds=int_env("COGMEMAI_SESSION_EXPIRY_SECONDS", _DEFAULT_SESSION_EXPIRY_SECONDS),
        compaction_flag_max_age=int_env("COGMEMAI_COMPACTION_FLAG_MAX_AGE", _DEFAULT_COMPACTION_FLAG_MAX_AGE),
        stale_flag_max_age=int_env("COGMEMAI_STALE_FLAG_MAX_AGE", _DEFAULT_STALE_FLAG_MAX_AGE),
        summary_cooldown_seconds=int_env("COGMEMAI_SUMMARY_COOLDOWN_SECONDS", _DEFAULT_SUMMARY_COOLDOWN_SECONDS),
        extract_cooldown_seconds=int_env("COGMEMAI_EXTRACT_COOLDOWN_SECONDS", _DEFAULT_EXTRACT_COOLDOWN_SECONDS),
    )
