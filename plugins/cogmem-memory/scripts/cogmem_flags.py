"""Small JSON flag files used to coordinate hook invocations.

Each hook runs as its own short-lived process, so everything one hook needs
to tell the next one is written here. Flags are advisory: a missing, corrupt
or concurrently deleted file reads as absent and no operation raises.
"""

from __future__ import annotations

import json
import math
import os
import re
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

ERROR_LOG = "errors.log"
EXTRACT_KEY = "last-extract"

_KEY_LIMIT = 64
_ERROR_LOG_MAX_BYTES = 64 * 1024
_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def sanitize_key(value: str, limit: int = _KEY_LIMIT) -> str:
    safe = _UNSAFE_KEY_CHARS.sub("", value or "")[:limit]
    return safe or "unknown"


def compaction_key(session_id: str) -> str:
    return f"compacted-{sanitize_key(session_id)}"


def session_key(session_id: str) -> str:
    return f"session-{sanitize_key(session_id)}"


def summary_key(session_id: str) -> str:
    return f"summary-{sanitize_key(session_id)}"


def topics_key(project_id: str) -> str:
    return f"topics-{sanitize_key(project_id)}.json"


def age(record: dict[str, Any] | None, now: float | None = None) -> float:
    """Seconds since ``record['timestamp']``; unusable records are infinitely old."""
    if not isinstance(record, dict):
        return math.inf
    stamp = record.get("timestamp")
    if isinstance(stamp, bool) or not isinstance(stamp, (int, float)):
        return math.inf
    current = time.time() if now is None else now
    return current - float(stamp)


def is_fresh(record: dict[str, Any] | None, max_age: float, now: float | None = None) -> bool:
    return age(record, now) <= max_age


class FlagStore:
    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def path(self, key: str) -> Path:
        return self.root / key

    def write(self, key: str, record: dict[str, Any]) -> bool:
        target = self.path(key)
        tmp = target.with_name(f".{target.name}.{os.getpid()}.tmp")
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(record, ensure_ascii=True), encoding="utf-8")
            tmp.replace(target)
        except (OSError, TypeError, ValueError):
            try:
                tmp.unlink()
            except OSError:
                pass
            return False
        return True

    def read(self, key: str) -> dict[str, Any] | None:
        try:
            parsed = json.loads(self.path(key).read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return None
        return parsed if isinstance(parsed, dict) else None

    def exists(self, key: str) -> bool:
        try:
            return self.path(key).is_file()
        except OSError:
            return False

    def consume(self, key: str) -> None:
        try:
            self.path(key).unlink()
        except OSError:
            pass

    def sweep(self, max_age: float, now: float | None = None) -> int:
        """Delete flag files last modified more than ``max_age`` seconds ago."""
        current = time.time() if now is None else now
        removed = 0
        try:
            entries = list(self.root.iterdir())
        except OSError:
            return 0
        for entry in entries:
            if entry.name == ERROR_LOG:
                continue
            try:
                if not entry.is_file():
                    continue
                if current - entry.stat().st_mtime > max_age:
                    entry.unlink()
                    removed += 1
            except OSError:
                continue
        return removed

    def log_error(self, context: str, message: str) -> None:
        stamp = datetime.now(timezone.utc).isoformat()
        line = f"{stamp} [{context}] {' '.join(str(message).split())}\n"
        log_path = self.path(ERROR_LOG)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            with log_path.open("a", encoding="utf-8") as fh:
                fh.write(line)
            if log_path.stat().st_size > _ERROR_LOG_MAX_BYTES:
                lines = log_path.read_text(encoding="utf-8", errors="ignore").splitlines(keepends=True)
                log_path.write_text("".join(lines[len(lines) // 2 :]), encoding="utf-8")
        except OSError:
            pass
