"""Session digests for the pre-compaction and stop hooks, plus auto-extraction."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from cogmem_client import RemoteClient, RemoteError
from cogmem_flags import EXTRACT_KEY, FlagStore, is_fresh
from cogmem_transcript import ConversationTurn, iter_turns

MAX_SUMMARY_CHARS = 2000
MAX_FILES_SHOWN = 15
EXTRACT_SEPARATOR = "\n---\n"

_TASK_SCAN_LINES = 100
_TASK_MIN_CHARS = 30
_REQUEST_SCAN_LINES = 60
_REQUEST_MIN_CHARS = 20
_FILES_SCAN_LINES = 150
_EXCHANGE_SCAN_LINES = 40
_EXCHANGE_MIN_CHARS = 15
_EXCHANGE_MAX_CHARS = 200
_EXCHANGES_KEPT = 8
_TASK_MAX_CHARS = 400
_FINAL_MESSAGE_MIN_CHARS = 20
_FINAL_MESSAGE_MAX_CHARS = 500


def _iso(now: float) -> str:
    return datetime.fromtimestamp(now, tz=timezone.utc).isoformat()


def clip(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


def cap_text(text: str, limit: int = MAX_SUMMARY_CHARS) -> str:
    return text if len(text) <= limit else text[: limit - 3] + "..."


def find_main_task(lines: list[str]) -> str:
    for turn in iter_turns(lines[:_TASK_SCAN_LINES]):
        if turn.role == "user" and len(turn.text) > _TASK_MIN_CHARS:
            return clip(turn.text, _TASK_MAX_CHARS)
    return ""


def find_last_request(lines: list[str]) -> str:
    for turn in iter_turns(reversed(lines[-_REQUEST_SCAN_LINES:])):
        if turn.role == "user" and len(turn.text) > _REQUEST_MIN_CHARS:
            return clip(turn.text, _TASK_MAX_CHARS)
    return ""


def collect_files(lines: list[str], limit: int = MAX_FILES_SHOWN) -> list[str]:
    files: list[str] = []
    seen: set[str] = set()
    for turn in iter_turns(lines[-_FILES_SCAN_LINES:]):
        for path in turn.file_paths:
            if path not in seen:
                seen.add(path)
                files.append(path)
    return files[:limit]


def recent_exchanges(lines: list[str]) -> list[str]:
    exchanges = [
        f"{turn.role}: {clip(turn.text, _EXCHANGE_MAX_CHARS)}"
        for turn in iter_turns(lines[-_EXCHANGE_SCAN_LINES:])
        if turn.role in {"user", "assistant"} and len(turn.text) > _EXCHANGE_MIN_CHARS
    ]
    return exchanges[-_EXCHANGES_KEPT:]


def build_compaction_summary(lines: list[str], cwd: str, now: float) -> str:
    main_task = find_main_task(lines)
    last_request = find_last_request(lines)
    files = collect_files(lines)
    exchanges = recent_exchanges(lines)
    if not (main_task or last_request or files or exchanges):
        return cap_text(f"Context compacted at {_iso(now)}. Working directory: {cwd or 'unknown'}.")

    parts = [
        f"Pre-compaction summary saved at {_iso(now)}",
        f"Working directory: {cwd or 'unknown'}",
    ]
    if main_task:
        parts.append(f"\nOriginal task: {main_task}")
    if last_request and last_request != main_task:
        parts.append(f"\nMost recent request: {last_request}")
    if files:
        parts.append(f"\nFiles worked on: {', '.join(files)}")
    if exchanges:
        parts.append("\nRecent conversation:\n" + "\n".join(exchanges))
    return cap_text("\n".join(parts))


def build_stop_summary(lines: list[str], cwd: str, last_message: str, now: float) -> str:
    main_task = find_main_task(lines)
    files = collect_files(lines)
    parts = [
        f"Session ended at {_iso(now)}",
        f"Working directory: {cwd or 'unknown'}",
    ]
    if main_task:
        parts.append(f"\nTask: {main_task}")
    if files:
        parts.append(f"\nFiles worked on: {', '.join(files)}")
    last_message = (last_message or "").strip()
    if len(last_message) > _FINAL_MESSAGE_MIN_CHARS:
        parts.append(f"\nFinal response: {clip(last_message, _FINAL_MESSAGE_MAX_CHARS)}")
    return cap_text("\n".join(parts))


def summary_on_cooldown(flag: dict[str, Any] | None, now: float, cooldown: float) -> bool:
    return is_fresh(flag, cooldown, now)


@dataclass(frozen=True)
class ExtractionPayload:
    user_message: str
    assistant_response: str
    project_id: str


def _join_turns(turns: list[ConversationTurn], max_chars: int) -> str:
    return cap_text(EXTRACT_SEPARATOR.join(turn.text for turn in turns), max_chars)


def build_extraction_payload(
    lines: list[str],
    project_id: str,
    *,
    min_user_turns: int = 3,
    min_chars: int = 30,
    max_chars: int = 3500,
) -> ExtractionPayload | None:
    user_turns: list[ConversationTurn] = []
    assistant_turns: list[ConversationTurn] = []
    for turn in iter_turns(lines):
        if not turn.text:
            continue
        if turn.role == "user":
            user_turns.append(turn)
        elif turn.role == "assistant":
            assistant_turns.append(turn)
    # Only long user turns count toward the gate; both blobs carry every turn.
    if sum(1 for turn in user_turns if len(turn.text) > min_chars) < min_user_turns:
        return None
    return ExtractionPayload(
        user_message=_join_turns(user_turns, max_chars),
        assistant_response=_join_turns(assistant_turns, max_chars),
        project_id=project_id,
    )


def run_auto_extract(
    store: FlagStore,
    client: RemoteClient,
    lines: list[str],
    project_id: str,
    *,
    now: float,
    cooldown: float,
) -> bool:
    """Forward conversation substance for fact extraction, at most once per cooldown window.

    The cooldown is global across sessions and is consumed even when the
    remote call fails so a failing endpoint is not retried on every stop.
    """
    if is_fresh(store.read(EXTRACT_KEY), cooldown, now):
        return False
    payload = build_extraction_payload(lines, project_id)
    if payload is None:
        return False
    try:
        client.extract(payload.user_message, payload.assistant_response, payload.project_id)
    except RemoteError as exc:
        store.log_error("extract", str(exc))
    store.write(EXTRACT_KEY, {"timestamp": int(now)})
    return True
