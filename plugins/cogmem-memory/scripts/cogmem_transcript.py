"""Best-effort reader for Claude Code JSONL transcripts.

Transcript rows come in two shapes depending on the tool version:
``{"type": ..., "message": {"role": ..., "content": ...}}`` and a flat
``{"role": ..., "content": ...}``. Both normalize into ``ConversationTurn``;
anything else is skipped.
"""

from __future__ import annotations

import json
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Iterator

_PATH_KEYS = ("file_path", "path")


class TurnShape(Enum):
    NESTED = "nested"
    FLAT = "flat"
    UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True)
class ConversationTurn:
    role: str
    text: str
    file_paths: list[str] = field(default_factory=list)


def turn_shape(entry: Any) -> TurnShape:
    if not isinstance(entry, dict):
        return TurnShape.UNRECOGNIZED
    message = entry.get("message")
    if isinstance(message, dict) and isinstance(message.get("role"), str) and "content" in message:
        return TurnShape.NESTED
    if isinstance(entry.get("role"), str) and "content" in entry:
        return TurnShape.FLAT
    return TurnShape.UNRECOGNIZED


def extract_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if not isinstance(content, list):
        return ""
    parts: list[str] = []
    for item in content:
        if isinstance(item, dict) and item.get("type") == "text" and isinstance(item.get("text"), str):
            parts.append(item["text"])
    return " ".join(parts)


def extract_file_paths(content: Any) -> list[str]:
    if not isinstance(content, list):
        return []
    out: list[str] = []
    seen: set[str] = set()
    for item in content:
        if not isinstance(item, dict) or item.get("type") != "tool_use":
            continue
        tool_input = item.get("input")
        if not isinstance(tool_input, dict):
            continue
        for key in _PATH_KEYS:
            value = tool_input.get(key)
            if isinstance(value, str) and value.strip():
                path = value.strip()
                if path not in seen:
                    seen.add(path)
                    out.append(path)
                break
    return out


def normalize_entry(entry: Any) -> ConversationTurn | None:
    shape = turn_shape(entry)
    if shape is TurnShape.NESTED:
        role, content = entry["message"]["role"], entry["message"]["content"]
    elif shape is TurnShape.FLAT:
        role, content = entry["role"], entry["content"]
    else:
        return None
    return ConversationTurn(role=role, text=extract_text(content).strip(), file_paths=extract_file_paths(content))


def parse_turn(raw_line: str) -> ConversationTurn | None:
    if not raw_line or not raw_line.strip():
        return None
    try:
        entry = json.loads(raw_line)
    except ValueError:
        return None
    return normalize_entry(entry)


def read_lines(path: str | Path) -> list[str]:
    if not path:
        return []
    try:
        with Path(path).open("r", encoding="utf-8", errors="ignore") as fh:
            return [line.rstrip("\n") for line in fh if line.strip()]
    except OSError:
        return []


def iter_turns(lines: Iterable[str]) -> Iterator[ConversationTurn]:
    for line in lines:
        turn = parse_turn(line)
        if turn is not None:
            yield turn


def last_user_message(transcript_path: str | Path, max_scan_lines: int = 50, min_chars: int = 5) -> str:
    """Newest user text longer than ``min_chars`` within the last ``max_scan_lines`` lines."""
    if not transcript_path:
        return ""
    tail: deque[str] = deque(maxlen=max(1, max_scan_lines))
    try:
        with Path(transcript_path).open("r", encoding="utf-8", errors="ignore") as fh:
            for line in fh:
                if line.strip():
                    tail.append(line)
    except OSError:
        return ""
    for line in reversed(tail):
        turn = parse_turn(line)
        if turn is not None and turn.role == "user" and len(turn.text) > min_chars:
            return turn.text
    return ""


def is_substantial(
    transcript_path: str | Path,
    min_lines: int = 8,
    min_user_messages: int = 2,
    min_chars: int = 10,
) -> bool:
    return lines_are_substantial(read_lines(transcript_path), min_lines, min_user_messages, min_chars)


def lines_are_substantial(
    lines: list[str],
    min_lines: int = 8,
    min_user_messages: int = 2,
    min_chars: int = 10,
) -> bool:
    if len(lines) < min_lines:
        return False
    user_messages = sum(1 for turn in iter_turns(lines) if turn.role == "user" and len(turn.text) > min_chars)
    return user_messages >= min_user_messages
