"""Decide what the prompt-submit hook should do for the current session."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from cogmem_flags import age, is_fresh

CONDENSED_MARKER = "\n\n[Condensed - use recall_memories to search for specific past context]"
_RELOAD_INSTRUCTION = (
    "\n\nIMPORTANT: Your memories are loaded above. Use recall_memories to search for specific "
    "past context. Save new learnings with save_memory."
)


class SessionState(Enum):
    POST_COMPACTION = "post_compaction"
    NEW_SESSION = "new_session"
    ONGOING = "ongoing"
    NONE = "none"


@dataclass(frozen=True)
class ReloadPlan:
    limit: int
    max_chars: int
    label: str


POST_COMPACTION_PLAN = ReloadPlan(
    limit=15,
    max_chars=4000,
    label="CogmemAi: context recovered after compaction.",
)
NEW_SESSION_PLAN = ReloadPlan(
    limit=20,
    max_chars=6000,
    label="CogmemAi: project context loaded from previous sessions.",
)


def compaction_is_stale(flag: dict[str, Any] | None, now: float, max_age: float) -> bool:
    """A compaction flag that is unreadable or too old must not be honoured."""
    return not is_fresh(flag, max_age, now)


def classify(
    compaction_flag: dict[str, Any] | None,
    marker: dict[str, Any] | None,
    now: float,
    *,
    session_id: str,
    session_expiry: float,
    compaction_max_age: float,
) -> SessionState:
    if not session_id:
        return SessionState.NONE
    if compaction_flag is not None and not compaction_is_stale(compaction_flag, now, compaction_max_age):
        return SessionState.POST_COMPACTION
    if marker is None or age(marker, now) > session_expiry:
        return SessionState.NEW_SESSION
    return SessionState.ONGOING


def plan_for(state: SessionState) -> ReloadPlan | None:
    if state is SessionState.POST_COMPACTION:
        return POST_COMPACTION_PLAN
    if state is SessionState.NEW_SESSION:
        return NEW_SESSION_PLAN
    return None


def memory_lines(memories: Any) -> list[str]:
    if not isinstance(memories, list):
        return []
    lines: list[str] = []
    for memory in memories:
        if not isinstance(memory, dict):
            continue
        content = memory.get("content")
        if not isinstance(content, str) or not content.strip():
            continue
        subject = memory.get("subject") or "general"
        lines.append(f"- [{subject}] {content.strip()}")
    return lines


def format_context(data: dict[str, Any], plan: ReloadPlan) -> str:
    """Render a context response as injectable text, or ``""`` when there is nothing to inject."""
    total = data.get("total_count")
    if isinstance(total, int) and not isinstance(total, bool) and total == 0:
        return ""
    context = data.get("formatted_context")
    if not isinstance(context, str) or not context.strip():
        lines = memory_lines(data.get("project_memories")) + memory_lines(data.get("global_memories"))
        context = "\n".join(lines)
    context = context.strip()
    if not context:
        return ""
    if len(context) > plan.max_chars:
        context = context[: plan.max_chars - len(CONDENSED_MARKER)] + CONDENSED_MARKER
    return f"{plan.label} Your memories have been reloaded:\n\n{context}{_RELOAD_INSTRUCTION}"


def build_marker(
    session_id: str,
    project_id: str,
    now: float,
    previous: dict[str, Any] | None = None,
) -> dict[str, Any]:
    previous = previous or {}
    topics = previous.get("last_smart_topics")
    return {
        "timestamp": int(now),
        "session_id": session_id,
        "project_id": project_id,
        "last_smart_recall": int(now),
        "last_smart_topics": topics if isinstance(topics, list) else [],
    }
