"""Smart recall: inject a few memories when the conversation drifts to a known topic.

The remote service ranks memories semantically and returns a topic index
alongside every full context load. That index is cached per project, and
this module only asks a cheap local question: do the keywords of the newest
user message overlap one of the cached topics strongly enough, and is that
a different set of topics from the last injection?
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from cogmem_client import RemoteClient, RemoteError
from cogmem_config import Config, float_env, int_env
from cogmem_flags import FlagStore, is_fresh, session_key, topics_key
from cogmem_session import memory_lines
from cogmem_transcript import last_user_message

RECALL_LABEL = "CogmemAi: relevant memories for this topic:"
RECALL_MORE_MARKER = "\n[More available - use recall_memories to search]"

STOP_WORDS = frozenset(
    {
        "the", "and", "for", "are", "but", "not", "you", "all", "any", "can", "had", "her", "was",
        "one", "our", "out", "has", "have", "his", "how", "its", "let", "may", "new", "now", "old",
        "see", "way", "who", "did", "get", "got", "him", "she", "too", "use", "that", "this",
        "with", "from", "they", "will", "would", "there", "their", "what", "about", "which",
        "when", "make", "like", "time", "just", "know", "take", "into", "your", "some", "could",
        "them", "than", "then", "look", "only", "come", "over", "think", "also", "back", "after",
        "work", "first", "well", "even", "want", "because", "these", "give", "most", "been",
        "were", "said", "each", "does", "doing", "done", "need", "should", "here", "where",
        "why", "yes", "okay", "please", "thanks", "thank", "sure", "don", "doesn", "didn", "isn",
        "won", "im", "very", "really", "much", "more", "such", "being", "other",
        "going", "something", "anything", "everything", "things", "thing", "stuff", "again",
        "still", "while", "before", "same", "those", "lets", "try", "check", "fix", "add",
    }
)

# Any run of non-word characters or underscores; word characters include non-ASCII letters.
_TOKEN_SPLIT = re.compile(r"[\W_]+")


@dataclass(frozen=True)
class RecallPolicy:
    cooldown_seconds: int = 180
    min_message_chars: int = 30
    min_keywords: int = 2
    min_score: float = 2.0
    result_limit: int = 3
    max_chars: int = 1500
    cache_max_age: int = 24 * 60 * 60
    max_message_chars: int = 500
    max_tracked_topics: int = 5

    @classmethod
    def from_env(cls) -> "RecallPolicy":
        defaults = cls()
        return cls(
            cooldown_seconds=int_env("COGMEMAI_SMART_RECALL_COOLDOWN", defaults.cooldown_seconds),
            min_message_chars=int_env("COGMEMAI_SMART_RECALL_MIN_CHARS", defaults.min_message_chars),
            min_keywords=int_env("COGMEMAI_SMART_RECALL_MIN_KEYWORDS", defaults.min_keywords),
            min_score=float_env("COGMEMAI_SMART_RECALL_MIN_SCORE", defaults.min_score),
            result_limit=int_env("COGMEMAI_SMART_RECALL_LIMIT", defaults.result_limit) or defaults.result_limit,
            max_chars=int_env("COGMEMAI_SMART_RECALL_MAX_CHARS", defaults.max_chars) or defaults.max_chars,
            cache_max_age=int_env("COGMEMAI_TOPIC_CACHE_MAX_AGE", defaults.cache_max_age),
        )


@dataclass(frozen=True)
class TopicIndexEntry:
    subject: str
    keywords: frozenset[str]
    count: int
    avg_importance: float

    @classmethod
    def from_raw(cls, raw: Any) -> "TopicIndexEntry | None":
        if not isinstance(raw, dict):
            return None
        subject = raw.get("subject")
        if not isinstance(subject, str) or not subject.strip():
            return None
        keywords = raw.get("keywords")
        keywords = keywords if isinstance(keywords, list) else []
        cleaned = frozenset(k.strip().lower() for k in keywords if isinstance(k, str) and k.strip())
        if not cleaned:
            return None
        try:
            count = int(raw.get("count") or 0)
            importance = float(raw.get("avg_importance") or 0.0)
        except (TypeError, ValueError):
            return None
        return cls(subject=subject.strip(), keywords=cleaned, count=count, avg_importance=importance)


@dataclass(frozen=True)
class ScoredTopic:
    topic: TopicIndexEntry
    matches: int
    score: float


def extract_keywords(message: str) -> list[str]:
    out: list[str] = []
    seen: set[str] = set()
    for token in _TOKEN_SPLIT.split(message.lower()):
        if len(token) < 3 or token.isdigit() or token in STOP_WORDS or token in seen:
            continue
        seen.add(token)
        out.append(token)
    return out


def _keyword_matches(keyword: str, topic_keyword: str) -> bool:
    return keyword == topic_keyword or keyword in topic_keyword or topic_keyword in keyword


def score_topics(keywords: list[str], topics: list[TopicIndexEntry]) -> list[ScoredTopic]:
    scored: list[ScoredTopic] = []
    for topic in topics:
        matches = sum(1 for kw in keywords if any(_keyword_matches(kw, tk) for tk in topic.keywords))
        if matches:
            scored.append(ScoredTopic(topic=topic, matches=matches, score=matches * topic.avg_importance))
    scored.sort(key=lambda item: item.score, reverse=True)
    return scored


def cache_topic_index(store: FlagStore, project_id: str, topic_index: Any, now: float) -> bool:
    if not isinstance(topic_index, list):
        return False
    record = {"timestamp": int(now), "project_id": project_id, "topics": topic_index}
    return store.write(topics_key(project_id), record)


def load_topic_cache(store: FlagStore, project_id: str, now: float, max_age: float) -> list[TopicIndexEntry] | None:
    record = store.read(topics_key(project_id))
    if record is None or not is_fresh(record, max_age, now):
        return None
    raw_topics = record.get("topics")
    if not isinstance(raw_topics, list):
        return None
    topics = [entry for entry in (TopicIndexEntry.from_raw(raw) for raw in raw_topics) if entry is not None]
    return topics or None


@dataclass(frozen=True)
class SmartRecallDecision:
    message: str
    keywords: list[str]
    topics: list[str]


def plan_smart_recall(
    *,
    marker: dict[str, Any] | None,
    message: str,
    topics: list[TopicIndexEntry] | None,
    now: float,
    policy: RecallPolicy,
) -> SmartRecallDecision | None:
    """Pure gate for smart recall; returns what to fetch, or ``None`` to stay quiet."""
    if marker is None:
        return None
    last_recall = marker.get("last_smart_recall")
    if isinstance(last_recall, (int, float)) and not isinstance(last_recall, bool):
        if now - float(last_recall) < policy.cooldown_seconds:
            return None
    message = message.strip()
    if len(message) < policy.min_message_chars:
        return None
    keywords = extract_keywords(message)
    if len(keywords) < policy.min_keywords:
        return None
    if not topics:
        return None
    scored = score_topics(keywords, topics)
    if not scored or scored[0].score < policy.min_score:
        return None
    top = [item.topic.subject for item in scored[: policy.max_tracked_topics]]
    previous = marker.get("last_smart_topics")
    if isinstance(previous, list) and set(previous) == set(top):
        return None
    return SmartRecallDecision(message=message[: policy.max_message_chars], keywords=keywords, topics=top)


def format_recall_block(memories: Any, max_chars: int) -> str:
    lines = memory_lines(memories)
    if not lines:
        return ""
    block = f"{RECALL_LABEL}\n" + "\n".join(lines)
    if len(block) > max_chars:
        block = block[: max_chars - len(RECALL_MORE_MARKER)].rstrip() + RECALL_MORE_MARKER
    return block


def run_smart_recall(
    store: FlagStore,
    client: RemoteClient,
    config: Config,
    *,
    session_id: str,
    transcript_path: str,
    prompt: str,
    now: float,
    policy: RecallPolicy | None = None,
) -> str | None:
    policy = policy or RecallPolicy.from_env()
    marker = store.read(session_key(session_id))
    if marker is None:
        return None
    message = prompt.strip() or last_user_message(transcript_path)
    topics = load_topic_cache(store, config.project_id, now, policy.cache_max_age)
    decision = plan_smart_recall(marker=marker, message=message, topics=topics, now=now, policy=policy)
    if decision is None:
        return None

    try:
        data = client.smart_recall(decision.message, config.project_id, policy.result_limit)
    except RemoteError as exc:
        store.log_error("smart-recall", str(exc))
        return None

    updated = dict(marker)
    updated["last_smart_recall"] = int(now)
    updated["last_smart_topics"] = decision.topics
    store.write(session_key(session_id), updated)

    block = format_recall_block(data.get("memories"), policy.max_chars)
    return block or None

