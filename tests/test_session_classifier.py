import sys
import unittest
from pathlib import Path

_SCRIPTS_DIR = Path(__file__).resolve().parents[1] / "plugins" / "cogmem-memory" / "scripts"
if str(_SCRIPTS_DIR) not in sys.path:
    sys.path.insert(0, str(_SCRIPTS_DIR))

from cogmem_session import (  # noqa: E402
    CONDENSED_MARKER,
    NEW_SESSION_PLAN,
    POST_COMPACTION_PLAN,
    SessionState,
    build_marker,
    classify,
    compaction_is_stale,
    format_context,
    plan_for,
)

NOW = 1_700_000_000.0


def _classify(compaction, marker, session_id="sess-1"):
    return classify(
        compaction,
        marker,
        NOW,
        session_id=session_id,
        session_expiry=4 * 3600,
        compaction_max_age=3600,
    )


class ClassifyTests(unittest.TestCase):
    def test_no_flags_is_new_session(self) -> None:
        self.assertIs(SessionState.NEW_SESSION, _classify(None, None))

    def test_fresh_marker_is_ongoing(self) -> None:
        self.assertIs(SessionState.ONGOING, _classify(None, {"timestamp": NOW - 60}))

    def test_expired_marker_is_new_session(self) -> None:
        self.assertIs(SessionState.NEW_SESSION, _classify(None, {"timestamp": NOW - 5 * 3600}))

    def test_marker_without_timestamp_is_new_session(self) -> None:
        self.assertIs(SessionState.NEW_SESSION, _classify(None, {"session_id": "sess-1"}))

    def test_compaction_takes_priority_over_fresh_marker(self) -> None:
        state = _classify({"timestamp": NOW - 30}, {"timestamp": NOW - 60})
        self.assertIs(SessionState.POST_COMPACTION, state)

    def test_stale_compaction_falls_through(self) -> None:
        stale = {"timestamp": NOW - 2 * 3600}
        self.assertIs(SessionState.ONGOING, _classify(stale, {"timestamp": NOW - 60}))
        self.assertIs(SessionState.NEW_SESSION, _classify(stale, None))
        self.assertTrue(compaction_is_stale(stale, NOW, 3600))
        self.assertTrue(compaction_is_stale({"session_id": "x"}, NOW, 3600))
        self.assertFalse(compaction_is_stale({"timestamp": NOW - 10}, NOW, 3600))

    def test_missing_session_id_is_none(self) -> None:
        self.assertIs(SessionState.NONE, _classify({"timestamp": NOW}, None, session_id=""))

    def test_plans(self) -> None:
        self.assertEqual((15, 4000), (POST_COMPACTION_PLAN.limit, POST_COMPACTION_PLAN.max_chars))
        self.assertEqual((20, 6000), (NEW_SESSION_PLAN.limit, NEW_SESSION_PLAN.max_chars))
        self.assertIs(POST_COMPACTION_PLAN, plan_for(SessionState.POST_COMPACTION))
        self.assertIsNone(plan_for(SessionState.ONGOING))
        self.assertIsNone(plan_for(SessionState.NONE))


class FormatContextTests(unittest.TestCase):
    def test_prefers_formatted_context(self) -> None:
        text = format_context({"formatted_context": "## Memories\n- a", "total_count": 1}, NEW_SESSION_PLAN)
        self.assertTrue(text.startswith(NEW_SESSION_PLAN.label))
        self.assertIn("## Memories\n- a", text)
        self.assertIn("recall_memories", text)

    def test_builds_from_memory_lists(self) -> None:
        data = {
            "project_memories": [{"subject": "auth", "content": "JWT with refresh tokens", "importance": 9}],
            "global_memories": [{"subject": "style", "content": "Prefers tabs"}, "junk"],
        }
        text = format_context(data, POST_COMPACTION_PLAN)
        self.assertIn("- [auth] JWT with refresh tokens", text)
        self.assertIn("- [style] Prefers tabs", text)

    def test_empty_results_inject_nothing(self) -> None:
        self.assertEqual("", format_context({"formatted_context": "x", "total_count": 0}, NEW_SESSION_PLAN))
        self.assertEqual("", format_context({}, NEW_SESSION_PLAN))

    def test_truncates_to_budget_with_marker(self) -> None:
        text = format_context({"formatted_context": "m" * 10000}, POST_COMPACTION_PLAN)
        body = text.split("reloaded:\n\n", 1)[1]
        self.assertIn(CONDENSED_MARKER, body)
        self.assertEqual(POST_COMPACTION_PLAN.max_chars, body.index("\n\nIMPORTANT"))


class MarkerTests(unittest.TestCase):
    def test_build_marker_keeps_previous_topics(self) -> None:
        marker = build_marker("sess-1", "user/repo", NOW, previous={"last_smart_topics": ["auth"]})
        self.assertEqual(int(NOW), marker["timestamp"])
        self.assertEqual(int(NOW), marker["last_smart_recall"])
        self.assertEqual(["auth"], marker["last_smart_topics"])
        self.assertEqual("user/repo", marker["project_id"])


if __name__ == "__main__":
    unittest.main()
