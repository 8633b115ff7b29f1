#!/usr/bin/env python3
"""Claude hook automation for CogmemAi context reloads and session summaries."""

from __future__ import annotations

import argparse
import json
import sys
import time
from dataclasses import dataclass
from typing import Any

from cogmem_client import RemoteClient, RemoteError, send_quietly
from cogmem_config import Config, load_config, resolve_flag_dir
from cogmem_flags import FlagStore, compaction_key, session_key, summary_key
from cogmem_session import (
    SessionState,
    build_marker,
    classify,
    compaction_is_stale,
    format_context,
    plan_for,
)
from cogmem_summary import build_compaction_summary, build_stop_summary, run_auto_extract, summary_on_cooldown
from cogmem_topics import cache_topic_index, run_smart_recall
from cogmem_transcript import lines_are_substantial, read_lines

_MODES = ("pre_compact", "context_reload", "stop")
RECALL_HINT = (
    "CogmemAi: You have persistent memory. If this task involves past context, "
    "use recall_memories to search for relevant memories."
)


@dataclass(frozen=True)
class HookInput:
    session_id: str
    transcript_path: str
    cwd: str
    stop_hook_active: bool = False
    last_assistant_message: str = ""
    prompt: str = ""

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "HookInput":
        def text(name: str) -> str:
            value = payload.get(name)
            return value if isinstance(value, str) else ""

        return cls(
            session_id=text("session_id").strip(),
            transcript_path=text("transcript_path").strip(),
            cwd=text("cwd"),
            stop_hook_active=payload.get("stop_hook_active") is True,
            last_assistant_message=text("last_assistant_message"),
            prompt=text("prompt"),
        )


def _read_stdin_json() -> dict[str, Any]:
    try:
        raw = sys.stdin.read().strip()
    except (OSError, ValueError):
        return {}
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _context_output(text: str) -> dict[str, Any]:
    return {"result": "success", "additionalContext": text}


def handle_pre_compact(
    config: Config,
    hook: HookInput,
    *,
    store: FlagStore,
    client: RemoteClient,
    now: float,
) -> dict[str, Any] | None:
    if not config.api_key:
        return None
    summary = build_compaction_summary(read_lines(hook.transcript_path), hook.cwd, now)
    send_quietly(client.save_session_summary, summary, on_error=lambda exc: store.log_error("pre-compact", str(exc)))

    if hook.session_id:
        store.write(compaction_key(hook.session_id), {"timestamp": int(now), "session_id": hook.session_id})
        # Force a full reinjection on the next prompt.
        store.consume(session_key(hook.session_id))
    return None


def handle_context_reload(
    config: Config,
    hook: HookInput,
    *,
    store: FlagStore,
    client: RemoteClient,
    now: float,
) -> dict[str, Any] | None:
    store.sweep(config.stale_flag_max_age, now)
    if not config.api_key:
        return None

    flag_key = compaction_key(hook.session_id)
    marker_key = session_key(hook.session_id)
    compaction = store.read(flag_key)
    if hook.session_id and store.exists(flag_key):
        if compaction_is_stale(compaction, now, config.compaction_flag_max_age):
            store.consume(flag_key)
            compaction = None
    marker = store.read(marker_key)

    state = classify(
        compaction,
        marker,
        now,
        session_id=hook.session_id,
        session_expiry=config.session_expiry_seconds,
        compaction_max_age=config.compaction_flag_max_age,
    )
    if state is SessionState.NONE:
        return None
    if state is SessionState.ONGOING:
        return _handle_ongoing(config, hook, store=store, client=client, now=now)

    plan = plan_for(state)
    if plan is None:
        return None
    try:
        data = client.get_context(plan.limit, config.project_id)
    except RemoteError as exc:
        # Flags stay as they are so the next prompt tries again.
        store.log_error("context-reload", str(exc))
        return None

    cache_topic_index(store, config.project_id, data.get("topic_index"), now)
    store.consume(flag_key)
    store.write(marker_key, build_marker(hook.session_id, config.project_id, now, previous=marker))

    context = format_context(data, plan)
    return _context_output(context) if context else None


def _handle_ongoing(
    config: Config,
    hook: HookInput,
    *,
    store: FlagStore,
    client: RemoteClient,
    now: float,
) -> dict[str, Any] | None:
    if config.smart_recall:
        block = run_smart_recall(
            store,
            client,
            config,
            session_id=hook.session_id,
            transcript_path=hook.transcript_path,
            prompt=hook.prompt,
            now=now,
        )
        if block:
            return _context_output(block)
    if config.recall_hint:
        return _context_output(RECALL_HINT)
    return None


def handle_stop(
    config: Config,
    hook: HookInput,
    *,
    store: FlagStore,
    client: RemoteClient,
    now: float,
) -> dict[str, Any] | None:
    # A previous Stop hook already ran for this turn; returning early prevents loops.
    if hook.stop_hook_active:
        return None
    if not hook.session_id or not hook.transcript_path or not config.api_key:
        return None

    lines = read_lines(hook.transcript_path)
    flag_key = summary_key(hook.session_id)
    on_cooldown = summary_on_cooldown(store.read(flag_key), now, config.summary_cooldown_seconds)
    if not on_cooldown and lines_are_substantial(lines):
        summary = build_stop_summary(lines, hook.cwd, hook.last_assistant_message, now)
        send_quietly(client.save_session_summary, summary, on_error=lambda exc: store.log_error("stop", str(exc)))
        store.write(flag_key, {"timestamp": int(now), "session_id": hook.session_id})

    if config.auto_extract:
        run_auto_extract(store, client, lines, config.project_id, now=now, cooldown=config.extract_cooldown_seconds)
    return None


_HANDLERS = {
    "pre_compact": handle_pre_compact,
    "context_reload": handle_context_reload,
    "stop": handle_stop,
}


def run_hook(mode: str, payload: dict[str, Any]) -> dict[str, Any] | None:
    config = load_config(payload)
    if not config.enabled:
        return None
    hook = HookInput.from_payload(payload)
    store = FlagStore(config.flag_dir)
    with RemoteClient.for_hooks(config) as client:
        return _HANDLERS[mode](config, hook, store=store, client=client, now=time.time())


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--mode", required=True, choices=_MODES, help="Hook mode to execute.")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv or sys.argv[1:])
    output: dict[str, Any] | None = None
    try:
        output = run_hook(args.mode, _read_stdin_json())
    except Exception as exc:
        FlagStore(resolve_flag_dir()).log_error(args.mode, f"{type(exc).__name__}: {exc}")
        output = None
    if args.mode == "stop":
        # The host waits for a JSON object before letting the session stop.
        output = output or {}
    if output is not None:
        print(json.dumps(output))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
