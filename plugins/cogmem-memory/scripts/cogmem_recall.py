#!/usr/bin/env python3
"""Query CogmemAi memories from the command line (no MCP required)."""

from __future__ import annotations

import argparse
import json
import os
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from cogmem_client import RemoteClient, RemoteError
from cogmem_config import int_env, load_config
from cogmem_flags import FlagStore
from cogmem_topics import cache_topic_index

_MODE_CHOICES = ("recall", "context")


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _read_query(args: argparse.Namespace) -> str:
    if args.query_file:
        return Path(args.query_file).read_text(encoding="utf-8").strip()
    if args.query:
        return args.query.strip()
    if args.mode == "recall" and not sys.stdin.isatty():
        return sys.stdin.read().strip()
    return ""


def build_request(args: argparse.Namespace, project_id: str) -> dict[str, Any]:
    if args.limit < 1:
        raise ValueError("--limit must be >= 1.")
    if args.mode == "context":
        return {
            "method": "GET",
            "path": "/cogmemai/context",
            "params": {
                "limit": args.limit,
                "project_id": project_id,
                "include_global": "false" if args.no_global else "true",
            },
        }
    query = _read_query(args)
    if not query:
        raise ValueError("query is required for recall (pass --query, --query-file, or stdin).")
    return {
        "method": "POST",
        "path": "/cogmemai/smart-recall",
        "json": {"message": query, "project_id": project_id, "limit": args.limit},
    }


def append_recall_log(path: str, record: dict[str, Any]) -> None:
    log_path = Path(path).expanduser()
    log_path.parent.mkdir(parents=True, exist_ok=True)
    with log_path.open("a", encoding="utf-8") as fh:
        fh.write(json.dumps(record, ensure_ascii=True) + "\n")


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--mode", choices=_MODE_CHOICES, default="recall")
    parser.add_argument("--query", help="Query text (recall mode).")
    parser.add_argument("--query-file", help="Read query text from file.")
    parser.add_argument("--limit", type=int, default=int_env("COGMEMAI_RECALL_LIMIT", 10))
    parser.add_argument("--project-id", help="Project identifier override (default: detected from git).")
    parser.add_argument("--cwd", default=os.getcwd(), help="Directory used to detect the project.")
    parser.add_argument("--no-global", action="store_true", help="Exclude global memories (context mode).")
    parser.add_argument("--no-cache", action="store_true", help="Do not refresh the local topic cache.")
    parser.add_argument("--output", help="Write API response JSON to this file.")
    parser.add_argument("--log-file", default=".cogmemai/recalls.ndjson", help="NDJSON recall log file.")
    parser.add_argument("--no-log", action="store_true", help="Skip writing local recall log entry.")
    parser.add_argument("--dry-run", action="store_true", help="Print request and exit.")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv or sys.argv[1:])
    config = load_config({"cwd": args.cwd})
    project_id = args.project_id or config.project_id
    try:
        request = build_request(args, project_id)
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    if args.dry_run:
        print(json.dumps({"request": request, "response": None}, indent=2, ensure_ascii=True))
        return 0

    if not config.api_key:
        print("error: COGMEMAI_API_KEY is required (env or ~/.claude.json)", file=sys.stderr)
        return 2

    try:
        with RemoteClient.for_tools(config) as client:
            response = client.request(
                request["method"],
                request["path"],
                params=request.get("params"),
                json=request.get("json"),
            )
    except RemoteError as exc:
        print(f"error: request failed: {exc}", file=sys.stderr)
        return 1

    if args.mode == "context" and not args.no_cache:
        cache_topic_index(FlagStore(config.flag_dir), project_id, response.get("topic_index"), time.time())
        response = {key: value for key, value in response.items() if key != "topic_index"}

    if not args.no_log:
        append_recall_log(args.log_file, {"timestamp": _utc_now_iso(), "request": request, "response": response})

    output = {"request": request, "response": response}
    if args.output:
        Path(args.output).write_text(json.dumps(output, indent=2, ensure_ascii=True), encoding="utf-8")
    print(json.dumps(output, indent=2, ensure_ascii=True))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
