"""HTTP client for the CogmemAi memory service."""

from __future__ import annotations

import random
import time
from dataclasses import dataclass, field
from typing import Any, Callable

import httpx

from cogmem_config import VERSION, Config

_RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


class RemoteError(Exception):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 2
    base_delay: float = 0.5
    max_delay: float = 3.0
    retryable_status_codes: frozenset[int] = field(default=_RETRYABLE_STATUS_CODES)
    deadline: float | None = None

    def delay(self, attempt: int) -> float:
        backoff = self.base_delay * (2**attempt) + random.uniform(0, self.base_delay)
        return min(self.max_delay, backoff)


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        for key in ("error", "message"):
            value = data.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return f"HTTP {response.status_code}"


class RemoteClient:
    def __init__(
        self,
        api_url: str,
        api_key: str,
        *,
        timeout: float,
        retry: RetryPolicy | None = None,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.retry = retry or RetryPolicy()
        self._sleep = sleep
        self._clock = clock
        self._http = httpx.Client(
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
                "User-Agent": f"cogmem-memory/{VERSION}",
            },
        )

    @classmethod
    def for_hooks(cls, config: Config, **kwargs: Any) -> "RemoteClient":
        retry = RetryPolicy(deadline=config.hook_deadline)
        return cls(config.api_url, config.api_key, timeout=config.hook_timeout, retry=retry, **kwargs)

    @classmethod
    def for_tools(cls, config: Config, **kwargs: Any) -> "RemoteClient":
        return cls(config.api_url, config.api_key, timeout=config.tool_timeout, **kwargs)

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "RemoteClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def _can_wait(self, started: float, delay: float) -> bool:
        if self.retry.deadline is None:
            return True
        return (self._clock() - started) + delay + self.timeout <= self.retry.deadline

    def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        url = f"{self.api_url}/{path.lstrip('/')}"
        started = self._clock()
        attempt = 0
        while True:
            try:
                response = self._http.request(method, url, params=params, json=json)
            except httpx.TransportError as exc:
                delay = self.retry.delay(attempt)
                if attempt >= self.retry.max_retries or not self._can_wait(started, delay):
                    raise RemoteError(f"request failed: {exc}") from exc
            else:
                if response.is_success:
                    try:
                        data = response.json()
                    except ValueError:
                        return {"ok": True}
                    return data if isinstance(data, dict) else {"data": data}
                status = response.status_code
                delay = self.retry.delay(attempt)
                if (
                    status not in self.retry.retryable_status_codes
                    or attempt >= self.retry.max_retries
                    or not self._can_wait(started, delay)
                ):
                    raise RemoteError(_error_message(response), status)
            self._sleep(delay)
            attempt += 1

    def get_context(self, limit: int, project_id: str, include_global: bool = True) -> dict[str, Any]:
        params = {"limit": limit, "project_id": project_id, "include_global": "true" if include_global else "false"}
        return self.request("GET", "/cogmemai/context", params=params)

    def save_session_summary(self, summary: str) -> dict[str, Any]:
        return self.request("POST", "/cogmemai/session-summary", json={"summary": summary})

    def smart_recall(self, message: str, project_id: str, limit: int) -> dict[str, Any]:
        body = {"message": message, "project_id": project_id, "limit": limit}
        return self.request("POST", "/cogmemai/smart-recall", json=body)

    def extract(self, user_message: str, assistant_response: str, project_id: str) -> dict[str, Any]:
        body = {"user_message": user_message, "assistant_response": assistant_response, "project_id": project_id}
        return self.request("POST", "/cogmemai/extract", json=body)


def send_quietly(
    call: Callable[..., dict[str, Any]],
    *args: Any,
    on_error: Callable[[RemoteError], None] | None = None,
    **kwargs: Any,
) -> dict[str, Any] | None:
    """Run a fire-and-forget remote call; ``None`` means it failed."""
    try:
        return call(*args, **kwargs)
    except RemoteError as exc:
        if on_error is not None:
            on_error(exc)
        return None
