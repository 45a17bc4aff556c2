"""
Fetcher:
- downloads one stats file fully into memory (no streaming parse)
- each attempt has a total deadline, not only connect/read timeouts
- retries on connection errors, HTTP errors and truncated bodies
- linear backoff: attempt N waits N * backoff_seconds
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Optional

import requests

from .errors import FetchError

# the deadline is checked between chunks, so one chunk read can overrun it
CHUNK_SIZE = 16 * 1024


@dataclass
class FetcherConfig:
    # total time allowed for one attempt, seconds
    timeout: float = 300.0
    max_attempts: int = 5
    backoff_seconds: float = 10.0
    user_agent: str = "deflect-geoip/1.0 (https://github.com/equalitie/deflect-geoip)"

    @classmethod
    def from_dict(cls, cfg: Optional[dict]) -> "FetcherConfig":
        cfg = cfg or {}
        default = cls()
        return cls(
            timeout=float(cfg.get("timeout", default.timeout)),
            max_attempts=max(1, int(cfg.get("max_attempts", default.max_attempts))),
            backoff_seconds=float(cfg.get("backoff_seconds", default.backoff_seconds)),
            user_agent=str(cfg.get("user_agent", default.user_agent)),
        )


class ShortReadError(requests.RequestException):
    """Body ended before the declared Content-Length."""


class Fetcher:
    def __init__(
        self,
        config: Optional[FetcherConfig] = None,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        debug: bool = False,
    ):
        self.config = config or FetcherConfig()
        self.session = session or requests.Session()
        self.sleep = sleep
        self.clock = clock
        self.debug = debug

        # attempts used by the last fetch() call, for the report
        self.last_attempts = 0

    @property
    def headers(self) -> dict:
        return {
            "User-Agent": self.config.user_agent,
            "Accept": "*/*",
            "Connection": "keep-alive",
        }

    def fetch(self, name: str, url: str) -> bytes:
        """Download url completely; raise FetchError once attempts run out."""
        max_attempts = self.config.max_attempts
        last_exc: Optional[BaseException] = None

        for attempt in range(1, max_attempts + 1):
            self.last_attempts = attempt
            if self.debug:
                print(f"      [{name}] attempt {attempt}/{max_attempts}: GET {url}", flush=True)
            try:
                body = self._get(url)
            except requests.RequestException as exc:
                last_exc = exc
                print(f"      ✗ {name}: attempt {attempt} failed: {exc}", flush=True)
                if attempt < max_attempts:
                    wait = attempt * self.config.backoff_seconds
                    if self.debug:
                        print(f"      [{name}] retrying in {wait:g}s", flush=True)
                    self.sleep(wait)
                continue

            print(f"    → {name}: downloaded {len(body)} bytes", flush=True)
            return body

        raise FetchError(name, max_attempts, last_exc)

    def _get(self, url: str) -> bytes:
        timeout = self.config.timeout
        deadline = self.clock() + timeout
        resp = self.session.get(url, headers=self.headers, timeout=timeout, stream=True)
        try:
            resp.raise_for_status()
            chunks = []
            received = 0
            for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                if self.clock() > deadline:
                    raise requests.Timeout(
                        f"attempt exceeded {timeout:g}s after {received} bytes"
                    )
                chunks.append(chunk)
                received += len(chunk)
            body = b"".join(chunks)
        finally:
            resp.close()

        expected = resp.headers.get("Content-Length")
        encoding = resp.headers.get("Content-Encoding", "identity")
        if expected and expected.isdigit() and encoding in ("", "identity"):
            if len(body) < int(expected):
                raise ShortReadError(
                    f"short read: got {len(body)} of {expected} bytes"
                )
        return body
