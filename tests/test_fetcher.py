import pytest
import requests

from countrydb.errors import FetchError
from countrydb.fetcher import Fetcher, FetcherConfig

URL = "https://ftp.example.net/delegated-test-extended-latest"


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


class FakeResponse:
    def __init__(self, content=b"", status_code=200, headers=None, chunks=None, clock=None, step=0.0):
        self.content = content
        self.status_code = status_code
        self.headers = headers or {}
        self.closed = False
        # body split into chunks; the clock moves by `step` seconds per chunk
        self.chunks = chunks if chunks is not None else [content]
        self.clock = clock
        self.step = step

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")

    def iter_content(self, chunk_size=1):
        for chunk in self.chunks:
            if self.clock is not None:
                self.clock.now += self.step
            yield chunk

    def close(self):
        self.closed = True


class FakeSession:
    """Plays back a scripted list of responses or exceptions."""

    def __init__(self, script):
        self.script = list(script)
        self.calls = []

    def get(self, url, headers=None, timeout=None, stream=False):
        self.calls.append({"url": url, "headers": headers, "timeout": timeout, "stream": stream})
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


def _fetcher(script, clock=None, **cfg):
    sleeps = []
    session = FakeSession(script)
    fetcher = Fetcher(
        FetcherConfig(**cfg),
        session=session,
        sleep=sleeps.append,
        clock=clock or FakeClock(),
    )
    return fetcher, session, sleeps


def test_success_first_try_sends_identification_headers():
    fetcher, session, sleeps = _fetcher([FakeResponse(b"body")])

    assert fetcher.fetch("arin", URL) == b"body"
    assert sleeps == []
    assert fetcher.last_attempts == 1

    call = session.calls[0]
    assert call["url"] == URL
    assert call["timeout"] == 300.0
    assert call["stream"] is True
    assert call["headers"]["User-Agent"].startswith("deflect-geoip/")
    assert call["headers"]["Accept"] == "*/*"
    assert call["headers"]["Connection"] == "keep-alive"


def test_two_transport_failures_then_success():
    fetcher, session, sleeps = _fetcher(
        [
            requests.ConnectionError("connection refused"),
            requests.exceptions.ChunkedEncodingError("connection reset"),
            FakeResponse(b"arin|AU|ipv4|1.0.0.0|256|20110811|allocated\n"),
        ]
    )

    assert fetcher.fetch("arin", URL).startswith(b"arin|AU")
    assert len(session.calls) == 3
    assert sleeps == [10.0, 20.0]
    assert fetcher.last_attempts == 3


def test_five_failures_is_fatal():
    fetcher, session, sleeps = _fetcher(
        [requests.Timeout("read timed out")] * 5
    )

    with pytest.raises(FetchError) as excinfo:
        fetcher.fetch("lacnic", URL)

    assert excinfo.value.source == "lacnic"
    assert excinfo.value.attempts == 5
    assert "lacnic" in str(excinfo.value)
    assert "5 attempts" in str(excinfo.value)
    assert len(session.calls) == 5
    # no sleep after the last attempt
    assert sleeps == [10.0, 20.0, 30.0, 40.0]


def test_http_error_status_is_retried():
    fetcher, _, sleeps = _fetcher(
        [FakeResponse(status_code=503), FakeResponse(b"ok")]
    )
    assert fetcher.fetch("ripe", URL) == b"ok"
    assert sleeps == [10.0]


def test_short_read_is_retried():
    fetcher, _, sleeps = _fetcher(
        [
            FakeResponse(b"partial", headers={"Content-Length": "100"}),
            FakeResponse(b"complete", headers={"Content-Length": "8"}),
        ]
    )
    assert fetcher.fetch("apnic", URL) == b"complete"
    assert sleeps == [10.0]


def test_content_length_ignored_for_encoded_body():
    fetcher, _, sleeps = _fetcher(
        [FakeResponse(b"decoded body", headers={"Content-Length": "100", "Content-Encoding": "gzip"})]
    )
    assert fetcher.fetch("apnic", URL) == b"decoded body"
    assert sleeps == []


def test_slow_body_exceeds_attempt_deadline_and_is_retried():
    clock = FakeClock()
    trickle = FakeResponse(chunks=[b"ar", b"in", b"|A", b"U|"], clock=clock, step=0.5)
    fetcher, session, sleeps = _fetcher(
        [trickle, FakeResponse(b"arin|AU|ipv4|1.0.0.0|256|20110811|allocated\n")],
        clock=clock,
        timeout=1.0,
    )

    assert fetcher.fetch("arin", URL).startswith(b"arin|AU")
    assert len(session.calls) == 2
    assert sleeps == [10.0]
    assert fetcher.last_attempts == 2
    # stopped at the third chunk, the rest was never read
    assert trickle.closed
    assert clock.now == 1001.5


def test_slow_body_on_every_attempt_is_fatal():
    clock = FakeClock()
    script = [
        FakeResponse(chunks=[b"x"] * 10, clock=clock, step=1.0) for _ in range(2)
    ]
    fetcher, _, sleeps = _fetcher(script, clock=clock, timeout=3.0, max_attempts=2)

    with pytest.raises(FetchError) as excinfo:
        fetcher.fetch("afrinic", URL)

    assert isinstance(excinfo.value.last_error, requests.Timeout)
    assert "exceeded 3s" in str(excinfo.value)
    assert sleeps == [10.0]


def test_config_from_dict():
    cfg = FetcherConfig.from_dict({"timeout": 30, "max_attempts": 0, "backoff_seconds": 1})
    assert cfg.timeout == 30.0
    assert cfg.max_attempts == 1
    assert cfg.backoff_seconds == 1.0
    assert FetcherConfig.from_dict(None) == FetcherConfig()
