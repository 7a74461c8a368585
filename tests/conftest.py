"""
Pytest configuration and fixtures
"""

import gzip
from dataclasses import dataclass
from typing import Dict, List

import httpx
import pytest

from importer.backoff import ExponentialBackoff
from importer.progress import LoggingProgress


@dataclass
class RecordedRequest:
    method: str
    url: httpx.URL
    headers: Dict[str, str]
    body: bytes


class FakeEndpoint:
    """
    Stand-in for the documents endpoint.

    Responses are taken from ``script`` in order (status codes or exceptions
    to raise), then ``default_status`` for every further request.
    """

    def __init__(self):
        self.requests: List[RecordedRequest] = []
        self.script: list = []
        self.default_status = 202

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(
            RecordedRequest(
                method=request.method,
                url=request.url,
                headers=dict(request.headers),
                body=gzip.decompress(request.content),
            )
        )
        outcome = self.script.pop(0) if self.script else self.default_status
        if isinstance(outcome, Exception):
            raise outcome
        if 200 <= outcome < 300:
            return httpx.Response(outcome, json={"taskUid": len(self.requests)})
        return httpx.Response(outcome, text=f"simulated failure {outcome}")

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    @property
    def bodies(self) -> List[bytes]:
        return [r.body for r in self.requests]


class SleepRecorder:
    """Replaces asyncio.sleep in senders; records delays without waiting."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def endpoint():
    """Fake documents endpoint answering 202 by default"""
    return FakeEndpoint()


@pytest.fixture
def sleeper():
    """Sleep replacement recording backoff delays"""
    return SleepRecorder()


@pytest.fixture
def progress():
    """Headless progress sink"""
    return LoggingProgress()


@pytest.fixture
def fast_backoff():
    """Deterministic backoff with a few attempts"""
    return ExponentialBackoff(max_attempts=3, min_delay=0.1, max_delay=1.0, jitter=0.0)


@pytest.fixture
def mock_ndjson_records():
    """Mock NDJSON documents"""
    return [
        {"id": f"doc_{i:03d}", "title": f"Document {i}", "tags": ["a", "b"], "rank": i}
        for i in range(40)
    ]


@pytest.fixture
def mock_csv_text():
    """Mock CSV file contents"""
    lines = ["id,product_name,category,cost"]
    for i in range(30):
        lines.append(f'csv_{i:03d},"Product, {i}",home,{i * 1.5}')
    return "\n".join(lines) + "\n"
