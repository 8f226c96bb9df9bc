"""Shared fakes: a deterministic in-memory fetcher standing in for the network."""

import asyncio
from typing import Dict, Optional, Union

import pytest

from chatsnap.services.fetcher import FetchFailed, FetchOk

Response = Union[str, bytes, FetchOk, FetchFailed]


class FakeFetcher:
    """Serve canned responses by URL; unknown URLs come back as HTTP 404."""

    def __init__(self, responses: Dict[str, Response], delays: Optional[Dict[str, float]] = None):
        self.responses = responses
        self.delays = delays or {}
        self.calls = []
        self.active = 0
        self.peak = 0

    async def __call__(self, url: str):
        self.calls.append(url)
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            delay = self.delays.get(url, 0)
            if delay:
                await asyncio.sleep(delay)
            response = self.responses.get(url)
            if response is None:
                return FetchFailed(url=url, reason="HTTP 404")
            if isinstance(response, (FetchOk, FetchFailed)):
                return response
            if isinstance(response, str):
                response = response.encode()
            return FetchOk(url=url, content=response, content_type="text/css")
        finally:
            self.active -= 1


@pytest.fixture
def make_fetcher():
    return FakeFetcher
