# tests/conftest.py
import httpx
import pytest

from parking_gateway.models import DiscountTypeConfig
from parking_gateway.store import InMemoryDiscountTypeStore


class Recorder:
    """MockTransport handler that records requests and replays a fixed response."""

    def __init__(self, status_code=200, text="ok", headers=None, error=None):
        self.status_code = status_code
        self.text = text
        self.headers = headers or {}
        self.error = error
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, text=self.text, headers=self.headers)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


def make_client(recorder: Recorder) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(recorder))


@pytest.fixture
def store():
    s = InMemoryDiscountTypeStore(seed=[
        DiscountTypeConfig(code="24hour", name="24h", sortOrder=1, jsessionid="SESS24",
                           refererUrl="http://park.example/shop?id=8"),
        DiscountTypeConfig(code="5day", name="5 days", sortOrder=2),
    ])
    s.bootstrap()
    return s
