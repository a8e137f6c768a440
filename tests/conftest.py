import io
import json
import urllib.parse
import urllib.request
from urllib.error import HTTPError

import pytest

from helpdesk_mcp_server.client import Desk365Client

BASE_URL = "https://acme.desk365.io/apis"
API_KEY = "secret-key"


class DummyResponse:
    def __init__(self, payload, status=200):
        self.payload = payload
        self.status = status

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def read(self):
        if isinstance(self.payload, bytes):
            return self.payload
        return json.dumps(self.payload).encode("utf-8")


class FakeUrlopen:
    """Replays canned responses and records every request it is handed."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, req, timeout=None):
        self.requests.append(req)
        if not self.responses:
            raise AssertionError(f"Unexpected request: {req.get_method()} {req.full_url}")
        result = self.responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return DummyResponse(result)

    @property
    def last(self):
        return self.requests[-1]


def http_error(code, reason, body=b"", headers=None):
    return HTTPError(f"{BASE_URL}/v3/tickets", code, reason, headers or {}, io.BytesIO(body))


def request_path(req):
    return urllib.parse.urlparse(req.full_url).path


def request_query(req):
    return {k: v[0] for k, v in urllib.parse.parse_qs(urllib.parse.urlparse(req.full_url).query).items()}


def request_json(req):
    return json.loads(req.data.decode("utf-8"))


@pytest.fixture
def client():
    return Desk365Client(base_url=BASE_URL, api_key=API_KEY)


@pytest.fixture
def fake_urlopen(monkeypatch):
    def install(*responses):
        fake = FakeUrlopen(responses)
        monkeypatch.setattr(urllib.request, "urlopen", fake, raising=False)
        return fake

    return install
