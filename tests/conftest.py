import json

import pytest

from pathfinder.schemas import Candidate
from pathfinder.service import DatabaseService

BOOTSTRAP = ["alex.tester@example.com"]


def make_service(tmp_path, mode):
    database_url = f"sqlite:///{tmp_path / 'remote.db'}" if mode == "remote" else ""
    return DatabaseService(database_url, str(tmp_path / "store"), bootstrap_emails=BOOTSTRAP)


@pytest.fixture(params=["local", "remote"])
def service(request, tmp_path):
    """An initialized service on each backend."""
    svc = make_service(tmp_path, request.param)
    svc.initialize()
    assert svc.mode == request.param
    yield svc
    svc.close()


@pytest.fixture
def local_service(tmp_path):
    svc = make_service(tmp_path, "local")
    svc.initialize()
    yield svc
    svc.close()


@pytest.fixture
def candidate_factory():
    def make(email="jane@example.com", candidate_id="cand-1", **fields):
        return Candidate(id=candidate_id, email=email, full_name=fields.pop("full_name", "Jane Doe"), **fields)
    return make


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        if self._payload is None:
            raise ValueError("no json body")
        return self._payload


def gemini_reply(body, fenced=False):
    """Wrap a JSON body the way generateContent returns it."""
    text = body if isinstance(body, str) else json.dumps(body)
    if fenced:
        text = f"```json\n{text}\n```"
    return FakeResponse(200, {"candidates": [{"content": {"parts": [{"text": text}]}}]})
