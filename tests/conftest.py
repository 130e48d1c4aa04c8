"""
Pytest Configuration and Fixtures
"""

import json
import pytest
import httpx
from typing import Any, Callable, Dict, List, Optional, Tuple

from shotgen.core.vendor_client import VendorVideoClient
from shotgen.models.shot import Shot
from shotgen.services.group_store import GroupStore
from tests.fixtures.sample_data import get_sample_shots


TEST_BASE_URL = "https://gateway.test"


class VendorStub:
    """
    Scripted vendor HTTP surface

    POST requests consume submit_responses in order, GET requests consume
    status_responses in order; the last status response repeats once the
    script runs out. Each entry is (status_code, body) or an exception
    instance to raise.
    """

    def __init__(
        self,
        submit_responses: Optional[List[Any]] = None,
        status_responses: Optional[List[Any]] = None,
    ):
        self.submit_responses = list(submit_responses or [])
        self.status_responses = list(status_responses or [])
        self.requests: List[httpx.Request] = []

    @property
    def submit_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == "POST"]

    @property
    def status_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == "GET"]

    def submitted_json(self, index: int = 0) -> Dict[str, Any]:
        return json.loads(self.submit_requests[index].content)

    def _next(self, queue: List[Any]) -> Any:
        if len(queue) > 1:
            return queue.pop(0)
        if queue:
            return queue[0]
        return (500, {"error": "no scripted response"})

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        entry = self._next(self.submit_responses if request.method == "POST" else self.status_responses)
        if isinstance(entry, Exception):
            raise entry
        status_code, body = entry
        if isinstance(body, (dict, list)):
            return httpx.Response(status_code, json=body)
        return httpx.Response(status_code, text=body or "")

    def client(self, base_url: str = TEST_BASE_URL) -> VendorVideoClient:
        return VendorVideoClient(
            base_url=base_url,
            timeout=5.0,
            transport=httpx.MockTransport(self.handler),
        )


@pytest.fixture
def vendor_stub() -> Callable[..., VendorStub]:
    """Factory for scripted vendor stubs"""

    def _make(submit: Optional[List[Any]] = None, status: Optional[List[Any]] = None) -> VendorStub:
        return VendorStub(submit_responses=submit, status_responses=status)

    return _make


@pytest.fixture
def sample_shots() -> List[Shot]:
    """Ordered sample shots"""
    return [Shot(**data) for data in get_sample_shots()]


@pytest.fixture
def group_store() -> GroupStore:
    """Empty in-memory group store"""
    return GroupStore()


def make_shot(shot_id: int, scene: str = "", characters: Tuple[str, ...] = (), duration: float = 5) -> Shot:
    """Build a shot with positional shorthand"""
    return Shot(id=shot_id, scene_name=scene, character_ids=list(characters), duration=duration)


@pytest.fixture
def shot_factory() -> Callable[..., Shot]:
    """Factory for shots"""
    return make_shot
