"""
Unit Tests for Vendor Video Client
"""

import json
import httpx
import pytest

from shotgen.core.format_router import ProtocolVariant
from shotgen.core.request_builders import build_payload
from shotgen.models.generation import GenerationRequest, build_image_with_roles
from shotgen.services.error_classifier import (
    AuthInvalidError,
    ContentModerationError,
    RateLimitedError,
    VendorError,
)
from tests.fixtures.sample_data import (
    ASYNC_SYNTHESIS_SUBMIT_RESPONSE,
    CONTENT_TASKS_SUBMIT_RESPONSE,
    TASK_BY_MODE_SUBMIT_RESPONSE,
    UNIFIED_STATUS_RUNNING,
    UNIFIED_SUBMIT_RESPONSE,
)


pytestmark = pytest.mark.asyncio


def _request():
    return GenerationRequest(
        prompt="A paper boat drifting",
        duration=6,
        images=build_image_with_roles("https://img/boat.png"),
    )


class TestSubmit:
    """Test submission per variant"""

    @pytest.mark.parametrize(
        "variant,response,task_id",
        [
            (ProtocolVariant.UNIFIED, UNIFIED_SUBMIT_RESPONSE, "uni_task_1"),
            (ProtocolVariant.CONTENT_TASKS, CONTENT_TASKS_SUBMIT_RESPONSE, "cgt-20250101-abc"),
            (ProtocolVariant.ASYNC_SYNTHESIS, ASYNC_SYNTHESIS_SUBMIT_RESPONSE, "wan_task_1"),
            (ProtocolVariant.TASK_BY_MODE, TASK_BY_MODE_SUBMIT_RESPONSE, "kling_task_1"),
        ],
    )
    async def test_submit_extracts_task_id(self, vendor_stub, variant, response, task_id):
        stub = vendor_stub(submit=[(200, response)])
        payload = build_payload(variant, _request(), "some-model")

        async with stub.client() as client:
            result = await client.submit(variant, payload, "sk-test")

        assert result == task_id
        sent = stub.submit_requests[0]
        assert sent.url.path == payload.path
        assert sent.headers["Authorization"] == "Bearer sk-test"
        assert json.loads(sent.content) == payload.body

    async def test_payload_headers_are_sent(self, vendor_stub):
        stub = vendor_stub(submit=[(200, ASYNC_SYNTHESIS_SUBMIT_RESPONSE)])
        base_url = "https://dashscope.aliyuncs.com/api/v1"
        payload = build_payload(ProtocolVariant.ASYNC_SYNTHESIS, _request(), "wan2.6-i2v", base_url)

        async with stub.client(base_url) as client:
            await client.submit(ProtocolVariant.ASYNC_SYNTHESIS, payload, "sk-test")

        sent = stub.submit_requests[0]
        assert sent.headers["X-DashScope-Async"] == "enable"
        assert sent.url.path == "/api/v1/services/aigc/video-generation/video-synthesis"

    @pytest.mark.parametrize(
        "status,body,error_type",
        [
            (401, {"error": {"message": "invalid api key"}}, AuthInvalidError),
            (403, "forbidden", AuthInvalidError),
            (429, {"error": {"message": "rate limit"}}, RateLimitedError),
            (400, {"error": {"message": "prompt contains sensitive words"}}, ContentModerationError),
            (500, "Internal Server Error", VendorError),
        ],
    )
    async def test_http_errors_are_classified(self, vendor_stub, status, body, error_type):
        stub = vendor_stub(submit=[(status, body)])
        payload = build_payload(ProtocolVariant.UNIFIED, _request(), "veo3")

        async with stub.client() as client:
            with pytest.raises(error_type) as exc_info:
                await client.submit(ProtocolVariant.UNIFIED, payload, "sk-test")

        assert exc_info.value.status_code == status

    async def test_network_error_is_vendor_error(self, vendor_stub):
        stub = vendor_stub(submit=[httpx.ConnectError("connection refused")])
        payload = build_payload(ProtocolVariant.UNIFIED, _request(), "veo3")

        async with stub.client() as client:
            with pytest.raises(VendorError, match="Network error"):
                await client.submit(ProtocolVariant.UNIFIED, payload, "sk-test")

    async def test_missing_task_id(self, vendor_stub):
        stub = vendor_stub(submit=[(200, {"status": "queued"})])
        payload = build_payload(ProtocolVariant.UNIFIED, _request(), "veo3")

        async with stub.client() as client:
            with pytest.raises(VendorError, match="no task id"):
                await client.submit(ProtocolVariant.UNIFIED, payload, "sk-test")

    async def test_moderation_in_2xx_body(self, vendor_stub):
        stub = vendor_stub(submit=[(200, {"error": "content_sensitive"})])
        payload = build_payload(ProtocolVariant.UNIFIED, _request(), "veo3")

        async with stub.client() as client:
            with pytest.raises(ContentModerationError):
                await client.submit(ProtocolVariant.UNIFIED, payload, "sk-test")


class TestQuery:
    """Test status queries"""

    async def test_unified_query_uses_params(self, vendor_stub):
        stub = vendor_stub(status=[(200, UNIFIED_STATUS_RUNNING)])

        async with stub.client() as client:
            response = await client.query(ProtocolVariant.UNIFIED, "uni_task_1", "sk-test")

        assert response.status_code == 200
        sent = stub.status_requests[0]
        assert sent.url.path == "/v1/video/query"
        assert sent.url.params["id"] == "uni_task_1"
        assert sent.headers["Authorization"] == "Bearer sk-test"

    async def test_query_returns_error_responses(self, vendor_stub):
        stub = vendor_stub(status=[(404, {"error": "not found"})])

        async with stub.client() as client:
            response = await client.query(ProtocolVariant.TASK_BY_MODE, "k1", "sk-test")

        assert response.status_code == 404
        assert stub.status_requests[0].url.path == "/kling/v1/videos/generations/k1"

    async def test_query_propagates_transport_errors(self, vendor_stub):
        stub = vendor_stub(status=[httpx.ReadTimeout("timed out")])

        async with stub.client() as client:
            with pytest.raises(httpx.HTTPError):
                await client.query(ProtocolVariant.UNIFIED, "t", "sk-test")
