"""
End-to-End API Tests
"""

import asyncio
import httpx
import pytest
import pytest_asyncio

from shotgen.core.format_router import FormatRouter
from shotgen.services.credential_pool import CredentialPool, NoCredentialsError
from shotgen.services.dispatcher import GenerationDispatcher
from shotgen.services.group_store import GroupStore
from tests.fixtures.sample_data import (
    CONTENT_TASKS_STATUS_DONE,
    CONTENT_TASKS_SUBMIT_RESPONSE,
    SAMPLE_SHOTS,
    UNIFIED_STATUS_DONE,
    UNIFIED_STATUS_RUNNING,
    UNIFIED_SUBMIT_RESPONSE,
)

pytestmark = pytest.mark.asyncio


@pytest.fixture
def stub(vendor_stub):
    """Vendor stub shared by the app under test"""
    return vendor_stub(
        submit=[(200, UNIFIED_SUBMIT_RESPONSE)],
        status=[(200, UNIFIED_STATUS_RUNNING), (200, UNIFIED_STATUS_DONE)],
    )


@pytest.fixture
def store():
    return GroupStore()


@pytest.fixture
def jobs():
    from shotgen.api.dependencies import GenerationJobs

    return GenerationJobs()


@pytest_asyncio.fixture
async def client(stub, store, jobs):
    """Create test client"""
    from shotgen.api.main import app
    from shotgen.api.dependencies import (
        get_credential_pool,
        get_dispatcher,
        get_generation_jobs,
        get_group_store,
    )

    dispatcher = GenerationDispatcher(
        store,
        client=stub.client(),
        router=FormatRouter(endpoint_types={}),
        poll_interval_s=0,
        max_poll_attempts=1000,
    )
    pool = CredentialPool(["k-test"])

    app.dependency_overrides[get_group_store] = lambda: store
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_credential_pool] = lambda: pool
    app.dependency_overrides[get_generation_jobs] = lambda: jobs
    await app.router.startup()
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    await app.router.shutdown()
    await dispatcher.client.close()
    app.dependency_overrides.clear()


async def _create_groups(client, **extra):
    response = await client.post("/v1/shot-groups", json={"shots": SAMPLE_SHOTS, **extra})
    assert response.status_code == 201
    return response.json()["groups"]


async def _wait_until_generating(store, group_id):
    while store.get(group_id).status.value != "generating":
        await asyncio.sleep(0)


class TestHealth:
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["service"] == "shotgen"


class TestShotGroupsAPI:
    """E2E tests for /v1/shot-groups"""

    async def test_create_groups(self, client):
        response = await client.post("/v1/shot-groups", json={"shots": SAMPLE_SHOTS})

        assert response.status_code == 201
        data = response.json()
        assert data["total_groups"] == 3
        assert data["total_shots"] == 6
        assert [g["shot_ids"] for g in data["groups"]] == [[1, 2, 3], [4, 5], [6]]
        assert [g["total_duration"] for g in data["groups"]] == [12, 11, 8]
        assert all(g["status"] == "idle" for g in data["groups"])

    async def test_create_with_config_and_descriptive_names(self, client):
        groups = await _create_groups(
            client,
            config={"max_shots_per_group": 2},
            descriptive_names=True,
        )

        assert [g["shot_ids"] for g in groups] == [[1, 2], [3, 4], [5], [6]]
        assert groups[0]["name"] == "Kitchen (shots 1-2)"

    async def test_invalid_config_rejected(self, client):
        response = await client.post(
            "/v1/shot-groups",
            json={"shots": SAMPLE_SHOTS, "config": {"max_shots_per_group": 0}},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_list_and_get(self, client):
        groups = await _create_groups(client)

        listed = await client.get("/v1/shot-groups")
        assert listed.status_code == 200
        assert listed.json()["total_groups"] == 3

        one = await client.get(f"/v1/shot-groups/{groups[1]['id']}")
        assert one.status_code == 200
        assert one.json()["shot_ids"] == [4, 5]

    async def test_get_unknown_group(self, client):
        response = await client.get("/v1/shot-groups/grp_missing")

        assert response.status_code == 404
        assert response.json()["detail"]["error"]["code"] == "GROUP_NOT_FOUND"

    async def test_duration_endpoint(self, client):
        shots = [{"id": 1, "scene_name": "Hall", "duration": 22}]
        response = await client.post("/v1/shot-groups", json={"shots": shots})
        group_id = response.json()["groups"][0]["id"]

        duration = await client.get(f"/v1/shot-groups/{group_id}/duration")

        assert duration.status_code == 200
        assert duration.json() == {"group_id": group_id, "total_duration": 15, "actual_duration_s": 22}


class TestReferencesAPI:
    """E2E tests for /v1/shot-groups/{group_id}/refs"""

    async def test_add_and_remove_ref(self, client):
        group_id = (await _create_groups(client))[0]["id"]

        added = await client.post(
            f"/v1/shot-groups/{group_id}/refs",
            json={"kind": "video", "purpose": "camera_replicate", "http_url": "https://v/1.mp4", "duration": 6},
        )
        assert added.status_code == 201
        refs = added.json()["video_refs"]
        assert len(refs) == 1

        removed = await client.delete(f"/v1/shot-groups/{group_id}/refs/{refs[0]['id']}")
        assert removed.status_code == 204

        again = await client.delete(f"/v1/shot-groups/{group_id}/refs/{refs[0]['id']}")
        assert again.status_code == 404
        assert again.json()["detail"]["error"]["code"] == "REF_NOT_FOUND"

    async def test_quota_exceeded(self, client):
        group_id = (await _create_groups(client))[0]["id"]
        ref = {"kind": "audio", "http_url": "https://a/1.mp3", "duration": 4}
        for _ in range(3):
            assert (await client.post(f"/v1/shot-groups/{group_id}/refs", json=ref)).status_code == 201

        response = await client.post(f"/v1/shot-groups/{group_id}/refs", json=ref)

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "AUDIO_QUOTA_EXCEEDED"
        assert error["suggested_modifications"]

    async def test_long_clip_rejected(self, client):
        group_id = (await _create_groups(client))[0]["id"]

        response = await client.post(
            f"/v1/shot-groups/{group_id}/refs",
            json={"kind": "video", "http_url": "https://v/long.mp4", "duration": 40},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "REF_DURATION_EXCEEDED"


class TestGenerationAPI:
    """E2E tests for /v1/shot-groups/{group_id}/generate"""

    async def test_generate_completes(self, client, stub, jobs):
        group_id = (await _create_groups(client))[0]["id"]

        response = await client.post(
            f"/v1/shot-groups/{group_id}/generate",
            json={"prompt": "Morning tea in the kitchen", "model": "veo3", "first_frame_url": "https://img/k.png"},
        )

        assert response.status_code == 202
        assert response.json()["status"] == "generating"

        result = await jobs.wait(group_id)
        assert result.succeeded

        group = (await client.get(f"/v1/shot-groups/{group_id}")).json()
        assert group["status"] == "completed"
        assert group["progress"] == 100
        assert group["video_url"] == "https://cdn.example.com/uni.mp4"
        assert len(group["history"]) == 1

        body = stub.submitted_json(0)
        assert body["model"] == "veo3"
        assert "duration" not in body
        assert body["images"] == ["https://img/k.png"]
        assert stub.submit_requests[0].headers["Authorization"] == "Bearer k-test"

    async def test_generate_with_default_model(self, client, stub, jobs):
        stub.submit_responses[:] = [(200, CONTENT_TASKS_SUBMIT_RESPONSE)]
        stub.status_responses[:] = [(200, CONTENT_TASKS_STATUS_DONE)]
        group_id = (await _create_groups(client))[2]["id"]

        response = await client.post(f"/v1/shot-groups/{group_id}/generate", json={"prompt": "Rooftop at dusk"})
        assert response.status_code == 202

        result = await jobs.wait(group_id)
        assert result.variant == "content_tasks"
        text = stub.submitted_json(0)["content"][0]["text"]
        assert text == "Rooftop at dusk --rs 720p --rt 16:9 --dur 8"

    async def test_generate_uses_calibrated_prompt(self, client, store, stub, jobs):
        from shotgen.core.calibration import run_calibration
        from tests.fixtures.sample_data import SAMPLE_CALIBRATION_OUTPUT

        group_id = (await _create_groups(client))[0]["id"]

        async def calibrator(group):
            return SAMPLE_CALIBRATION_OUTPUT

        assert await run_calibration(store, group_id, calibrator)

        response = await client.post(f"/v1/shot-groups/{group_id}/generate", json={"model": "veo3"})
        assert response.status_code == 202
        await jobs.wait(group_id)

        assert stub.submitted_json(0)["prompt"].startswith("Shot 1: Mei pours tea.")

    async def test_prompt_required_without_calibration(self, client):
        group_id = (await _create_groups(client))[0]["id"]

        response = await client.post(f"/v1/shot-groups/{group_id}/generate", json={})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_VALUE"

    async def test_invalid_aspect_ratio(self, client):
        group_id = (await _create_groups(client))[0]["id"]

        response = await client.post(
            f"/v1/shot-groups/{group_id}/generate",
            json={"prompt": "p", "aspect_ratio": "2:1"},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_quota_rejected_before_submit(self, client, store, stub):
        from shotgen.models.shot import AssetKind, AssetRef

        group_id = (await _create_groups(client))[0]["id"]
        store.get(group_id).video_refs.extend(
            AssetRef(kind=AssetKind.VIDEO, http_url=f"https://v/{i}.mp4", duration=5) for i in range(4)
        )

        response = await client.post(f"/v1/shot-groups/{group_id}/generate", json={"prompt": "p"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VIDEO_QUOTA_EXCEEDED"
        assert stub.requests == []
        assert store.get(group_id).status.value == "idle"

    async def test_generate_conflict_while_running(self, client, store, stub, jobs):
        stub.status_responses[:] = [(200, UNIFIED_STATUS_RUNNING)]
        group_id = (await _create_groups(client))[0]["id"]

        first = await client.post(f"/v1/shot-groups/{group_id}/generate", json={"prompt": "p", "model": "veo3"})
        assert first.status_code == 202
        await _wait_until_generating(store, group_id)

        second = await client.post(f"/v1/shot-groups/{group_id}/generate", json={"prompt": "p", "model": "veo3"})
        assert second.status_code == 409
        assert second.json()["detail"]["error"]["code"] == "GENERATION_IN_PROGRESS"

        jobs.cancel(group_id)
        await jobs.wait(group_id)

    async def test_generate_failure_recorded(self, client, stub, jobs):
        stub.submit_responses[:] = [(400, {"error": {"message": "prompt rejected by safety policy"}})]
        group_id = (await _create_groups(client))[0]["id"]

        response = await client.post(f"/v1/shot-groups/{group_id}/generate", json={"prompt": "p", "model": "veo3"})
        assert response.status_code == 202

        result = await jobs.wait(group_id)
        assert result.failure_kind == "CONTENT_MODERATION"

        group = (await client.get(f"/v1/shot-groups/{group_id}")).json()
        assert group["status"] == "failed"
        assert group["failure_kind"] == "CONTENT_MODERATION"

    async def test_generate_unknown_group(self, client):
        response = await client.post("/v1/shot-groups/grp_missing/generate", json={"prompt": "p"})
        assert response.status_code == 404

    async def test_no_credentials(self, client):
        from shotgen.api.main import app
        from shotgen.api.dependencies import get_credential_pool

        def no_keys():
            raise NoCredentialsError("At least one API key is required")

        app.dependency_overrides[get_credential_pool] = no_keys
        group_id = (await _create_groups(client))[0]["id"]

        response = await client.post(f"/v1/shot-groups/{group_id}/generate", json={"prompt": "p"})

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "NO_CREDENTIALS"


class TestCancelAPI:
    """E2E tests for /v1/shot-groups/{group_id}/cancel"""

    async def test_cancel_running_generation(self, client, stub, jobs):
        stub.status_responses[:] = [(200, UNIFIED_STATUS_RUNNING)]
        group_id = (await _create_groups(client))[0]["id"]

        await client.post(f"/v1/shot-groups/{group_id}/generate", json={"prompt": "p", "model": "veo3"})
        response = await client.post(f"/v1/shot-groups/{group_id}/cancel")

        assert response.status_code == 202
        assert response.json()["cancelled"] is True

        result = await jobs.wait(group_id)
        assert result.failure_kind == "CANCELLED"

        group = (await client.get(f"/v1/shot-groups/{group_id}")).json()
        assert group["status"] == "failed"
        assert group["video_url"] is None

    async def test_cancel_without_generation(self, client):
        group_id = (await _create_groups(client))[0]["id"]

        response = await client.post(f"/v1/shot-groups/{group_id}/cancel")

        assert response.status_code == 409
        assert response.json()["detail"]["error"]["code"] == "NO_ACTIVE_GENERATION"

    async def test_regroup_blocked_while_generating(self, client, store, stub, jobs):
        stub.status_responses[:] = [(200, UNIFIED_STATUS_RUNNING)]
        group_id = (await _create_groups(client))[0]["id"]
        await client.post(f"/v1/shot-groups/{group_id}/generate", json={"prompt": "p", "model": "veo3"})
        await _wait_until_generating(store, group_id)

        response = await client.post("/v1/shot-groups", json={"shots": SAMPLE_SHOTS})

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "STATE_CONFLICT"

        jobs.cancel(group_id)
        await jobs.wait(group_id)
