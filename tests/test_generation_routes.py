import io
from typing import Iterator

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from videogen import crud
from videogen.api.deps import get_artifact_store, get_reference_fetcher, get_video_client
from videogen.config import settings
from videogen.db import get_db
from videogen.main import create_app
from videogen.models import GenerationStatus
from videogen.providers.openai_videos import ProviderJobStatus
from videogen.security.auth import StaticTokenAuthProvider
from videogen.storage.local import LocalArtifactStore

from fakes import reference_error, status_error, submit_error

ALICE = {"Authorization": "Bearer token-alice"}
BOB = {"Authorization": "Bearer token-bob"}


@pytest.fixture
def api(db, tmp_path, fake_client, fake_fetcher) -> Iterator[TestClient]:
    app = create_app()
    app.state.auth_provider = StaticTokenAuthProvider(
        {"token-alice": "alice@example.com", "token-bob": "bob@example.com"}
    )
    store = LocalArtifactStore(tmp_path / "storage", "http://testserver")

    def _db():
        yield db

    app.dependency_overrides[get_db] = _db
    app.dependency_overrides[get_video_client] = lambda: fake_client
    app.dependency_overrides[get_reference_fetcher] = lambda: fake_fetcher
    app.dependency_overrides[get_artifact_store] = lambda: store

    yield TestClient(app)

    app.dependency_overrides.clear()


def _create(api, headers=ALICE, **overrides):
    payload = {"action": "create", "prompt": "a cat", "aspect_ratio": "16:9", "duration": 4}
    payload.update(overrides)
    return api.post("/api/v1/generate-video", json=payload, headers=headers)


def _check(api, generation_id, headers=ALICE):
    return api.post(
        "/api/v1/generate-video",
        json={"action": "check_status", "generationId": generation_id},
        headers=headers,
    )


def test_health(api):
    response = api.get("/api/v1/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


@pytest.mark.parametrize("headers", [{}, {"Authorization": "Bearer wrong"}, {"Authorization": "token-alice"}])
def test_unauthenticated_requests_have_no_side_effects(api, fake_client, db, headers):
    response = _create(api, headers=headers)

    assert response.status_code == 401
    assert fake_client.submissions == []
    assert crud.list_generations(db) == []


def test_create_returns_ids(api, fake_client, db):
    response = _create(api)

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    assert payload["job_id"] == "video_1"

    generation = crud.get_generation(db, payload["generation_id"])
    assert generation.status == GenerationStatus.PROCESSING
    assert generation.created_by == "alice@example.com"
    assert fake_client.submissions[0]["size"] == "1280x720"


@pytest.mark.parametrize(
    "payload",
    [
        {"action": "create", "aspect_ratio": "16:9"},
        {"action": "render"},
        {"prompt": "a cat"},
        {"action": "check_status"},
    ],
)
def test_invalid_payloads_are_bad_requests(api, fake_client, payload):
    response = api.post("/api/v1/generate-video", json=payload, headers=ALICE)

    assert response.status_code == 400
    assert fake_client.submissions == []


def test_blank_prompt_is_bad_request(api, fake_client):
    response = _create(api, prompt="   ")

    assert response.status_code == 400
    assert fake_client.submissions == []


def test_reference_image_failure_is_server_error(api, fake_client, fake_fetcher, db):
    fake_fetcher.error = reference_error()

    response = _create(api, image_url="https://img.example.com/cat.png")

    assert response.status_code == 500
    assert response.json()["detail"]["error"] == "Failed to fetch reference image"
    assert fake_client.submissions == []
    assert crud.list_generations(db) == []


def test_upstream_submit_failure_is_server_error(api, fake_client, db):
    fake_client.submit_error = submit_error()

    response = _create(api)

    assert response.status_code == 500
    assert response.json()["detail"]["status"] == 400
    assert crud.list_generations(db) == []


def test_check_status_unknown_generation(api):
    response = _check(api, "does-not-exist")

    assert response.status_code == 404


def test_check_status_processing_reports_progress(api, fake_client):
    generation_id = _create(api).json()["generation_id"]
    fake_client.status_results = [ProviderJobStatus(state="processing", progress=55)]

    response = _check(api, generation_id)

    assert response.status_code == 200
    assert response.json() == {"status": "processing", "progress": 55}


def test_check_status_masks_upstream_errors(api, fake_client):
    generation_id = _create(api).json()["generation_id"]
    fake_client.status_results = [status_error()]

    response = _check(api, generation_id)

    assert response.status_code == 200
    assert response.json() == {"status": "processing"}


def test_check_status_completed_is_stable(api, fake_client):
    generation_id = _create(api).json()["generation_id"]
    fake_client.status_results = [ProviderJobStatus(state="completed")]

    first = _check(api, generation_id).json()
    second = api.post(
        "/api/v1/generate-video",
        json={"action": "check_status", "generation_id": generation_id},
        headers=ALICE,
    ).json()

    assert first["status"] == "completed"
    assert first["video_url"].startswith("http://testserver/api/v1/media/videos/")
    assert second == first
    assert fake_client.download_calls == ["video_1"]

    video = api.get(first["video_url"])
    assert video.status_code == 200
    assert video.headers["content-type"] == "video/mp4"


def test_check_status_failed(api, fake_client):
    generation_id = _create(api).json()["generation_id"]
    fake_client.status_results = [ProviderJobStatus(state="failed", error_message="quota exceeded")]

    first = _check(api, generation_id)
    second = _check(api, generation_id)

    assert first.json() == {"status": "failed", "error_message": "quota exceeded"}
    assert second.json() == first.json()
    assert len(fake_client.status_calls) == 1


def test_check_status_hides_other_users_generations(api, fake_client):
    generation_id = _create(api).json()["generation_id"]

    response = _check(api, generation_id, headers=BOB)

    assert response.status_code == 404
    assert fake_client.status_calls == []


def test_history_lists_only_own_generations(api):
    _create(api, prompt="first")
    _create(api, prompt="second")
    _create(api, headers=BOB, prompt="bob's")

    response = api.get("/api/v1/generations", headers=ALICE)

    assert response.status_code == 200
    prompts = sorted(item["prompt"] for item in response.json())
    assert prompts == ["first", "second"]


def test_get_generation_record(api):
    generation_id = _create(api).json()["generation_id"]

    response = api.get(f"/api/v1/generations/{generation_id}", headers=ALICE)
    assert response.status_code == 200
    assert response.json()["status"] == "processing"
    assert response.json()["aspect_ratio"] == "16:9"

    assert api.get(f"/api/v1/generations/{generation_id}", headers=BOB).status_code == 404


def test_create_schedules_server_polling_when_enabled(api, monkeypatch):
    scheduled = []

    class _Task:
        def apply_async(self, args, countdown):
            scheduled.append((args, countdown))

    monkeypatch.setattr(settings, "server_polling_enabled", True)
    monkeypatch.setattr("videogen.api.routes.generations.poll_generation", _Task())

    generation_id = _create(api).json()["generation_id"]

    assert scheduled == [((generation_id,), settings.poll_interval_seconds)]


def test_upload_reference_image_round_trip(api):
    buffer = io.BytesIO()
    Image.new("RGB", (64, 36), color=(10, 120, 200)).save(buffer, format="PNG")

    response = api.post(
        "/api/v1/uploads/images",
        files={"file": ("cat.png", buffer.getvalue(), "image/png")},
        headers=ALICE,
    )

    assert response.status_code == 201
    payload = response.json()
    assert (payload["width"], payload["height"]) == (64, 36)
    image = api.get(payload["file_url"])
    assert image.status_code == 200
    assert image.headers["content-type"] == "image/png"


def test_upload_rejects_non_images(api):
    response = api.post(
        "/api/v1/uploads/images",
        files={"file": ("notes.txt", b"hello", "text/plain")},
        headers=ALICE,
    )

    assert response.status_code == 400


def test_media_route_404(api):
    assert api.get("/api/v1/media/videos/missing.mp4").status_code == 404


def test_create_with_reference_image_uses_fetcher(api, fake_client, fake_fetcher):
    response = _create(api, image_url="https://img.example.com/cat.png", aspect_ratio="1:1")

    assert response.status_code == 200
    assert fake_fetcher.fetched == ["https://img.example.com/cat.png"]
    submission = fake_client.submissions[0]
    assert submission["size"] == "720x1280"
    assert submission["reference_image"].filename == "reference.png"


@pytest.mark.parametrize("duration", ["abc", -1, 0, None, "4.5", True])
def test_create_defaults_unusable_duration(api, fake_client, db, duration):
    response = _create(api, duration=duration)

    assert response.status_code == 200
    assert fake_client.submissions[0]["seconds"] == 4
    assert crud.get_generation(db, response.json()["generation_id"]).duration == 4


def test_create_without_aspect_ratio_is_portrait(api, fake_client, db):
    response = api.post(
        "/api/v1/generate-video",
        json={"action": "create", "prompt": "a cat"},
        headers=ALICE,
    )

    assert response.status_code == 200
    assert fake_client.submissions[0]["size"] == "720x1280"
    generation = crud.get_generation(db, response.json()["generation_id"])
    assert generation.aspect_ratio.value == "9:16"
