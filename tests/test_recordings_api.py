"""HTTP-level tests for the recording and feedback endpoints."""

from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from salesmind.config.settings import settings
from salesmind.controllers.dependencies import get_current_user
from salesmind.main import app
from salesmind.models import ProcessingStatus, User, UserRole
from salesmind.services.result_cache import ResultCache
from salesmind.services.runtime import (
    get_feedback_cache,
    get_file_store,
    get_processing_orchestrator,
)
from salesmind.services.storage import FileStore


class FakeOrchestrator:
    def __init__(self) -> None:
        self.queued: list[int] = []

    def process_audio_async(self, recording_id: int) -> None:
        self.queued.append(recording_id)


@pytest.fixture
def orchestrator() -> FakeOrchestrator:
    return FakeOrchestrator()


@pytest.fixture
def feedback_cache() -> ResultCache:
    return ResultCache(60)


@pytest.fixture
def client(seed, tmp_path: Path, orchestrator, feedback_cache):
    store = FileStore(tmp_path / "uploads")
    app.dependency_overrides[get_file_store] = lambda: store
    app.dependency_overrides[get_processing_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_feedback_cache] = lambda: feedback_cache
    login_as(seed.seller_id, seed.company_id)

    yield TestClient(app)

    app.dependency_overrides.clear()


def login_as(user_id: int, company_id: int, role: UserRole = UserRole.VENDEDOR) -> None:
    async def fake_get_current_user() -> User:
        return User(
            id=user_id,
            company_id=company_id,
            email=f"user{user_id}@test",
            name=f"User {user_id}",
            role=role,
        )

    app.dependency_overrides[get_current_user] = fake_get_current_user


def _upload(client: TestClient, client_id, filename: str = "call.mp3", data: bytes = b"\x00" * 32000):
    return client.post(
        "/api/gravacoes/upload",
        data={"idCliente": str(client_id)},
        files={"audioFile": (filename, data, "audio/mpeg")},
    )


def test_upload_is_accepted_and_queued(client, seed, orchestrator, tmp_path: Path) -> None:
    response = _upload(client, seed.client_id)

    assert response.status_code == 202
    payload = response.json()
    assert payload["status"] == "UPLOADING"
    assert payload["message"] == "Audio upload successful. Processing started asynchronously."
    assert payload["audioFilename"] == "call.mp3"
    assert payload["estimatedDuration"] == "2s"
    assert payload["checkStatusAt"] == f"/api/gravacoes/{payload['id']}/status"
    assert orchestrator.queued == [payload["id"]]
    assert Path(payload["audioUrl"]).parent == tmp_path / "uploads" / str(seed.seller_id) / str(seed.client_id)

    status_response = client.get(payload["checkStatusAt"])
    assert status_response.status_code == 200
    assert status_response.json() == {
        "id": payload["id"],
        "statusProcessamento": "UPLOADING",
        "statusVenda": "PENDENTE",
        "hasTranscricao": False,
        "hasResumo": False,
        "hasFeedback": False,
        "erroProcessamento": None,
    }

    detail = client.get(f"/api/gravacoes/{payload['id']}").json()
    assert detail["duracaoSegundos"] == 2


def test_disallowed_extension_is_rejected(client, seed, orchestrator, tmp_path: Path) -> None:
    response = _upload(client, seed.client_id, filename="malware.exe")

    assert response.status_code == 400
    assert "not allowed" in response.json()["detail"]
    assert orchestrator.queued == []
    assert not any(path.is_file() for path in (tmp_path / "uploads").rglob("*"))


@pytest.mark.parametrize("client_id", ["", "abc"])
def test_invalid_client_field(client, client_id) -> None:
    assert _upload(client, client_id).status_code == 400


def test_missing_audio_part(client, seed) -> None:
    body = (
        b"--b0undary\r\n"
        b'Content-Disposition: form-data; name="idCliente"\r\n\r\n'
        + str(seed.client_id).encode()
        + b"\r\n--b0undary--\r\n"
    )
    response = client.post(
        "/api/gravacoes/upload",
        content=body,
        headers={"Content-Type": "multipart/form-data; boundary=b0undary"},
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "audioFile is required"


def test_non_multipart_body(client) -> None:
    response = client.post("/api/gravacoes/upload", json={"idCliente": 1})

    assert response.status_code == 400


def test_unknown_and_foreign_clients(client, seed) -> None:
    assert _upload(client, 424242).status_code == 404
    assert _upload(client, seed.foreign_client_id).status_code == 403


def test_request_body_ceiling(client, seed, monkeypatch) -> None:
    monkeypatch.setattr(settings.storage, "max_upload_bytes", 1024)

    response = _upload(client, seed.client_id, data=b"\x00" * 4096)

    assert response.status_code == 413


def test_status_access_rules(client, seed, add_recording) -> None:
    recording_id = add_recording(user_id=seed.other_seller_id)

    assert client.get("/api/gravacoes/999999/status").status_code == 404
    assert client.get(f"/api/gravacoes/{recording_id}/status").status_code == 403

    login_as(seed.other_seller_id, seed.company_id)
    assert client.get(f"/api/gravacoes/{recording_id}/status").status_code == 200


def test_recording_details_and_listing(client, add_recording) -> None:
    done = add_recording(status=ProcessingStatus.CONCLUIDO, with_feedback=True)
    pending = add_recording()

    detail = client.get(f"/api/gravacoes/{done}").json()
    assert detail["resumoIA"] == "Cliente interessado no plano anual."
    assert detail["feedback"]["probabilidadeFechamento"] == 75
    assert detail["feedback"]["momentosChave"] == ["00:45 - pediu proposta"]

    listing = client.get("/api/gravacoes").json()
    assert {item["id"] for item in listing} == {done, pending}


def test_feedback_by_recording_is_cached(client, add_recording, feedback_cache) -> None:
    recording_id = add_recording(status=ProcessingStatus.CONCLUIDO, with_feedback=True)

    first = client.get(f"/api/feedbacks/gravacao/{recording_id}")
    assert first.status_code == 200
    assert first.json()["categoriaAmbiental"] == "POSITIVO"
    assert feedback_cache.get(recording_id) is not None

    second = client.get(f"/api/feedbacks/gravacao/{recording_id}")
    assert second.json() == first.json()


def test_cached_feedback_still_checks_ownership(client, seed, add_recording) -> None:
    recording_id = add_recording(status=ProcessingStatus.CONCLUIDO, with_feedback=True)
    assert client.get(f"/api/feedbacks/gravacao/{recording_id}").status_code == 200

    login_as(seed.other_seller_id, seed.company_id)
    assert client.get(f"/api/feedbacks/gravacao/{recording_id}").status_code == 403


def test_feedback_not_ready(client, add_recording) -> None:
    recording_id = add_recording(status=ProcessingStatus.PROCESSANDO)

    response = client.get(f"/api/feedbacks/gravacao/{recording_id}")

    assert response.status_code == 404


def test_company_feedback_listing_requires_admin(client, seed, add_recording) -> None:
    recording_id = add_recording(status=ProcessingStatus.CONCLUIDO, with_feedback=True)
    assert client.get("/api/feedbacks").status_code == 403

    login_as(seed.admin_id, seed.company_id, UserRole.ADMIN)
    listing = client.get("/api/feedbacks")
    assert listing.status_code == 200
    assert [item["idGravacao"] for item in listing.json()] == [recording_id]

    feedback_id = listing.json()[0]["id"]
    assert client.get(f"/api/feedbacks/{feedback_id}").status_code == 200

    login_as(seed.other_seller_id, seed.company_id)
    assert client.get(f"/api/feedbacks/{feedback_id}").status_code == 403


def test_requests_without_token_are_rejected(client) -> None:
    app.dependency_overrides.pop(get_current_user)

    assert client.get("/api/gravacoes").status_code == 401


def test_health_and_metrics(client) -> None:
    health = client.get("/health")
    assert health.status_code == 200
    assert health.json()["gemini_configured"] is False

    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    assert "http_requests_total" in metrics.text
