"""Tests for the recording processing pipeline and its worker pool."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from salesmind.config.settings import GeminiConfig
from salesmind.database import init_models
from salesmind.models import (
    Client,
    Company,
    Feedback,
    ProcessingStatus,
    Recording,
    SaleStatus,
    SentimentCategory,
    User,
)
from salesmind.services import processing
from salesmind.services.analysis_contract import AnalysisResult
from salesmind.services.gemini_client import GeminiClient, GeminiError
from salesmind.services.processing import ProcessingOrchestrator, derive_sale_status
from salesmind.services.result_cache import ResultCache


@pytest_asyncio.fixture
async def session_factory(tmp_path: Path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'pipeline.db'}", poolclass=NullPool)
    await init_models(engine)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


async def _create_recording(factory, status: ProcessingStatus = ProcessingStatus.UPLOADING) -> int:
    async with factory() as session:
        company = Company(name="Acme")
        session.add(company)
        await session.flush()
        user = User(company_id=company.id, email=f"seller{company.id}@acme.test", name="Ana")
        client = Client(company_id=company.id, name="Padaria")
        session.add_all([user, client])
        await session.flush()
        recording = Recording(
            user_id=user.id,
            client_id=client.id,
            audio_path="uploads/call.mp3",
            audio_filename="call.mp3",
            processing_status=status,
        )
        session.add(recording)
        await session.commit()
        return recording.id


async def _load(factory, recording_id: int) -> Recording:
    async with factory() as session:
        return await session.get(Recording, recording_id)


async def _feedback_count(factory) -> int:
    async with factory() as session:
        return await session.scalar(select(func.count(Feedback.id)))


class FakeAnalysisClient:
    def __init__(self, factory=None, *, closing: int = 85, fail_on: str | None = None) -> None:
        self._factory = factory
        self._closing = closing
        self._fail_on = fail_on
        self.calls: list[str] = []
        self.seen_while_transcribing: Recording | None = None

    async def transcribe(self, file_path: str) -> str:
        self.calls.append("transcribe")
        if self._factory is not None:
            async with self._factory() as session:
                self.seen_while_transcribing = (
                    await session.execute(select(Recording))
                ).scalars().first()
        if self._fail_on == "transcribe":
            raise GeminiError("upload rejected")
        return "Vendedor: Bom dia! Cliente: Quero uma proposta."

    async def analyze(self, transcript: str) -> AnalysisResult:
        self.calls.append("analyze")
        if self._fail_on == "analyze":
            raise GeminiError("analysis quota exceeded")
        return AnalysisResult(
            summary="Cliente pediu proposta.",
            strengths=["Cordialidade"],
            sentiment_score=78,
            closing_probability=self._closing,
            sentiment_category=SentimentCategory.POSITIVO,
            key_moments=["00:10 - pedido de proposta"],
        )


@pytest.mark.parametrize(
    ("probability", "expected"),
    [
        (85, SaleStatus.QUALIFICADO),
        (70, SaleStatus.QUALIFICADO),
        (55, SaleStatus.PROPOSTA_ENVIADA),
        (40, SaleStatus.PROPOSTA_ENVIADA),
        (10, SaleStatus.PENDENTE),
        (None, SaleStatus.PENDENTE),
    ],
)
def test_derive_sale_status(probability, expected) -> None:
    assert derive_sale_status(probability, SaleStatus.PENDENTE) is expected


@pytest.mark.asyncio
async def test_successful_run_publishes_results_together(session_factory) -> None:
    recording_id = await _create_recording(session_factory)
    client = FakeAnalysisClient(session_factory, closing=55)
    orchestrator = ProcessingOrchestrator(session_factory, client)

    outcome = await orchestrator.process_recording(recording_id)

    assert outcome is ProcessingStatus.CONCLUIDO
    seen = client.seen_while_transcribing
    assert seen.processing_status == ProcessingStatus.PROCESSANDO
    assert seen.transcript is None
    assert seen.feedback is None

    recording = await _load(session_factory, recording_id)
    assert recording.processing_status == ProcessingStatus.CONCLUIDO
    assert recording.transcript.startswith("Vendedor")
    assert recording.ai_summary == "Cliente pediu proposta."
    assert recording.sale_status == SaleStatus.PROPOSTA_ENVIADA
    assert recording.processing_error is None
    assert recording.feedback.closing_probability == 55
    assert recording.feedback.strengths == ["Cordialidade"]
    assert recording.feedback.service_quality is None


@pytest.mark.asyncio
async def test_analysis_failure_marks_error_without_feedback(session_factory) -> None:
    recording_id = await _create_recording(session_factory)
    orchestrator = ProcessingOrchestrator(
        session_factory, FakeAnalysisClient(fail_on="analyze")
    )

    outcome = await orchestrator.process_recording(recording_id)

    assert outcome is ProcessingStatus.ERRO
    recording = await _load(session_factory, recording_id)
    assert recording.processing_status == ProcessingStatus.ERRO
    assert recording.processing_error == "analysis quota exceeded"
    assert recording.transcript is None
    assert await _feedback_count(session_factory) == 0


@pytest.mark.asyncio
async def test_failed_transaction_rolls_back_every_result(session_factory, monkeypatch) -> None:
    recording_id = await _create_recording(session_factory)

    def explode(*args, **kwargs):
        raise RuntimeError("constraint violated")

    monkeypatch.setattr(processing, "derive_sale_status", explode)
    orchestrator = ProcessingOrchestrator(session_factory, FakeAnalysisClient())

    assert await orchestrator.process_recording(recording_id) is ProcessingStatus.ERRO

    recording = await _load(session_factory, recording_id)
    assert recording.processing_status == ProcessingStatus.ERRO
    assert recording.processing_error == "constraint violated"
    assert recording.transcript is None
    assert recording.ai_summary is None
    assert await _feedback_count(session_factory) == 0


@pytest.mark.asyncio
async def test_unconfigured_gemini_ends_in_error(session_factory) -> None:
    recording_id = await _create_recording(session_factory)
    client = GeminiClient(GeminiConfig(GEMINI_API_KEY=None))
    orchestrator = ProcessingOrchestrator(session_factory, client)

    assert await orchestrator.process_recording(recording_id) is ProcessingStatus.ERRO

    recording = await _load(session_factory, recording_id)
    assert "GEMINI_API_KEY" in recording.processing_error


@pytest.mark.asyncio
async def test_finished_recordings_are_not_reprocessed(session_factory) -> None:
    recording_id = await _create_recording(session_factory, ProcessingStatus.CONCLUIDO)
    client = FakeAnalysisClient()
    orchestrator = ProcessingOrchestrator(session_factory, client)

    assert await orchestrator.process_recording(recording_id) is None
    assert await orchestrator.process_recording(9999) is None
    assert client.calls == []


@pytest.mark.asyncio
async def test_run_invalidates_cached_feedback(session_factory) -> None:
    recording_id = await _create_recording(session_factory)
    cache = ResultCache(60)
    cache.put(recording_id, "stale")
    orchestrator = ProcessingOrchestrator(
        session_factory, FakeAnalysisClient(), result_cache=cache
    )

    await orchestrator.process_recording(recording_id)

    assert cache.get(recording_id) is None


@pytest.mark.asyncio
async def test_worker_pool_processes_queued_recordings(session_factory) -> None:
    first = await _create_recording(session_factory)
    second = await _create_recording(session_factory)
    orchestrator = ProcessingOrchestrator(
        session_factory, FakeAnalysisClient(), workers=2, drain_timeout=5
    )

    orchestrator.process_audio_async(first)
    orchestrator.process_audio_async(second)
    assert orchestrator.is_running
    await orchestrator.stop()

    assert not orchestrator.is_running
    for recording_id in (first, second):
        recording = await _load(session_factory, recording_id)
        assert recording.processing_status == ProcessingStatus.CONCLUIDO
        assert recording.sale_status == SaleStatus.QUALIFICADO


@pytest.mark.asyncio
async def test_stop_without_start_is_a_noop(session_factory) -> None:
    orchestrator = ProcessingOrchestrator(session_factory, FakeAnalysisClient())

    await orchestrator.stop()
    await asyncio.sleep(0)

    assert orchestrator.pending == 0


class StalledAnalysisClient(FakeAnalysisClient):
    def __init__(self) -> None:
        super().__init__()
        self.transcribing = asyncio.Event()

    async def transcribe(self, file_path: str) -> str:
        self.calls.append("transcribe")
        self.transcribing.set()
        await asyncio.Event().wait()
        return ""


@pytest.mark.asyncio
async def test_stop_marks_interrupted_and_queued_recordings_as_error(session_factory) -> None:
    running = await _create_recording(session_factory)
    waiting = await _create_recording(session_factory)
    client = StalledAnalysisClient()
    orchestrator = ProcessingOrchestrator(session_factory, client, workers=1, drain_timeout=0.1)

    orchestrator.process_audio_async(running)
    orchestrator.process_audio_async(waiting)
    await asyncio.wait_for(client.transcribing.wait(), timeout=5)
    await orchestrator.stop()

    assert not orchestrator.is_running
    assert orchestrator.pending == 0
    assert client.calls == ["transcribe"]
    for recording_id in (running, waiting):
        recording = await _load(session_factory, recording_id)
        assert recording.processing_status == ProcessingStatus.ERRO
        assert recording.processing_error == processing.SHUTDOWN_MESSAGE
        assert recording.feedback is None


@pytest.mark.asyncio
async def test_start_reuses_the_running_queue(session_factory) -> None:
    orchestrator = ProcessingOrchestrator(session_factory, FakeAnalysisClient(), workers=1)

    queue = orchestrator.start()
    assert orchestrator.start() is queue
    assert orchestrator.is_running

    await orchestrator.stop()
    assert orchestrator.start() is not queue
    await orchestrator.stop()
