"""Background transcription and analysis of uploaded recordings.

Uploads only enqueue a recording id; a fixed pool of asyncio workers drains
the queue and drives each recording through
UPLOADING -> PROCESSANDO -> CONCLUIDO, or ERRO when any step fails.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from salesmind.models import Feedback, ProcessingStatus, Recording, SaleStatus, User
from salesmind.services.analysis_contract import AnalysisResult
from salesmind.services.result_cache import ResultCache
from salesmind.telemetry import PIPELINE_QUEUE_DEPTH, observe_pipeline_run

logger = logging.getLogger("salesmind.pipeline")

QUALIFIED_THRESHOLD = 70
PROPOSAL_THRESHOLD = 40
_MAX_ERROR_LENGTH = 2000
SHUTDOWN_MESSAGE = "Processing interrupted by shutdown"


class AnalysisClient(Protocol):
    async def transcribe(self, file_path: str) -> str: ...

    async def analyze(self, transcript: str) -> AnalysisResult: ...


class ProcessingError(RuntimeError):
    """Raised when a recording cannot be processed for local reasons."""


def derive_sale_status(closing_probability: Optional[int], current: SaleStatus) -> SaleStatus:
    """Map the model's closing probability onto the sales funnel."""

    if closing_probability is None:
        return current
    if closing_probability >= QUALIFIED_THRESHOLD:
        return SaleStatus.QUALIFICADO
    if closing_probability >= PROPOSAL_THRESHOLD:
        return SaleStatus.PROPOSTA_ENVIADA
    return current


def _error_message(exc: BaseException) -> str:
    message = str(exc).strip() or exc.__class__.__name__
    return message[:_MAX_ERROR_LENGTH]


class ProcessingOrchestrator:
    """Run the recording pipeline on a bounded pool of asyncio workers."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        analysis_client: AnalysisClient,
        *,
        workers: int = 4,
        result_cache: ResultCache[int, object] | None = None,
        drain_timeout: float = 30.0,
    ) -> None:
        if workers < 1:
            raise ValueError("workers must be at least 1")
        self._session_factory = session_factory
        self._client = analysis_client
        self._worker_count = workers
        self._cache = result_cache
        self._drain_timeout = drain_timeout
        self._queue: asyncio.Queue[int] | None = None
        self._workers: list[asyncio.Task[None]] = []

    @property
    def is_running(self) -> bool:
        return bool(self._workers)

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    def start(self) -> asyncio.Queue[int]:
        """Spawn the worker tasks on the running event loop and return their queue."""

        if self._queue is not None and self.is_running:
            return self._queue
        queue: asyncio.Queue[int] = asyncio.Queue()
        self._queue = queue
        self._workers = [
            asyncio.create_task(self._worker(index, queue), name=f"recording-worker-{index}")
            for index in range(self._worker_count)
        ]
        logger.info("Started %s recording workers", self._worker_count)
        return queue

    async def stop(self) -> None:
        """Wait for queued recordings to finish, then cancel the workers.

        Recordings interrupted mid-run or still waiting in the queue once the
        grace period ends are marked ERRO so they never stay stuck.
        """

        queue = self._queue
        if not self.is_running or queue is None:
            return
        try:
            await asyncio.wait_for(queue.join(), timeout=self._drain_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Stopping with %s recordings still queued after %.0fs",
                queue.qsize(),
                self._drain_timeout,
            )

        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        self._queue = None

        while True:
            try:
                recording_id = queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            queue.task_done()
            logger.warning("Recording %s was still queued at shutdown", recording_id)
            await self._record_failure(recording_id, ProcessingError(SHUTDOWN_MESSAGE))

        PIPELINE_QUEUE_DEPTH.set(0)
        logger.info("Recording workers stopped")

    def process_audio_async(self, recording_id: int) -> None:
        """Queue ``recording_id`` for processing and return immediately."""

        queue = self.start()
        queue.put_nowait(recording_id)
        PIPELINE_QUEUE_DEPTH.set(queue.qsize())
        logger.info("Queued recording %s for processing", recording_id)

    async def _worker(self, index: int, queue: asyncio.Queue[int]) -> None:
        while True:
            recording_id = await queue.get()
            PIPELINE_QUEUE_DEPTH.set(queue.qsize())
            try:
                await self.process_recording(recording_id)
            except Exception:
                logger.exception("Worker %s crashed on recording %s", index, recording_id)
            finally:
                queue.task_done()

    async def process_recording(self, recording_id: int) -> ProcessingStatus | None:
        """Run the full pipeline for one recording.

        Returns the final status, or ``None`` when the recording was missing or
        had already left UPLOADING and was skipped.
        """

        started = time.perf_counter()
        try:
            recording = await self._claim(recording_id)
            if recording is None:
                return None
            if not recording.audio_path:
                raise ProcessingError(f"Recording {recording_id} has no stored audio")

            logger.info("Transcribing recording %s", recording_id)
            transcript = await self._client.transcribe(recording.audio_path)
            logger.info("Analyzing recording %s (%s chars)", recording_id, len(transcript))
            analysis = await self._client.analyze(transcript)

            await self._store_results(recording_id, transcript, analysis)
        except asyncio.CancelledError:
            logger.warning("Processing of recording %s interrupted by shutdown", recording_id)
            try:
                await asyncio.shield(
                    self._record_failure(recording_id, ProcessingError(SHUTDOWN_MESSAGE))
                )
            except asyncio.CancelledError:
                logger.warning("Cancelled again while storing failure of recording %s", recording_id)
            observe_pipeline_run(ProcessingStatus.ERRO.value, time.perf_counter() - started)
            raise
        except Exception as exc:
            logger.exception("Processing failed for recording %s", recording_id)
            await self._record_failure(recording_id, exc)
            outcome = ProcessingStatus.ERRO
        else:
            logger.info("Recording %s processed", recording_id)
            outcome = ProcessingStatus.CONCLUIDO
        finally:
            if self._cache is not None:
                self._cache.invalidate(recording_id)

        observe_pipeline_run(outcome.value, time.perf_counter() - started)
        return outcome

    async def _claim(self, recording_id: int) -> Recording | None:
        async with self._session_factory() as session:
            recording = await session.get(Recording, recording_id)
            if recording is None:
                logger.warning("Recording %s not found, nothing to process", recording_id)
                return None

            current = ProcessingStatus(recording.processing_status or ProcessingStatus.UPLOADING)
            if current is not ProcessingStatus.UPLOADING:
                logger.info(
                    "Skipping recording %s already in status %s",
                    recording_id,
                    current.value,
                )
                return None

            recording.mark_status(ProcessingStatus.PROCESSANDO)
            await session.commit()
            return recording

    async def _store_results(
        self,
        recording_id: int,
        transcript: str,
        analysis: AnalysisResult,
    ) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                recording = await session.get(Recording, recording_id)
                if recording is None:
                    raise ProcessingError(f"Recording {recording_id} disappeared during processing")

                company_id = await session.scalar(
                    select(User.company_id).where(User.id == recording.user_id)
                )
                if company_id is None:
                    raise ProcessingError(f"Owner of recording {recording_id} has no company")

                recording.transcript = transcript
                recording.feedback = Feedback(
                    company_id=company_id,
                    strengths=analysis.strengths,
                    weaknesses=analysis.weaknesses,
                    suggestions=analysis.suggestions,
                    objections=analysis.objections,
                    key_moments=analysis.key_moments,
                    sentiment_score=analysis.sentiment_score,
                    closing_probability=analysis.closing_probability,
                    sentiment_category=analysis.sentiment_category,
                    service_quality=analysis.service_quality,
                    script_adherence=analysis.script_adherence,
                    objection_handling=analysis.objection_handling,
                )
                recording.ai_summary = analysis.summary
                recording.mark_status(ProcessingStatus.CONCLUIDO)
                recording.sale_status = derive_sale_status(
                    analysis.closing_probability,
                    SaleStatus(recording.sale_status or SaleStatus.PENDENTE),
                )

    async def _record_failure(self, recording_id: int, exc: BaseException) -> None:
        try:
            async with self._session_factory() as session:
                recording = await session.get(Recording, recording_id)
                if recording is None:
                    return
                current = ProcessingStatus(recording.processing_status or ProcessingStatus.UPLOADING)
                if not current.can_transition_to(ProcessingStatus.ERRO):
                    logger.warning(
                        "Recording %s is %s, not recording failure", recording_id, current.value
                    )
                    return
                recording.mark_status(ProcessingStatus.ERRO)
                recording.processing_error = _error_message(exc)
                await session.commit()
        except Exception:
            logger.exception("Could not store failure status for recording %s", recording_id)


__all__ = [
    "AnalysisClient",
    "ProcessingError",
    "ProcessingOrchestrator",
    "SHUTDOWN_MESSAGE",
    "derive_sale_status",
]
