"""Endpoints for uploading call recordings and following their processing."""

from __future__ import annotations

import io
import logging

from fastapi import APIRouter, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from salesmind.config.settings import settings
from salesmind.controllers.dependencies import (
    CurrentUserDep,
    FileStoreDep,
    OrchestratorDep,
    SessionDep,
)
from salesmind.models import Client, ProcessingStatus, Recording, SaleStatus, User
from salesmind.services.storage import FileTooLargeError, StorageError, UnsupportedFileTypeError
from salesmind.utils import MalformedRequestError, parse_multipart
from salesmind.views import (
    RecordingResponse,
    RecordingStatusResponse,
    RecordingUploadResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/gravacoes", tags=["gravacoes"])

CLIENT_FIELD = "idCliente"
AUDIO_FIELD = "audioFile"
# Rough bytes-per-second of compressed speech audio, used for a duration hint.
_BYTES_PER_SECOND_ESTIMATE = 16000


async def _read_limited_body(request: Request, limit: int) -> bytes:
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > limit:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail="Request body too large",
        )

    buffer = bytearray()
    async for chunk in request.stream():
        buffer.extend(chunk)
        if len(buffer) > limit:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail="Request body too large",
            )
    return bytes(buffer)


async def _get_owned_recording(
    session: SessionDep,
    recording_id: int,
    user: User,
) -> Recording:
    recording = await session.get(Recording, recording_id)
    if recording is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Recording not found",
        )

    client_company_id = await session.scalar(
        select(Client.company_id).where(Client.id == recording.client_id)
    )
    if recording.user_id != user.id or client_company_id != user.company_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied",
        )
    return recording


@router.post(
    "/upload",
    response_model=RecordingUploadResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def upload_recording(
    request: Request,
    session: SessionDep,
    current_user: CurrentUserDep,
    file_store: FileStoreDep,
    orchestrator: OrchestratorDep,
) -> RecordingUploadResponse:
    """Store the uploaded audio and queue it for transcription and analysis."""

    body = await _read_limited_body(request, settings.storage.max_upload_bytes)
    try:
        form = parse_multipart(request.headers.get("content-type"), body)
    except MalformedRequestError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from None

    raw_client_id = (form.get_field(CLIENT_FIELD) or "").strip()
    if not raw_client_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{CLIENT_FIELD} is required",
        )
    try:
        client_id = int(raw_client_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{CLIENT_FIELD} must be numeric",
        ) from None

    audio = form.get_file(AUDIO_FIELD)
    if audio is None or audio.size == 0 or not audio.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{AUDIO_FIELD} is required",
        )

    client = await session.get(Client, client_id)
    if client is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Client not found",
        )
    if client.company_id != current_user.company_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Client belongs to another company",
        )

    try:
        audio_path = await run_in_threadpool(
            file_store.save_file,
            io.BytesIO(audio.data),
            audio.filename,
            current_user.id,
            client.id,
        )
    except (UnsupportedFileTypeError, FileTooLargeError) as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from None
    except (StorageError, OSError):
        logger.exception("Failed to store audio for user %s", current_user.id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to store audio file",
        ) from None

    estimated_seconds = audio.size // _BYTES_PER_SECOND_ESTIMATE
    recording = Recording(
        user_id=current_user.id,
        client_id=client.id,
        audio_path=audio_path,
        audio_filename=audio.filename,
        sale_status=SaleStatus.PENDENTE,
        processing_status=ProcessingStatus.UPLOADING,
        duration_seconds=estimated_seconds,
    )
    session.add(recording)
    try:
        await session.commit()
    except SQLAlchemyError:
        await session.rollback()
        file_store.delete_file(audio_path)
        raise

    orchestrator.process_audio_async(recording.id)
    logger.info(
        "Recording %s uploaded by user %s for client %s",
        recording.id,
        current_user.id,
        client.id,
    )

    return RecordingUploadResponse(
        id=recording.id,
        status=ProcessingStatus.UPLOADING,
        message="Audio upload successful. Processing started asynchronously.",
        audio_filename=audio.filename,
        audio_url=audio_path,
        estimated_duration=f"{estimated_seconds}s",
        check_status_at=f"/api/gravacoes/{recording.id}/status",
    )


@router.get("/{recording_id}/status", response_model=RecordingStatusResponse)
async def get_recording_status(
    recording_id: int,
    session: SessionDep,
    current_user: CurrentUserDep,
) -> RecordingStatusResponse:
    recording = await _get_owned_recording(session, recording_id, current_user)
    return RecordingStatusResponse.from_model(recording)


@router.get("/{recording_id}", response_model=RecordingResponse)
async def get_recording(
    recording_id: int,
    session: SessionDep,
    current_user: CurrentUserDep,
) -> RecordingResponse:
    recording = await _get_owned_recording(session, recording_id, current_user)
    return RecordingResponse.from_model(recording)


@router.get("", response_model=list[RecordingResponse])
async def list_recordings(
    session: SessionDep,
    current_user: CurrentUserDep,
) -> list[RecordingResponse]:
    """List the caller's recordings, newest first."""

    result = await session.execute(
        select(Recording)
        .where(Recording.user_id == current_user.id)
        .order_by(Recording.created_at.desc(), Recording.id.desc())
    )
    return [RecordingResponse.from_model(recording) for recording in result.scalars().all()]
