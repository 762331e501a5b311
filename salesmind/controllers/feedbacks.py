"""Endpoints exposing the AI feedback produced for recordings."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import APIRouter, HTTPException, status
from sqlalchemy import select

from salesmind.controllers.dependencies import CurrentUserDep, FeedbackCacheDep, SessionDep
from salesmind.models import Client, Feedback, Recording
from salesmind.telemetry import record_cache_lookup
from salesmind.views import FeedbackResponse

router = APIRouter(prefix="/api/feedbacks", tags=["feedbacks"])


@dataclass(frozen=True)
class CachedFeedback:
    owner_id: int
    company_id: int
    response: FeedbackResponse


def _forbidden() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Access denied",
    )


@router.get("/gravacao/{recording_id}", response_model=FeedbackResponse)
async def get_feedback_by_recording(
    recording_id: int,
    session: SessionDep,
    current_user: CurrentUserDep,
    cache: FeedbackCacheDep,
) -> FeedbackResponse:
    """Return the feedback of one of the caller's recordings, cached for a while."""

    cached = cache.get(recording_id)
    record_cache_lookup(cached is not None)
    if cached is not None:
        if cached.owner_id != current_user.id or cached.company_id != current_user.company_id:
            raise _forbidden()
        return cached.response

    recording = await session.get(Recording, recording_id)
    if recording is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Recording not found",
        )

    client_company_id = await session.scalar(
        select(Client.company_id).where(Client.id == recording.client_id)
    )
    if recording.user_id != current_user.id or client_company_id != current_user.company_id:
        raise _forbidden()

    if recording.feedback is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Feedback not available for this recording",
        )

    response = FeedbackResponse.from_model(recording.feedback)
    cache.put(
        recording_id,
        CachedFeedback(
            owner_id=recording.user_id,
            company_id=client_company_id,
            response=response,
        ),
    )
    return response


@router.get("/{feedback_id}", response_model=FeedbackResponse)
async def get_feedback(
    feedback_id: int,
    session: SessionDep,
    current_user: CurrentUserDep,
) -> FeedbackResponse:
    """Return a feedback owned by the caller; company admins can read any of theirs."""

    feedback = await session.get(Feedback, feedback_id)
    if feedback is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Feedback not found",
        )

    owner_id = await session.scalar(
        select(Recording.user_id).where(Recording.id == feedback.recording_id)
    )
    same_company = feedback.company_id == current_user.company_id
    if not same_company or (owner_id != current_user.id and not current_user.is_admin):
        raise _forbidden()

    return FeedbackResponse.from_model(feedback)


@router.get("", response_model=list[FeedbackResponse])
async def list_company_feedbacks(
    session: SessionDep,
    current_user: CurrentUserDep,
) -> list[FeedbackResponse]:
    """List every feedback of the caller's company. Admins only."""

    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only company administrators can list feedback",
        )

    result = await session.execute(
        select(Feedback)
        .where(Feedback.company_id == current_user.company_id)
        .order_by(Feedback.created_at.desc(), Feedback.id.desc())
    )
    return [FeedbackResponse.from_model(feedback) for feedback in result.scalars().all()]


__all__ = ["CachedFeedback", "router"]
