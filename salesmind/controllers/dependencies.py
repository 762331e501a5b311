"""Common FastAPI dependencies reused across controllers."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from salesmind.database import get_session
from salesmind.models import User
from salesmind.services.processing import ProcessingOrchestrator
from salesmind.services.result_cache import ResultCache
from salesmind.services.runtime import (
    get_feedback_cache,
    get_file_store,
    get_processing_orchestrator,
)
from salesmind.services.storage import FileStore
from salesmind.utils import AuthenticationError, decode_access_token

# Tokens are issued by the identity service; this API only verifies them.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")
SessionDep = Annotated[AsyncSession, Depends(get_session)]


async def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    session: SessionDep,
) -> User:
    """Resolve and validate the user referenced by the bearer token."""

    try:
        payload = decode_access_token(token)
        user_id = int(payload.sub)
    except (AuthenticationError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        ) from None

    user = await session.get(User, user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )

    return user


CurrentUserDep = Annotated[User, Depends(get_current_user)]
FileStoreDep = Annotated[FileStore, Depends(get_file_store)]
FeedbackCacheDep = Annotated[ResultCache, Depends(get_feedback_cache)]
OrchestratorDep = Annotated[ProcessingOrchestrator, Depends(get_processing_orchestrator)]


__all__ = [
    "CurrentUserDep",
    "FeedbackCacheDep",
    "FileStoreDep",
    "OrchestratorDep",
    "SessionDep",
    "get_current_user",
    "oauth2_scheme",
]
