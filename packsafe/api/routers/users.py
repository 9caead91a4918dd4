"""Users router — current user and scan statistics."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from packsafe.api.deps import get_current_user, get_session, get_user_service
from packsafe.api.schemas.auth import UserResponse
from packsafe.api.schemas.user import UserStatsResponse
from packsafe.models.user import User
from packsafe.services.user_service import UserService

router = APIRouter()


@router.get("/me", response_model=UserResponse)
async def me(current_user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse.model_validate(current_user)


@router.get("/stats", response_model=UserStatsResponse)
async def stats(
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
    svc: UserService = Depends(get_user_service),
) -> UserStatsResponse:
    return UserStatsResponse(**await svc.get_stats(session, user.id))
