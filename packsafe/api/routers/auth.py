"""Auth router — register, login, refresh, API key lifecycle."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from packsafe.api.deps import get_auth_service, get_current_user, get_session
from packsafe.api.schemas.auth import (
    AccessTokenResponse,
    ApiKeyResponse,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    RegisterResponse,
    TokenPairResponse,
    UserResponse,
)
from packsafe.models.user import User
from packsafe.services.auth_service import AuthService

router = APIRouter()


@router.post("/register", response_model=RegisterResponse, status_code=201)
async def register(
    body: RegisterRequest,
    session: AsyncSession = Depends(get_session),
    auth: AuthService = Depends(get_auth_service),
) -> RegisterResponse:
    user, pair = await auth.register(
        session, email=body.email, name=body.name, password=body.password
    )
    return RegisterResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        token_type=pair.token_type,
        user=UserResponse.model_validate(user),
    )


@router.post("/login", response_model=TokenPairResponse)
async def login(
    body: LoginRequest,
    session: AsyncSession = Depends(get_session),
    auth: AuthService = Depends(get_auth_service),
) -> TokenPairResponse:
    pair = await auth.login(session, body.email, body.password)
    return TokenPairResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        token_type=pair.token_type,
    )


@router.post("/refresh", response_model=AccessTokenResponse)
async def refresh(
    body: RefreshRequest,
    auth: AuthService = Depends(get_auth_service),
) -> AccessTokenResponse:
    token = auth.refresh(body.refresh_token)
    return AccessTokenResponse(access_token=token.access_token, token_type=token.token_type)


@router.post("/api-key", response_model=ApiKeyResponse)
async def generate_api_key(
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
    auth: AuthService = Depends(get_auth_service),
) -> ApiKeyResponse:
    return ApiKeyResponse(api_key=await auth.issue_api_key(session, user))


@router.post("/api-key/reset", response_model=ApiKeyResponse)
async def reset_api_key(
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
    auth: AuthService = Depends(get_auth_service),
) -> ApiKeyResponse:
    return ApiKeyResponse(api_key=await auth.issue_api_key(session, user, reset=True))


@router.post("/api-key/revoke", status_code=204)
async def revoke_api_key(
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
    auth: AuthService = Depends(get_auth_service),
) -> None:
    await auth.revoke_api_key(session, user)
