"""Dependency injection — session, auth, and service singletons."""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator

from fastapi import Depends, Header, Query
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from packsafe.core.cache import InMemoryCache
from packsafe.core.keepalive import KeepAlivePinger
from packsafe.dao.project_dao import ProjectDAO
from packsafe.dao.scan_result_dao import ScanResultDAO
from packsafe.dao.user_dao import UserDAO
from packsafe.engines.dependency_analyzer import DependencyAnalyzer
from packsafe.engines.dependency_analyzer.advisory_client import GitHubAdvisoryClient
from packsafe.engines.dependency_analyzer.registry_client import NpmRegistryClient
from packsafe.engines.package_search import NpmSearchService
from packsafe.models.user import User
from packsafe.services import AuthenticationError, PermissionDeniedError
from packsafe.services.auth_service import AuthService
from packsafe.services.project_service import ProjectService
from packsafe.services.scan_service import ScanService
from packsafe.services.user_service import UserService

# ---------------------------------------------------------------------------
# DAO singletons
# ---------------------------------------------------------------------------
_user_dao = UserDAO()
_project_dao = ProjectDAO()
_scan_result_dao = ScanResultDAO()

# ---------------------------------------------------------------------------
# Upstream clients, cache and background services (started by app lifespan)
# ---------------------------------------------------------------------------
_registry_client = NpmRegistryClient()
_advisory_client = GitHubAdvisoryClient()
_cache = InMemoryCache.from_env()
_keepalive = KeepAlivePinger.from_env()

# ---------------------------------------------------------------------------
# Service singletons
# ---------------------------------------------------------------------------
_auth_service = AuthService(_user_dao)
_project_service = ProjectService(_project_dao)
_analyzer = DependencyAnalyzer.from_env(_registry_client, _advisory_client)
_scan_service = ScanService(_scan_result_dao, _project_dao, _analyzer)
_user_service = UserService(_scan_result_dao)
_search_service = NpmSearchService(_registry_client, _cache)

# ---------------------------------------------------------------------------
# Engine / session factory (initialised by app lifespan)
# ---------------------------------------------------------------------------
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def init_session_factory(database_url: str | None = None) -> async_sessionmaker[AsyncSession]:
    """Create the async engine and session factory. Called once at startup."""
    global _engine, _session_factory  # noqa: PLW0603
    url = database_url or os.environ.get(
        "PACKSAFE_DATABASE_URL", "postgresql+asyncpg://localhost/packsafe"
    )
    _engine = create_async_engine(url, pool_pre_ping=True, pool_recycle=1800)
    _session_factory = async_sessionmaker(_engine, expire_on_commit=False)
    return _session_factory


def get_engine() -> AsyncEngine | None:
    return _engine


async def dispose_engine() -> None:
    """Dispose the async engine, closing all pooled connections."""
    global _engine  # noqa: PLW0603
    if _engine is not None:
        await _engine.dispose()
        _engine = None


def set_session_factory(factory: async_sessionmaker[AsyncSession]) -> None:
    """Override session factory (for testing)."""
    global _session_factory  # noqa: PLW0603
    _session_factory = factory


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield a per-request session with automatic commit/rollback."""
    if _session_factory is None:
        raise RuntimeError("call init_session_factory() before handling requests")
    async with _session_factory() as session:
        async with session.begin():
            yield session


# ---------------------------------------------------------------------------
# Auth dependency
# ---------------------------------------------------------------------------

_bearer = HTTPBearer(auto_error=False)


async def get_current_user(
    session: AsyncSession = Depends(get_session),
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
    x_api_key: str | None = Header(None, alias="X-API-Key"),
    api_key: str | None = Query(None, include_in_schema=False),
) -> User:
    """Authenticate by Bearer JWT, ``X-API-Key`` header, or ``api_key`` query param."""
    if credentials is not None:
        return await _auth_service.get_current_user(session, credentials.credentials)
    key = x_api_key or api_key
    if key:
        return await _auth_service.authenticate_api_key(session, key)
    raise AuthenticationError("missing authorization header or api key")


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != "admin":
        raise PermissionDeniedError("admin role required")
    return user


# ---------------------------------------------------------------------------
# Service getters (for Depends())
# ---------------------------------------------------------------------------


def get_auth_service() -> AuthService:
    return _auth_service


def get_project_service() -> ProjectService:
    return _project_service


def get_scan_service() -> ScanService:
    return _scan_service


def get_user_service() -> UserService:
    return _user_service


def get_search_service() -> NpmSearchService:
    return _search_service


def get_cache() -> InMemoryCache:
    return _cache


def get_keepalive() -> KeepAlivePinger:
    return _keepalive


async def close_clients() -> None:
    """Close pooled HTTP connections of the upstream clients."""
    await _registry_client.close()
    await _advisory_client.close()
