"""AuthService — registration, JWT authentication, API keys and admin bootstrap."""

import os
import secrets
import uuid
from datetime import datetime, timedelta, timezone

import bcrypt
import structlog
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from packsafe.dao.user_dao import UserDAO
from packsafe.models.user import User
from packsafe.services import AuthenticationError, ConflictError, ValidationError

log = structlog.get_logger("packsafe.auth")

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

MIN_PASSWORD_LENGTH = 8


def _hash_password(password: str) -> str:
    """Hash a plaintext password with bcrypt."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def _verify_password(password: str, password_hash: str) -> bool:
    """Verify a plaintext password against a bcrypt hash."""
    return bcrypt.checkpw(password.encode(), password_hash.encode())


# ---------------------------------------------------------------------------
# JWT / API key configuration
# ---------------------------------------------------------------------------

# Pre-computed bcrypt hash for timing-safe login (user-not-found path)
_DUMMY_HASH = bcrypt.hashpw(b"dummy", bcrypt.gensalt()).decode()

_ALGORITHM = "HS256"
_ACCESS_TOKEN_EXPIRE = timedelta(minutes=30)
_REFRESH_TOKEN_EXPIRE = timedelta(days=7)

API_KEY_PREFIX = "ps_"

# Environment variable keys
_ENV_JWT_SECRET = "PACKSAFE_JWT_SECRET"
_ENV_ADMIN_EMAIL = "PACKSAFE_ADMIN_EMAIL"
_ENV_ADMIN_PASSWORD = "PACKSAFE_ADMIN_PASSWORD"


def _get_secret() -> str:
    """Read JWT secret from environment. Raises if not set."""
    secret = os.environ.get(_ENV_JWT_SECRET)
    if not secret:
        raise RuntimeError(f"{_ENV_JWT_SECRET} environment variable is required")
    return secret


def generate_api_key() -> str:
    """``ps_`` followed by 48 hex characters (24 random bytes)."""
    return API_KEY_PREFIX + secrets.token_hex(24)


# ---------------------------------------------------------------------------
# Token data classes
# ---------------------------------------------------------------------------


class TokenPair:
    """Access + refresh token pair returned by login / register."""

    __slots__ = ("access_token", "refresh_token", "token_type")

    def __init__(self, access_token: str, refresh_token: str) -> None:
        self.access_token = access_token
        self.refresh_token = refresh_token
        self.token_type = "bearer"


class AccessToken:
    """Single access token returned by refresh."""

    __slots__ = ("access_token", "token_type")

    def __init__(self, access_token: str) -> None:
        self.access_token = access_token
        self.token_type = "bearer"


# ---------------------------------------------------------------------------
# AuthService
# ---------------------------------------------------------------------------


class AuthService:
    """Stateless authentication service.

    Handles account registration, JWT token lifecycle, per-user API keys
    and admin user bootstrapping.
    """

    def __init__(self, user_dao: UserDAO) -> None:
        self._user_dao = user_dao

    # -- Bootstrap ---------------------------------------------------------

    async def ensure_admin_exists(self, session: AsyncSession) -> None:
        """Create the initial admin user from environment variables.

        Reads ``PACKSAFE_ADMIN_EMAIL`` and ``PACKSAFE_ADMIN_PASSWORD``.
        Silently skips if either is missing.
        """
        email = os.environ.get(_ENV_ADMIN_EMAIL)
        password = os.environ.get(_ENV_ADMIN_PASSWORD)

        if not all([email, password]):
            return

        _, created = await self._user_dao.ensure_exists(
            session,
            email=email,
            name="Administrator",
            password_hash=_hash_password(password),
            role="admin",
        )
        if created:
            log.info("auth.admin_created", email=email)

    # -- Registration / Login ----------------------------------------------

    async def register(
        self, session: AsyncSession, *, email: str, name: str, password: str
    ) -> tuple[User, TokenPair]:
        """Create a ``user``-role account and log it in.

        Raises :class:`ConflictError` if the e-mail is taken and
        :class:`ValidationError` if the password is too short.
        """
        email = email.strip().lower()
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"password must be at least {MIN_PASSWORD_LENGTH} characters"
            )
        if await self._user_dao.get_by_email(session, email) is not None:
            raise ConflictError("user already exists with this email")

        user = await self._user_dao.create(
            session,
            email=email,
            name=name.strip(),
            password_hash=_hash_password(password),
            role="user",
        )
        log.info("auth.registered", user_id=str(user.id))
        return user, self._issue_pair(user)

    async def login(self, session: AsyncSession, email: str, password: str) -> TokenPair:
        """Verify credentials and return an access + refresh token pair.

        Raises :class:`AuthenticationError` on invalid credentials.
        Does not distinguish between "user not found" and "wrong password".
        """
        user = await self._user_dao.get_by_email(session, email)
        if user is None:
            # Constant-time: run bcrypt even when user doesn't exist
            _verify_password(password, _DUMMY_HASH)
            raise AuthenticationError("invalid credentials")
        if not _verify_password(password, user.password_hash):
            raise AuthenticationError("invalid credentials")
        return self._issue_pair(user)

    def refresh(self, refresh_token: str) -> AccessToken:
        """Validate a refresh token and issue a new access token.

        Stateless — no database query.

        Raises :class:`AuthenticationError` on invalid or expired token.
        """
        secret = _get_secret()
        try:
            payload = jwt.decode(refresh_token, secret, algorithms=[_ALGORITHM])
        except JWTError:
            raise AuthenticationError("invalid refresh token")

        if payload.get("type") != "refresh":
            raise AuthenticationError("invalid token type")

        sub = payload.get("sub")
        if not sub:
            raise AuthenticationError("invalid token payload")

        return AccessToken(self._encode(sub, "access", _ACCESS_TOKEN_EXPIRE))

    # -- Request authentication --------------------------------------------

    async def get_current_user(self, session: AsyncSession, token: str) -> User:
        """Decode an access token and return the corresponding user.

        Raises :class:`AuthenticationError` on invalid token or unknown user.
        """
        secret = _get_secret()
        try:
            payload = jwt.decode(token, secret, algorithms=[_ALGORITHM])
        except JWTError:
            raise AuthenticationError("invalid access token")

        if payload.get("type") != "access":
            raise AuthenticationError("invalid token type")

        try:
            user_id = uuid.UUID(payload["sub"])
        except (KeyError, ValueError):
            raise AuthenticationError("invalid token payload")

        user = await self._user_dao.get_by_id(session, user_id)
        if user is None:
            raise AuthenticationError("user not found")

        return user

    async def authenticate_api_key(self, session: AsyncSession, api_key: str) -> User:
        """Return the owner of *api_key*.

        Raises :class:`AuthenticationError` for malformed or unknown keys.
        """
        if not api_key.startswith(API_KEY_PREFIX):
            raise AuthenticationError("invalid api key")
        user = await self._user_dao.get_by_api_key(session, api_key)
        if user is None:
            raise AuthenticationError("invalid api key")
        return user

    # -- API keys ----------------------------------------------------------

    async def issue_api_key(self, session: AsyncSession, user: User, *, reset: bool = False) -> str:
        """Generate a new API key for *user*, replacing any existing one.

        The plaintext key is returned once and never shown again.
        """
        api_key = generate_api_key()
        await self._user_dao.set_api_key(session, user, api_key)
        log.info("auth.api_key_reset" if reset else "auth.api_key_generated", user_id=str(user.id))
        return api_key

    async def revoke_api_key(self, session: AsyncSession, user: User) -> None:
        await self._user_dao.set_api_key(session, user, None)
        log.info("auth.api_key_revoked", user_id=str(user.id))

    # -- internal ----------------------------------------------------------

    def _issue_pair(self, user: User) -> TokenPair:
        sub = str(user.id)
        return TokenPair(
            self._encode(sub, "access", _ACCESS_TOKEN_EXPIRE),
            self._encode(sub, "refresh", _REFRESH_TOKEN_EXPIRE),
        )

    @staticmethod
    def _encode(sub: str, token_type: str, ttl: timedelta) -> str:
        return jwt.encode(
            {
                "sub": sub,
                "type": token_type,
                "exp": datetime.now(timezone.utc) + ttl,
            },
            _get_secret(),
            algorithm=_ALGORITHM,
        )
