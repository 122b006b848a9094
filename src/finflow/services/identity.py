"""Identity providers resolving bearer tokens to user ids."""

import asyncio
import hashlib
import secrets
import uuid
from abc import ABC, abstractmethod
from typing import Dict, Optional

import httpx
import structlog

from ..domain.errors import AuthorizationError, SignupError
from ..domain.models import Session, User

logger = structlog.get_logger()


class IdentityProvider(ABC):
    """Abstract identity provider."""

    @abstractmethod
    async def verify(self, token: Optional[str]) -> Optional[str]:
        """Return the user id for ``token``, or None when unauthenticated."""
        pass

    @abstractmethod
    async def create_user(self, email: str, password: str, name: str) -> User:
        """Register a user. Raises SignupError when the provider refuses."""
        pass

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> Session:
        """Exchange credentials for a session. Raises AuthorizationError."""
        pass

    async def close(self) -> None:
        pass


class InMemoryIdentityProvider(IdentityProvider):
    """Process-local users with opaque random tokens."""

    def __init__(self) -> None:
        self._users: Dict[str, User] = {}
        self._passwords: Dict[str, str] = {}
        self._tokens: Dict[str, str] = {}
        self._lock = asyncio.Lock()
        logger.info("identity_provider_initialized", backend="memory")

    @staticmethod
    def _hash(password: str, salt: str) -> str:
        return hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), 100_000).hex()

    async def verify(self, token: Optional[str]) -> Optional[str]:
        if not token:
            return None
        async with self._lock:
            return self._tokens.get(token)

    async def create_user(self, email: str, password: str, name: str) -> User:
        email = (email or "").strip().lower()
        if not email or "@" not in email:
            raise SignupError("A valid email address is required")
        if not password or len(password) < 6:
            raise SignupError("Password should be at least 6 characters")

        async with self._lock:
            if any(user.email == email for user in self._users.values()):
                raise SignupError("A user with this email address has already been registered")
            user = User(id=str(uuid.uuid4()), email=email, name=name)
            self._users[user.id] = user
            self._passwords[user.id] = self._hash(password, user.id)

        logger.info("user_created", user_id=user.id)
        return user

    async def sign_in(self, email: str, password: str) -> Session:
        email = (email or "").strip().lower()
        async with self._lock:
            user = next((u for u in self._users.values() if u.email == email), None)
            if user is None or not secrets.compare_digest(
                self._passwords[user.id], self._hash(password or "", user.id)
            ):
                logger.warning("sign_in_rejected")
                raise AuthorizationError("Invalid login credentials")
            token = secrets.token_urlsafe(32)
            self._tokens[token] = user.id

        logger.info("user_signed_in", user_id=user.id)
        return Session(access_token=token, user=user)

    async def issue_token(self, user_id: str) -> str:
        """Mint a token for an existing user id without a password."""
        token = secrets.token_urlsafe(32)
        async with self._lock:
            self._tokens[token] = user_id
        return token


class SupabaseIdentityProvider(IdentityProvider):
    """GoTrue-backed provider using the service role key."""

    def __init__(
        self,
        url: str,
        service_role_key: str,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._service_role_key = service_role_key
        self._client = client or httpx.AsyncClient(
            base_url=f"{url.rstrip('/')}/auth/v1",
            headers={"apikey": service_role_key},
        )
        logger.info("identity_provider_initialized", backend="supabase")

    @staticmethod
    def _to_user(data: dict) -> User:
        metadata = data.get("user_metadata") or {}
        return User(id=data["id"], email=data.get("email") or "", name=metadata.get("name"))

    async def verify(self, token: Optional[str]) -> Optional[str]:
        if not token:
            return None
        try:
            response = await self._client.get(
                "/user", headers={"Authorization": f"Bearer {token}"}
            )
        except httpx.HTTPError as e:
            logger.warning("token_verification_failed", error=str(e))
            return None
        if not response.is_success:
            return None
        try:
            return response.json().get("id")
        except (ValueError, AttributeError) as e:
            logger.warning("token_verification_unreadable", error=str(e))
            return None

    async def create_user(self, email: str, password: str, name: str) -> User:
        response = await self._client.post(
            "/admin/users",
            headers={"Authorization": f"Bearer {self._service_role_key}"},
            json={
                "email": email,
                "password": password,
                "user_metadata": {"name": name},
                # No mail server is configured, so confirm immediately.
                "email_confirm": True,
            },
        )
        if not response.is_success:
            body = response.json() if response.content else {}
            message = body.get("msg") or body.get("message") or body.get("error_description")
            logger.warning("signup_rejected", status_code=response.status_code, reason=message)
            raise SignupError(message)
        return self._to_user(response.json())

    async def sign_in(self, email: str, password: str) -> Session:
        response = await self._client.post(
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        if not response.is_success:
            logger.warning("sign_in_rejected", status_code=response.status_code)
            raise AuthorizationError("Invalid login credentials")
        data = response.json()
        return Session(access_token=data["access_token"], user=self._to_user(data["user"]))

    async def close(self) -> None:
        await self._client.aclose()
