"""Credential store and session resolver.

Sessions are opaque random tokens stored server-side. A token resolves to its
owner while ``now < expires_at``; logout removes every session the user holds.
"""

from __future__ import annotations

import logging
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Protocol

from passlib.context import CryptContext
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from docnotes.config import Settings, settings
from docnotes.exceptions import ConflictError, ForbiddenError, UnauthenticatedError
from docnotes.models import User, UserRole, UserSession, utcnow

logger = logging.getLogger("docnotes.auth")

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against a hashed password."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a password using PBKDF2-SHA256."""
    return pwd_context.hash(password)


def generate_session_token(nbytes: int = settings.session_token_bytes) -> str:
    return secrets.token_hex(nbytes)


@dataclass(frozen=True)
class SessionIdentity:
    """What a bearer token resolves to."""

    user_id: uuid.UUID
    role: str


class AuthRepository(Protocol):
    async def get_user_by_email(self, email: str) -> Optional[User]:
        ...

    async def get_user(self, user_id: uuid.UUID) -> Optional[User]:
        ...

    async def add_user(self, user: User) -> User:
        ...

    async def save_user(self, user: User) -> User:
        ...

    async def list_users(self, skip: int, limit: int) -> tuple[list[User], int]:
        ...

    async def add_session(self, session: UserSession) -> UserSession:
        ...

    async def resolve_session(self, token: str, now: datetime) -> Optional[User]:
        ...

    async def delete_user_sessions(self, user_id: uuid.UUID) -> int:
        ...


class SQLAuthRepository:
    """Auth repository backed by SQLAlchemy."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def get_user(self, user_id: uuid.UUID) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def add_user(self, user: User) -> User:
        self.db.add(user)
        await self.db.flush()
        await self.db.refresh(user)
        return user

    async def save_user(self, user: User) -> User:
        await self.db.flush()
        await self.db.refresh(user)
        return user

    async def list_users(self, skip: int, limit: int) -> tuple[list[User], int]:
        total = await self.db.scalar(select(func.count()).select_from(User))
        result = await self.db.execute(
            select(User).order_by(User.created_at.desc()).offset(skip).limit(limit)
        )
        return list(result.scalars().all()), total or 0

    async def add_session(self, session: UserSession) -> UserSession:
        self.db.add(session)
        await self.db.flush()
        return session

    async def resolve_session(self, token: str, now: datetime) -> Optional[User]:
        result = await self.db.execute(
            select(User)
            .join(UserSession, UserSession.user_id == User.id)
            .where(UserSession.token == token, UserSession.expires_at > now)
        )
        return result.scalar_one_or_none()

    async def delete_user_sessions(self, user_id: uuid.UUID) -> int:
        result = await self.db.execute(
            delete(UserSession).where(UserSession.user_id == user_id)
        )
        return result.rowcount or 0


class InMemoryAuthRepository:
    """In-memory repository for tests and local demos."""

    def __init__(self):
        self.users: dict[uuid.UUID, User] = {}
        self.sessions: list[UserSession] = []

    async def get_user_by_email(self, email: str) -> Optional[User]:
        for user in self.users.values():
            if user.email == email:
                return user
        return None

    async def get_user(self, user_id: uuid.UUID) -> Optional[User]:
        return self.users.get(user_id)

    async def add_user(self, user: User) -> User:
        now = utcnow()
        user.id = user.id or uuid.uuid4()
        user.role = user.role or UserRole.gp.value
        user.is_active = True if user.is_active is None else user.is_active
        user.created_at = now
        user.updated_at = now
        self.users[user.id] = user
        return user

    async def save_user(self, user: User) -> User:
        user.updated_at = utcnow()
        return user

    async def list_users(self, skip: int, limit: int) -> tuple[list[User], int]:
        users = sorted(self.users.values(), key=lambda u: u.created_at, reverse=True)
        return users[skip : skip + limit], len(users)

    async def add_session(self, session: UserSession) -> UserSession:
        session.id = session.id or uuid.uuid4()
        session.created_at = utcnow()
        self.sessions.append(session)
        return session

    async def resolve_session(self, token: str, now: datetime) -> Optional[User]:
        for session in self.sessions:
            if session.token == token and session.expires_at > now:
                return self.users.get(session.user_id)
        return None

    async def delete_user_sessions(self, user_id: uuid.UUID) -> int:
        before = len(self.sessions)
        self.sessions = [s for s in self.sessions if s.user_id != user_id]
        return before - len(self.sessions)


class AuthService:
    """Registration, login, logout and token resolution."""

    def __init__(self, repo: AuthRepository, config: Settings = settings):
        self.repo = repo
        self.config = config

    async def _issue_session(
        self,
        user: User,
        ip_address: Optional[str],
        user_agent: Optional[str],
    ) -> UserSession:
        session = UserSession(
            user_id=user.id,
            token=generate_session_token(self.config.session_token_bytes),
            expires_at=utcnow() + timedelta(days=self.config.session_expire_days),
            ip_address=ip_address,
            user_agent=user_agent[:500] if user_agent else None,
        )
        return await self.repo.add_session(session)

    async def register(
        self,
        email: str,
        password: str,
        full_name: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> tuple[User, UserSession]:
        email = email.lower()
        if await self.repo.get_user_by_email(email):
            raise ConflictError("Email already registered")

        user = await self.repo.add_user(
            User(
                email=email,
                full_name=full_name,
                hashed_password=get_password_hash(password),
                role=UserRole.gp.value,
                is_active=True,
            )
        )
        session = await self._issue_session(user, ip_address, user_agent)
        logger.info("Registered user %s", user.id)
        return user, session

    async def login(
        self,
        email: str,
        password: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> tuple[User, UserSession]:
        user = await self.repo.get_user_by_email(email.lower())
        if not user or not verify_password(password, user.hashed_password):
            logger.info("Failed login attempt for %s", email)
            raise UnauthenticatedError("Invalid email or password")
        if not user.is_active:
            raise ForbiddenError("Account is deactivated")

        session = await self._issue_session(user, ip_address, user_agent)
        return user, session

    async def logout(self, user_id: uuid.UUID) -> int:
        """Delete every session of ``user_id``, on every device."""
        revoked = await self.repo.delete_user_sessions(user_id)
        logger.info("Revoked %d session(s) for user %s", revoked, user_id)
        return revoked

    async def resolve(self, token: str) -> Optional[SessionIdentity]:
        if not token:
            return None
        user = await self.repo.resolve_session(token, utcnow())
        if user is None:
            return None
        return SessionIdentity(user_id=user.id, role=user.role)

    async def current_user(self, user_id: uuid.UUID) -> Optional[User]:
        return await self.repo.get_user(user_id)

    async def list_users(self, skip: int, limit: int) -> tuple[list[User], int]:
        return await self.repo.list_users(skip, limit)

    async def update_profile(self, user_id: uuid.UUID, full_name: str) -> User:
        user = await self.repo.get_user(user_id)
        if user is None:
            raise UnauthenticatedError()
        user.full_name = full_name
        return await self.repo.save_user(user)

    async def update_user(self, user_id: uuid.UUID, changes: dict) -> Optional[User]:
        user = await self.repo.get_user(user_id)
        if user is None:
            return None
        for field, value in changes.items():
            if value is not None:
                setattr(user, field, value)
        user = await self.repo.save_user(user)
        if changes.get("is_active") is False:
            await self.repo.delete_user_sessions(user_id)
        return user
