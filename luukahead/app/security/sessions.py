# luukahead/app/security/sessions.py
"""
Opaque session tokens.

- The client holds a random token in the ``auth-session`` cookie
- The session table is keyed on hex SHA-256(token), never the token itself
- Sessions last 30 days and slide forward to 30 days again whenever they
  are used with less than 15 days left

Validation never raises for unknown or expired tokens: both come back as
an empty SessionValidationResult. Only storage-layer errors propagate.
"""
import base64
import hashlib
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.responses import Response

from luukahead.app.core.config import settings
from luukahead.app.models.session import AuthSession
from luukahead.app.models.user import User
from luukahead.app.schemas.auth import SessionRecord, SessionValidationResult, UserRecord

logger = logging.getLogger(__name__)

SESSION_TOKEN_BYTES = 20
USER_ID_BYTES = 15


def _random_base32(num_bytes: int) -> str:
    return base64.b32encode(secrets.token_bytes(num_bytes)).decode("ascii").rstrip("=").lower()


def generate_session_token() -> str:
    """160 random bits, lower-case base32 (URL and cookie safe)."""
    return _random_base32(SESSION_TOKEN_BYTES)


def generate_user_id() -> str:
    return _random_base32(USER_ID_BYTES)


def session_id_from_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SessionStore:
    """
    Session operations against an injected AsyncSession.

    One store per unit of work; it commits its own writes.
    """

    def __init__(
        self,
        db: AsyncSession,
        lifetime: Optional[timedelta] = None,
        renew_threshold: Optional[timedelta] = None,
        now: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        if lifetime is None:
            lifetime = timedelta(days=settings.SESSION_EXPIRE_DAYS)
        if renew_threshold is None:
            renew_threshold = timedelta(days=settings.SESSION_RENEW_THRESHOLD_DAYS)
        self.lifetime = lifetime
        self.renew_threshold = renew_threshold
        self._now = now

    def _expiry_from_now(self) -> datetime:
        return (self._now() + self.lifetime).replace(microsecond=0)

    async def create_session(self, token: str, user_id: str) -> SessionRecord:
        """
        Insert a session for ``user_id`` and commit.

        Anything else pending on the same AsyncSession (e.g. a user created
        by the OAuth linker) is committed together with it.
        """
        session = AuthSession(
            id=session_id_from_token(token),
            user_id=user_id,
            expires_at=self._expiry_from_now(),
        )
        self.db.add(session)
        await self.db.commit()
        return SessionRecord(id=session.id, user_id=session.user_id, expires_at=_as_utc(session.expires_at))

    async def validate_session_token(self, token: Optional[str]) -> SessionValidationResult:
        if not token:
            return SessionValidationResult()

        result = await self.db.execute(
            select(AuthSession, User)
            .join(User, AuthSession.user_id == User.id)
            .where(AuthSession.id == session_id_from_token(token))
        )
        row = result.first()
        if row is None:
            return SessionValidationResult()

        session, user = row
        now = self._now()
        expires_at = _as_utc(session.expires_at)

        if now >= expires_at:
            await self.db.delete(session)
            await self.db.commit()
            logger.info("Expired session removed for user %s", user.id)
            return SessionValidationResult()

        user_record = UserRecord.model_validate(user)
        session_record = SessionRecord(id=session.id, user_id=session.user_id, expires_at=expires_at)

        if expires_at - now < self.renew_threshold:
            renewed = self._expiry_from_now()
            try:
                session.expires_at = renewed
                await self.db.commit()
            except SQLAlchemyError:
                # A failed renewal must not log the user out
                logger.warning(
                    "Could not extend session for user %s; keeping current expiry",
                    user_record.id,
                    exc_info=True,
                )
                await self.db.rollback()
            else:
                session_record = session_record.model_copy(update={"expires_at": renewed})

        return SessionValidationResult(session=session_record, user=user_record)

    async def invalidate_session(self, session_id: str) -> None:
        await self.db.execute(delete(AuthSession).where(AuthSession.id == session_id))
        await self.db.commit()

    async def invalidate_user_sessions(self, user_id: str) -> int:
        result = await self.db.execute(delete(AuthSession).where(AuthSession.user_id == user_id))
        await self.db.commit()
        return result.rowcount or 0

    async def delete_expired_sessions(self) -> int:
        """Expiry sweep; returns how many rows were removed."""
        result = await self.db.execute(delete(AuthSession).where(AuthSession.expires_at <= self._now()))
        await self.db.commit()
        return result.rowcount or 0


# ─────────────────────────────────────────────────────────────────────────────
# Cookie helpers
# ─────────────────────────────────────────────────────────────────────────────
def set_session_token_cookie(response: Response, token: str, expires_at: datetime) -> None:
    max_age = max(0, int((_as_utc(expires_at) - utcnow()).total_seconds()))
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        token,
        max_age=max_age,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.COOKIE_SECURE,
    )


def delete_session_token_cookie(response: Response) -> None:
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        "",
        max_age=0,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.COOKIE_SECURE,
    )
