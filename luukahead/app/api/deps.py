# luukahead/app/api/deps.py
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from luukahead.app.core.config import settings
from luukahead.app.db.session import get_db
from luukahead.app.schemas.auth import SessionValidationResult, UserRecord
from luukahead.app.security.oauth import OAuthProvider, build_provider
from luukahead.app.security.sessions import SessionStore


def get_auth(request: Request) -> SessionValidationResult:
    """
    The {session, user} pair resolved from the session cookie.

    Filled in by the authentication middleware for every request; both
    fields are None for anonymous requests.
    """
    return getattr(request.state, "auth", None) or SessionValidationResult()


def require_user(auth: SessionValidationResult = Depends(get_auth)) -> UserRecord:
    # Every protected CRUD route depends on this to authorize and stamp owner_id
    if not auth.is_authenticated:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return auth.user


def get_session_store(db: AsyncSession = Depends(get_db)) -> SessionStore:
    return SessionStore(db)


def get_oauth_provider(provider: str) -> OAuthProvider:
    oauth_provider = build_provider(provider, settings)
    if oauth_provider is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown provider")
    return oauth_provider
