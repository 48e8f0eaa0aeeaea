# luukahead/app/schemas/auth.py
"""
Typed records handed from the session layer to request handlers.

Handlers never see ORM rows for the authenticated user: they get these
immutable snapshots, so a handler cannot lazily trigger database I/O or
mutate the session by accident.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class UserRecord(BaseModel):
    id: str
    username: str
    password_hash: Optional[str] = None
    google_id: Optional[str] = None
    microsoft_id: Optional[str] = None

    model_config = ConfigDict(frozen=True, from_attributes=True)


class SessionRecord(BaseModel):
    id: str
    user_id: str
    expires_at: datetime

    model_config = ConfigDict(frozen=True, from_attributes=True)


class SessionValidationResult(BaseModel):
    """Both fields are set, or both are None (unauthenticated)."""
    session: Optional[SessionRecord] = None
    user: Optional[UserRecord] = None

    model_config = ConfigDict(frozen=True)

    @property
    def is_authenticated(self) -> bool:
        return self.session is not None and self.user is not None


class ProviderIdentity(BaseModel):
    """What the linker needs from a provider's profile response."""
    provider_id: str
    email: Optional[str] = None
    display_name: Optional[str] = None

    model_config = ConfigDict(frozen=True)
