# luukahead/app/services/identity.py
"""
Resolve an OAuth identity to a local user.

Resolution order (deterministic, so repeated logins land on the same row):

1. user whose provider column already holds the provider id
2. user whose username equals the derived username; the provider id is
   backfilled if that column is still empty
3. a new user with no password and the provider id set

Writes are flushed, not committed: the caller commits them together with
the new session so a failed login leaves nothing behind.
"""
import logging
import re
from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from luukahead.app.models.user import User
from luukahead.app.schemas.auth import ProviderIdentity
from luukahead.app.security.oauth import OAuthProvider
from luukahead.app.security.sessions import generate_user_id

logger = logging.getLogger(__name__)

FALLBACK_USERNAME = "user"
MAX_USERNAME_LENGTH = 31

_WHITESPACE = re.compile(r"\s+")
_DISALLOWED = re.compile(r"[^a-z0-9_-]")


def derive_username(email: Optional[str], display_name: Optional[str]) -> str:
    """Email local-part, else a sanitized display name, else "user"."""
    if email:
        local_part = email.split("@", 1)[0].strip()
        if local_part:
            return local_part[:MAX_USERNAME_LENGTH]

    if display_name:
        candidate = _WHITESPACE.sub("_", display_name.strip().lower())
        candidate = _DISALLOWED.sub("", candidate)
        if candidate:
            return candidate[:MAX_USERNAME_LENGTH]

    return FALLBACK_USERNAME


async def resolve_oauth_user(
    db: AsyncSession,
    provider: OAuthProvider,
    identity: ProviderIdentity,
) -> Tuple[User, str]:
    """
    Find, link or create the user for ``identity``.

    Returns:
        (user, outcome) where outcome is "existing", "linked" or "created"
    """
    id_column = getattr(User, provider.id_field)

    result = await db.execute(select(User).where(id_column == identity.provider_id))
    user = result.scalars().first()
    if user:
        return user, "existing"

    username = derive_username(identity.email, identity.display_name)
    result = await db.execute(select(User).where(User.username == username))
    user = result.scalars().first()

    if user:
        if not getattr(user, provider.id_field):
            setattr(user, provider.id_field, identity.provider_id)
            db.add(user)
            await db.flush()
            return user, "linked"
        # Linked to another account at this provider; still the same local user
        logger.warning(
            "User %s already linked to a different %s id; signing in without relinking",
            user.id,
            provider.name,
        )
        return user, "existing"

    user = User(
        id=generate_user_id(),
        username=username,
        password_hash=None,
        **{provider.id_field: identity.provider_id},
    )
    db.add(user)
    await db.flush()
    return user, "created"
