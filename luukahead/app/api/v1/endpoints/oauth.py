# luukahead/app/api/v1/endpoints/oauth.py
"""
Browser-facing OAuth login.

- GET /login/{provider}           - set state + PKCE cookies, redirect to provider
- GET /login/{provider}/callback  - validate state, exchange code, link account,
                                    start a session

Security:
- state cookie must equal the returned state (CSRF)
- the PKCE verifier cookie must be present (code injection)
- both cookies are httpOnly and expire after 10 minutes, so a late
  callback fails closed
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import PlainTextResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from luukahead.app.api import deps
from luukahead.app.core.config import settings
from luukahead.app.db.session import get_db
from luukahead.app.security.oauth import (
    OAuthError,
    OAuthProvider,
    generate_code_verifier,
    generate_state,
)
from luukahead.app.security.sessions import (
    SessionStore,
    generate_session_token,
    set_session_token_cookie,
)
from luukahead.app.services.identity import resolve_oauth_user

logger = logging.getLogger(__name__)

router = APIRouter()


def _clear_oauth_cookies(response, provider: OAuthProvider) -> None:
    response.delete_cookie(provider.state_cookie, path="/")
    response.delete_cookie(provider.verifier_cookie, path="/")


@router.get("/{provider}")
async def start_oauth_login(provider: OAuthProvider = Depends(deps.get_oauth_provider)):
    if not provider.configured:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{provider.name} login is not configured",
        )

    state = generate_state()
    code_verifier = generate_code_verifier()

    response = RedirectResponse(
        provider.authorization_url(state, code_verifier),
        status_code=status.HTTP_302_FOUND,
    )
    for name, value in ((provider.state_cookie, state), (provider.verifier_cookie, code_verifier)):
        response.set_cookie(
            name,
            value,
            max_age=settings.OAUTH_STATE_MAX_AGE,
            path="/",
            httponly=True,
            samesite="lax",
            secure=settings.COOKIE_SECURE,
        )
    return response


@router.get("/{provider}/callback")
async def oauth_callback(
        request: Request,
        provider: OAuthProvider = Depends(deps.get_oauth_provider),
        db: AsyncSession = Depends(get_db),
):
    code = request.query_params.get("code")
    state = request.query_params.get("state")
    stored_state = request.cookies.get(provider.state_cookie)
    code_verifier = request.cookies.get(provider.verifier_cookie)

    if not code or not state or not stored_state or state != stored_state or not code_verifier:
        logger.warning("Rejected %s OAuth callback: invalid state", provider.name)
        return PlainTextResponse("Invalid OAuth state", status_code=status.HTTP_400_BAD_REQUEST)

    try:
        access_token = await provider.exchange_code(code, code_verifier)
        profile = await provider.fetch_profile(access_token)
        identity = provider.extract_identity(profile)

        user, outcome = await resolve_oauth_user(db, provider, identity)
        token = generate_session_token()
        session = await SessionStore(db).create_session(token, user.id)
    except OAuthError as e:
        await db.rollback()
        logger.error("%s OAuth error: %s", provider.name, e)
        response = RedirectResponse(f"{settings.LOGIN_URL}?error=oauth_failed", status_code=status.HTTP_302_FOUND)
        _clear_oauth_cookies(response, provider)
        return response
    except Exception:
        # Storage failures surface as a 500; nothing from this login is kept
        await db.rollback()
        raise

    logger.info("%s login resolved to user %s (%s)", provider.name, user.id, outcome)

    response = RedirectResponse(settings.POST_LOGIN_REDIRECT, status_code=status.HTTP_302_FOUND)
    set_session_token_cookie(response, token, session.expires_at)
    _clear_oauth_cookies(response, provider)
    return response
