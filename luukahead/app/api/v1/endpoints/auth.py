# luukahead/app/api/v1/endpoints/auth.py
import logging

from fastapi import APIRouter, Depends, Form, HTTPException, Response, status
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from luukahead.app.api import deps
from luukahead.app.core.config import settings
from luukahead.app.db.session import get_db
from luukahead.app.models.user import User
from luukahead.app.schemas.auth import SessionValidationResult, UserRecord
from luukahead.app.schemas.user import Credentials, MessageResponse, ProvidersResponse, UserResponse
from luukahead.app.security import hashing
from luukahead.app.security.oauth import PROVIDER_NAMES, build_provider
from luukahead.app.security.sessions import (
    SessionStore,
    delete_session_token_cookie,
    generate_session_token,
    generate_user_id,
    set_session_token_cookie,
)

logger = logging.getLogger(__name__)

router = APIRouter()

INCORRECT_CREDENTIALS = "Incorrect username or password"


def _parse_credentials(username: str, password: str,
                       invalid_password_detail: str = "Invalid password") -> Credentials:
    try:
        return Credentials(username=username, password=password)
    except ValidationError as e:
        field = e.errors()[0]["loc"][0]
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid username" if field == "username" else invalid_password_detail,
        )


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
        response: Response,
        username: str = Form(""),
        password: str = Form(""),
        db: AsyncSession = Depends(get_db),
):
    credentials = _parse_credentials(username, password)

    result = await db.execute(select(User).where(User.username == credentials.username))
    if result.scalars().first():
        raise HTTPException(status_code=400, detail="Username already exists")

    password_hash = await run_in_threadpool(hashing.hash_password, credentials.password)
    new_user = User(
        id=generate_user_id(),
        username=credentials.username,
        password_hash=password_hash,
    )
    db.add(new_user)

    token = generate_session_token()
    try:
        await db.flush()
        session = await SessionStore(db).create_session(token, new_user.id)
    except IntegrityError:
        # Lost a race for the username; details stay in the log
        await db.rollback()
        logger.exception("Error during registration of %s", credentials.username)
        raise HTTPException(status_code=500, detail="An error has occurred")

    set_session_token_cookie(response, token, session.expires_at)
    logger.info("User registered: %s", new_user.username)
    return UserResponse.from_user(new_user)


@router.post("/login", response_model=UserResponse)
async def login(
        response: Response,
        username: str = Form(""),
        password: str = Form(""),
        db: AsyncSession = Depends(get_db),
):
    # A password that could never have been registered is just a wrong password
    credentials = _parse_credentials(username, password, invalid_password_detail=INCORRECT_CREDENTIALS)

    result = await db.execute(select(User).where(User.username == credentials.username))
    user = result.scalars().first()
    if not user:
        raise HTTPException(status_code=400, detail=INCORRECT_CREDENTIALS)

    try:
        valid = await run_in_threadpool(hashing.verify_password, credentials.password, user.password_hash)
    except hashing.PasswordNotSetError:
        raise HTTPException(status_code=400, detail="This account has no password set.")

    if not valid:
        raise HTTPException(status_code=400, detail=INCORRECT_CREDENTIALS)

    token = generate_session_token()
    session = await SessionStore(db).create_session(token, user.id)
    set_session_token_cookie(response, token, session.expires_at)

    logger.info("User logged in: %s", user.username)
    return UserResponse.from_user(user)


@router.post("/logout", response_model=MessageResponse)
async def logout(
        response: Response,
        auth: SessionValidationResult = Depends(deps.get_auth),
        store: SessionStore = Depends(deps.get_session_store),
):
    if not auth.session:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    await store.invalidate_session(auth.session.id)
    delete_session_token_cookie(response)

    logger.info("User logged out: %s", auth.user.username)
    return {"message": "Logged out"}


@router.get("/me", response_model=UserResponse)
async def read_current_user(current_user: UserRecord = Depends(deps.require_user)):
    return UserResponse.from_user(current_user)


@router.get("/providers", response_model=ProvidersResponse)
async def get_login_providers():
    # Login page only offers buttons for fully configured providers
    flags = {name: build_provider(name, settings).configured for name in PROVIDER_NAMES}
    return ProvidersResponse(**flags)
