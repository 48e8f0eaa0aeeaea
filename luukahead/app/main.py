# luukahead/app/main.py
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware

from luukahead.app.api.v1.endpoints import oauth
from luukahead.app.api.v1.router import api_router
from luukahead.app.core.config import settings
from luukahead.app.core.logging import setup_logging
from luukahead.app.db.session import Database, get_database
from luukahead.app.schemas.auth import SessionValidationResult
from luukahead.app.security.sessions import (
    SessionStore,
    delete_session_token_cookie,
    set_session_token_cookie,
)

logger = logging.getLogger(__name__)


def _sets_session_cookie(response) -> bool:
    prefix = f"{settings.SESSION_COOKIE_NAME}="
    return any(value.startswith(prefix) for value in response.headers.getlist("set-cookie"))


def create_app(database: Optional[Database] = None) -> FastAPI:
    """
    Build the application.

    ``database`` is used as-is when given (tests pass an in-memory one);
    otherwise one is opened from settings at startup. Either way it is
    disposed at shutdown.
    """
    setup_logging(settings.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db_handle = database or Database(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)
        app.state.database = db_handle

        await db_handle.create_all()
        async with db_handle.session() as db:
            removed = await SessionStore(db).delete_expired_sessions()
        if removed:
            logger.info("Removed %d expired sessions", removed)

        logger.info("%s API started", settings.PROJECT_NAME)
        yield

        await db_handle.dispose()
        logger.info("%s API stopped", settings.PROJECT_NAME)

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.PROJECT_VERSION,
        openapi_url=f"{settings.API_V1_STR}/openapi.json",
        lifespan=lifespan,
    )

    # Resolve {session, user} from the cookie for every request; refresh
    # the cookie when valid, drop it when not
    @app.middleware("http")
    async def authenticate(request: Request, call_next):
        token = request.cookies.get(settings.SESSION_COOKIE_NAME)
        auth = SessionValidationResult()
        if token:
            async with get_database(request).session() as db:
                auth = await SessionStore(db).validate_session_token(token)
        request.state.auth = auth

        response = await call_next(request)

        # Login/logout handlers set the cookie themselves
        if token and not _sets_session_cookie(response):
            if auth.session:
                set_session_token_cookie(response, token, auth.session.expires_at)
            else:
                delete_session_token_cookie(response)
        return response

    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(api_router, prefix=settings.API_V1_STR)
    app.include_router(oauth.router, prefix=settings.LOGIN_URL, tags=["oauth"])

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        # Causes are logged, never returned to the client
        logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(status_code=500, content={"detail": "An error has occurred"})

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "version": settings.PROJECT_VERSION}

    return app


app = create_app()
