# luukahead/app/api/v1/router.py
from fastapi import APIRouter

from luukahead.app.api.v1.endpoints import auth

api_router = APIRouter()
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
