from fastapi import APIRouter

from api.routers import session

api_router = APIRouter(prefix="/api")

api_router.include_router(session.router, prefix="/session", tags=["Session"])
