from dotenv import load_dotenv
load_dotenv()

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from _bootstrap.bootstrap import Container
from _bootstrap.settings import Settings
from api.api import api_router

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    # basicConfig leaves the level alone once a handler exists (uvicorn, pytest)
    logging.getLogger().setLevel(level)


def create_app(container: Optional[Container] = None) -> FastAPI:
    """
    Build the app. Without an explicit container, settings and the container
    are built from the environment at startup, so importing this module never
    touches API keys or audio devices.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "container", None) is None:
            settings = Settings.from_env()
            configure_logging(settings.log_level)
            app.state.container = Container(settings=settings)
        yield
        await app.state.container.turn_coordinator.shutdown()

    app = FastAPI(
        title="Voice Adventure",
        description="Voice Adventure — spoken choose-your-path story game",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.container = container

    # CORS: allow local web front-ends
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:8000",
            "http://localhost:5173",
            "http://localhost:3000",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Mount all API routes
    app.include_router(api_router)

    @app.get("/health")
    def healthcheck():
        return {"status": "ok", "service": "voice-adventure"}

    return app


app = create_app()
