import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from multiprocessing import set_start_method

from .api.routes import router
from .api.store import SessionStore
from .config import Settings, load_settings
from .core.worker import RenderChannel


def create_app(
    settings: Optional[Settings] = None,
    detector=None,
    channel_factory: Optional[Callable[[], RenderChannel]] = None,
) -> FastAPI:
    settings = settings or load_settings()
    store = SessionStore(settings, channel_factory=channel_factory)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        # Stop every render worker on shutdown
        store.close_all()

    # Initialize FastAPI app
    app = FastAPI(title="Deal With It GIF generator", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.detector = detector

    # Enable CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Mount routes
    app.include_router(router, prefix="/api")
    return app


app = create_app()

if __name__ == "__main__":
    settings = app.state.settings
    logging.basicConfig(
        level=settings.server.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Set start method for multiprocessing
    set_start_method(settings.worker.start_method)

    import uvicorn
    uvicorn.run(app, host=settings.server.host, port=settings.server.port)
