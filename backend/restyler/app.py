import logging
import os
from typing import List

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from dotenv import load_dotenv

from .config import load_settings
from .services.store import PublishStore
from .routes.chat import router as chat_router
from .routes.generate import router as generate_router
from .routes.health import router as health_router
from .routes.publish import pages as published_pages, router as publish_router
from .routes.scrape import router as scrape_router
from .routes.screenshot import router as screenshot_router
from .routes.session import router as session_router
from .routes.submit import router as submit_router
from .routes.upload import router as upload_router


SUBMIT_PREFIX = "/api/submit/"


class SplitCORSMiddleware:
    """App-wide CORS policy, except for the submission proxy which any origin may call.

    Published pages run in sandboxed iframes and post with ``Origin: null``.
    """

    def __init__(self, app, allow_origins: List[str]):
        self.submit = CORSMiddleware(
            app,
            allow_origins=["*"],
            allow_methods=["POST", "OPTIONS"],
            allow_headers=["Content-Type"],
        )
        self.default = CORSMiddleware(
            app,
            allow_origins=allow_origins,
            allow_credentials=allow_origins != ["*"],
            allow_methods=["*"],
            allow_headers=["*"],
        )

    async def __call__(self, scope, receive, send):
        if scope["type"] == "http" and scope["path"].startswith(SUBMIT_PREFIX):
            await self.submit(scope, receive, send)
        else:
            await self.default(scope, receive, send)


def create_app() -> FastAPI:
    # Load environment variables from .env if present
    if os.getenv("DOTENV_DISABLED", "false").lower() not in {"1", "true", "yes"}:
        load_dotenv()

    settings = load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    app = FastAPI(title="Form Restyler API", version="0.3.0")
    app.state.settings = settings
    app.state.publish_store = PublishStore(ttl_seconds=settings.publish_ttl_s)

    # CORS
    app.add_middleware(SplitCORSMiddleware, allow_origins=settings.cors_allow_origins)

    # Routers
    app.include_router(health_router, prefix="/api")
    app.include_router(scrape_router, prefix="/api")
    app.include_router(generate_router, prefix="/api")
    app.include_router(screenshot_router, prefix="/api")
    app.include_router(upload_router, prefix="/api")
    app.include_router(publish_router, prefix="/api")
    app.include_router(submit_router, prefix="/api")
    app.include_router(session_router, prefix="/api")
    app.include_router(chat_router, prefix="/api")
    app.include_router(published_pages)

    # Hosted images: model-generated and creator uploads
    for name in ("generated", "uploads"):
        directory = settings.storage_dir / name
        directory.mkdir(parents=True, exist_ok=True)
        app.mount(f"/{name}", StaticFiles(directory=str(directory)), name=name)

    return app
