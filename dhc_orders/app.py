import logging

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from fastapi.staticfiles import StaticFiles

from . import config
from .router import router, validation_error_handler

logger = logging.getLogger(__name__)
logging.basicConfig(level=config.LOG_LEVEL)


def create_app() -> FastAPI:
    app = FastAPI(title="DHC Order Scraper")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.ALLOWED_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/", include_in_schema=False)
    def root():
        return PlainTextResponse("Access restricted.", status_code=403)

    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.include_router(router)
    app.mount(
        "/downloads",
        StaticFiles(directory=str(config.ensure_downloads_dir())),
        name="downloads",
    )
    logger.info("Downloads directory: %s", config.DOWNLOADS_DIR)
    return app
