import asyncio
import sys
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import PlainTextResponse
from fastapi.staticfiles import StaticFiles

from uploads.config import Settings, parse_args
from uploads.errors import ConfigError, UploadsError
from uploads.logger_config import setup_logger
from uploads.middleware import AccessGateMiddleware
from uploads.repository.file_repository import FileRepository
from uploads.routes import auth_routes, file_routes
from uploads.services.coordinator import StorageCoordinator
from uploads.services.storage_manager import StorageManager

logger = setup_logger()


def build_coordinator(settings: Settings) -> StorageCoordinator:
    repository = FileRepository(settings.db_path)
    repository.create_table()
    storage = StorageManager(settings.data_dir, settings.temp_dir)
    return StorageCoordinator(storage, repository)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = app.state.settings
    coordinator = build_coordinator(settings)
    await coordinator.storage.initialize()
    app.state.coordinator = coordinator
    yield
    coordinator.repository.close()


async def uploads_error_handler(request: Request, exc: UploadsError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return PlainTextResponse(exc.message, status_code=exc.status_code)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    logger.debug(f"Rejected malformed request to {request.url.path}: {exc.errors()}")
    return PlainTextResponse("Invalid request", status_code=400)


async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unexpected error on {request.method} {request.url.path}: {exc}")
    return PlainTextResponse("Internal server error", status_code=500)


def create_app(settings: Settings) -> FastAPI:
    """Build the application. Routes are registered on this app only."""
    app = FastAPI(title="Uploads Server", lifespan=lifespan)
    app.state.settings = settings

    app.add_middleware(AccessGateMiddleware, api_key=settings.api_key)

    app.add_exception_handler(UploadsError, uploads_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    app.include_router(auth_routes.router)
    app.include_router(file_routes.router)

    if settings.assets_dir.is_dir():
        app.mount("/", StaticFiles(directory=str(settings.assets_dir), html=True), name="assets")

    return app


async def sweep(settings: Settings) -> int:
    coordinator = build_coordinator(settings)
    try:
        removed = await coordinator.sweep_orphans()
    finally:
        coordinator.repository.close()
    return len(removed)


def main(argv: Optional[list] = None):
    args = parse_args(argv)

    try:
        settings = Settings.load(args.config)
    except ConfigError as e:
        logger.error(f"Failed to load config: {e}")
        sys.exit(1)

    if args.port is not None:
        settings.port = args.port

    setup_logger(settings.log_dir)

    if args.sweep:
        try:
            removed = asyncio.run(sweep(settings))
        except UploadsError as e:
            logger.error(f"Orphan sweep failed: {e.message}")
            sys.exit(1)
        logger.info(f"Removed {removed} orphan records")
        return

    logger.info("Starting uploads server...")
    logger.info(f"Data directory: {settings.data_dir}")
    logger.info(f"Temporary directory: {settings.temp_dir}")
    logger.info(f"Database: {settings.db_path}")
    logger.info(f"Server running on http://{settings.server_addr}")
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
