"""Chatroom Backend Application.

This is the main entry point for the chatroom backend service: a realtime
presence-and-message relay paired with a date-partitioned file store.

Modules:
    - chat: WebSocket presence registry and broadcast relay
    - files: Upload, listing and retrieval of shared files
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.chat.router import router as chat_router
from app.config import AppConfig, get_config, set_config
from app.files.router import router as files_router
from app.files.service import FileStorageService

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# Silence per-request transport noise.
for _noisy in (
    "multipart",
    "python_multipart",
    "uvicorn.access",
):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    # Startup
    config = get_config()

    # Apply configured log level to root logger so that
    # `logging.level: "debug"` in chatroom.settings.yaml activates DEBUG output.
    configured_level = getattr(logging, config.logging.level.upper(), None)
    if configured_level is not None:
        logging.getLogger().setLevel(configured_level)
        logger.info("Root logger level set to %s", config.logging.level.upper())

    # Creates the storage root if it is missing
    service = FileStorageService.get_instance()
    logger.info(f"File store ready at {service.root_dir}")
    logger.info(
        f"Server running on http://{config.server.host}:{config.server.port}"
    )

    yield  # Application runs here

    # Shutdown
    logger.info("Application shutdown complete")


def create_app(config: Optional[AppConfig] = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        config: Installed as the process-wide config when given.
    """
    if config is not None:
        set_config(config)
        FileStorageService.reset_instance()

    application = FastAPI(
        title="Chatroom API",
        description="Realtime presence and message relay with a date-partitioned file store",
        version="0.1.0",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=get_config().server.allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register all routers; /files/list must precede the /files/{path} catch-all
    application.include_router(chat_router)
    application.include_router(files_router)

    @application.get("/health")
    async def health() -> dict:
        """Health check endpoint.

        Returns:
            dict: Status object indicating the server is running.
        """
        return {"status": "ok"}

    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn

    _server = get_config().server
    uvicorn.run("app.main:app", host=_server.host, port=_server.port)
