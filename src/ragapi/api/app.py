"""
FastAPI application.

Assembles the API router, error handlers and OpenAPI docs, and launches
uvicorn for the `ragapi` console script.
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse

from ragapi.api.routes import router
from ragapi.rag import RAGPipeline
from ragapi.rag.exceptions import ValidationError
from ragapi.utils.config import RAGConfig, load_config
from ragapi.utils.logging import set_log_level, uvicorn_log_config

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Verify the vector store connection and prepare the upload directory."""
    Path(app.state.config.upload_dir).mkdir(parents=True, exist_ok=True)
    await app.state.pipeline.index.connect()
    yield


async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    logger.warning(f"Rejected request to {request.url.path}: {exc.message}")
    return JSONResponse({"success": False, "error": exc.message}, status_code=400)


async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    logger.warning(f"Malformed request to {request.url.path}: {exc.errors()}")
    return JSONResponse({"success": False, "error": "Invalid request body"}, status_code=400)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.url.path}: {exc}")
    return JSONResponse(
        {"success": False, "error": "Internal server error", "message": str(exc)},
        status_code=500,
    )


def create_app(
    config: Optional[RAGConfig] = None,
    pipeline: Optional[RAGPipeline] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config: Service configuration (default: loaded from file and environment)
        pipeline: Prebuilt pipeline (default: built from `config`)

    Returns:
        Configured application instance
    """
    config = config or load_config()
    pipeline = pipeline or RAGPipeline.from_config(config)

    app = FastAPI(
        title="RAG System API",
        description="A simple backend API demonstrating a RAG (Retrieval Augmented Generation) system",
        version="1.0.0",
        docs_url="/api-docs",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.pipeline = pipeline

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
    app.include_router(router)

    @app.get("/", include_in_schema=False)
    async def root():
        return RedirectResponse(url="/api-docs")

    return app


def main() -> None:
    """Run the API server."""
    config = load_config()
    set_log_level(config.log_level)

    app = create_app(config)
    logger.info(f"Server running on port {config.port}")
    logger.info(f"Swagger docs available at http://localhost:{config.port}/api-docs")
    uvicorn.run(
        app,
        host=config.host,
        port=config.port,
        log_config=uvicorn_log_config(config.log_level),
    )
