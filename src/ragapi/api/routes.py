"""
API endpoints.

Routes: GET /api/status, POST /api/rag/index, POST /api/rag/chat
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Request, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ragapi.api.uploads import save_upload
from ragapi.rag import RAGPipeline, UploadedFile
from ragapi.rag.exceptions import MissingFileError, MissingQueryError
from ragapi.utils.config import RAGConfig

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


class ChatRequest(BaseModel):
    query: Optional[str] = None


def get_pipeline(request: Request) -> RAGPipeline:
    return request.app.state.pipeline


def get_config(request: Request) -> RAGConfig:
    return request.app.state.config


@router.get("/status", tags=["Status"], summary="Get system status")
async def get_status(pipeline: RAGPipeline = Depends(get_pipeline)):
    """Current state of the vector store, provider availability and indexed documents."""
    result = await pipeline.status()
    return JSONResponse(result.to_response(), status_code=200 if result.success else 500)


@router.post("/rag/index", tags=["RAG"], summary="Index a document")
async def index_document(
    document: Optional[UploadFile] = File(None),
    pipeline: RAGPipeline = Depends(get_pipeline),
    config: RAGConfig = Depends(get_config),
):
    """Upload and process a document (PDF, DOCX, PPT, image, or text file)."""
    if document is None or not document.filename:
        raise MissingFileError()

    logger.info(f"Indexing document: {document.filename}")
    path = await save_upload(document, config.upload_dir, config.max_upload_bytes)

    result = await pipeline.index_document(
        UploadedFile(path=str(path), filename=document.filename)
    )
    return JSONResponse(result.to_response(), status_code=200 if result.success else 500)


@router.post("/rag/chat", tags=["RAG"], summary="Generate chat response")
async def chat(
    body: ChatRequest,
    pipeline: RAGPipeline = Depends(get_pipeline),
):
    """Generate a response based on all indexed documents."""
    if not body.query or not body.query.strip():
        raise MissingQueryError()

    result = await pipeline.chat(body.query)
    return JSONResponse(result.to_response(), status_code=200 if result.success else 500)
