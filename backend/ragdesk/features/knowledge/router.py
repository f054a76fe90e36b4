import logging

from fastapi import APIRouter, Depends, UploadFile, File

from ragdesk.config import get_settings
from ragdesk.core.auth_gate import AuthenticatedUser
from ragdesk.core.dependencies import get_current_user, get_ingestion_service, get_vector_index
from ragdesk.core.exceptions import BadRequestError, PayloadTooLargeError
from ragdesk.features.knowledge.ingestion import IngestionService
from ragdesk.features.knowledge.pdf import PDF_MAGIC, looks_like_pdf
from ragdesk.features.knowledge.schemas import DocumentsResponse, MessageResponse
from ragdesk.features.knowledge.service import list_documents
from ragdesk.features.knowledge.vector_index import VectorIndex

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Knowledge Base"])


@router.post("/upload", response_model=MessageResponse)
async def upload_document(
    file: UploadFile | None = File(None),
    user: AuthenticatedUser = Depends(get_current_user),
    ingestion: IngestionService = Depends(get_ingestion_service),
):
    """
    Upload a PDF into the knowledge base.
    - Type and size are checked before anything is parsed or embedded.
    - The document is chunked, embedded and indexed before the response returns.
    """
    if file is None or not file.filename:
        raise BadRequestError("No file provided")

    if not looks_like_pdf(file.filename, file.content_type):
        raise BadRequestError("Only PDF files are supported")

    max_bytes = get_settings().MAX_UPLOAD_BYTES
    too_large = PayloadTooLargeError(
        f"File too large. Maximum size is {max_bytes // (1024 * 1024)}MB."
    )
    if file.size is not None and file.size > max_bytes:
        raise too_large
    file_bytes = await file.read(max_bytes + 1)
    if len(file_bytes) > max_bytes:
        raise too_large

    # Extension and MIME type are client-supplied; the header is not.
    if not file_bytes.startswith(PDF_MAGIC):
        raise BadRequestError("Only PDF files are supported")

    result = await ingestion.ingest_pdf(file_bytes, file.filename, uploader=user.email)
    logger.info("%s uploaded %s (%d chunks)", user.email, result.filename, result.chunks_stored)
    return {"message": "Document processed successfully"}


@router.get("/documents", response_model=DocumentsResponse)
async def get_documents(
    user: AuthenticatedUser = Depends(get_current_user),
    index: VectorIndex = Depends(get_vector_index),
):
    """List indexed documents, grouped by filename, with their chunks."""
    return await list_documents(index)


@router.post("/collection/init", response_model=MessageResponse)
async def init_collection(
    user: AuthenticatedUser = Depends(get_current_user),
    index: VectorIndex = Depends(get_vector_index),
):
    """Create the vector collection if it does not exist yet."""
    created = await index.ensure_collection()
    if created:
        return {"message": "Vector collection created"}
    return {"message": "Vector collection already exists"}
