"""
Chat feature: API routes.
"""

from fastapi import APIRouter, Depends

from ragdesk.core.auth_gate import AuthenticatedUser
from ragdesk.core.dependencies import get_current_user, get_rag_service
from ragdesk.features.chat.schemas import ChatRequest, ChatResponse
from ragdesk.features.chat.service import RagService

router = APIRouter()


@router.post("/chat", response_model=ChatResponse)
async def chat(
    data: ChatRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    rag: RagService = Depends(get_rag_service),
):
    """Answer a question from the indexed documents."""
    answer = await rag.answer(data.message, k=data.k)
    return {"response": answer}
