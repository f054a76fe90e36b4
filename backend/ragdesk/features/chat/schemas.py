from pydantic import BaseModel, Field


class ChatRequest(BaseModel):
    message: str = Field(min_length=1)
    k: int | None = Field(default=None, ge=1, le=50)


class ChatResponse(BaseModel):
    response: str
