from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class MessageResponse(BaseModel):
    message: str


class ChunkView(_CamelModel):
    id: str
    text: str
    text_length: int = Field(alias="textLength")


class DocumentView(_CamelModel):
    filename: str
    chunks: list[ChunkView] = Field(default_factory=list)
    total_chunks: int = Field(default=0, alias="totalChunks")
    uploaded_by: str = Field(default="Unknown", alias="uploadedBy")
    uploaded_at: str = Field(default="Unknown", alias="uploadedAt")


class CollectionView(_CamelModel):
    name: str
    points_count: int = Field(alias="pointsCount")
    status: str


class DocumentsResponse(BaseModel):
    collection: CollectionView
    documents: list[DocumentView]
