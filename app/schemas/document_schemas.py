from decimal import Decimal
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Union

from app.models.document import Document


class DocumentCreate(BaseModel):
    """Admin panel entry for a file that is already stored."""
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(..., min_length=1, max_length=200)
    description: str
    path: str = Field(..., min_length=1)
    file_size: int = Field(..., ge=0, alias="fileSize")
    size: Optional[str] = None
    thumbnail: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0)
    is_free: Optional[bool] = Field(None, alias="isFree")
    tags: Optional[Union[List[str], str]] = None


class DocumentUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    thumbnail: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0)
    is_free: Optional[bool] = Field(None, alias="isFree")
    tags: Optional[Union[List[str], str]] = None


def document_out(document: Document) -> dict:
    return {
        "id": document.id,
        "title": document.title,
        "description": document.description,
        "size": document.size,
        "fileSize": document.file_size,
        "thumbnail": document.thumbnail,
        "downloadCount": document.download_count,
        "price": float(document.price),
        "isFree": document.is_free,
        "isPaid": document.is_paid,
        "tags": document.tag_list,
        "createdBy": document.created_by,
        "createdAt": document.created_at,
    }


def document_summary(document: Document) -> dict:
    return {
        "id": document.id,
        "title": document.title,
        "description": document.description,
        "thumbnail": document.thumbnail,
        "price": float(document.price),
        "createdAt": document.created_at,
    }
