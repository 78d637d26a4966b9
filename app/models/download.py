from sqlalchemy import Index
from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime


class Download(SQLModel, table=True):
    __table_args__ = (
        Index("ix_download_document_downloaded_at", "document_id", "downloaded_at"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)

    user_id: int = Field(foreign_key="user.id", index=True)
    document_id: int = Field(foreign_key="document.id")

    downloaded_at: datetime = Field(default_factory=datetime.utcnow)
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
