from sqlmodel import SQLModel, Field
from typing import Optional
from decimal import Decimal
from datetime import datetime

PLACEHOLDER_THUMBNAIL = "https://via.placeholder.com/100x140"


class Document(SQLModel, table=True):
    #main info
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    description: str

    #file
    size: str                    # human readable, "1.2 MB"
    file_size: int               # bytes
    path: str                    # relative to the upload dir, "pdfs/<name>.pdf"
    thumbnail: str = Field(default=PLACEHOLDER_THUMBNAIL)

    #shop details
    price: Decimal = Field(default=Decimal("0"), max_digits=10, decimal_places=2, ge=0)
    download_count: int = Field(default=0, ge=0)

    #tags
    tags: Optional[str] = None   # comma separated string

    created_by: int = Field(foreign_key="user.id")
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_free(self) -> bool:
        return self.price == 0

    @property
    def is_paid(self) -> bool:
        return not self.is_free

    @property
    def tag_list(self) -> list[str]:
        if not self.tags:
            return []
        return [t.strip() for t in self.tags.split(",") if t.strip()]
