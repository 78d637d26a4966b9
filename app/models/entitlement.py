from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime


class Entitlement(SQLModel, table=True):
    """A user's right to download one paid document. At most one row per pair."""

    __table_args__ = (
        UniqueConstraint("user_id", "document_id", name="uq_entitlement_user_document"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)

    user_id: int = Field(foreign_key="user.id", index=True)
    document_id: int = Field(foreign_key="document.id", index=True)

    order_id: Optional[str] = None   # purchase order that paid for it, if any
    created_at: datetime = Field(default_factory=datetime.utcnow)
