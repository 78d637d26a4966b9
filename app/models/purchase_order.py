from sqlmodel import SQLModel, Field
from typing import Optional
from decimal import Decimal
from datetime import datetime

STATUS_CREATED = "created"
STATUS_PAID = "paid"
STATUS_EXPIRED = "expired"


class PurchaseOrder(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    order_id: str = Field(index=True, unique=True)

    # no FK on document_id: orders outlive deleted documents for audit
    user_id: int = Field(foreign_key="user.id", index=True)
    document_id: int = Field(index=True)

    amount: Decimal = Field(max_digits=10, decimal_places=2)
    currency: str = Field(default="INR")

    payment_session_id: str
    status: str = Field(default=STATUS_CREATED)  # created | paid | expired

    gateway_payment_id: Optional[str] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    settled_at: Optional[datetime] = None
