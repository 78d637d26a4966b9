from pydantic import BaseModel
from typing import Optional


class VerifyPaymentRequest(BaseModel):
    order_id: Optional[str] = None
    pdf_id: Optional[int] = None
