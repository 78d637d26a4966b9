"""
Purchase flow for paid documents.

    created --finalize(settled)--> paid        (entitlement granted once)
    created --finalize(pending)--> created     (safe to retry)
    created --finalize(pending, past TTL)--> expired
    expired --finalize(settled)--> paid        (payment that raced the expiry)
    paid is terminal

The order row is the binding between the gateway order id and the
(user, document, amount) it was opened for; finalize only trusts that row.
The gateway order carries the same expiry, so once it passes no new
payment can be taken against it.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
from urllib.parse import urlencode

from sqlmodel import Session, select

from app.config import settings
from app.exceptions import InvalidRequestError, NotFoundError
from app.models.purchase_order import (
    PurchaseOrder,
    STATUS_CREATED,
    STATUS_EXPIRED,
    STATUS_PAID,
)
from app.models.user import User
from app.services.cashfree_client import CashfreeClient, generate_order_id
from app.services.catalog_service import get_document
from app.services.entitlement_service import grant_entitlement, has_entitlement

logger = logging.getLogger(__name__)

MAX_ORDER_ID_ATTEMPTS = 5


@dataclass
class SessionDescriptor:
    order_id: str
    payment_session_id: str
    amount: float
    currency: str


@dataclass
class FinalizeResult:
    success: bool
    status: str                      # paid | pending | expired
    order_id: Optional[str] = None
    granted: bool = False            # a new entitlement row was written by this call

    @property
    def message(self) -> str:
        if self.success:
            return "Payment verified. PDF unlocked."
        if self.status == STATUS_EXPIRED:
            return "Payment session expired"
        return "Payment not completed yet"


def _session_ttl() -> timedelta:
    return timedelta(minutes=settings.purchase_session_ttl_minutes)


def is_stale(order: PurchaseOrder, now: Optional[datetime] = None) -> bool:
    now = now or datetime.utcnow()
    return order.status == STATUS_CREATED and order.created_at < now - _session_ttl()


def payment_redirect_url(order_id: str, document_id) -> str:
    """Where the browser lands after hosted checkout. No verification here."""
    query = urlencode({"order_id": order_id, "pdf_id": document_id})
    return f"{settings.frontend_url.rstrip('/')}/payment-success?{query}"


def gateway_return_url(order_id: str, document_id) -> str:
    query = urlencode({"order_id": order_id, "pdf_id": document_id})
    return f"{settings.base_url.rstrip('/')}/api/users/payment-redirect?{query}"


def _new_order_id(session: Session) -> str:
    for _ in range(MAX_ORDER_ID_ATTEMPTS):
        order_id = generate_order_id()
        taken = session.exec(
            select(PurchaseOrder.id).where(PurchaseOrder.order_id == order_id)
        ).first()
        if taken is None:
            return order_id
    raise RuntimeError("Could not allocate a unique order id")


def begin_purchase(
    *,
    session: Session,
    gateway: CashfreeClient,
    user: User,
    document_id: int,
    order_id: Optional[str] = None,
) -> SessionDescriptor:
    document = get_document(session, document_id)

    if document.is_free:
        raise InvalidRequestError("free document does not require payment")

    if has_entitlement(session, user.id, document.id):
        raise InvalidRequestError("You have already purchased this PDF")

    order_id = order_id or _new_order_id(session)
    opened_at = datetime.utcnow()

    # gateway first: a failed session leaves nothing behind locally
    gateway_session = gateway.create_session(
        amount=document.price,
        currency=settings.currency,
        user_id=str(user.id),
        user_email=user.email,
        user_name=user.display_name,
        user_phone=user.phone,
        document_id=str(document.id),
        return_url=gateway_return_url(order_id, document.id),
        order_id=order_id,
        expires_at=opened_at + _session_ttl(),
    )

    order = PurchaseOrder(
        order_id=gateway_session.order_id,
        user_id=user.id,
        document_id=document.id,
        amount=document.price,
        currency=settings.currency,
        payment_session_id=gateway_session.payment_session_id,
        status=STATUS_CREATED,
        created_at=opened_at,
        updated_at=opened_at,
    )
    session.add(order)
    session.commit()
    session.refresh(order)

    logger.info(f"Order {order.order_id} opened: user {user.id} document {document.id} amount {order.amount}")

    return SessionDescriptor(
        order_id=order.order_id,
        payment_session_id=order.payment_session_id,
        amount=float(order.amount),
        currency=order.currency,
    )


def finalize_purchase(
    *,
    session: Session,
    gateway: CashfreeClient,
    user: User,
    order_id: Optional[str],
    document_id: Optional[int],
) -> FinalizeResult:
    """
    Safe under at-least-once delivery: a redirect replayed by the browser
    and an explicit client call may both land here.
    """
    if not order_id or document_id is None:
        raise InvalidRequestError("order_id and pdf_id are required")

    if has_entitlement(session, user.id, document_id):
        return FinalizeResult(success=True, status=STATUS_PAID, order_id=order_id)

    order = session.exec(
        select(PurchaseOrder).where(PurchaseOrder.order_id == order_id)
    ).first()

    if not order or order.user_id != user.id:
        raise NotFoundError("Order not found")

    if order.document_id != document_id:
        logger.warning(f"Order {order_id} is for document {order.document_id}, finalize sent {document_id}")
        raise InvalidRequestError("Order does not match this PDF")

    if order.status == STATUS_PAID:
        # paid earlier but the grant never landed (document re-listed, manual cleanup)
        granted = grant_entitlement(session, user.id, order.document_id, order.order_id)
        session.commit()
        return FinalizeResult(success=True, status=STATUS_PAID, order_id=order_id, granted=granted)

    verification = gateway.verify_session(order.order_id)
    now = datetime.utcnow()

    if not verification.settled:
        if order.status == STATUS_EXPIRED:
            return FinalizeResult(success=False, status=STATUS_EXPIRED, order_id=order_id)
        if is_stale(order, now):
            order.status = STATUS_EXPIRED
            order.updated_at = now
            session.add(order)
            session.commit()
            logger.info(f"Order {order_id} expired without settlement")
            return FinalizeResult(success=False, status=STATUS_EXPIRED, order_id=order_id)
        return FinalizeResult(success=False, status="pending", order_id=order_id)

    if order.status == STATUS_EXPIRED:
        logger.warning(f"Order {order_id} settled after it was marked expired")

    details = verification.details or {}
    order.status = STATUS_PAID
    order.settled_at = now
    order.updated_at = now
    if details.get("cf_payment_id") is not None:
        order.gateway_payment_id = str(details["cf_payment_id"])
    session.add(order)

    granted = grant_entitlement(session, user.id, order.document_id, order.order_id)
    session.commit()

    logger.info(f"Order {order_id} settled; entitlement {'granted' if granted else 'already held'}")
    return FinalizeResult(success=True, status=STATUS_PAID, order_id=order_id, granted=granted)


def expire_stale_orders(session: Session, now: Optional[datetime] = None) -> int:
    """
    Bulk version of the expiry finalize applies lazily. Does not ask the
    gateway: a payment that lands anyway is picked up by the next finalize.
    """
    now = now or datetime.utcnow()
    cutoff = now - _session_ttl()

    stale = session.exec(
        select(PurchaseOrder)
        .where(PurchaseOrder.status == STATUS_CREATED)
        .where(PurchaseOrder.created_at < cutoff)
    ).all()

    for order in stale:
        order.status = STATUS_EXPIRED
        order.updated_at = now
        session.add(order)

    session.commit()
    return len(stale)
