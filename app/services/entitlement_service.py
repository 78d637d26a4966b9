import logging
from typing import List

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.models.document import Document
from app.models.entitlement import Entitlement

logger = logging.getLogger(__name__)


def has_entitlement(session: Session, user_id: int, document_id: int) -> bool:
    return session.exec(
        select(Entitlement.id)
        .where(Entitlement.user_id == user_id)
        .where(Entitlement.document_id == document_id)
    ).first() is not None


def grant_entitlement(
    session: Session,
    user_id: int,
    document_id: int,
    order_id: str | None = None,
) -> bool:
    """
    Idempotent upsert. Returns True when a new row was written, False when
    the user already held the document. Does not commit.
    """
    if has_entitlement(session, user_id, document_id):
        return False

    try:
        # savepoint so a concurrent grant losing the unique race leaves the
        # caller's transaction usable
        with session.begin_nested():
            session.add(Entitlement(user_id=user_id, document_id=document_id, order_id=order_id))
    except IntegrityError:
        logger.info(f"Entitlement user={user_id} document={document_id} granted concurrently")
        return False

    logger.info(f"Granted document {document_id} to user {user_id} (order {order_id})")
    return True


def owned_documents(session: Session, user_id: int) -> List[Document]:
    return session.exec(
        select(Document)
        .join(Entitlement, Entitlement.document_id == Document.id)
        .where(Entitlement.user_id == user_id)
        .order_by(Entitlement.created_at.desc())
    ).all()
