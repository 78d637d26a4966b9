import logging
from decimal import Decimal, InvalidOperation
from datetime import datetime
from typing import Optional

from sqlalchemy import delete
from sqlmodel import Session, select

from app.exceptions import InvalidRequestError, NotFoundError, PermissionDeniedError
from app.models.document import Document
from app.models.download import Download
from app.models.entitlement import Entitlement
from app.models.user import User
from app.services import file_storage

logger = logging.getLogger(__name__)


def parse_price(price) -> Decimal:
    """Price is authoritative for the free flag; a missing price means free."""
    if price is None or price == "":
        return Decimal("0")

    try:
        value = Decimal(str(price)).quantize(Decimal("0.01"))
    except InvalidOperation:
        raise InvalidRequestError("price must be a number")

    if not value.is_finite():
        raise InvalidRequestError("price must be a number")

    if value < 0:
        raise InvalidRequestError("price must not be negative")

    return value


def parse_tags(tags) -> Optional[str]:
    if tags is None:
        return None
    if isinstance(tags, str):
        tags = tags.split(",")
    cleaned = [t.strip() for t in tags if t and t.strip()]
    return ",".join(cleaned) if cleaned else None


def human_size(num_bytes: int) -> str:
    return f"{num_bytes / (1024 * 1024):.1f} MB"


def get_document(session: Session, document_id: int) -> Document:
    document = session.get(Document, document_id)
    if not document:
        raise NotFoundError("PDF not found")
    return document


def list_documents(session: Session):
    return session.exec(
        select(Document).order_by(Document.created_at.desc(), Document.id.desc())
    ).all()


def create_document(
    session: Session,
    *,
    creator: User,
    title: str,
    description: str,
    path: str,
    file_size: int,
    price=None,
    tags=None,
    thumbnail: Optional[str] = None,
    size: Optional[str] = None,
) -> Document:
    document = Document(
        title=title.strip(),
        description=description,
        size=size or human_size(file_size),
        file_size=file_size,
        path=path,
        price=parse_price(price),
        tags=parse_tags(tags),
        created_by=creator.id,
    )
    if thumbnail:
        document.thumbnail = thumbnail

    session.add(document)
    session.commit()
    session.refresh(document)

    logger.info(f"Document {document.id} '{document.title}' created by user {creator.id}")
    return document


def update_document(session: Session, document_id: int, changes: dict) -> Document:
    document = get_document(session, document_id)

    if changes.get("title"):
        document.title = changes["title"].strip()
    if changes.get("description"):
        document.description = changes["description"]
    if changes.get("thumbnail"):
        document.thumbnail = changes["thumbnail"]
    if changes.get("tags") is not None:
        document.tags = parse_tags(changes["tags"])

    if changes.get("price") is not None:
        document.price = parse_price(changes["price"])
    elif changes.get("is_free") is True:
        document.price = Decimal("0")
    elif changes.get("is_free") is False and document.is_free:
        raise InvalidRequestError("set a price to make a free PDF paid")

    document.updated_at = datetime.utcnow()
    session.add(document)
    session.commit()
    session.refresh(document)
    return document


def delete_document(session: Session, document_id: int, user: User) -> None:
    document = get_document(session, document_id)

    if document.created_by != user.id and not user.is_admin:
        raise PermissionDeniedError("Unauthorized to delete this PDF")

    path = document.path
    session.exec(delete(Download).where(Download.document_id == document.id))
    session.exec(delete(Entitlement).where(Entitlement.document_id == document.id))
    session.delete(document)
    session.commit()

    # bytes go last: a failed commit keeps the file referenced
    file_storage.delete(path)
    logger.info(f"Document {document_id} deleted by user {user.id}")


def record_download(
    session: Session,
    document: Document,
    user: User,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> Download:
    download = Download(
        user_id=user.id,
        document_id=document.id,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    document.download_count = (document.download_count or 0) + 1

    session.add(download)
    session.add(document)
    session.commit()
    session.refresh(download)
    return download


def user_downloads(session: Session, user_id: int):
    return session.exec(
        select(Download, Document)
        .join(Document, Document.id == Download.document_id)
        .where(Download.user_id == user_id)
        .order_by(Download.downloaded_at.desc(), Download.id.desc())
    ).all()
