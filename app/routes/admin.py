import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from sqlmodel import Session, select
from datetime import datetime

from app.database import get_session
from app.dependencies.admin import require_admin
from app.dependencies.gateway import get_payment_gateway
from app.exceptions import GatewayError
from app.models.purchase_order import PurchaseOrder
from app.models.user import User, ROLES
from app.schemas.document_schemas import DocumentCreate, DocumentUpdate, document_out
from app.schemas.user_schemas import RoleUpdate, user_out
from app.services import catalog_service, report_service, stats_service
from app.services.cashfree_client import CashfreeClient

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_admin)])


@router.get("/users")
def list_users(session: Session = Depends(get_session)):
    users = session.exec(
        select(User).order_by(User.created_at.desc(), User.id.desc())
    ).all()
    return {"success": True, "count": len(users), "data": [user_out(u) for u in users]}


@router.put("/users/{user_id}/role")
def update_user_role(
    user_id: int,
    payload: RoleUpdate,
    session: Session = Depends(get_session),
):
    if payload.role not in ROLES:
        raise HTTPException(400, 'Invalid role. Must be either "user" or "admin"')

    user = session.get(User, user_id)
    if not user:
        raise HTTPException(404, "User not found")

    user.role = payload.role
    session.add(user)
    session.commit()
    session.refresh(user)

    return {
        "success": True,
        "message": f"User role updated to {payload.role}",
        "data": user_out(user),
    }


@router.get("/stats/downloads")
def download_statistics(session: Session = Depends(get_session)):
    data = stats_service.download_stats(session)
    return {"success": True, "count": len(data), "data": data}


@router.get("/stats/monthly-downloads")
def monthly_download_statistics(session: Session = Depends(get_session)):
    data = stats_service.monthly_downloads(session)
    return {"success": True, "count": len(data), "data": data}


@router.get("/stats/revenue")
def revenue_statistics(session: Session = Depends(get_session)):
    return {"success": True, "data": stats_service.revenue_stats(session)}


@router.get("/stats/export")
def export_statistics(session: Session = Depends(get_session)):
    buffer = report_service.build_stats_workbook(session)
    filename = f"pdf_vault_stats_{datetime.utcnow():%Y%m%d}.xlsx"
    return StreamingResponse(
        buffer,
        media_type=report_service.XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.post("/pdfs", status_code=201)
def create_pdf(
    payload: DocumentCreate,
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
):
    price = payload.price
    if price is None and payload.is_free:
        price = 0

    document = catalog_service.create_document(
        session,
        creator=admin,
        title=payload.title,
        description=payload.description,
        path=payload.path,
        file_size=payload.file_size,
        size=payload.size,
        thumbnail=payload.thumbnail,
        price=price,
        tags=payload.tags,
    )
    return {
        "success": True,
        "message": "PDF created successfully",
        "data": document_out(document),
    }


@router.put("/pdfs/{pdf_id}")
def update_pdf(
    pdf_id: int,
    payload: DocumentUpdate,
    session: Session = Depends(get_session),
):
    document = catalog_service.update_document(
        session, pdf_id, payload.model_dump(exclude_unset=True)
    )
    return {
        "success": True,
        "message": "PDF updated successfully",
        "data": document_out(document),
    }


@router.get("/dashboard")
def dashboard(session: Session = Depends(get_session)):
    return {"success": True, "data": stats_service.dashboard(session)}


@router.get("/orders/{order_id}")
def order_detail(
    order_id: str,
    session: Session = Depends(get_session),
    gateway: CashfreeClient = Depends(get_payment_gateway),
):
    order = session.exec(
        select(PurchaseOrder).where(PurchaseOrder.order_id == order_id)
    ).first()
    if not order:
        raise HTTPException(404, "Order not found")

    # local record stays visible when the gateway is down
    gateway_error = None
    try:
        gateway_view = gateway.get_order(order.order_id)
    except GatewayError as e:
        logger.warning(f"Gateway lookup for order {order.order_id} failed: {e.message}")
        gateway_view = None
        gateway_error = e.message

    return {
        "success": True,
        "data": {
            "order_id": order.order_id,
            "user_id": order.user_id,
            "pdf_id": order.document_id,
            "amount": float(order.amount),
            "currency": order.currency,
            "status": order.status,
            "gateway_payment_id": order.gateway_payment_id,
            "created_at": order.created_at,
            "settled_at": order.settled_at,
            "gateway": gateway_view,
            "gateway_error": gateway_error,
        },
    }
