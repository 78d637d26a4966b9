from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from sqlmodel import Session

from app.database import get_session
from app.dependencies.gateway import get_payment_gateway
from app.models.user import User
from app.schemas.document_schemas import document_summary
from app.schemas.payment_schemas import VerifyPaymentRequest
from app.schemas.user_schemas import ProfileUpdate, user_out
from app.services import catalog_service, purchase_service
from app.services.cashfree_client import CashfreeClient
from app.services.entitlement_service import owned_documents
from app.utils.token import get_current_user

router = APIRouter()


@router.get("/me")
def get_profile(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    data = user_out(current_user)
    data["pdfsPurchased"] = [
        document_summary(d) for d in owned_documents(session, current_user.id)
    ]
    return {"success": True, "data": data}


@router.put("/me")
def update_profile(
    payload: ProfileUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    if payload.display_name:
        current_user.display_name = payload.display_name
    if payload.photo_url:
        current_user.photo_url = payload.photo_url

    session.add(current_user)
    session.commit()
    session.refresh(current_user)

    return {
        "success": True,
        "message": "Profile updated successfully",
        "data": user_out(current_user),
    }


@router.post("/purchase/{pdf_id}")
def begin_purchase(
    pdf_id: int,
    session: Session = Depends(get_session),
    gateway: CashfreeClient = Depends(get_payment_gateway),
    current_user: User = Depends(get_current_user),
):
    descriptor = purchase_service.begin_purchase(
        session=session,
        gateway=gateway,
        user=current_user,
        document_id=pdf_id,
    )
    return {
        "success": True,
        "message": "Proceed to payment",
        "data": {
            "order_id": descriptor.order_id,
            "payment_session_id": descriptor.payment_session_id,
            "amount": descriptor.amount,
            "currency": descriptor.currency,
        },
    }


@router.post("/verify-payment")
def verify_payment(
    payload: VerifyPaymentRequest,
    session: Session = Depends(get_session),
    gateway: CashfreeClient = Depends(get_payment_gateway),
    current_user: User = Depends(get_current_user),
):
    result = purchase_service.finalize_purchase(
        session=session,
        gateway=gateway,
        user=current_user,
        order_id=payload.order_id,
        document_id=payload.pdf_id,
    )
    # an unsettled payment is an answer, not an error
    return {
        "success": result.success,
        "status": result.status,
        "message": result.message,
        "data": {"order_id": result.order_id, "pdf_id": payload.pdf_id},
    }


@router.get("/payment-redirect")
def payment_redirect(
    order_id: str = Query(...),
    pdf_id: str = Query(...),
):
    return RedirectResponse(purchase_service.payment_redirect_url(order_id, pdf_id))


@router.get("/purchases")
def purchase_history(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    documents = owned_documents(session, current_user.id)
    return {
        "success": True,
        "count": len(documents),
        "data": [document_summary(d) for d in documents],
    }


@router.get("/downloads")
def download_history(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    rows = catalog_service.user_downloads(session, current_user.id)
    return {
        "success": True,
        "count": len(rows),
        "data": [
            {
                "id": download.id,
                "downloadedAt": download.downloaded_at,
                "pdf": {
                    "id": document.id,
                    "title": document.title,
                    "description": document.description,
                    "thumbnail": document.thumbnail,
                },
            }
            for download, document in rows
        ],
    }
