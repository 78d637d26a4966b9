from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import FileResponse
from sqlmodel import Session

from app.database import get_session
from app.dependencies.admin import require_admin
from app.models.user import User
from app.schemas.document_schemas import document_out
from app.services import catalog_service, file_storage
from app.services.entitlement_service import has_entitlement
from app.utils.token import get_current_user

router = APIRouter()


@router.get("/")
def list_pdfs(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    documents = catalog_service.list_documents(session)
    return {
        "success": True,
        "count": len(documents),
        "data": [document_out(d) for d in documents],
    }


@router.get("/download/{pdf_id}")
def download_pdf(
    pdf_id: int,
    request: Request,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    document = catalog_service.get_document(session, pdf_id)

    if document.is_paid and not has_entitlement(session, current_user.id, document.id):
        raise HTTPException(403, "You need to purchase this PDF before downloading")

    file_path = file_storage.resolve(document.path)
    if not file_path.exists():
        raise HTTPException(404, "PDF file missing from storage")

    catalog_service.record_download(
        session,
        document,
        current_user,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )

    return FileResponse(
        file_path,
        media_type=file_storage.PDF_CONTENT_TYPE,
        filename=f"{document.title}.pdf",
    )


@router.get("/{pdf_id}")
def get_pdf(
    pdf_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    document = catalog_service.get_document(session, pdf_id)
    return {"success": True, "data": document_out(document)}


@router.post("/", status_code=201)
def upload_pdf(
    title: str = Form(...),
    description: str = Form(...),
    price: str = Form(None),
    isFree: bool = Form(False),
    tags: str = Form(None),
    pdfFile: UploadFile = File(None),
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
):
    if pdfFile is None:
        raise HTTPException(400, "No PDF file uploaded")

    # free flag only fills in a missing price; a positive price always wins
    if isFree and not price:
        price = "0"

    stored = file_storage.save_pdf(pdfFile, title)
    try:
        document = catalog_service.create_document(
            session,
            creator=admin,
            title=title,
            description=description,
            path=stored.path,
            file_size=stored.file_size,
            price=price,
            tags=tags,
        )
    except Exception:
        file_storage.delete(stored.path)
        raise

    return {
        "success": True,
        "message": "PDF uploaded successfully",
        "data": document_out(document),
    }


@router.delete("/{pdf_id}")
def delete_pdf(
    pdf_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    catalog_service.delete_document(session, pdf_id, current_user)
    return {"success": True, "message": "PDF deleted successfully"}
