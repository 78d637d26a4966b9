from collections import defaultdict
from decimal import Decimal

from sqlalchemy import func
from sqlmodel import Session, select

from app.models.document import Document
from app.models.download import Download
from app.models.purchase_order import PurchaseOrder, STATUS_PAID
from app.models.user import User


def _period(year: int, month: int) -> str:
    return f"{year}-{month:02d}"


def download_stats(session: Session):
    data = session.exec(
        select(
            Document.id,
            Document.title,
            Document.description,
            Document.price,
            func.count(Download.id).label("total"),
            func.max(Download.downloaded_at).label("last"),
        )
        .select_from(Download)
        .join(Document, Document.id == Download.document_id)
        .group_by(Document.id, Document.title, Document.description, Document.price)
        .order_by(func.count(Download.id).desc())
    ).all()

    return [
        {
            "id": doc_id,
            "title": title,
            "description": description,
            "price": float(price),
            "totalDownloads": total,
            "lastDownloaded": last,
        }
        for doc_id, title, description, price, total, last in data
    ]


def monthly_downloads(session: Session):
    # grouped in Python so the same code runs on postgres and sqlite
    counts = defaultdict(int)
    for downloaded_at in session.exec(select(Download.downloaded_at)).all():
        counts[(downloaded_at.year, downloaded_at.month)] += 1

    return [
        {"month": month, "year": year, "count": count, "period": _period(year, month)}
        for (year, month), count in sorted(counts.items())
    ]


def total_revenue(session: Session) -> float:
    total = session.exec(
        select(func.sum(PurchaseOrder.amount)).where(PurchaseOrder.status == STATUS_PAID)
    ).one()
    return float(total or 0)


def revenue_stats(session: Session):
    by_document = session.exec(
        select(
            PurchaseOrder.document_id,
            func.count(PurchaseOrder.id),
            func.sum(PurchaseOrder.amount),
        )
        .where(PurchaseOrder.status == STATUS_PAID)
        .group_by(PurchaseOrder.document_id)
        .order_by(func.sum(PurchaseOrder.amount).desc())
    ).all()

    titles = dict(session.exec(select(Document.id, Document.title)).all())
    prices = dict(session.exec(select(Document.id, Document.price)).all())

    revenue_by_pdf = [
        {
            "id": doc_id,
            "title": titles.get(doc_id, "(deleted)"),
            "price": float(prices[doc_id]) if doc_id in prices else None,
            "purchases": purchases,
            "revenue": float(revenue or 0),
        }
        for doc_id, purchases, revenue in by_document
    ]

    monthly = defaultdict(Decimal)
    paid = session.exec(
        select(PurchaseOrder.settled_at, PurchaseOrder.created_at, PurchaseOrder.amount)
        .where(PurchaseOrder.status == STATUS_PAID)
    ).all()
    for settled_at, created_at, amount in paid:
        when = settled_at or created_at
        monthly[(when.year, when.month)] += Decimal(amount)

    monthly_revenue = [
        {"month": month, "year": year, "revenue": float(revenue), "period": _period(year, month)}
        for (year, month), revenue in sorted(monthly.items())
    ]

    return {
        "totalRevenue": total_revenue(session),
        "revenueByPdf": revenue_by_pdf,
        "monthlyRevenue": monthly_revenue,
    }


def dashboard(session: Session):
    total_users = session.exec(select(func.count(User.id))).one()
    total_pdfs = session.exec(select(func.count(Document.id))).one()
    total_downloads = session.exec(select(func.count(Download.id))).one()

    recent = session.exec(
        select(Download, User, Document)
        .join(User, User.id == Download.user_id)
        .join(Document, Document.id == Download.document_id)
        .order_by(Download.downloaded_at.desc(), Download.id.desc())
        .limit(10)
    ).all()

    top = session.exec(
        select(Document).order_by(Document.download_count.desc(), Document.id).limit(5)
    ).all()

    return {
        "totalUsers": total_users,
        "totalPdfs": total_pdfs,
        "totalDownloads": total_downloads,
        "totalRevenue": total_revenue(session),
        "recentDownloads": [
            {
                "id": d.id,
                "downloadedAt": d.downloaded_at,
                "user": {"id": u.id, "displayName": u.display_name, "email": u.email},
                "pdf": {"id": p.id, "title": p.title, "price": float(p.price)},
            }
            for d, u, p in recent
        ],
        "topPdfs": [
            {
                "id": p.id,
                "title": p.title,
                "description": p.description,
                "downloadCount": p.download_count,
                "price": float(p.price),
            }
            for p in top
        ],
    }
