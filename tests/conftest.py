import os
import tempfile

# settings are read once at import time, so the environment goes first
os.environ["ENV"] = "test"
os.environ["DATABASE_URL_OVERRIDE"] = "sqlite://"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="pdf_vault_test_")
os.environ["BASE_URL"] = "http://api.test"
os.environ["FRONTEND_URL"] = "http://frontend.test"
os.environ["ADMIN_EMAILS"] = "admin@example.com"
os.environ["PURCHASE_SESSION_TTL_MINUTES"] = "30"

from decimal import Decimal
from itertools import count

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from app.database import build_engine, create_db_and_tables, get_session
from app.dependencies.gateway import get_payment_gateway
from app.exceptions import GatewayError
from app.main import app
from app.models.document import Document
from app.models.user import User
from app.services import file_storage
from app.services.cashfree_client import GatewaySession, Verification, generate_order_id
from app.utils.firebase_auth import get_token_verifier

TOKENS = {
    "user-token": {"uid": "uid-user", "email": "reader@example.com", "name": "Reader", "picture": None},
    "other-token": {"uid": "uid-other", "email": "other@example.com", "name": None, "picture": None},
    "admin-token": {"uid": "uid-admin", "email": "admin@example.com", "name": "Admin", "picture": None},
}

PDF_BYTES = b"%PDF-1.4\n1 0 obj\n<< /Type /Catalog >>\nendobj\n%%EOF\n"

_file_counter = count(1)


class FakeGateway:
    """Stands in for CashfreeClient; flip ``settled`` / ``fail`` per test."""

    def __init__(self):
        self.settled = False
        self.fail = False
        self.created = []
        self.verified = []

    def _maybe_fail(self):
        if self.fail:
            raise GatewayError("Payment gateway unreachable", status_code=503, body={"message": "down"})

    def create_session(self, **kwargs):
        self._maybe_fail()
        self.created.append(kwargs)
        order_id = kwargs.get("order_id") or generate_order_id()
        return GatewaySession(order_id=order_id, payment_session_id=f"session_{order_id}")

    def verify_session(self, order_id):
        self._maybe_fail()
        self.verified.append(order_id)
        if self.settled:
            return Verification(
                settled=True,
                details={"cf_payment_id": 5114910, "payment_status": "SUCCESS"},
            )
        return Verification(settled=False, details=None)

    def get_order(self, order_id):
        self._maybe_fail()
        return {"order_id": order_id, "order_status": "PAID" if self.settled else "ACTIVE"}


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def client(session, gateway):
    app.dependency_overrides[get_session] = lambda: session
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_token_verifier] = lambda: TOKENS.get

    yield TestClient(app)

    app.dependency_overrides.clear()


def auth(token="user-token"):
    return {"Authorization": f"Bearer {token}"}


def make_user(session, uid="uid-user", email="reader@example.com", role="user", name="Reader"):
    user = User(firebase_uid=uid, email=email, display_name=name, role=role)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def make_document(session, creator, title="Linear Algebra Notes", price="199.00", with_file=True):
    path = f"{file_storage.PDF_FOLDER}/fixture_{next(_file_counter)}.pdf"
    if with_file:
        file_storage.ensure_dirs()
        file_storage.resolve(path).write_bytes(PDF_BYTES)

    document = Document(
        title=title,
        description=f"{title} description",
        size="0.0 MB",
        file_size=len(PDF_BYTES),
        path=path,
        price=Decimal(price),
        created_by=creator.id,
    )
    session.add(document)
    session.commit()
    session.refresh(document)
    return document
