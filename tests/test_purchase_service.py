import re
from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from sqlmodel import select

from app.exceptions import GatewayError, InvalidRequestError, NotFoundError
from app.models.entitlement import Entitlement
from app.models.purchase_order import PurchaseOrder
from app.services import purchase_service
from app.services.entitlement_service import grant_entitlement, has_entitlement

from conftest import make_document, make_user


@pytest.fixture
def user(session):
    return make_user(session)


@pytest.fixture
def admin(session):
    return make_user(session, uid="uid-admin", email="admin@example.com", role="admin")


@pytest.fixture
def paid_doc(session, admin):
    return make_document(session, admin, price="199.00")


@pytest.fixture
def free_doc(session, admin):
    return make_document(session, admin, title="Free Sampler", price="0")


def _begin(session, gateway, user, document):
    return purchase_service.begin_purchase(
        session=session, gateway=gateway, user=user, document_id=document.id
    )


def _finalize(session, gateway, user, order_id, document_id):
    return purchase_service.finalize_purchase(
        session=session, gateway=gateway, user=user, order_id=order_id, document_id=document_id
    )


def _entitlements(session, user, document):
    return session.exec(
        select(Entitlement)
        .where(Entitlement.user_id == user.id)
        .where(Entitlement.document_id == document.id)
    ).all()


def test_free_document_never_needs_a_session(session, gateway, user, free_doc):
    with pytest.raises(InvalidRequestError, match="free document does not require payment"):
        _begin(session, gateway, user, free_doc)

    grant_entitlement(session, user.id, free_doc.id)
    session.commit()
    with pytest.raises(InvalidRequestError, match="free document does not require payment"):
        _begin(session, gateway, user, free_doc)

    assert gateway.created == []


def test_unknown_document(session, gateway, user):
    with pytest.raises(NotFoundError):
        purchase_service.begin_purchase(session=session, gateway=gateway, user=user, document_id=404)


def test_scenario_unsettled_payment_grants_nothing(session, gateway, user, paid_doc):
    descriptor = _begin(session, gateway, user, paid_doc)

    assert re.fullmatch(r"[0-9a-f]{12}", descriptor.order_id)
    assert descriptor.payment_session_id == f"session_{descriptor.order_id}"
    assert descriptor.amount == 199.0
    assert descriptor.currency == "INR"

    result = _finalize(session, gateway, user, descriptor.order_id, paid_doc.id)

    assert result.success is False
    assert result.status == "pending"
    assert not has_entitlement(session, user.id, paid_doc.id)


def test_scenario_settled_payment_grants_once(session, gateway, user, paid_doc):
    descriptor = _begin(session, gateway, user, paid_doc)
    gateway.settled = True

    result = _finalize(session, gateway, user, descriptor.order_id, paid_doc.id)

    assert result.success is True
    assert result.granted is True
    assert len(_entitlements(session, user, paid_doc)) == 1

    order = session.exec(
        select(PurchaseOrder).where(PurchaseOrder.order_id == descriptor.order_id)
    ).one()
    assert order.status == "paid"
    assert order.gateway_payment_id == "5114910"
    assert order.settled_at is not None


def test_finalize_twice_yields_one_entitlement(session, gateway, user, paid_doc):
    descriptor = _begin(session, gateway, user, paid_doc)
    gateway.settled = True

    first = _finalize(session, gateway, user, descriptor.order_id, paid_doc.id)
    second = _finalize(session, gateway, user, descriptor.order_id, paid_doc.id)

    assert first.success and second.success
    assert second.granted is False
    assert len(_entitlements(session, user, paid_doc)) == 1


def test_entitled_user_cannot_buy_again(session, gateway, user, paid_doc):
    grant_entitlement(session, user.id, paid_doc.id)
    session.commit()

    with pytest.raises(InvalidRequestError, match="already purchased"):
        _begin(session, gateway, user, paid_doc)
    assert gateway.created == []


def test_finalize_for_entitled_user_is_a_noop(session, gateway, user, paid_doc):
    grant_entitlement(session, user.id, paid_doc.id)
    session.commit()
    gateway.settled = True

    result = _finalize(session, gateway, user, "anything", paid_doc.id)

    assert result.success is True
    assert result.granted is False
    assert gateway.verified == []
    assert len(_entitlements(session, user, paid_doc)) == 1


def test_begin_does_not_grant(session, gateway, user, paid_doc):
    gateway.settled = True
    _begin(session, gateway, user, paid_doc)
    assert not has_entitlement(session, user.id, paid_doc.id)


def test_begin_persists_order_binding(session, gateway, user, paid_doc):
    descriptor = _begin(session, gateway, user, paid_doc)

    order = session.exec(
        select(PurchaseOrder).where(PurchaseOrder.order_id == descriptor.order_id)
    ).one()
    assert order.user_id == user.id
    assert order.document_id == paid_doc.id
    assert order.amount == Decimal("199.00")
    assert order.status == "created"

    sent = gateway.created[0]
    assert sent["amount"] == Decimal("199.00")
    assert sent["user_email"] == "reader@example.com"
    assert sent["return_url"] == (
        f"http://api.test/api/users/payment-redirect?order_id={descriptor.order_id}&pdf_id={paid_doc.id}"
    )


def test_gateway_failure_on_begin_leaves_no_order(session, gateway, user, paid_doc):
    gateway.fail = True

    with pytest.raises(GatewayError):
        _begin(session, gateway, user, paid_doc)

    assert session.exec(select(PurchaseOrder)).all() == []
    assert not has_entitlement(session, user.id, paid_doc.id)


def test_gateway_failure_on_finalize_changes_nothing(session, gateway, user, paid_doc):
    descriptor = _begin(session, gateway, user, paid_doc)
    gateway.fail = True

    with pytest.raises(GatewayError):
        _finalize(session, gateway, user, descriptor.order_id, paid_doc.id)

    session.expire_all()
    order = session.exec(
        select(PurchaseOrder).where(PurchaseOrder.order_id == descriptor.order_id)
    ).one()
    assert order.status == "created"
    assert not has_entitlement(session, user.id, paid_doc.id)

    # retry after the outage
    gateway.fail = False
    gateway.settled = True
    assert _finalize(session, gateway, user, descriptor.order_id, paid_doc.id).success


@pytest.mark.parametrize("order_id, document_id", [(None, 1), ("", 1), ("abc", None)])
def test_finalize_requires_both_fields(session, gateway, user, order_id, document_id):
    with pytest.raises(InvalidRequestError):
        _finalize(session, gateway, user, order_id, document_id)


def test_finalize_unknown_order(session, gateway, user, paid_doc):
    with pytest.raises(NotFoundError):
        _finalize(session, gateway, user, "000000000000", paid_doc.id)


def test_finalize_rejects_document_mismatch(session, gateway, user, admin, paid_doc):
    other_doc = make_document(session, admin, title="Other", price="49.00")
    descriptor = _begin(session, gateway, user, paid_doc)
    gateway.settled = True

    with pytest.raises(InvalidRequestError, match="does not match"):
        _finalize(session, gateway, user, descriptor.order_id, other_doc.id)

    assert not has_entitlement(session, user.id, other_doc.id)
    assert not has_entitlement(session, user.id, paid_doc.id)


def test_finalize_rejects_someone_elses_order(session, gateway, user, paid_doc):
    other = make_user(session, uid="uid-other", email="other@example.com")
    descriptor = _begin(session, gateway, user, paid_doc)
    gateway.settled = True

    with pytest.raises(NotFoundError):
        _finalize(session, gateway, other, descriptor.order_id, paid_doc.id)

    assert not has_entitlement(session, other.id, paid_doc.id)


def _age(session, order_id, minutes):
    order = session.exec(select(PurchaseOrder).where(PurchaseOrder.order_id == order_id)).one()
    order.created_at = datetime.utcnow() - timedelta(minutes=minutes)
    session.add(order)
    session.commit()
    return order


def test_stale_unsettled_order_expires(session, gateway, user, paid_doc):
    descriptor = _begin(session, gateway, user, paid_doc)
    _age(session, descriptor.order_id, 31)

    result = _finalize(session, gateway, user, descriptor.order_id, paid_doc.id)
    assert result.success is False
    assert result.status == "expired"

    again = _finalize(session, gateway, user, descriptor.order_id, paid_doc.id)
    assert again.status == "expired"
    assert not has_entitlement(session, user.id, paid_doc.id)


def test_payment_after_bulk_expiry_still_grants(session, gateway, user, paid_doc):
    descriptor = _begin(session, gateway, user, paid_doc)
    _age(session, descriptor.order_id, 40)
    assert purchase_service.expire_stale_orders(session) == 1

    # money captured by the gateway after the local order was expired
    gateway.settled = True
    result = _finalize(session, gateway, user, descriptor.order_id, paid_doc.id)

    assert result.success is True
    assert result.status == "paid"
    assert result.granted is True
    assert gateway.verified == [descriptor.order_id]
    assert has_entitlement(session, user.id, paid_doc.id)

    order = session.exec(
        select(PurchaseOrder).where(PurchaseOrder.order_id == descriptor.order_id)
    ).one()
    assert order.status == "paid"


def test_gateway_order_expires_with_local_order(session, gateway, user, paid_doc):
    descriptor = _begin(session, gateway, user, paid_doc)

    order = session.exec(
        select(PurchaseOrder).where(PurchaseOrder.order_id == descriptor.order_id)
    ).one()
    assert gateway.created[0]["expires_at"] == order.created_at + timedelta(minutes=30)


def test_late_settlement_before_expiry_is_honoured(session, gateway, user, paid_doc):
    descriptor = _begin(session, gateway, user, paid_doc)
    _age(session, descriptor.order_id, 45)
    gateway.settled = True

    result = _finalize(session, gateway, user, descriptor.order_id, paid_doc.id)

    assert result.success is True
    assert has_entitlement(session, user.id, paid_doc.id)


def test_expire_stale_orders(session, gateway, user, paid_doc, admin):
    fresh = _begin(session, gateway, user, paid_doc)
    other_doc = make_document(session, admin, title="Second", price="10.00")
    stale = _begin(session, gateway, user, other_doc)
    _age(session, stale.order_id, 60)

    assert purchase_service.expire_stale_orders(session) == 1

    statuses = {
        o.order_id: o.status for o in session.exec(select(PurchaseOrder)).all()
    }
    assert statuses == {fresh.order_id: "created", stale.order_id: "expired"}


def test_payment_redirect_url():
    url = purchase_service.payment_redirect_url("a1b2c3d4e5f6", 42)
    assert url == "http://frontend.test/payment-success?order_id=a1b2c3d4e5f6&pdf_id=42"
