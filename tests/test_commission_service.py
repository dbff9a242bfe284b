"""
Tests for commission field auditing.
"""
from decimal import Decimal

import pytest

from billing_lifecycle.exceptions import AuditLogImmutableError, SubscriptionNotFound
from billing_lifecycle.models import CommissionStatus, Subscription, SubscriptionCommissionAudit, UserRole
from billing_lifecycle.services.commission_service import CommissionService


def test_each_changed_field_is_audited(db, make_subscription, admin):
    subscription = make_subscription()

    records = CommissionService(db).update_commission(
        subscription.id,
        {"commission_status": CommissionStatus.PENDING, "commission_amount": Decimal("12.50")},
        admin,
    )

    assert [(r.field, r.new_value) for r in records] == [
        ("commission_status", "Pendiente"),
        ("commission_amount", "12.50"),
    ]
    assert records[0].old_value == "Sin comision"
    assert Decimal(records[1].old_value) == 0
    assert all(r.actor_id == admin.id and r.actor_role == UserRole.ADMINISTRATOR for r in records)

    db.expire_all()
    stored = db.get(Subscription, subscription.id)
    assert stored.commission_status == CommissionStatus.PENDING
    assert stored.commission_amount == Decimal("12.50")
    assert stored.updated_by_id == admin.id


def test_unchanged_fields_are_not_audited(db, make_subscription, admin):
    subscription = make_subscription()

    records = CommissionService(db).update_commission(
        subscription.id, {"commission_status": CommissionStatus.NONE}, admin
    )

    assert records == []
    assert db.query(SubscriptionCommissionAudit).count() == 0


def test_clearing_receipt_stores_null(db, make_subscription, admin):
    subscription = make_subscription(commission_receipt="receipts/1.png")

    records = CommissionService(db).update_commission(subscription.id, {"commission_receipt": None}, admin)

    assert records[0].old_value == "receipts/1.png"
    assert records[0].new_value is None


def test_unknown_fields_are_rejected(db, make_subscription, admin):
    subscription = make_subscription()

    with pytest.raises(ValueError):
        CommissionService(db).update_commission(subscription.id, {"status": "Vigente"}, admin)


def test_missing_subscription(db, admin):
    with pytest.raises(SubscriptionNotFound):
        CommissionService(db).update_commission(77, {"commission_amount": Decimal("1")}, admin)


def test_history_is_newest_first(db, make_subscription, admin):
    subscription = make_subscription()
    service = CommissionService(db)

    service.update_commission(subscription.id, {"commission_status": CommissionStatus.PENDING}, admin)
    service.update_commission(subscription.id, {"commission_status": CommissionStatus.PAID}, admin)

    assert [r.new_value for r in service.get_history(subscription.id)] == ["Pagada", "Pendiente"]


def test_audit_rows_cannot_be_edited(db, make_subscription, admin):
    subscription = make_subscription()
    record = CommissionService(db).update_commission(
        subscription.id, {"commission_status": CommissionStatus.PAID}, admin
    )[0]

    record.new_value = "Sin comision"
    with pytest.raises(AuditLogImmutableError):
        db.flush()
    db.rollback()
