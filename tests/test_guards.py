"""
Tests for manual transition guards.
"""
from datetime import date, timedelta

from billing_lifecycle.lifecycle.guards import GuardContext, check_guards
from billing_lifecycle.models import Plan, Subscription, SubscriptionStatus as S

TODAY = date(2025, 6, 15)


def make_subscription(start=-10, end=20, allotted=100, used=0, status=S.ACTIVE):
    plan = Plan(name="Test", included_documents=allotted, min_documents_threshold=5, min_days_threshold=5)
    return Subscription(
        tenant_id=1,
        plan=plan,
        start_date=TODAY + timedelta(days=start),
        end_date=TODAY + timedelta(days=end),
        documents_allotted=allotted,
        documents_used=used,
        status=status,
    )


def check(subscription, to_status, window=30):
    return check_guards(GuardContext(
        subscription=subscription,
        from_status=subscription.status,
        to_status=to_status,
        today=TODAY,
        scheduling_window_days=window,
    ))


def test_schedule_requires_future_start():
    reason = check(make_subscription(start=0), S.SCHEDULED)

    assert reason == "to schedule a subscription its start date must be in the future"


def test_schedule_outside_window_is_rejected():
    reason = check(make_subscription(start=40, end=70), S.SCHEDULED)

    assert reason == "to schedule a subscription its start date must be within the next 30 days"


def test_schedule_window_is_configurable_and_inclusive():
    assert check(make_subscription(start=30, end=60), S.SCHEDULED) is None
    assert check(make_subscription(start=30, end=60), S.SCHEDULED, window=10) is not None


def test_schedule_requires_no_issued_documents():
    reason = check(make_subscription(start=5, end=35, used=1), S.SCHEDULED)

    assert reason == "cannot schedule a subscription that already has issued documents"


def test_approval_rejects_future_start():
    subscription = make_subscription(start=3, status=S.PENDING)

    assert "future start date" in check(subscription, S.ACTIVE)


def test_approval_rejects_past_end():
    subscription = make_subscription(start=-40, end=-1, status=S.PENDING)

    assert check(subscription, S.ACTIVE) == "cannot approve as active once the end date has passed"


def test_approval_accepts_end_date_today():
    assert check(make_subscription(end=0, status=S.PENDING), S.ACTIVE) is None


def test_reactivation_rejects_expired():
    subscription = make_subscription(end=-1, status=S.SUSPENDED)

    assert check(subscription, S.ACTIVE) == "cannot reactivate a subscription that has already expired"


def test_reactivation_rejects_exhausted_quota():
    subscription = make_subscription(used=100, status=S.SUSPENDED)

    assert check(subscription, S.ACTIVE) == "cannot reactivate a subscription with no documents remaining"


def test_quota_recovery_needs_more_than_plan_minimum():
    subscription = make_subscription(used=95, status=S.LOW_DOCUMENTS)

    assert check(subscription, S.ACTIVE) == (
        "remaining documents (5) must be greater than the plan minimum (5) to become active"
    )

    subscription.documents_allotted = 200
    assert check(subscription, S.ACTIVE) is None


def test_quota_recovery_to_expiring_soon_is_not_quota_checked():
    subscription = make_subscription(end=2, used=98, status=S.EXPIRING_SOON_LOW_DOCUMENTS)

    assert check(subscription, S.EXPIRING_SOON) is None


def test_edges_without_guards_pass():
    assert check(make_subscription(end=-5, used=100), S.SUSPENDED) is None
