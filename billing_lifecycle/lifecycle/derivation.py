"""
Natural status derivation.

``derive_status`` is a pure function of the stored status, the dates, the
remaining quota and the plan thresholds. It never reads the clock.
"""
from datetime import date
from typing import Optional

from ..models import PROTECTED_STATUSES, SubscriptionStatus
from ..utils import format_date


def derive_status(
    current: SubscriptionStatus,
    today: date,
    start_date: date,
    end_date: date,
    documents_remaining: int,
    min_days: Optional[int],
    min_documents: Optional[int],
) -> SubscriptionStatus:
    """Return the status a subscription should have on ``today``.

    Checks run in priority order and the first match wins. Protected
    statuses (Suspendido, Pendiente) are returned unchanged.
    """
    if current in PROTECTED_STATUSES:
        return current

    if start_date > today:
        return SubscriptionStatus.SCHEDULED

    if today > end_date:
        return SubscriptionStatus.EXPIRED

    if documents_remaining <= 0:
        return SubscriptionStatus.OUT_OF_DOCUMENTS

    days_remaining = max(0, (end_date - today).days)
    # Without a plan there are no thresholds to alert on
    expiring_soon = min_days is not None and days_remaining <= min_days
    low_documents = min_documents is not None and documents_remaining <= min_documents

    if expiring_soon and low_documents:
        return SubscriptionStatus.EXPIRING_SOON_LOW_DOCUMENTS
    if expiring_soon:
        return SubscriptionStatus.EXPIRING_SOON
    if low_documents:
        return SubscriptionStatus.LOW_DOCUMENTS
    return SubscriptionStatus.ACTIVE


def automatic_reason(subscription, new_status: SubscriptionStatus, today: date) -> str:
    """Human-readable explanation for an automatic transition."""
    plan = subscription.plan
    min_days = plan.min_days_threshold if plan else None
    min_documents = plan.min_documents_threshold if plan else None

    if new_status == SubscriptionStatus.SCHEDULED:
        return f"start date ({format_date(subscription.start_date)}) is in the future"
    if new_status == SubscriptionStatus.EXPIRED:
        return f"current date passed the end date ({format_date(subscription.end_date)})"
    if new_status == SubscriptionStatus.OUT_OF_DOCUMENTS:
        return f"remaining documents: 0 of {subscription.documents_allotted}"
    if new_status == SubscriptionStatus.EXPIRING_SOON:
        return f"remaining days ({subscription.days_remaining(today)}) ≤ plan minimum ({min_days})"
    if new_status == SubscriptionStatus.LOW_DOCUMENTS:
        return (
            f"remaining documents ({subscription.documents_remaining}) "
            f"≤ plan minimum ({min_documents})"
        )
    if new_status == SubscriptionStatus.EXPIRING_SOON_LOW_DOCUMENTS:
        return (
            f"remaining days ({subscription.days_remaining(today)}) ≤ plan minimum ({min_days}) "
            f"and remaining documents ({subscription.documents_remaining}) ≤ plan minimum ({min_documents})"
        )
    if new_status == SubscriptionStatus.ACTIVE:
        return "alert conditions no longer apply"
    return f"automatic transition from '{subscription.status.value}' to '{new_status.value}'"
