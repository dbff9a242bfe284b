"""
General utility functions.
"""
from datetime import date
from typing import Optional

from dateutil.relativedelta import relativedelta

from .models import BillingPeriod, SubscriptionStatus, UserRole

PERIOD_LENGTHS = {
    BillingPeriod.MONTHLY: relativedelta(months=1),
    BillingPeriod.QUARTERLY: relativedelta(months=3),
    BillingPeriod.SEMIANNUAL: relativedelta(months=6),
    BillingPeriod.ANNUAL: relativedelta(years=1),
    BillingPeriod.BIENNIAL: relativedelta(years=2),
    BillingPeriod.TRIENNIAL: relativedelta(years=3),
}


def calculate_end_date(start_date: date, period) -> date:
    """End date for a subscription starting on ``start_date``.

    ``period`` may be a ``BillingPeriod`` or its stored value. Unknown
    periods fall back to one month.
    """
    if not isinstance(period, BillingPeriod):
        try:
            period = BillingPeriod(period)
        except ValueError:
            period = None
    return start_date + PERIOD_LENGTHS.get(period, relativedelta(months=1))


def initial_status(role: UserRole, start_date: date, today: date) -> SubscriptionStatus:
    """Status a newly created subscription should start in."""
    if role == UserRole.DISTRIBUTOR:
        # Distributors always need administrator approval
        return SubscriptionStatus.PENDING
    if start_date > today:
        return SubscriptionStatus.SCHEDULED
    return SubscriptionStatus.ACTIVE


def format_date(value: Optional[date]) -> str:
    """Format date for display and audit reasons."""
    if not value:
        return "Never"

    return value.strftime("%Y-%m-%d")


def truncate_string(text: str, max_length: int = 255) -> str:
    """Truncate string with ellipsis."""
    if len(text) <= max_length:
        return text

    return text[:max_length - 3] + "..."
