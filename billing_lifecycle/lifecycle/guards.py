"""
Preconditions checked before a manual transition is accepted.

Each guard returns ``None`` when it passes or the rejection reason when it
fails. ``check_guards`` runs every guard that applies to the edge and stops
at the first failure.
"""
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable, List, Optional, Tuple

from ..models import Subscription, SubscriptionStatus as S

QUOTA_RECOVERY_SOURCES = frozenset({S.LOW_DOCUMENTS, S.OUT_OF_DOCUMENTS, S.EXPIRING_SOON_LOW_DOCUMENTS})
QUOTA_RECOVERY_TARGETS = frozenset({S.ACTIVE, S.EXPIRING_SOON})


@dataclass(frozen=True)
class GuardContext:
    subscription: Subscription
    from_status: S
    to_status: S
    today: date
    scheduling_window_days: int = 30


Guard = Callable[[GuardContext], Optional[str]]


def schedule_guard(ctx: GuardContext) -> Optional[str]:
    sub = ctx.subscription
    if not sub.start_date > ctx.today:
        return "to schedule a subscription its start date must be in the future"
    if sub.start_date > ctx.today + timedelta(days=ctx.scheduling_window_days):
        return (
            "to schedule a subscription its start date must be within the next "
            f"{ctx.scheduling_window_days} days"
        )
    if sub.documents_used > 0:
        return "cannot schedule a subscription that already has issued documents"
    return None


def approval_guard(ctx: GuardContext) -> Optional[str]:
    sub = ctx.subscription
    if sub.start_date > ctx.today:
        return "cannot approve as active with a future start date, schedule it instead"
    if ctx.today > sub.end_date:
        return "cannot approve as active once the end date has passed"
    return None


def reactivation_guard(ctx: GuardContext) -> Optional[str]:
    sub = ctx.subscription
    if ctx.today > sub.end_date:
        return "cannot reactivate a subscription that has already expired"
    if sub.documents_remaining <= 0:
        return "cannot reactivate a subscription with no documents remaining"
    return None


def quota_recovery_guard(ctx: GuardContext) -> Optional[str]:
    if ctx.to_status != S.ACTIVE:
        return None
    sub = ctx.subscription
    plan = sub.plan
    if plan and sub.documents_remaining <= plan.min_documents_threshold:
        return (
            f"remaining documents ({sub.documents_remaining}) must be greater than "
            f"the plan minimum ({plan.min_documents_threshold}) to become active"
        )
    return None


GUARDS: List[Tuple[Callable[[S, S], bool], Guard]] = [
    (lambda src, dst: dst == S.SCHEDULED, schedule_guard),
    (lambda src, dst: src == S.PENDING and dst == S.ACTIVE, approval_guard),
    (lambda src, dst: src == S.SUSPENDED and dst == S.ACTIVE, reactivation_guard),
    (
        lambda src, dst: src in QUOTA_RECOVERY_SOURCES and dst in QUOTA_RECOVERY_TARGETS,
        quota_recovery_guard,
    ),
]


def check_guards(ctx: GuardContext) -> Optional[str]:
    """Return the first failing guard's reason, or ``None``."""
    for applies, guard in GUARDS:
        if not applies(ctx.from_status, ctx.to_status):
            continue
        failure = guard(ctx)
        if failure:
            return failure
    return None
