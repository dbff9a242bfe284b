"""
Lifecycle service: evaluates, validates and records subscription status
transitions.

Every mutation runs inside one unit per subscription: the in-process lock
and a row lock are taken, the subscription is re-read, the change and its
audit row are staged, and both are committed together. Rejections stage
nothing. Post-transition hooks run after the unit commits and releases its
lock, each in units of their own.
"""
import logging
from contextlib import contextmanager
from datetime import date
from typing import List, NamedTuple, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..exceptions import PersistenceError, PlanNotFound, SubscriptionNotFound
from ..lifecycle.actors import SYSTEM, Actor, HumanActor
from ..lifecycle.derivation import automatic_reason
from ..lifecycle.guards import GuardContext, check_guards
from ..lifecycle.registry import available_transitions, get_rule, is_registered
from ..locks import subscription_lock
from ..models import Subscription, SubscriptionStatus, SubscriptionStatusAudit, UserRole
from ..schemas import TransitionResult
from ..utils import calculate_end_date, format_date
from .audit_service import AuditService

logger = logging.getLogger(__name__)

# Rejection codes
TRANSITION_NOT_PERMITTED = "TRANSITION_NOT_PERMITTED"
AUTOMATIC_ONLY = "AUTOMATIC_ONLY"
ROLE_NOT_PERMITTED = "ROLE_NOT_PERMITTED"
GUARD_FAILED = "GUARD_FAILED"


class Evaluation(NamedTuple):
    status: SubscriptionStatus
    changed: bool


class LifecycleService:
    def __init__(self, db: Session, scheduling_window_days: Optional[int] = None):
        self.db = db
        self.audit = AuditService(db)
        self._follow_ups = []
        self.scheduling_window_days = (
            scheduling_window_days if scheduling_window_days is not None
            else settings.scheduling_window_days
        )

    # Public operations

    def get_subscription(self, subscription_id: int, tenant_id: Optional[int] = None) -> Subscription:
        query = self.db.query(Subscription).filter(Subscription.id == subscription_id)
        if tenant_id is not None:
            query = query.filter(Subscription.tenant_id == tenant_id)
        subscription = query.first()
        if not subscription:
            raise SubscriptionNotFound(subscription_id)
        return subscription

    def evaluate_automatic(self, subscription_id: int, today: Optional[date] = None) -> Evaluation:
        """Bring the stored status in line with the derived one.

        Writes the new status and an automatic audit row only when they
        differ. Returns the resulting status and whether it changed.
        """
        today = today or date.today()
        with self._mutation_unit(subscription_id) as subscription:
            evaluation = self._apply_automatic(subscription, today)
        return evaluation

    def request_manual_transition(
        self,
        subscription_id: int,
        target_status: SubscriptionStatus,
        actor: HumanActor,
        reason: Optional[str] = None,
        today: Optional[date] = None,
    ) -> TransitionResult:
        """Validate and execute a transition requested by a user.

        Rejections are returned, not raised, and leave no trace in the
        database.
        """
        today = today or date.today()
        with self._mutation_unit(subscription_id) as subscription:
            from_status = subscription.status
            rejection = self.validate_manual_transition(subscription, target_status, actor.role, today)
            if rejection is not None:
                logger.info(
                    f"Rejected manual transition of subscription {subscription.id} "
                    f"{from_status.value} -> {target_status.value} by {actor}: {rejection.message}"
                )
                return rejection

            self._transition(
                subscription,
                target_status,
                actor,
                reason or f"manual change from '{from_status.value}' to '{target_status.value}'",
                today,
            )

            # Reactivation may land directly on a stricter derived status
            if from_status == SubscriptionStatus.SUSPENDED and target_status == SubscriptionStatus.ACTIVE:
                self._apply_automatic(subscription, today)

            final_status = subscription.status

        return TransitionResult(
            accepted=True,
            message=f"status updated from '{from_status.value}' to '{target_status.value}'",
            from_status=from_status,
            to_status=target_status,
            final_status=final_status,
        )

    def validate_manual_transition(
        self,
        subscription: Subscription,
        target_status: SubscriptionStatus,
        role: UserRole,
        today: date,
    ) -> Optional[TransitionResult]:
        """Return a rejection result, or ``None`` if the transition may proceed."""
        current = subscription.status

        def reject(code: str, message: str) -> TransitionResult:
            return TransitionResult(
                accepted=False,
                message=message,
                error_code=code,
                from_status=current,
                to_status=target_status,
                final_status=current,
            )

        rule = get_rule(current, target_status)
        if rule is None:
            return reject(
                TRANSITION_NOT_PERMITTED,
                f"transition not permitted from '{current.value}' to '{target_status.value}'",
            )

        if not rule.is_manual:
            return reject(
                AUTOMATIC_ONLY,
                "this transition is system-driven and cannot be performed manually",
            )

        if role not in rule.roles:
            return reject(
                ROLE_NOT_PERMITTED,
                f"role '{role.value}' has no permission for this transition",
            )

        failure = check_guards(GuardContext(
            subscription=subscription,
            from_status=current,
            to_status=target_status,
            today=today,
            scheduling_window_days=self.scheduling_window_days,
        ))
        if failure:
            return reject(GUARD_FAILED, failure)

        return None

    def available_transitions(self, current_status: SubscriptionStatus, role: UserRole) -> List[SubscriptionStatus]:
        return available_transitions(current_status, role)

    def get_history(self, subscription_id: int) -> List[SubscriptionStatusAudit]:
        """Audit trail of a subscription, newest first."""
        self.get_subscription(subscription_id)
        return self.audit.get_history(subscription_id)

    def activate_next_scheduled(self, tenant_id: int, today: date) -> Optional[Subscription]:
        """Activate the tenant's oldest scheduled subscription, if any.

        Runs as its own unit after the terminal transition that triggered it
        has committed and released its lock, so it never holds two
        subscription locks at once. Candidates moved by another writer since
        the lookup are skipped in favour of the next oldest.
        """
        candidate_ids = [
            row.id for row in self.db.query(Subscription.id).filter(
                Subscription.tenant_id == tenant_id,
                Subscription.status == SubscriptionStatus.SCHEDULED
            ).order_by(Subscription.start_date.asc(), Subscription.id.asc()).all()
        ]

        for candidate_id in candidate_ids:
            with self._mutation_unit(candidate_id) as queued:
                if queued.status != SubscriptionStatus.SCHEDULED:
                    continue
                if queued.plan is None:
                    raise PlanNotFound(queued.plan_id)

                queued.start_date = today
                queued.end_date = calculate_end_date(today, queued.plan.period)
                queued.status = SubscriptionStatus.ACTIVE
                self.audit.record_transition(
                    queued.id,
                    SubscriptionStatus.SCHEDULED,
                    SubscriptionStatus.ACTIVE,
                    SYSTEM,
                    "previous subscription reached a terminal state; "
                    f"activated with new start date {format_date(today)}",
                )
                self.db.flush()

            logger.info(
                f"Activated scheduled subscription {queued.id} for tenant {tenant_id} "
                f"starting {format_date(today)} until {format_date(queued.end_date)}"
            )
            return queued

        return None

    # Internals

    @contextmanager
    def _mutation_unit(self, subscription_id: int):
        """Lock, load, yield, commit; then run the follow-ups it staged."""
        with subscription_lock(subscription_id):
            try:
                subscription = self._load_for_update(subscription_id)
                yield subscription
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                self._follow_ups.clear()
                logger.error(f"Error persisting transition for subscription {subscription_id}: {str(e)}")
                raise PersistenceError(
                    f"Could not persist transition for subscription {subscription_id}"
                ) from e
            except Exception:
                self.db.rollback()
                self._follow_ups.clear()
                raise

        self._run_follow_ups()

    def _run_follow_ups(self):
        follow_ups, self._follow_ups = self._follow_ups, []
        for hook, subscription, today in follow_ups:
            hook(self, subscription, today)

    def _load_for_update(self, subscription_id: int) -> Subscription:
        subscription = self.db.query(Subscription).filter(
            Subscription.id == subscription_id
        ).populate_existing().with_for_update().first()
        if not subscription:
            raise SubscriptionNotFound(subscription_id)
        return subscription

    def _apply_automatic(self, subscription: Subscription, today: date) -> Evaluation:
        current = subscription.status
        derived = subscription.derive_status(today)
        if derived == current:
            return Evaluation(current, False)

        if not is_registered(current, derived):
            logger.warning(
                f"Subscription {subscription.id} derives '{derived.value}' but no transition "
                f"from '{current.value}' is registered; keeping current status"
            )
            return Evaluation(current, False)

        reason = automatic_reason(subscription, derived, today)
        self._transition(subscription, derived, SYSTEM, reason, today)
        return Evaluation(derived, True)

    def _transition(
        self,
        subscription: Subscription,
        to_status: SubscriptionStatus,
        actor: Actor,
        reason: str,
        today: date,
    ):
        from_status = subscription.status
        subscription.status = to_status
        if isinstance(actor, HumanActor):
            subscription.updated_by_id = actor.id

        self.audit.record_transition(subscription.id, from_status, to_status, actor, reason)
        self.db.flush()

        logger.info(
            f"Subscription {subscription.id} status: {from_status.value} -> {to_status.value} "
            f"by {actor} ({reason})"
        )

        # Hooks run once this unit has committed and released its lock
        for hook in POST_TRANSITION_HOOKS.get(to_status, ()):
            self._follow_ups.append((hook, subscription, today))


def activate_next_scheduled(service: LifecycleService, subscription: Subscription, today: date):
    """Post-transition hook for terminal statuses."""
    service.activate_next_scheduled(subscription.tenant_id, today)


POST_TRANSITION_HOOKS = {
    SubscriptionStatus.EXPIRED: [activate_next_scheduled],
    SubscriptionStatus.OUT_OF_DOCUMENTS: [activate_next_scheduled],
}
