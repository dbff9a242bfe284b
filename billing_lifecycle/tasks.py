"""
Background tasks that keep automatic subscription statuses current.
"""
import logging
from datetime import date
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from .config import settings
from .database import get_session
from .exceptions import PersistenceError, PlanNotFound, SubscriptionNotFound
from .models import PROTECTED_STATUSES, Subscription
from .services.lifecycle_service import LifecycleService

logger = logging.getLogger(__name__)


def evaluate_subscriptions(db: Session, subscription_ids: Iterable[int], today: Optional[date] = None) -> int:
    """Evaluate the given subscriptions; returns how many changed status.

    Ids that no longer exist are skipped.
    """
    today = today or date.today()
    service = LifecycleService(db)
    updated = 0

    for subscription_id in subscription_ids:
        try:
            if service.evaluate_automatic(subscription_id, today).changed:
                updated += 1
        except SubscriptionNotFound:
            logger.info(f"Skipping missing subscription {subscription_id}")

    return updated


def evaluate_tenant_subscriptions(db: Session, tenant_id: int, today: Optional[date] = None) -> int:
    """Evaluate every non-protected subscription of a tenant."""
    ids = [
        row.id for row in db.query(Subscription.id).filter(
            Subscription.tenant_id == tenant_id,
            Subscription.status.notin_(list(PROTECTED_STATUSES))
        ).order_by(Subscription.start_date.asc(), Subscription.id.asc()).all()
    ]
    # Evaluating in start order lets an expired subscription hand over to
    # the next scheduled one before that one is looked at.
    updated = evaluate_subscriptions(db, ids, today)
    logger.info(f"Evaluated {len(ids)} subscriptions of tenant {tenant_id}, {updated} updated")
    return updated


def sweep_all_subscriptions(today: Optional[date] = None, batch_size: Optional[int] = None) -> int:
    """Evaluate every non-protected subscription of every tenant.

    A storage failure on one subscription is logged and the sweep moves on.
    """
    today = today or date.today()
    batch_size = batch_size or settings.sweep_batch_size
    db = get_session()
    updated = 0
    failed = 0
    try:
        service = LifecycleService(db)
        last_id = 0
        while True:
            ids = [
                row.id for row in db.query(Subscription.id).filter(
                    Subscription.id > last_id,
                    Subscription.status.notin_(list(PROTECTED_STATUSES))
                ).order_by(Subscription.id.asc()).limit(batch_size).all()
            ]
            if not ids:
                break
            last_id = ids[-1]

            for subscription_id in ids:
                try:
                    if service.evaluate_automatic(subscription_id, today).changed:
                        updated += 1
                except SubscriptionNotFound:
                    continue
                except (PersistenceError, PlanNotFound) as e:
                    failed += 1
                    logger.error(f"Error evaluating subscription {subscription_id}: {str(e)}")

        logger.info(f"Swept subscription statuses: {updated} updated, {failed} failed")
        return updated

    finally:
        db.close()


def run_all_maintenance_tasks():
    """Run all maintenance tasks."""
    logger.info("Starting maintenance tasks")

    try:
        sweep_all_subscriptions()
        logger.info("Completed all maintenance tasks")

    except Exception as e:
        logger.error(f"Error running maintenance tasks: {str(e)}")


if __name__ == "__main__":
    logging.basicConfig(level=settings.log_level)
    run_all_maintenance_tasks()
