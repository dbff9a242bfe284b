"""
Commission field changes with a per-field audit trail.
"""
import logging
from typing import Dict, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..exceptions import PersistenceError, SubscriptionNotFound
from ..lifecycle.actors import HumanActor
from ..locks import subscription_lock
from ..models import Subscription, SubscriptionCommissionAudit

logger = logging.getLogger(__name__)

COMMISSION_FIELDS = ("commission_status", "commission_amount", "commission_receipt")


def _stringify(value):
    if value is None:
        return None
    return value.value if hasattr(value, "value") else str(value)


class CommissionService:
    def __init__(self, db: Session):
        self.db = db

    def update_commission(self, subscription_id: int, changes: Dict, actor: HumanActor) -> List[SubscriptionCommissionAudit]:
        """Apply commission field changes, auditing each changed field.

        Unknown fields raise ``ValueError``. Fields whose value does not
        change are skipped. Returns the audit rows written.
        """
        unknown = set(changes) - set(COMMISSION_FIELDS)
        if unknown:
            raise ValueError(f"Not commission fields: {', '.join(sorted(unknown))}")
        for field in ("commission_status", "commission_amount"):
            if field in changes and changes[field] is None:
                raise ValueError(f"{field} cannot be empty")

        with subscription_lock(subscription_id):
            try:
                subscription = self.db.query(Subscription).filter(
                    Subscription.id == subscription_id
                ).populate_existing().with_for_update().first()
                if not subscription:
                    raise SubscriptionNotFound(subscription_id)

                records = []
                for field in COMMISSION_FIELDS:
                    if field not in changes:
                        continue
                    old_value = getattr(subscription, field)
                    new_value = changes[field]
                    if old_value == new_value:
                        continue

                    setattr(subscription, field, new_value)
                    record = SubscriptionCommissionAudit(
                        subscription_id=subscription.id,
                        actor_id=actor.id,
                        actor_role=actor.role,
                        field=field,
                        old_value=_stringify(old_value),
                        new_value=_stringify(new_value),
                        client_ip=actor.client_ip,
                        client_agent=actor.client_agent,
                    )
                    self.db.add(record)
                    records.append(record)

                if records:
                    subscription.updated_by_id = actor.id
                self.db.commit()

            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"Error updating commission of subscription {subscription_id}: {str(e)}")
                raise PersistenceError(
                    f"Could not update commission for subscription {subscription_id}"
                ) from e
            except Exception:
                self.db.rollback()
                raise

        for record in records:
            logger.info(
                f"Commission field {record.field} of subscription {subscription_id} changed "
                f"from {record.old_value!r} to {record.new_value!r} by {actor}"
            )
        return records

    def get_history(self, subscription_id: int) -> List[SubscriptionCommissionAudit]:
        return self.db.query(SubscriptionCommissionAudit).filter(
            SubscriptionCommissionAudit.subscription_id == subscription_id
        ).order_by(
            SubscriptionCommissionAudit.created_at.desc(),
            SubscriptionCommissionAudit.id.desc()
        ).all()
