"""
Append-only audit trail of subscription status transitions.
"""
from typing import List

from sqlalchemy.orm import Session

from ..lifecycle.actors import Actor, HumanActor
from ..models import SubscriptionStatus, SubscriptionStatusAudit, TransitionKind
from ..utils import truncate_string


class AuditService:
    def __init__(self, db: Session):
        self.db = db

    def record_transition(
        self,
        subscription_id: int,
        from_status: SubscriptionStatus,
        to_status: SubscriptionStatus,
        actor: Actor,
        reason: str,
    ) -> SubscriptionStatusAudit:
        """Stage one audit row in the current transaction.

        The caller commits it together with the status change. Human actors
        produce a manual record, the system an automatic one.
        """
        if isinstance(actor, HumanActor):
            record = SubscriptionStatusAudit(
                subscription_id=subscription_id,
                from_status=from_status,
                to_status=to_status,
                transition_kind=TransitionKind.MANUAL,
                reason=truncate_string(reason),
                actor_id=actor.id,
                actor_role=actor.role,
                client_ip=actor.client_ip,
                client_agent=truncate_string(actor.client_agent) if actor.client_agent else None,
            )
        else:
            record = SubscriptionStatusAudit(
                subscription_id=subscription_id,
                from_status=from_status,
                to_status=to_status,
                transition_kind=TransitionKind.AUTOMATIC,
                reason=truncate_string(reason),
            )

        self.db.add(record)
        return record

    def get_history(self, subscription_id: int) -> List[SubscriptionStatusAudit]:
        """All transitions of a subscription, newest first."""
        return self.db.query(SubscriptionStatusAudit).filter(
            SubscriptionStatusAudit.subscription_id == subscription_id
        ).order_by(
            SubscriptionStatusAudit.created_at.desc(),
            SubscriptionStatusAudit.id.desc()
        ).all()
