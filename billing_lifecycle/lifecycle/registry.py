"""
Transition registry.

Every permitted edge is one entry keyed by ``(from_status, to_status)``.
Manual edges list the roles allowed to take them; automatic edges are only
taken by the system. Caducado has no outgoing edges.
"""
from dataclasses import dataclass
from typing import FrozenSet, List, Optional

from ..models import SubscriptionStatus as S, TransitionKind, UserRole


@dataclass(frozen=True)
class TransitionRule:
    kind: TransitionKind
    roles: FrozenSet[UserRole] = frozenset()

    @property
    def is_manual(self) -> bool:
        return self.kind == TransitionKind.MANUAL


AUTO = TransitionRule(TransitionKind.AUTOMATIC)
ADMIN = TransitionRule(TransitionKind.MANUAL, frozenset({UserRole.ADMINISTRATOR}))
ADMIN_OR_DISTRIBUTOR = TransitionRule(
    TransitionKind.MANUAL, frozenset({UserRole.ADMINISTRATOR, UserRole.DISTRIBUTOR})
)

TRANSITIONS = {
    (S.ACTIVE, S.SCHEDULED): ADMIN,
    (S.ACTIVE, S.SUSPENDED): ADMIN,
    (S.ACTIVE, S.EXPIRING_SOON): AUTO,
    (S.ACTIVE, S.LOW_DOCUMENTS): AUTO,
    (S.ACTIVE, S.EXPIRING_SOON_LOW_DOCUMENTS): AUTO,
    (S.ACTIVE, S.EXPIRED): AUTO,
    (S.ACTIVE, S.OUT_OF_DOCUMENTS): AUTO,

    (S.PENDING, S.ACTIVE): ADMIN,
    (S.PENDING, S.SCHEDULED): ADMIN_OR_DISTRIBUTOR,
    (S.PENDING, S.SUSPENDED): ADMIN,

    (S.SCHEDULED, S.ACTIVE): AUTO,
    (S.SCHEDULED, S.SUSPENDED): ADMIN,
    (S.SCHEDULED, S.EXPIRING_SOON): AUTO,
    (S.SCHEDULED, S.LOW_DOCUMENTS): AUTO,
    (S.SCHEDULED, S.EXPIRING_SOON_LOW_DOCUMENTS): AUTO,
    (S.SCHEDULED, S.EXPIRED): AUTO,
    (S.SCHEDULED, S.OUT_OF_DOCUMENTS): AUTO,

    (S.EXPIRING_SOON, S.SUSPENDED): ADMIN,
    (S.EXPIRING_SOON, S.EXPIRING_SOON_LOW_DOCUMENTS): AUTO,
    (S.EXPIRING_SOON, S.EXPIRED): AUTO,
    (S.EXPIRING_SOON, S.OUT_OF_DOCUMENTS): AUTO,
    (S.EXPIRING_SOON, S.ACTIVE): AUTO,
    (S.EXPIRING_SOON, S.LOW_DOCUMENTS): AUTO,
    (S.EXPIRING_SOON, S.SCHEDULED): AUTO,

    (S.LOW_DOCUMENTS, S.ACTIVE): ADMIN,  # after a quota increase
    (S.LOW_DOCUMENTS, S.SUSPENDED): ADMIN,
    (S.LOW_DOCUMENTS, S.EXPIRING_SOON_LOW_DOCUMENTS): AUTO,
    (S.LOW_DOCUMENTS, S.OUT_OF_DOCUMENTS): AUTO,
    (S.LOW_DOCUMENTS, S.EXPIRED): AUTO,
    (S.LOW_DOCUMENTS, S.EXPIRING_SOON): AUTO,
    (S.LOW_DOCUMENTS, S.SCHEDULED): AUTO,

    (S.EXPIRING_SOON_LOW_DOCUMENTS, S.EXPIRING_SOON): ADMIN,  # after a quota increase
    (S.EXPIRING_SOON_LOW_DOCUMENTS, S.SUSPENDED): ADMIN,
    (S.EXPIRING_SOON_LOW_DOCUMENTS, S.EXPIRED): AUTO,
    (S.EXPIRING_SOON_LOW_DOCUMENTS, S.OUT_OF_DOCUMENTS): AUTO,
    (S.EXPIRING_SOON_LOW_DOCUMENTS, S.ACTIVE): AUTO,
    (S.EXPIRING_SOON_LOW_DOCUMENTS, S.LOW_DOCUMENTS): AUTO,
    (S.EXPIRING_SOON_LOW_DOCUMENTS, S.SCHEDULED): AUTO,

    (S.OUT_OF_DOCUMENTS, S.ACTIVE): ADMIN,  # after a quota increase
    (S.OUT_OF_DOCUMENTS, S.EXPIRED): AUTO,
    (S.OUT_OF_DOCUMENTS, S.EXPIRING_SOON): AUTO,
    (S.OUT_OF_DOCUMENTS, S.LOW_DOCUMENTS): AUTO,
    (S.OUT_OF_DOCUMENTS, S.EXPIRING_SOON_LOW_DOCUMENTS): AUTO,
    (S.OUT_OF_DOCUMENTS, S.SCHEDULED): AUTO,

    (S.SUSPENDED, S.ACTIVE): ADMIN,
    (S.SUSPENDED, S.EXPIRED): AUTO,
}


def get_rule(from_status: S, to_status: S) -> Optional[TransitionRule]:
    return TRANSITIONS.get((from_status, to_status))


def is_registered(from_status: S, to_status: S) -> bool:
    return (from_status, to_status) in TRANSITIONS


def available_transitions(current: S, role: UserRole) -> List[S]:
    """Manual targets ``role`` may pick from ``current``.

    Guards are not evaluated here; executing a transition always revalidates.
    """
    return [
        to_status
        for (from_status, to_status), rule in TRANSITIONS.items()
        if from_status == current and rule.is_manual and role in rule.roles
    ]
