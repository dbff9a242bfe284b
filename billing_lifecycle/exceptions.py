"""
Exceptions raised by the subscription lifecycle core.

Business-rule rejections are never raised; they come back as
``TransitionResult`` values. Only missing records and storage failures
propagate as exceptions.
"""


class LifecycleError(Exception):
    """Base class for lifecycle errors."""


class NotFoundError(LifecycleError):
    """A referenced record does not exist."""

    entity = "Record"

    def __init__(self, record_id):
        self.record_id = record_id
        super().__init__(f"{self.entity} {record_id} not found")


class SubscriptionNotFound(NotFoundError):
    entity = "Subscription"


class PlanNotFound(NotFoundError):
    entity = "Plan"


class PersistenceError(LifecycleError):
    """The state change and its audit record could not be committed.

    The session has already been rolled back when this is raised; callers
    may retry the whole operation.
    """


class AuditLogImmutableError(LifecycleError):
    """Raised when something tries to update or delete an audit row."""
