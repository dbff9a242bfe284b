"""
SQLAlchemy models for plans, subscriptions and their audit trails.
"""
from datetime import date, datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    Boolean, Column, Date, DateTime, Enum, ForeignKey, Index, Integer, Numeric, String, Text, event
)
from sqlalchemy.orm import relationship

from .config import settings
from .database import Base
from .exceptions import AuditLogImmutableError


class SubscriptionStatus(PyEnum):
    ACTIVE = "Vigente"
    PENDING = "Pendiente"
    SCHEDULED = "Programado"
    SUSPENDED = "Suspendido"
    EXPIRING_SOON = "Proximo a caducar"
    LOW_DOCUMENTS = "Pocos comprobantes"
    EXPIRING_SOON_LOW_DOCUMENTS = "Proximo a caducar y con pocos comprobantes"
    EXPIRED = "Caducado"
    OUT_OF_DOCUMENTS = "Sin comprobantes"


# Statuses that only leave through a manual transition
PROTECTED_STATUSES = frozenset({SubscriptionStatus.SUSPENDED, SubscriptionStatus.PENDING})

# Reaching one of these activates the tenant's next scheduled subscription
TERMINAL_STATUSES = frozenset({SubscriptionStatus.EXPIRED, SubscriptionStatus.OUT_OF_DOCUMENTS})

# Statuses that block document issuance
BLOCKED_STATUSES = frozenset({
    SubscriptionStatus.PENDING,
    SubscriptionStatus.SCHEDULED,
    SubscriptionStatus.EXPIRED,
    SubscriptionStatus.OUT_OF_DOCUMENTS,
    SubscriptionStatus.SUSPENDED,
})

# Statuses a user may pick directly in the admin UI
MANUAL_STATUSES = (SubscriptionStatus.ACTIVE, SubscriptionStatus.SUSPENDED)


class TransitionKind(PyEnum):
    MANUAL = "Manual"
    AUTOMATIC = "Automatico"


class UserRole(PyEnum):
    ADMINISTRATOR = "administrador"
    DISTRIBUTOR = "distribuidor"
    EMISOR = "emisor"
    MANAGER = "gerente"
    CASHIER = "cajero"

    @property
    def level(self) -> int:
        """Hierarchy level, higher means more permissions."""
        return {
            UserRole.ADMINISTRATOR: 5,
            UserRole.DISTRIBUTOR: 4,
            UserRole.EMISOR: 3,
            UserRole.MANAGER: 2,
            UserRole.CASHIER: 1,
        }[self]


class BillingPeriod(PyEnum):
    MONTHLY = "Mensual"
    QUARTERLY = "Trimestral"
    SEMIANNUAL = "Semestral"
    ANNUAL = "Anual"
    BIENNIAL = "Bianual"
    TRIENNIAL = "Trianual"


class TransactionStatus(PyEnum):
    PENDING = "Pendiente"
    CONFIRMED = "Confirmada"


class CommissionStatus(PyEnum):
    NONE = "Sin comision"
    PENDING = "Pendiente"
    PAID = "Pagada"


class Plan(Base):
    __tablename__ = "plans"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    period = Column(Enum(BillingPeriod), nullable=False, default=BillingPeriod.MONTHLY)
    included_documents = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False, default=0)

    # Alert thresholds
    min_documents_threshold = Column(Integer, nullable=False, default=settings.default_min_documents)
    min_days_threshold = Column(Integer, nullable=False, default=settings.default_min_days)

    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    subscriptions = relationship("Subscription", back_populates="plan")


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, nullable=False, index=True)  # The emisor
    plan_id = Column(Integer, ForeignKey("plans.id"), nullable=False, index=True)

    # Validity window
    start_date = Column(Date, nullable=False, index=True)
    end_date = Column(Date, nullable=False, index=True)

    # Quota
    amount = Column(Numeric(10, 2), nullable=False, default=0)
    documents_allotted = Column(Integer, nullable=False)
    documents_used = Column(Integer, nullable=False, default=0)

    # Statuses
    status = Column(Enum(SubscriptionStatus), nullable=False, default=SubscriptionStatus.PENDING, index=True)
    transaction_status = Column(Enum(TransactionStatus), nullable=False, default=TransactionStatus.PENDING)

    # Commission
    commission_status = Column(Enum(CommissionStatus), nullable=False, default=CommissionStatus.NONE)
    commission_amount = Column(Numeric(10, 2), nullable=False, default=0)
    commission_receipt = Column(String(255))

    # Audit
    created_by_id = Column(Integer)
    updated_by_id = Column(Integer)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    plan = relationship("Plan", back_populates="subscriptions")
    status_audits = relationship("SubscriptionStatusAudit", back_populates="subscription")

    @property
    def documents_remaining(self) -> int:
        return max(0, (self.documents_allotted or 0) - (self.documents_used or 0))

    def days_remaining(self, today: date) -> int:
        """Whole days left until ``end_date``, never negative."""
        return max(0, (self.end_date - today).days)

    @property
    def can_issue_documents(self) -> bool:
        return self.status not in BLOCKED_STATUSES and self.documents_remaining > 0

    def derive_status(self, today: date) -> SubscriptionStatus:
        """Status the subscription should have on ``today``."""
        from .lifecycle.derivation import derive_status

        plan = self.plan
        return derive_status(
            current=self.status,
            today=today,
            start_date=self.start_date,
            end_date=self.end_date,
            documents_remaining=(self.documents_allotted or 0) - (self.documents_used or 0),
            min_days=plan.min_days_threshold if plan else None,
            min_documents=plan.min_documents_threshold if plan else None,
        )


class SubscriptionStatusAudit(Base):
    __tablename__ = "subscription_status_audit"
    __table_args__ = (
        Index("ix_status_audit_subscription_created", "subscription_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    subscription_id = Column(Integer, ForeignKey("subscriptions.id", ondelete="CASCADE"), nullable=False)
    from_status = Column(Enum(SubscriptionStatus), nullable=False)
    to_status = Column(Enum(SubscriptionStatus), nullable=False)
    transition_kind = Column(Enum(TransitionKind), nullable=False, index=True)
    reason = Column(String(255), nullable=False)

    # Null for automatic transitions
    actor_id = Column(Integer)
    actor_role = Column(Enum(UserRole))
    client_ip = Column(String(45))
    client_agent = Column(String(255))

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    subscription = relationship("Subscription", back_populates="status_audits")


class SubscriptionCommissionAudit(Base):
    __tablename__ = "subscription_commission_audit"

    id = Column(Integer, primary_key=True, index=True)
    subscription_id = Column(Integer, ForeignKey("subscriptions.id", ondelete="CASCADE"), nullable=False, index=True)
    actor_id = Column(Integer, nullable=False)
    actor_role = Column(Enum(UserRole), nullable=False)
    field = Column(String(100), nullable=False)
    old_value = Column(Text)
    new_value = Column(Text)
    client_ip = Column(String(45))
    client_agent = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)


def _refuse_audit_change(mapper, connection, target):
    raise AuditLogImmutableError(f"{type(target).__name__} rows are append-only")


for _audit_model in (SubscriptionStatusAudit, SubscriptionCommissionAudit):
    event.listen(_audit_model, "before_update", _refuse_audit_change)
    event.listen(_audit_model, "before_delete", _refuse_audit_change)
