"""
Pydantic schemas for API requests and responses.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from .models import CommissionStatus, SubscriptionStatus, TransactionStatus, TransitionKind, UserRole


# Transition outcomes
class TransitionResult(BaseModel):
    accepted: bool
    message: str
    error_code: Optional[str] = None  # For programmatic handling by callers
    from_status: Optional[SubscriptionStatus] = None
    to_status: Optional[SubscriptionStatus] = None
    final_status: Optional[SubscriptionStatus] = None  # After any follow-up re-evaluation


class TransitionRequest(BaseModel):
    target_status: SubscriptionStatus
    reason: Optional[str] = Field(default=None, max_length=255)


class AvailableTransitions(BaseModel):
    subscription_id: int
    current_status: SubscriptionStatus
    available_transitions: List[SubscriptionStatus]
    is_admin: bool


# Subscription schemas
class Subscription(BaseModel):
    id: int
    tenant_id: int
    plan_id: int
    start_date: date
    end_date: date
    documents_allotted: int
    documents_used: int
    documents_remaining: int
    status: SubscriptionStatus
    transaction_status: TransactionStatus
    commission_status: CommissionStatus
    commission_amount: Decimal
    commission_receipt: Optional[str]
    can_issue_documents: bool
    updated_by_id: Optional[int]

    model_config = {"from_attributes": True}


# Audit schemas
class StatusAuditEntry(BaseModel):
    id: int
    subscription_id: int
    from_status: SubscriptionStatus
    to_status: SubscriptionStatus
    transition_kind: TransitionKind
    reason: str
    actor_id: Optional[int]
    actor_role: Optional[UserRole]
    client_ip: Optional[str]
    client_agent: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class StatusHistory(BaseModel):
    subscription_id: int
    current_status: SubscriptionStatus
    history: List[StatusAuditEntry]


class EvaluationSummary(BaseModel):
    tenant_id: int
    updated_subscriptions: int
    message: str


class StatusCatalog(BaseModel):
    all: List[SubscriptionStatus]
    manual: List[SubscriptionStatus]
    blocked: List[SubscriptionStatus]


# Commission schemas
class CommissionUpdate(BaseModel):
    commission_status: Optional[CommissionStatus] = None
    commission_amount: Optional[Decimal] = Field(default=None, ge=0)
    commission_receipt: Optional[str] = Field(default=None, max_length=255)


class CommissionAuditEntry(BaseModel):
    id: int
    subscription_id: int
    actor_id: int
    actor_role: UserRole
    field: str
    old_value: Optional[str]
    new_value: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}
