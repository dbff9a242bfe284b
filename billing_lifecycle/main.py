"""
Main FastAPI application exposing the subscription lifecycle.
"""
import logging
from datetime import date, datetime
from typing import List

from fastapi import Depends, FastAPI, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from .config import settings
from .database import create_tables, get_db
from .deps import get_administrator, get_back_office_actor, get_current_actor, get_today
from .exceptions import NotFoundError, PersistenceError
from .lifecycle.actors import HumanActor
from .models import BLOCKED_STATUSES, MANUAL_STATUSES, SubscriptionStatus, UserRole
from .schemas import (
    AvailableTransitions, CommissionAuditEntry, CommissionUpdate, EvaluationSummary,
    StatusAuditEntry, StatusCatalog, StatusHistory, Subscription, TransitionRequest, TransitionResult
)
from .services.commission_service import CommissionService
from .services.lifecycle_service import LifecycleService
from .tasks import evaluate_tenant_subscriptions

# Configure logging
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Subscription lifecycle state machine for the invoicing back office"
)


@app.on_event("startup")
def on_startup():
    try:
        create_tables()
    except Exception as e:
        logger.error(f"⚠️ Database initialization failed: {e}")


@app.exception_handler(NotFoundError)
async def not_found_handler(request, exc: NotFoundError):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request, exc: PersistenceError):
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Storage unavailable, please retry"}
    )


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "version": settings.app_version,
        "database_type": "SQLite" if settings.is_sqlite else "PostgreSQL",
    }


@app.get("/api/statuses", response_model=StatusCatalog)
async def get_statuses():
    """Statuses known to the lifecycle."""
    return StatusCatalog(
        all=list(SubscriptionStatus),
        manual=list(MANUAL_STATUSES),
        blocked=[s for s in SubscriptionStatus if s in BLOCKED_STATUSES],
    )


@app.get("/api/tenants/{tenant_id}/subscriptions/{subscription_id}", response_model=Subscription)
def get_subscription(
    tenant_id: int,
    subscription_id: int,
    actor: HumanActor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    today: date = Depends(get_today)
):
    """Get a subscription, refreshing its automatic status first."""
    service = LifecycleService(db)
    service.get_subscription(subscription_id, tenant_id)
    service.evaluate_automatic(subscription_id, today)
    return service.get_subscription(subscription_id, tenant_id)


@app.post("/api/tenants/{tenant_id}/subscriptions/{subscription_id}/status", response_model=TransitionResult)
def change_status(
    tenant_id: int,
    subscription_id: int,
    request: TransitionRequest,
    actor: HumanActor = Depends(get_back_office_actor),
    db: Session = Depends(get_db),
    today: date = Depends(get_today)
):
    """Change the status of a subscription manually."""
    service = LifecycleService(db)
    service.get_subscription(subscription_id, tenant_id)

    result = service.request_manual_transition(
        subscription_id,
        request.target_status,
        actor,
        reason=request.reason,
        today=today
    )

    if not result.accepted:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=result.model_dump(mode="json"))

    return result


@app.get(
    "/api/tenants/{tenant_id}/subscriptions/{subscription_id}/transitions",
    response_model=AvailableTransitions
)
def get_available_transitions(
    tenant_id: int,
    subscription_id: int,
    actor: HumanActor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Manual transitions the caller may attempt right now."""
    service = LifecycleService(db)
    subscription = service.get_subscription(subscription_id, tenant_id)

    return AvailableTransitions(
        subscription_id=subscription.id,
        current_status=subscription.status,
        available_transitions=service.available_transitions(subscription.status, actor.role),
        is_admin=actor.role == UserRole.ADMINISTRATOR,
    )


@app.get("/api/tenants/{tenant_id}/subscriptions/{subscription_id}/history", response_model=StatusHistory)
def get_status_history(
    tenant_id: int,
    subscription_id: int,
    actor: HumanActor = Depends(get_administrator),
    db: Session = Depends(get_db)
):
    """Status change history of a subscription."""
    service = LifecycleService(db)
    subscription = service.get_subscription(subscription_id, tenant_id)

    return StatusHistory(
        subscription_id=subscription.id,
        current_status=subscription.status,
        history=[StatusAuditEntry.model_validate(entry) for entry in service.get_history(subscription.id)],
    )


@app.post("/api/tenants/{tenant_id}/subscriptions/evaluate", response_model=EvaluationSummary)
def evaluate_statuses(
    tenant_id: int,
    actor: HumanActor = Depends(get_back_office_actor),
    db: Session = Depends(get_db),
    today: date = Depends(get_today)
):
    """Re-evaluate the automatic status of every subscription of a tenant."""
    updated = evaluate_tenant_subscriptions(db, tenant_id, today)

    return EvaluationSummary(
        tenant_id=tenant_id,
        updated_subscriptions=updated,
        message=f"Updated {updated} subscription(s)." if updated else "All statuses are up to date.",
    )


@app.patch(
    "/api/tenants/{tenant_id}/subscriptions/{subscription_id}/commission",
    response_model=List[CommissionAuditEntry]
)
def update_commission(
    tenant_id: int,
    subscription_id: int,
    request: CommissionUpdate,
    actor: HumanActor = Depends(get_administrator),
    db: Session = Depends(get_db)
):
    """Update commission fields; returns one audit entry per changed field."""
    LifecycleService(db).get_subscription(subscription_id, tenant_id)
    try:
        records = CommissionService(db).update_commission(
            subscription_id, request.model_dump(exclude_unset=True), actor
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    return [CommissionAuditEntry.model_validate(record) for record in records]


@app.get(
    "/api/tenants/{tenant_id}/subscriptions/{subscription_id}/commission/history",
    response_model=List[CommissionAuditEntry]
)
def get_commission_history(
    tenant_id: int,
    subscription_id: int,
    actor: HumanActor = Depends(get_administrator),
    db: Session = Depends(get_db)
):
    """Commission change history of a subscription."""
    LifecycleService(db).get_subscription(subscription_id, tenant_id)
    return [
        CommissionAuditEntry.model_validate(record)
        for record in CommissionService(db).get_history(subscription_id)
    ]


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
