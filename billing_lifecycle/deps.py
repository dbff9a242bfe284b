"""
FastAPI dependencies for caller identity, clock and database.

Authentication happens upstream; the gateway forwards the authenticated
user as ``X-Actor-Id`` and ``X-Actor-Role`` headers.
"""
from datetime import date
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status

from .lifecycle.actors import HumanActor
from .models import UserRole


def get_client_ip(request: Request) -> str:
    """Extract client IP address from request."""
    # Try to get real IP from headers (for reverse proxy setups)
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip

    # Fall back to client host
    return request.client.host if request.client else "unknown"


def get_user_agent(request: Request) -> str:
    """Extract user agent from request."""
    return request.headers.get("user-agent", "unknown")


def get_current_actor(
    x_actor_id: Optional[str] = Header(default=None),
    x_actor_role: Optional[str] = Header(default=None),
    client_ip: str = Depends(get_client_ip),
    user_agent: str = Depends(get_user_agent),
) -> HumanActor:
    """Build the acting user from the gateway headers."""
    if not x_actor_id or not x_actor_role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing caller identity"
        )

    try:
        actor_id = int(x_actor_id)
        role = UserRole(x_actor_role.lower())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid caller identity"
        )

    return HumanActor(id=actor_id, role=role, client_ip=client_ip, client_agent=user_agent)


def get_administrator(actor: HumanActor = Depends(get_current_actor)) -> HumanActor:
    if actor.role != UserRole.ADMINISTRATOR:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator role required"
        )
    return actor


def get_back_office_actor(actor: HumanActor = Depends(get_current_actor)) -> HumanActor:
    """Administrators and distributors manage subscription statuses."""
    if actor.role.level < UserRole.DISTRIBUTOR.level:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have permission to change subscription statuses"
        )
    return actor


def get_today() -> date:
    """Current date; overridden in tests."""
    return date.today()
