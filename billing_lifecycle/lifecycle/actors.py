"""
Who is performing a transition.
"""
from dataclasses import dataclass
from typing import Optional, Union

from ..models import UserRole


@dataclass(frozen=True)
class SystemActor:
    """The scheduler/evaluator acting on its own."""

    def __str__(self) -> str:
        return "system"


@dataclass(frozen=True)
class HumanActor:
    id: int
    role: UserRole
    client_ip: Optional[str] = None
    client_agent: Optional[str] = None

    def __str__(self) -> str:
        return f"user {self.id} ({self.role.value})"


Actor = Union[SystemActor, HumanActor]

SYSTEM = SystemActor()
