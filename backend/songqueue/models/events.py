from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional


class Outcome(str, Enum):
    APPLIED = "applied"
    DENIED = "denied"
    NOT_FOUND = "not_found"
    INVALID = "invalid"


@dataclass
class Notification:
    event: str
    data: Any


@dataclass
class Result:
    """Outcome of a room mutation plus the notifications to fan out when applied."""
    outcome: Outcome
    notifications: List[Notification] = field(default_factory=list)
    reason: Optional[str] = None

    @property
    def applied(self) -> bool:
        return self.outcome is Outcome.APPLIED

    def ack(self) -> dict:
        data = {"ok": self.applied, "outcome": self.outcome.value}
        if self.reason:
            data["reason"] = self.reason
        return data
