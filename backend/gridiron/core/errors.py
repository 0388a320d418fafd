"""
Error taxonomy shared by every service.

Services raise these; the API layer turns them into structured JSON responses.
`retryable` tells a caller whether repeating the same request can succeed.
"""
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, asdict


class GameError(Exception):
    """Base class for all domain errors"""

    kind = "GameError"
    status_code = 400
    retryable = False

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "error": self.kind,
            "message": self.message,
            "details": self.context,
            "retryable": self.retryable,
        }


class Unauthorized(GameError):
    kind = "Unauthorized"
    status_code = 403


class NotOwned(Unauthorized):
    kind = "NotOwned"


class NotFound(GameError):
    kind = "NotFound"
    status_code = 404


class InvalidState(GameError):
    kind = "InvalidState"
    status_code = 409


class AlreadyOpened(InvalidState):
    kind = "AlreadyOpened"


class WeekLocked(InvalidState):
    kind = "WeekLocked"


class NoContractsRemaining(InvalidState):
    kind = "NoContractsRemaining"


class StatsNotFinal(InvalidState):
    # Scoring only: the batch leaves the lineup submitted and retries later
    kind = "StatsNotFinal"
    retryable = True


class InsufficientFunds(GameError):
    kind = "InsufficientFunds"
    status_code = 400

    def __init__(self, required: int, available: int):
        super().__init__(
            f"Insufficient coins: {required} required, {available} available",
            required=required,
            available=available,
        )
        self.required = required
        self.available = available


@dataclass
class SlotViolation:
    slot_index: int
    slot: str
    code: str
    message: str


class ValidationFailed(GameError):
    kind = "ValidationFailed"
    status_code = 422

    def __init__(self, violations: List[SlotViolation], message: Optional[str] = None):
        super().__init__(
            message or f"Lineup has {len(violations)} violation(s)",
            violations=[asdict(v) for v in violations],
        )
        self.violations = violations


class DuplicateRequest(GameError):
    """Idempotency key was already used for a different request payload"""

    kind = "DuplicateRequest"
    status_code = 409
    retryable = True

    def __init__(self, message: str, prior_result: Optional[Dict[str, Any]] = None):
        super().__init__(message, prior_result=prior_result)
        self.prior_result = prior_result
