"""
Bracket engine error taxonomy.

Every guard failure carries a context dict (match id, expected vs actual)
so callers can explain the rejection to an operator.
"""

from typing import Any, Dict, Optional


class BracketError(Exception):
    """Base exception for bracket engine errors"""

    code = "BRACKET_ERROR"

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "context": self.context}


class StructureError(BracketError):
    """Invalid capacity or topology. Nothing is persisted."""

    code = "STRUCTURE_ERROR"


class ValidationError(BracketError):
    """Invalid winner, incomplete slots or out-of-order completion. No state change."""

    code = "VALIDATION_ERROR"


class AdvancementConflict(BracketError):
    """Target slot already holds a different entrant. Never auto-resolved."""

    code = "ADVANCEMENT_CONFLICT"


class PersistenceError(BracketError):
    """Store operation failed; retry the whole logical operation."""

    code = "PERSISTENCE_ERROR"


class TournamentNotFound(ValidationError):
    code = "TOURNAMENT_NOT_FOUND"


class MatchNotFound(ValidationError):
    code = "MATCH_NOT_FOUND"
