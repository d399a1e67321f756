from matchplay.models.entrant import Entrant
from matchplay.models.match import Match, MatchStatus
from matchplay.models.player import Player
from matchplay.models.registration import Registration
from matchplay.models.tournament import BracketMode, EntrantKind, Tournament

__all__ = [
    "Tournament",
    "EntrantKind",
    "BracketMode",
    "Player",
    "Entrant",
    "Registration",
    "Match",
    "MatchStatus",
]
