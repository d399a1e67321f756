"""
Progression guards, run before a match completion is committed.

Read-only checks over the tournament's current match set:
1. Round order: round r cannot complete while any earlier-round match is open
2. Source completion: both back-edge source matches must be completed
3. Non-winner advancement: an advanced entrant must be its source's recorded winner

Each failure raises ValidationError with match id and expected vs actual.
"""

from typing import Any, Dict, Iterable, List

from matchplay.models.match import MatchStatus
from matchplay.services.bracket_errors import ValidationError

COMPLETED = MatchStatus.completed.value


def index_matches(matches: Iterable[Any]) -> Dict[int, Any]:
    return {m.id: m for m in matches}


def _label(match: Any) -> str:
    return f"R{match.round_number}-M{match.match_number}"


def check_round_order(matches: Iterable[Any], match: Any) -> None:
    blocking: List[Any] = [
        m for m in matches if m.round_number < match.round_number and m.status != COMPLETED
    ]
    if blocking:
        blocking.sort(key=lambda m: (m.round_number, m.match_number))
        raise ValidationError(
            f"Cannot complete {_label(match)} while earlier rounds have incomplete matches: "
            + ", ".join(_label(m) for m in blocking),
            {
                "match_id": match.id,
                "round_number": match.round_number,
                "expected": "all earlier rounds completed",
                "actual": [m.id for m in blocking],
            },
        )


def check_sources_completed(index: Dict[int, Any], match: Any) -> None:
    for source_id in (match.previous_match_1_id, match.previous_match_2_id):
        if source_id is None:
            continue
        source = index.get(source_id)
        if source is not None and source.status != COMPLETED:
            raise ValidationError(
                f"Source match {_label(source)} must be completed before {_label(match)}",
                {
                    "match_id": match.id,
                    "source_match_id": source_id,
                    "expected": COMPLETED,
                    "actual": source.status,
                },
            )


def check_advanced_entrants(index: Dict[int, Any], match: Any) -> None:
    for position, source_id, entrant_id in (
        (1, match.previous_match_1_id, match.slot1_entrant_id),
        (2, match.previous_match_2_id, match.slot2_entrant_id),
    ):
        if source_id is None or entrant_id is None:
            continue
        source = index.get(source_id)
        if source is None:
            continue
        recorded = source.winner_entrant_id if source.status == COMPLETED else None
        if recorded != entrant_id:
            raise ValidationError(
                f"Entrant {entrant_id} in slot {position} of {_label(match)} did not win {_label(source)}",
                {
                    "match_id": match.id,
                    "source_match_id": source_id,
                    "slot": position,
                    "expected": recorded,
                    "actual": entrant_id,
                },
            )


def validate_progression(matches: Iterable[Any], match: Any) -> None:
    """Run every guard; raises on the first failure."""
    matches = list(matches)
    index = index_matches(matches)
    check_round_order(matches, match)
    check_sources_completed(index, match)
    check_advanced_entrants(index, match)
