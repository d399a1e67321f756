"""
Advancement: when a match completes, write its winner into the slot of the match it feeds.

At most one slot write per completion. Writes are compare-and-set against an
empty target slot; a slot already holding a different entrant is an
AdvancementConflict and is never overwritten. Replaying the same winner is a no-op.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from matchplay.models.match import Match, MatchStatus
from matchplay.services.bracket_errors import AdvancementConflict, MatchNotFound, StructureError, ValidationError
from matchplay.services.match_store import MatchStore
from matchplay.services.progression_guards import validate_progression

logger = logging.getLogger(__name__)

COMPLETED = MatchStatus.completed.value
SCHEDULED = MatchStatus.scheduled.value
PENDING = MatchStatus.pending.value


@dataclass
class SlotWrite:
    target_match_id: int
    position: int
    entrant_id: int

    @property
    def column(self) -> str:
        return slot_column(self.position)


@dataclass
class CompletionResult:
    match: Match
    advanced_count: int = 0
    replayed: bool = False


def slot_column(position: int) -> str:
    return "slot1_entrant_id" if position == 1 else "slot2_entrant_id"


def occupied_slots(match: Any) -> List[int]:
    return [e for e in (match.slot1_entrant_id, match.slot2_entrant_id) if e is not None]


def validate_winner(match: Any, winner_entrant_id: int) -> None:
    """Winner must be one of the match's own slots, and the match must be playable."""
    entrants = occupied_slots(match)
    if not entrants:
        raise ValidationError(
            f"Match {match.id} has no participants and cannot complete",
            {"match_id": match.id, "expected": "at least one slot filled", "actual": []},
        )
    if winner_entrant_id not in entrants:
        raise ValidationError(
            f"Entrant {winner_entrant_id} did not participate in match {match.id}",
            {"match_id": match.id, "expected": entrants, "actual": winner_entrant_id},
        )
    if len(entrants) == 1:
        # A lone entrant only completes as a bye: the empty side must have no source still to play
        empty_source = match.previous_match_2_id if match.slot2_entrant_id is None else match.previous_match_1_id
        if empty_source is not None:
            raise ValidationError(
                f"Match {match.id} is waiting on source match {empty_source} for its second participant",
                {"match_id": match.id, "source_match_id": empty_source, "expected": 2, "actual": 1},
            )


def plan_advancement(target: Optional[Any], match: Any) -> Optional[SlotWrite]:
    """
    Decide the single slot write for a completed match, without side effects.

    Returns None when there is nothing to write (no forward edge, or the
    target slot already holds this winner).
    """
    if match.feeds_to_match_id is None:
        return None
    if target is None:
        raise StructureError(
            f"Match {match.id} feeds missing match {match.feeds_to_match_id}",
            {"match_id": match.id, "feeds_to_match_id": match.feeds_to_match_id},
        )
    winner = match.winner_entrant_id
    position = match.feeds_to_position
    current = getattr(target, slot_column(position))
    if current is None:
        return SlotWrite(target_match_id=target.id, position=position, entrant_id=winner)
    if current == winner:
        return None
    raise AdvancementConflict(
        f"Slot {position} of match {target.id} already holds entrant {current}",
        {
            "match_id": match.id,
            "target_match_id": target.id,
            "slot": position,
            "expected": winner,
            "actual": current,
        },
    )


def _promote_if_ready(store: MatchStore, target: Match) -> None:
    if target.status == PENDING and len(occupied_slots(target)) == 2:
        store.update_match(target.id, {"status": SCHEDULED}, expected={"status": PENDING})


def advance_winner(store: MatchStore, match: Match) -> int:
    """
    Given a completed match, write its winner into the downstream slot.
    Returns count of downstream slots written (0 or 1).
    Idempotent: calling twice produces same DB state (only set if null or already same).
    """
    if match.status != COMPLETED or match.winner_entrant_id is None:
        return 0
    if match.feeds_to_match_id is None:
        return 0

    target = store.get_match(match.feeds_to_match_id)
    write = plan_advancement(target, match)
    if write is None:
        _promote_if_ready(store, target)
        return 0

    fields = {write.column: write.entrant_id, f"placeholder_slot{write.position}": None}
    if not store.update_match(target.id, fields, expected={write.column: None}):
        # Lost a race for the slot: identical winner is fine, anything else conflicts
        store.refresh(target)
        if plan_advancement(target, match) is None:
            return 0
        raise AdvancementConflict(
            f"Slot {write.position} of match {target.id} changed concurrently",
            {"match_id": match.id, "target_match_id": target.id, "expected": None},
        )

    store.refresh(target)
    _promote_if_ready(store, target)
    return 1


def complete_match(
    store: MatchStore,
    tournament_id: int,
    match_id: int,
    winner_entrant_id: int,
    scores: Optional[Dict[str, Any]] = None,
) -> CompletionResult:
    """
    Complete a match and advance its winner. Does not commit.

    Raises:
        MatchNotFound: match missing or not in this tournament
        ValidationError: invalid winner, incomplete slots, guard failure
        AdvancementConflict: a different winner is already recorded or placed
    """
    match = store.get_match(match_id)
    if match is None or match.tournament_id != tournament_id:
        raise MatchNotFound(
            f"Match {match_id} not found in tournament {tournament_id}",
            {"match_id": match_id, "tournament_id": tournament_id},
        )

    if match.status == COMPLETED:
        if match.winner_entrant_id != winner_entrant_id:
            raise AdvancementConflict(
                f"Match {match_id} is already completed with a different winner",
                {"match_id": match_id, "expected": match.winner_entrant_id, "actual": winner_entrant_id},
            )
        # Replay: re-run the idempotent forward write so an interrupted advancement heals
        return CompletionResult(match=match, advanced_count=advance_winner(store, match), replayed=True)

    validate_winner(match, winner_entrant_id)
    validate_progression(store.list_matches(tournament_id), match)

    fields: Dict[str, Any] = {
        "status": COMPLETED,
        "winner_entrant_id": winner_entrant_id,
        "completed_at": datetime.utcnow(),
    }
    if scores is not None:
        fields["score_json"] = scores
    if not store.update_match(
        match.id, fields, expected={"status": match.status, "winner_entrant_id": None}
    ):
        raise AdvancementConflict(
            f"Match {match_id} was completed concurrently",
            {"match_id": match_id, "expected": match.status},
        )
    store.refresh(match)

    advanced = advance_winner(store, match)
    logger.info(
        "Completed match %d (R%d-M%d) with winner %d; advanced %d slot(s)",
        match.id,
        match.round_number,
        match.match_number,
        winner_entrant_id,
        advanced,
    )
    return CompletionResult(match=match, advanced_count=advanced)


def resolve_all_dependencies(store: MatchStore, tournament_id: int) -> Dict:
    """
    Bulk re-apply advancement for every completed match in a tournament.

    Returns:
        Dict with:
        - matches_processed: number of completed matches processed
        - slots_advanced: total number of downstream slots filled
        - unknown_before: count of matches with an empty slot before
        - unknown_after: count of matches with an empty slot after
        - conflicts: advancement conflicts found (left for manual reconciliation)

    Guarantees:
        - Idempotent (safe to call multiple times)
        - Deterministic ordering (round, then match number)
    """
    matches = store.list_matches(tournament_id)
    unknown_before = sum(1 for m in matches if len(occupied_slots(m)) < 2)

    matches_processed = 0
    slots_advanced = 0
    conflicts: List[Dict[str, Any]] = []

    for match in matches:
        if match.status != COMPLETED or match.winner_entrant_id is None:
            continue
        try:
            slots_advanced += advance_winner(store, match)
        except AdvancementConflict as exc:
            logger.warning("Advancement conflict in tournament %d: %s", tournament_id, exc.message)
            conflicts.append(exc.to_dict())
        matches_processed += 1

    unknown_after = sum(1 for m in store.list_matches(tournament_id) if len(occupied_slots(m)) < 2)

    return {
        "matches_processed": matches_processed,
        "slots_advanced": slots_advanced,
        "unknown_before": unknown_before,
        "unknown_after": unknown_after,
        "conflicts": conflicts,
    }
