"""
Seeding Assigner

Places registered entrants into round-1 slots. Entrants are read as a
tagged variant (Individual | Pair) with a shared effective ranking
(lower = stronger); a pair's ranking is the average of its two members.
An explicit registration position overrides ranking as the seed.

Policies are selected by name and never mixed:
- mirrored: canonical no-bye draw (1v3 / 2v4 at capacity 4, classical
  seed-pairing table from capacity 8 up)
- shift_pop: best remaining vs worst remaining, in match order
- shuffle: random order, sequential pairs
- bye: best entrants sit out round 1 alone; the rest are mirror-paired
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple, Union

from matchplay.services.bracket_errors import ValidationError
from matchplay.services.bracket_structure import MatchKey, MatchNode, validate_capacity

logger = logging.getLogger(__name__)


class SeedingPolicy(str, Enum):
    mirrored = "mirrored"
    shift_pop = "shift_pop"
    shuffle = "shuffle"
    bye = "bye"


NO_BYE_POLICIES = (SeedingPolicy.mirrored, SeedingPolicy.shift_pop, SeedingPolicy.shuffle)


# ============================================================================
# Entrant variants
# ============================================================================


@dataclass(frozen=True)
class PlayerRef:
    id: int
    name: str
    ranking: float


@dataclass(frozen=True)
class Individual:
    entrant_id: int
    name: str
    player: PlayerRef
    position: Optional[int] = None  # explicit seed set by the organizer

    @property
    def effective_ranking(self) -> float:
        return self.player.ranking


@dataclass(frozen=True)
class Pair:
    entrant_id: int
    name: str
    a: PlayerRef
    b: PlayerRef
    position: Optional[int] = None

    @property
    def effective_ranking(self) -> float:
        return (self.a.ranking + self.b.ranking) / 2


Competitor = Union[Individual, Pair]


def competitor_from_entrant(entrant, position: Optional[int] = None) -> Competitor:
    """Read an Entrant row (with loaded players) as its variant, carrying its registration position."""
    a = entrant.player_a
    ref_a = PlayerRef(id=a.id, name=a.name, ranking=a.ranking or 0.0)
    if entrant.kind == "pair":
        b = entrant.player_b
        if b is None:
            raise ValidationError(
                f"Pair entrant {entrant.id} has no second player",
                {"entrant_id": entrant.id},
            )
        ref_b = PlayerRef(id=b.id, name=b.name, ranking=b.ranking or 0.0)
        return Pair(entrant_id=entrant.id, name=entrant.name, a=ref_a, b=ref_b, position=position)
    return Individual(entrant_id=entrant.id, name=entrant.name, player=ref_a, position=position)


def order_registrations(registrations: Sequence) -> List:
    """Explicit seeding position first, registration order as the fallback."""
    indexed = list(enumerate(registrations))
    indexed.sort(
        key=lambda item: (
            item[1].position is None,
            item[1].position if item[1].position is not None else 0,
            item[0],
        )
    )
    return [reg for _, reg in indexed]


def seed_order(competitors: Sequence[Competitor]) -> List[Competitor]:
    """
    Seeds best first. An explicit position is the seed; entrants without one
    follow, by ranking ascending. Stable, so input order breaks ties.
    """
    return sorted(
        competitors,
        key=lambda c: (
            c.position is None,
            c.position if c.position is not None else 0,
            c.effective_ranking,
        ),
    )


# ============================================================================
# Assignment
# ============================================================================


@dataclass
class FirstRoundSlot:
    match_number: int
    slot1: Optional[Competitor] = None
    slot2: Optional[Competitor] = None

    @property
    def is_bye(self) -> bool:
        return (self.slot1 is None) != (self.slot2 is None)


@dataclass
class SeedingResult:
    policy: SeedingPolicy
    slots: List[FirstRoundSlot] = field(default_factory=list)
    byes: List[int] = field(default_factory=list)  # round-1 match numbers

    @property
    def bye_count(self) -> int:
        return len(self.byes)

    def slot_for(self, match_number: int) -> FirstRoundSlot:
        for s in self.slots:
            if s.match_number == match_number:
                return s
        raise KeyError(match_number)


def bracket_order(bracket_size: int) -> List[int]:
    """
    Classical draw order of seeds down the bracket.

    For 8: [1, 8, 4, 5, 2, 7, 3, 6] -> 1v8, 4v5, 2v7, 3v6; seeds 1 and 2
    can only meet in the final.
    """
    if bracket_size == 2:
        return [1, 2]

    upper_half = bracket_order(bracket_size // 2)
    result: List[int] = []
    for seed in upper_half:
        result.extend([seed, bracket_size + 1 - seed])
    return result


def bye_layout(match_count: int, bye_count: int) -> List[int]:
    """Bye match numbers alternating from the top and bottom: 1, N, 2, N-1, ..."""
    order: List[int] = []
    lo, hi = 1, match_count
    while lo <= hi:
        order.append(lo)
        if hi != lo:
            order.append(hi)
        lo += 1
        hi -= 1
    return order[:bye_count]


def _sequential_pairs(ordered: List[Competitor]) -> List[Tuple[Competitor, Competitor]]:
    return [(ordered[i], ordered[i + 1]) for i in range(0, len(ordered), 2)]


def _mirrored_pairs(ordered: List[Competitor], capacity: int) -> List[Tuple[Competitor, Competitor]]:
    if capacity == 2:
        return [(ordered[0], ordered[1])]
    if capacity == 4:
        return [(ordered[0], ordered[2]), (ordered[1], ordered[3])]
    draw = bracket_order(capacity)
    return [(ordered[draw[i] - 1], ordered[draw[i + 1] - 1]) for i in range(0, len(draw), 2)]


def _shift_pop_pairs(ordered: List[Competitor]) -> List[Tuple[Competitor, Competitor]]:
    pool = list(ordered)
    pairs = []
    while len(pool) >= 2:
        pairs.append((pool.pop(0), pool.pop()))
    return pairs


def assign_first_round(
    competitors: Sequence[Competitor],
    capacity: int,
    policy: Optional[SeedingPolicy] = None,
    rng: Optional[random.Random] = None,
) -> SeedingResult:
    """
    Compute round-1 slot assignments.

    competitors must already be in registration order (explicit position,
    else insertion order). When policy is None, mirrored is used for a full
    roster and bye otherwise.

    Raises:
        ValidationError: fewer than 2 entrants, more entrants than capacity,
            more byes than round-1 matches, duplicate entrants, or a no-bye
            policy requested for a short roster
    """
    validate_capacity(capacity)
    count = len(competitors)
    match_count = capacity // 2

    if count < 2:
        raise ValidationError("not enough entrants", {"expected": ">= 2", "actual": count})
    if count > capacity:
        raise ValidationError(
            f"{count} entrants exceed bracket capacity {capacity}",
            {"capacity": capacity, "actual": count},
        )
    ids = [c.entrant_id for c in competitors]
    if len(set(ids)) != len(ids):
        raise ValidationError("duplicate entrant in registrations", {"entrant_ids": ids})

    if policy is None:
        policy = SeedingPolicy.mirrored if count == capacity else SeedingPolicy.bye
    policy = SeedingPolicy(policy)

    if policy in NO_BYE_POLICIES and count != capacity:
        raise ValidationError(
            f"policy '{policy.value}' requires a full roster; use 'bye' for {count}/{capacity}",
            {"policy": policy.value, "capacity": capacity, "actual": count},
        )

    ordered = seed_order(competitors)
    result = SeedingResult(policy=policy)

    if policy == SeedingPolicy.bye:
        bye_count = capacity - count
        if bye_count > match_count:
            raise ValidationError(
                f"more byes than round-1 matches: {bye_count} byes for {match_count} matches "
                f"({count} entrants, capacity {capacity})",
                {"capacity": capacity, "expected": f">= {match_count}", "actual": count},
            )
        bye_matches = bye_layout(match_count, bye_count)
        by_number: Dict[int, FirstRoundSlot] = {}
        for competitor, mn in zip(ordered[:bye_count], bye_matches):
            by_number[mn] = FirstRoundSlot(match_number=mn, slot1=competitor)

        remaining = ordered[bye_count:]
        open_matches = [mn for mn in range(1, match_count + 1) if mn not in by_number]
        for i, mn in enumerate(open_matches):
            by_number[mn] = FirstRoundSlot(match_number=mn, slot1=remaining[i], slot2=remaining[-1 - i])

        result.slots = [by_number[mn] for mn in sorted(by_number)]
        result.byes = sorted(bye_matches)
    else:
        if policy == SeedingPolicy.mirrored:
            pairs = _mirrored_pairs(ordered, capacity)
        elif policy == SeedingPolicy.shift_pop:
            pairs = _shift_pop_pairs(ordered)
        else:
            shuffled = list(ordered)
            (rng or random.Random()).shuffle(shuffled)
            pairs = _sequential_pairs(shuffled)
        result.slots = [
            FirstRoundSlot(match_number=i + 1, slot1=a, slot2=b) for i, (a, b) in enumerate(pairs)
        ]

    logger.debug(
        "Seeded %d entrants into capacity %d with policy %s (%d byes)",
        count,
        capacity,
        policy.value,
        result.bye_count,
    )
    return result


def apply_seeding(arena: Dict[MatchKey, MatchNode], result: SeedingResult) -> List[MatchKey]:
    """
    Write round-1 slot assignments onto the arena.

    Bye matches become completed with their sole entrant as winner; their
    advancement into round 2 is left to the advancement engine. Returns the
    keys of the bye matches.
    """
    bye_keys: List[MatchKey] = []
    for slot in result.slots:
        node = arena[(1, slot.match_number)]
        node.slot1_entrant_id = slot.slot1.entrant_id if slot.slot1 else None
        node.slot2_entrant_id = slot.slot2.entrant_id if slot.slot2 else None
        if slot.slot1 and slot.slot2:
            node.status = "scheduled"
        elif slot.is_bye:
            sole = slot.slot1 or slot.slot2
            node.status = "completed"
            node.winner_entrant_id = sole.entrant_id
            node.is_bye = True
            bye_keys.append(node.key)
    return bye_keys
