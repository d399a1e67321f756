"""
Bracket Structure Builder

Computes single-elimination topology from a fixed capacity:
- Round r holds capacity / 2^r matches, numbered 1..N
- Match n of round r feeds match ceil(n/2) of round r+1, slot 1 if n is odd else slot 2
- Back edges on the target are the exact inverse of the forward edges

Matches are held in an arena keyed by (round_number, match_number); edges are
keys, resolved to row ids only when the store persists them.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from matchplay.services.bracket_errors import StructureError

MatchKey = Tuple[int, int]  # (round_number, match_number)


@dataclass
class MatchNode:
    round_number: int
    match_number: int
    slot1_entrant_id: Optional[int] = None
    slot2_entrant_id: Optional[int] = None
    placeholder_slot1: Optional[str] = None
    placeholder_slot2: Optional[str] = None
    status: str = "pending"
    winner_entrant_id: Optional[int] = None
    is_bye: bool = False
    feeds_to: Optional[MatchKey] = None
    feeds_to_position: Optional[int] = None
    previous_1: Optional[MatchKey] = None
    previous_2: Optional[MatchKey] = None

    @property
    def key(self) -> MatchKey:
        return (self.round_number, self.match_number)


def is_power_of_two(n: int) -> bool:
    return n > 0 and (n & (n - 1)) == 0


def validate_capacity(capacity: int) -> None:
    if not isinstance(capacity, int) or isinstance(capacity, bool):
        raise StructureError(f"capacity must be an integer, got {capacity!r}", {"capacity": capacity})
    if capacity < 2:
        raise StructureError(f"capacity must be at least 2, got {capacity}", {"capacity": capacity})
    if not is_power_of_two(capacity):
        raise StructureError(f"capacity must be a power of two, got {capacity}", {"capacity": capacity})


def total_rounds(capacity: int) -> int:
    validate_capacity(capacity)
    return int(math.ceil(math.log2(capacity)))


def matches_in_round(capacity: int, round_number: int) -> int:
    rounds = total_rounds(capacity)
    if round_number < 1 or round_number > rounds:
        raise StructureError(
            f"round {round_number} out of range 1..{rounds} for capacity {capacity}",
            {"capacity": capacity, "round_number": round_number},
        )
    return capacity // (2 ** round_number)


def feed_target(match_number: int) -> Tuple[int, int]:
    """(target match number in next round, slot position) for a match."""
    return (match_number + 1) // 2, 1 if match_number % 2 == 1 else 2


def source_match_numbers(match_number: int) -> Tuple[int, int]:
    """Match numbers in the previous round feeding slot 1 and slot 2."""
    return 2 * match_number - 1, 2 * match_number


def round_display_name(round_number: int, rounds: int) -> str:
    if round_number == rounds:
        return "Final"
    if round_number == rounds - 1:
        return "Semifinals"
    if round_number == rounds - 2:
        return "Quarterfinals"
    return f"Round {round_number}"


def placeholder_for(source: MatchKey) -> str:
    return f"Winner R{source[0]}-M{source[1]}"


def build_round(capacity: int, round_number: int) -> List[MatchNode]:
    """
    Build the empty matches of a single round.

    Back edges point at the previous round (if any) and carry winner
    placeholders; forward edges point into the next round (if any).
    """
    rounds = total_rounds(capacity)
    count = matches_in_round(capacity, round_number)

    nodes: List[MatchNode] = []
    for n in range(1, count + 1):
        node = MatchNode(round_number=round_number, match_number=n)
        if round_number < rounds:
            target, position = feed_target(n)
            node.feeds_to = (round_number + 1, target)
            node.feeds_to_position = position
        if round_number > 1:
            s1, s2 = source_match_numbers(n)
            node.previous_1 = (round_number - 1, s1)
            node.previous_2 = (round_number - 1, s2)
            node.placeholder_slot1 = placeholder_for(node.previous_1)
            node.placeholder_slot2 = placeholder_for(node.previous_2)
        nodes.append(node)
    return nodes


def build_bracket_structure(capacity: int, up_to_round: Optional[int] = None) -> Dict[MatchKey, MatchNode]:
    """
    Build every round's empty matches, wired forward and backward.

    up_to_round limits materialization (incremental brackets build round 1
    only); forward edges into rounds that are not built yet are left unset.

    Raises:
        StructureError: capacity is not a power of two >= 2
    """
    rounds = total_rounds(capacity)
    last = rounds if up_to_round is None else min(up_to_round, rounds)

    arena: Dict[MatchKey, MatchNode] = {}
    for r in range(1, last + 1):
        for node in build_round(capacity, r):
            arena[node.key] = node

    for node in arena.values():
        if node.feeds_to is not None and node.feeds_to not in arena:
            node.feeds_to = None
            node.feeds_to_position = None

    _check_topology(capacity, arena, last)
    return arena


def _check_topology(capacity: int, arena: Dict[MatchKey, MatchNode], last_round: int) -> None:
    expected = sum(capacity // (2 ** r) for r in range(1, last_round + 1))
    if len(arena) != expected:
        raise StructureError(
            f"expected {expected} matches, built {len(arena)}",
            {"capacity": capacity, "expected": expected, "actual": len(arena)},
        )
    for node in arena.values():
        if node.feeds_to is None:
            continue
        target = arena[node.feeds_to]
        back = target.previous_1 if node.feeds_to_position == 1 else target.previous_2
        if back != node.key:
            raise StructureError(
                f"back edge of R{target.round_number}-M{target.match_number} does not match forward edge",
                {"source": node.key, "target": target.key, "actual": back},
            )
