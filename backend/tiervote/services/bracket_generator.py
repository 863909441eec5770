"""
Single-elimination bracket generation.

Items are shuffled (no skill seeding), padded to the next power of two and
laid out pairwise into round 1. Later rounds start empty and are filled as
winners advance. Byes land wherever the shuffle leaves a missing item, so
the highest round-1 positions carry them.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Hashable, List, Optional, Sequence

ItemId = Hashable


@dataclass
class MatchupSlot:
    """One bracket cell, before or after persistence."""
    round: int
    position: int
    item_a_id: Optional[ItemId] = None
    item_b_id: Optional[ItemId] = None
    winner_id: Optional[ItemId] = None


@dataclass
class BracketSkeleton:
    rounds: int
    matchups: List[MatchupSlot] = field(default_factory=list)


def next_power_of_two(n: int) -> int:
    p = 1
    while p < n:
        p *= 2
    return p


def shuffle_items(item_ids: Sequence[ItemId], rng: Optional[random.Random] = None) -> List[ItemId]:
    """Uniformly shuffled copy of *item_ids*."""
    rng = rng or random
    result = list(item_ids)
    rng.shuffle(result)
    return result


def matchups_in_round(bracket_size: int, round_number: int) -> int:
    return bracket_size // (2 ** round_number)


def generate_bracket(item_ids: Sequence[ItemId], rng: Optional[random.Random] = None) -> BracketSkeleton:
    """Build the full bracket skeleton for *item_ids*.

    Round 1 holds bracket_size / 2 matchups with shuffled[2i] vs shuffled[2i + 1]
    (None where the shuffled list runs out). Rounds 2..rounds are empty.
    Bye winners are NOT set here; see bracket_advancer.resolve_byes.
    """
    if len(item_ids) < 2:
        raise ValueError(f"Need at least 2 items for a bracket, got {len(item_ids)}")
    if len(set(item_ids)) != len(item_ids):
        raise ValueError("Bracket items must be distinct")

    shuffled = shuffle_items(item_ids, rng)
    bracket_size = next_power_of_two(len(shuffled))
    rounds = bracket_size.bit_length() - 1

    matchups: List[MatchupSlot] = []
    for i in range(matchups_in_round(bracket_size, 1)):
        item_a = shuffled[2 * i] if 2 * i < len(shuffled) else None
        item_b = shuffled[2 * i + 1] if 2 * i + 1 < len(shuffled) else None
        matchups.append(MatchupSlot(round=1, position=i, item_a_id=item_a, item_b_id=item_b))

    for round_number in range(2, rounds + 1):
        for i in range(matchups_in_round(bracket_size, round_number)):
            matchups.append(MatchupSlot(round=round_number, position=i))

    return BracketSkeleton(rounds=rounds, matchups=matchups)
