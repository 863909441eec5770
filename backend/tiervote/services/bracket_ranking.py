"""
Bracket ranking: turn an elimination bracket into a total order of items.

Backtracking ("rank by who beat you"):
  1. Champion first, finalist second.
  2. Then everyone the champion beat, latest round first, then everyone the
     finalist beat, and so on breadth-first through the queue.
  3. Items never reached by the walk go last, in input order.

An item knocked out in round 1 by the eventual champion therefore ranks
ahead of one knocked out in round 1 by a weaker item, which plain
elimination-round ranking cannot tell apart.

If the final is undecided the bracket falls back to elimination-round
ranking, which only separates items by how far they have got.
"""

from __future__ import annotations

from collections import defaultdict, deque
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from tiervote.services.bracket_generator import ItemId


def _loser_of(matchup: Any) -> Optional[ItemId]:
    if matchup.winner_id is None:
        return None
    return matchup.item_b_id if matchup.winner_id == matchup.item_a_id else matchup.item_a_id


def _final_matchup(matchups: Sequence[Any], total_rounds: int) -> Optional[Any]:
    for m in matchups:
        if m.round == total_rounds:
            return m
    return None


def rank_bracket(matchups: Iterable[Any], total_rounds: int, all_item_ids: Sequence[ItemId]) -> List[ItemId]:
    """Rank every item in *all_item_ids*, most preferred first."""
    matchups = list(matchups)
    final = _final_matchup(matchups, total_rounds)
    if final is None or final.winner_id is None:
        return elimination_round_ranking(matchups, total_rounds, all_item_ids)

    defeated: Dict[ItemId, List[Tuple[ItemId, int]]] = defaultdict(list)
    for m in matchups:
        loser = _loser_of(m)
        if loser is not None:
            defeated[m.winner_id].append((loser, m.round))

    ranked: List[ItemId] = []
    seen = set()
    queue = deque([final.winner_id])
    finalist = _loser_of(final)
    if finalist is not None:
        queue.append(finalist)

    while queue:
        item_id = queue.popleft()
        if item_id in seen:
            continue
        seen.add(item_id)
        ranked.append(item_id)

        losses = [entry for entry in defeated.get(item_id, []) if entry[0] not in seen]
        losses.sort(key=lambda entry: entry[1], reverse=True)
        queue.extend(loser for loser, _ in losses)

    for item_id in all_item_ids:
        if item_id not in seen:
            seen.add(item_id)
            ranked.append(item_id)

    return ranked


def elimination_round_ranking(
    matchups: Iterable[Any], total_rounds: int, all_item_ids: Sequence[ItemId]
) -> List[ItemId]:
    """Coarse ranking by elimination round, usable mid-tournament.

    Score per item:
      - total_rounds + 1: champion, or still alive in the bracket
      - r: knocked out in round r
      - 0: never placed in any matchup
    Sorted by score descending; ties keep all_item_ids order.
    """
    matchups = list(matchups)
    eliminated_in: Dict[ItemId, int] = {}
    in_bracket = set()

    for m in matchups:
        for item_id in (m.item_a_id, m.item_b_id):
            if item_id is not None:
                in_bracket.add(item_id)
        loser = _loser_of(m)
        if loser is not None and loser not in eliminated_in:
            eliminated_in[loser] = m.round

    def score(item_id: ItemId) -> int:
        if item_id in eliminated_in:
            return eliminated_in[item_id]
        if item_id in in_bracket:
            return total_rounds + 1
        return 0

    return sorted(all_item_ids, key=score, reverse=True)


def distribute_into_tiers(ranked_ids: Sequence[ItemId], tier_keys: Sequence[str]) -> Dict[str, List[ItemId]]:
    """Split a ranking evenly across tiers, best tier first.

    Each tier gets len // tier_count items; the first len % tier_count tiers
    get one extra.
    """
    if not tier_keys:
        raise ValueError("At least one tier is required")

    base_size, remainder = divmod(len(ranked_ids), len(tier_keys))
    seeded: Dict[str, List[ItemId]] = {}
    cursor = 0
    for i, key in enumerate(tier_keys):
        size = base_size + (1 if i < remainder else 0)
        seeded[key] = list(ranked_ids[cursor:cursor + size])
        cursor += size
    return seeded
