"""
Bracket advancement: a decided matchup feeds its winner into the next round.

Position p in round r feeds round r + 1, position p // 2: slot A when p is
even, slot B when odd. When the destination ends up facing a structural bye
(the other feeder subtree holds no item at all) it is decided on the spot and
advancement continues upward, so chains of byes resolve without any vote.

Works on anything exposing round/position/item_a_id/item_b_id/winner_id,
i.e. MatchupSlot and the BracketMatchup table model.
"""

import logging
from typing import Any, Dict, Iterable, Optional, Tuple

from tiervote.services.bracket_generator import ItemId

logger = logging.getLogger(__name__)


class BracketIntegrityError(RuntimeError):
    """The bracket structure does not match what generation produced."""


def _index(matchups: Iterable[Any]) -> Dict[Tuple[int, int], Any]:
    return {(m.round, m.position): m for m in matchups}


def _is_empty_subtree(index: Dict[Tuple[int, int], Any], round_number: int, position: int) -> bool:
    """True when no item can ever reach matchup (round_number, position)."""
    matchup = index.get((round_number, position))
    if matchup is None:
        return True
    if matchup.item_a_id is not None or matchup.item_b_id is not None:
        return False
    if round_number == 1:
        return True
    return _is_empty_subtree(index, round_number - 1, 2 * position) and _is_empty_subtree(
        index, round_number - 1, 2 * position + 1
    )


def _sole_item(matchup: Any) -> Optional[ItemId]:
    if matchup.item_a_id is not None and matchup.item_b_id is None:
        return matchup.item_a_id
    if matchup.item_b_id is not None and matchup.item_a_id is None:
        return matchup.item_b_id
    return None


def _is_structural_bye(index: Dict[Tuple[int, int], Any], matchup: Any) -> bool:
    if _sole_item(matchup) is None:
        return False
    if matchup.round == 1:
        return True
    # The missing side must come from a feeder that will never produce a winner
    empty_feeder = 2 * matchup.position + (1 if matchup.item_b_id is None else 0)
    return _is_empty_subtree(index, matchup.round - 1, empty_feeder)


def advance_winner(matchups: Iterable[Any], source: Any, total_rounds: int) -> int:
    """Place source.winner_id in its next-round slot, cascading through byes.

    Returns the number of matchup fields changed (slots filled plus bye
    winners set). Re-running on an already advanced matchup returns 0.
    Raises BracketIntegrityError when the destination is missing or already
    holds a different item, or when the winner is not one of source's items.
    """
    index = _index(matchups)
    changed = 0
    current = source

    # Bounded by total_rounds - current.round: each step moves one round up
    while current.round < total_rounds:
        winner_id = current.winner_id
        if winner_id is None:
            break
        if winner_id not in (current.item_a_id, current.item_b_id):
            logger.error(
                "Winner %s is not in matchup r%d p%d", winner_id, current.round, current.position
            )
            raise BracketIntegrityError(
                f"Winner {winner_id} is not an item of matchup round {current.round} position {current.position}"
            )

        next_round = current.round + 1
        next_position = current.position // 2
        dest = index.get((next_round, next_position))
        if dest is None:
            logger.error("No matchup at r%d p%d to advance into", next_round, next_position)
            raise BracketIntegrityError(f"No matchup at round {next_round} position {next_position}")

        slot = "item_a_id" if current.position % 2 == 0 else "item_b_id"
        occupant = getattr(dest, slot)
        if occupant is None:
            setattr(dest, slot, winner_id)
            changed += 1
        elif occupant != winner_id:
            logger.error(
                "Slot %s of r%d p%d holds %s, refusing to overwrite with %s",
                slot, next_round, next_position, occupant, winner_id,
            )
            raise BracketIntegrityError(
                f"Round {next_round} position {next_position} {slot} already holds {occupant}"
            )

        if dest.winner_id is None and _is_structural_bye(index, dest):
            dest.winner_id = _sole_item(dest)
            changed += 1
            logger.debug("Bye resolved at r%d p%d for %s", dest.round, dest.position, dest.winner_id)
        elif dest.winner_id is None:
            break
        current = dest

    return changed


def resolve_byes(matchups: Iterable[Any], total_rounds: int) -> int:
    """Decide every round-1 single-item matchup and advance its item.

    Returns the total number of fields changed across all cascades.
    """
    matchups = list(matchups)
    changed = 0
    for matchup in sorted((m for m in matchups if m.round == 1), key=lambda m: m.position):
        sole = _sole_item(matchup)
        if sole is None:
            continue
        if matchup.winner_id is None:
            matchup.winner_id = sole
            changed += 1
        changed += advance_winner(matchups, matchup, total_rounds)
    return changed
