"""
Bracket lifecycle against the database.

create -> (vote -> tally_and_advance_round)* -> rank. Pure bracket logic is
delegated to bracket_generator / bracket_advancer / vote_tally /
bracket_ranking; this module only loads, validates and persists.

Guarantees:
    - A session gets at most one bracket (unique session_id).
    - A round is tallied and advanced in one transaction: either every
      matchup in the round is decided and advanced, or nothing is.
    - Deciding a matchup is a conditional UPDATE (winner_id IS NULL), so
      two concurrent advance requests never decide the same matchup twice.
"""
import logging
import random
from typing import Dict, List, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from tiervote.models.bracket import Bracket
from tiervote.models.bracket_matchup import BracketMatchup
from tiervote.models.bracket_vote import BracketVote
from tiervote.models.participant import Participant
from tiervote.models.session_item import SessionItem
from tiervote.models.voting_session import VotingSession
from tiervote.services.bracket_advancer import advance_winner, resolve_byes
from tiervote.services.bracket_generator import generate_bracket
from tiervote.services.bracket_ranking import distribute_into_tiers, rank_bracket
from tiervote.services.tier_config import load_tier_config
from tiervote.services.vote_tally import decide_winner

logger = logging.getLogger(__name__)


class BracketConflictError(ValueError):
    """Request conflicts with the bracket's current state (exists / complete)."""


def get_bracket(session: Session, voting_session_id: int) -> Optional[Bracket]:
    return session.exec(select(Bracket).where(Bracket.session_id == voting_session_id)).first()


def get_matchups(session: Session, bracket_id: int) -> List[BracketMatchup]:
    return list(
        session.exec(
            select(BracketMatchup)
            .where(BracketMatchup.bracket_id == bracket_id)
            .order_by(BracketMatchup.round, BracketMatchup.position)
        ).all()
    )


def get_session_item_ids(session: Session, voting_session_id: int) -> List[int]:
    items = session.exec(
        select(SessionItem)
        .where(SessionItem.session_id == voting_session_id)
        .order_by(SessionItem.sort_order, SessionItem.id)
    ).all()
    return [item.id for item in items]


def create_bracket(
    session: Session, voting_session_id: int, rng: Optional[random.Random] = None
) -> Bracket:
    """Generate and persist the bracket for a session, resolving byes up front."""
    if get_bracket(session, voting_session_id) is not None:
        raise BracketConflictError("Bracket already exists")

    item_ids = get_session_item_ids(session, voting_session_id)
    if len(item_ids) < 2:
        raise ValueError("Need at least 2 items for a bracket")

    skeleton = generate_bracket(item_ids, rng)
    resolved = resolve_byes(skeleton.matchups, skeleton.rounds)

    bracket = Bracket(session_id=voting_session_id, rounds=skeleton.rounds)
    session.add(bracket)
    try:
        session.flush()
        for slot in skeleton.matchups:
            session.add(
                BracketMatchup(
                    bracket_id=bracket.id,
                    round=slot.round,
                    position=slot.position,
                    item_a_id=slot.item_a_id,
                    item_b_id=slot.item_b_id,
                    winner_id=slot.winner_id,
                )
            )
        session.commit()
    except IntegrityError:
        # Lost a race with a concurrent create for the same session
        session.rollback()
        raise BracketConflictError("Bracket already exists")
    session.refresh(bracket)

    logger.info(
        "Created bracket %d for session %d: %d items, %d rounds, %d matchups, %d bye updates",
        bracket.id, voting_session_id, len(item_ids), skeleton.rounds, len(skeleton.matchups), resolved,
    )
    return bracket


def _upsert_vote(session: Session, matchup_id: int, participant_id: int, chosen_item_id: int) -> BracketVote:
    vote = session.exec(
        select(BracketVote).where(
            BracketVote.matchup_id == matchup_id,
            BracketVote.participant_id == participant_id,
        )
    ).first()
    if vote is None:
        vote = BracketVote(matchup_id=matchup_id, participant_id=participant_id, chosen_item_id=chosen_item_id)
    else:
        vote.chosen_item_id = chosen_item_id
    session.add(vote)
    session.commit()
    session.refresh(vote)
    return vote


def record_bracket_vote(
    session: Session,
    voting_session_id: int,
    matchup_id: int,
    participant_id: int,
    chosen_item_id: int,
) -> BracketVote:
    """Insert or overwrite a participant's vote on one matchup."""
    participant = session.get(Participant, participant_id)
    if not participant or participant.session_id != voting_session_id:
        raise LookupError("Participant not found in this session")

    matchup = session.get(BracketMatchup, matchup_id)
    bracket = get_bracket(session, voting_session_id)
    if not matchup or not bracket or matchup.bracket_id != bracket.id:
        raise LookupError("Matchup not found")

    if matchup.item_a_id is None or matchup.item_b_id is None:
        raise ValueError("Matchup is not ready for voting")
    if chosen_item_id not in (matchup.item_a_id, matchup.item_b_id):
        raise ValueError("Chosen item is not in this matchup")
    if matchup.winner_id is not None:
        raise ValueError("Matchup is already decided")

    try:
        return _upsert_vote(session, matchup_id, participant_id, chosen_item_id)
    except IntegrityError:
        # Concurrent first vote from the same participant: the row exists now
        session.rollback()
        logger.warning("Retrying vote upsert for matchup %d participant %d", matchup_id, participant_id)
        return _upsert_vote(session, matchup_id, participant_id, chosen_item_id)


def find_current_round(matchups: List[BracketMatchup], total_rounds: int) -> int:
    """Earliest round holding an undecided matchup with both items; 0 when none."""
    for round_number in range(1, total_rounds + 1):
        for m in matchups:
            if (
                m.round == round_number
                and m.item_a_id is not None
                and m.item_b_id is not None
                and m.winner_id is None
            ):
                return round_number
    return 0


def tally_and_advance_round(
    session: Session, voting_session_id: int, rng: Optional[random.Random] = None
) -> Dict[str, int]:
    """Decide every ready matchup in the current round and advance the winners.

    Returns:
        Dict with:
        - round: the round that was tallied
        - matchups_decided: matchups this call decided
        - slots_advanced: next-round fields filled (including bye cascades)
    """
    bracket = get_bracket(session, voting_session_id)
    if bracket is None:
        raise LookupError("No bracket found")

    matchups = get_matchups(session, bracket.id)
    current_round = find_current_round(matchups, bracket.rounds)
    if current_round == 0:
        raise BracketConflictError("Bracket is already complete")

    votes_by_matchup: Dict[int, List[BracketVote]] = {}
    matchup_ids = [m.id for m in matchups if m.round == current_round]
    for vote in session.exec(
        select(BracketVote).where(BracketVote.matchup_id.in_(matchup_ids)).order_by(BracketVote.id)
    ).all():
        votes_by_matchup.setdefault(vote.matchup_id, []).append(vote)

    decided = 0
    advanced = 0
    try:
        for matchup in matchups:
            if matchup.round != current_round:
                continue
            if matchup.winner_id is not None or matchup.item_a_id is None or matchup.item_b_id is None:
                continue

            winner_id = decide_winner(matchup, votes_by_matchup.get(matchup.id, []), rng)
            result = session.execute(
                update(BracketMatchup)
                .where(BracketMatchup.id == matchup.id, BracketMatchup.winner_id.is_(None))
                .values(winner_id=winner_id)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                # Decided by a concurrent request
                session.refresh(matchup)
                continue

            matchup.winner_id = winner_id
            decided += 1
            advanced += advance_winner(matchups, matchup, bracket.rounds)

        for matchup in matchups:
            session.add(matchup)
        session.commit()
    except Exception:
        session.rollback()
        logger.exception("Failed to advance round %d of bracket %d", current_round, bracket.id)
        raise

    logger.info(
        "Bracket %d round %d: decided %d matchups, advanced %d slots",
        bracket.id, current_round, decided, advanced,
    )
    return {"round": current_round, "matchups_decided": decided, "slots_advanced": advanced}


def is_complete(matchups: List[BracketMatchup], total_rounds: int) -> bool:
    return any(m.round == total_rounds and m.winner_id is not None for m in matchups)


def rank_session_bracket(
    session: Session, voting_session_id: int
) -> Tuple[List[int], Dict[str, List[int]], bool]:
    """Rank the session's items from its bracket and seed them into its tiers.

    Returns (ranked item ids, tier key -> item ids, bracket complete).
    Works mid-tournament through the elimination-round fallback.
    """
    voting_session = session.get(VotingSession, voting_session_id)
    bracket = get_bracket(session, voting_session_id)
    if voting_session is None or bracket is None:
        raise LookupError("Bracket or session not found")

    matchups = get_matchups(session, bracket.id)
    all_item_ids = get_session_item_ids(session, voting_session_id)
    ranked = rank_bracket(matchups, bracket.rounds, all_item_ids)

    tiers = load_tier_config(voting_session.tier_config)
    seeded = distribute_into_tiers(ranked, [t.key for t in tiers])
    return ranked, seeded, is_complete(matchups, bracket.rounds)
