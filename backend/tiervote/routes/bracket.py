"""
Bracket voting: generate once per session, vote on matchups, advance a round
at a time, rank (complete or mid-tournament) into tiers.
"""
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlmodel import Session, select

from tiervote.database import get_session
from tiervote.models.bracket import Bracket
from tiervote.models.bracket_vote import BracketVote
from tiervote.services.bracket_service import (
    BracketConflictError,
    create_bracket,
    find_current_round,
    get_bracket,
    get_matchups,
    rank_session_bracket,
    record_bracket_vote,
    tally_and_advance_round,
)
from tiervote.utils.session_guards import get_voting_session_or_404, require_open_session

router = APIRouter()


class MatchupVoteState(BaseModel):
    participant_id: int
    chosen_item_id: int


class MatchupState(BaseModel):
    id: int
    round: int
    position: int
    item_a_id: Optional[int] = None
    item_b_id: Optional[int] = None
    winner_id: Optional[int] = None
    votes: List[MatchupVoteState] = []


class BracketState(BaseModel):
    id: int
    session_id: int
    rounds: int
    current_round: int  # 0 when complete
    matchups: List[MatchupState]


class BracketVoteRequest(BaseModel):
    matchup_id: int
    participant_id: int
    chosen_item_id: int


class BracketVoteResponse(BaseModel):
    id: int
    matchup_id: int
    participant_id: int
    chosen_item_id: int

    class Config:
        from_attributes = True


class AdvanceResponse(BaseModel):
    round: int
    matchups_decided: int
    slots_advanced: int
    bracket: BracketState


class RankingsResponse(BaseModel):
    ranked_item_ids: List[int]
    seeded_tiers: Dict[str, List[int]]
    complete: bool


def _bracket_state(session: Session, bracket: Bracket) -> BracketState:
    matchups = get_matchups(session, bracket.id)
    votes_by_matchup: Dict[int, List[MatchupVoteState]] = {}
    if matchups:
        votes = session.exec(
            select(BracketVote)
            .where(BracketVote.matchup_id.in_([m.id for m in matchups]))
            .order_by(BracketVote.id)
        ).all()
        for v in votes:
            votes_by_matchup.setdefault(v.matchup_id, []).append(
                MatchupVoteState(participant_id=v.participant_id, chosen_item_id=v.chosen_item_id)
            )

    return BracketState(
        id=bracket.id,
        session_id=bracket.session_id,
        rounds=bracket.rounds,
        current_round=find_current_round(matchups, bracket.rounds),
        matchups=[
            MatchupState(
                id=m.id,
                round=m.round,
                position=m.position,
                item_a_id=m.item_a_id,
                item_b_id=m.item_b_id,
                winner_id=m.winner_id,
                votes=votes_by_matchup.get(m.id, []),
            )
            for m in matchups
        ],
    )


@router.post("/sessions/{session_id}/bracket", response_model=BracketState, status_code=201)
def create_session_bracket(session_id: int, session: Session = Depends(get_session)) -> BracketState:
    """Generate the session's bracket. Byes are decided and advanced immediately."""
    get_voting_session_or_404(session, session_id)
    try:
        bracket = create_bracket(session, session_id)
    except BracketConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _bracket_state(session, bracket)


@router.get("/sessions/{session_id}/bracket", response_model=BracketState)
def get_session_bracket(session_id: int, session: Session = Depends(get_session)) -> BracketState:
    """Bracket with matchups ordered by round, position"""
    get_voting_session_or_404(session, session_id)
    bracket = get_bracket(session, session_id)
    if not bracket:
        raise HTTPException(status_code=404, detail="No bracket found")
    return _bracket_state(session, bracket)


@router.post("/sessions/{session_id}/bracket/vote", response_model=BracketVoteResponse)
def vote_on_matchup(
    session_id: int, payload: BracketVoteRequest, session: Session = Depends(get_session)
) -> BracketVoteResponse:
    """Cast or change a participant's vote on one matchup"""
    require_open_session(session, session_id)
    try:
        vote = record_bracket_vote(
            session, session_id, payload.matchup_id, payload.participant_id, payload.chosen_item_id
        )
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return BracketVoteResponse.model_validate(vote)


@router.post("/sessions/{session_id}/bracket/advance", response_model=AdvanceResponse)
def advance_bracket_round(session_id: int, session: Session = Depends(get_session)) -> AdvanceResponse:
    """Tally the current round and advance its winners. 409 once the bracket is complete."""
    require_open_session(session, session_id)
    try:
        result = tally_and_advance_round(session, session_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except BracketConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))

    bracket = get_bracket(session, session_id)
    return AdvanceResponse(**result, bracket=_bracket_state(session, bracket))


@router.get("/sessions/{session_id}/bracket/rankings", response_model=RankingsResponse)
def get_bracket_rankings(session_id: int, session: Session = Depends(get_session)) -> RankingsResponse:
    """Backtracking ranking of all items, split evenly across the session's tiers"""
    try:
        ranked, seeded, complete = rank_session_bracket(session, session_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return RankingsResponse(ranked_item_ids=ranked, seeded_tiers=seeded, complete=complete)
