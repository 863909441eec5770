"""
Tier-list votes: each participant places every session item into a tier,
ordered within the tier. Consensus aggregates all placements.
"""
from dataclasses import asdict
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlmodel import Session, select

from tiervote.database import get_session
from tiervote.models.participant import Participant
from tiervote.models.session_item import SessionItem
from tiervote.models.tier_vote import TierVote
from tiervote.services.consensus import compute_consensus
from tiervote.services.tier_config import load_tier_config
from tiervote.utils.session_guards import get_voting_session_or_404, require_open_session, require_participant

router = APIRouter()


class TierPlacement(BaseModel):
    session_item_id: int
    tier_key: str
    rank_in_tier: int

    @field_validator("rank_in_tier")
    @classmethod
    def validate_rank(cls, v):
        if v < 0:
            raise ValueError("rank_in_tier must be >= 0")
        return v


class SubmitVotesRequest(BaseModel):
    participant_id: int
    votes: List[TierPlacement]


class TierVoteResponse(BaseModel):
    participant_id: int
    nickname: str
    session_item_id: int
    tier_key: str
    rank_in_tier: int


class ConsensusItemResponse(BaseModel):
    id: int
    label: str
    image_url: str
    average_score: float
    vote_distribution: Dict[str, int]
    total_votes: int


class ConsensusTierResponse(BaseModel):
    key: str
    label: str
    color: str
    sort_order: int
    items: List[ConsensusItemResponse]


class PlacedItem(BaseModel):
    id: int
    label: str
    image_url: str


class ParticipantVote(BaseModel):
    session_item_id: int
    tier_key: str
    rank_in_tier: int
    item: PlacedItem


class ParticipantRef(BaseModel):
    id: int
    nickname: str


class ParticipantVotesResponse(BaseModel):
    participant: ParticipantRef
    votes: List[ParticipantVote]


def _session_votes(session: Session, session_id: int, participant_id: Optional[int] = None) -> List[tuple]:
    query = (
        select(TierVote, Participant)
        .join(Participant, Participant.id == TierVote.participant_id)
        .where(Participant.session_id == session_id)
    )
    if participant_id is not None:
        query = query.where(TierVote.participant_id == participant_id).order_by(
            TierVote.rank_in_tier, TierVote.tier_key
        )
    else:
        query = query.order_by(TierVote.participant_id, TierVote.tier_key, TierVote.rank_in_tier)
    return session.exec(query).all()


@router.get("/sessions/{session_id}/votes", response_model=List[TierVoteResponse])
def list_tier_votes(session_id: int, session: Session = Depends(get_session)):
    get_voting_session_or_404(session, session_id)
    return [
        TierVoteResponse(
            participant_id=vote.participant_id,
            nickname=participant.nickname,
            session_item_id=vote.session_item_id,
            tier_key=vote.tier_key,
            rank_in_tier=vote.rank_in_tier,
        )
        for vote, participant in _session_votes(session, session_id)
    ]


@router.post("/sessions/{session_id}/votes", response_model=Dict[str, int])
def submit_tier_votes(session_id: int, payload: SubmitVotesRequest, session: Session = Depends(get_session)):
    """Submit a participant's full tier list. Every session item must be placed exactly once."""
    voting_session = require_open_session(session, session_id)
    require_participant(session, payload.participant_id, session_id)

    if not payload.votes:
        raise HTTPException(status_code=400, detail="At least one vote is required")

    item_ids = [v.session_item_id for v in payload.votes]
    if len(set(item_ids)) != len(item_ids):
        raise HTTPException(status_code=400, detail="Duplicate votes for the same item are not allowed")

    session_item_ids = set(
        session.exec(select(SessionItem.id).where(SessionItem.session_id == session_id)).all()
    )
    if not set(item_ids) <= session_item_ids:
        raise HTTPException(status_code=400, detail="One or more votes reference items outside this session")
    if len(item_ids) != len(session_item_ids):
        raise HTTPException(status_code=400, detail="All session items must be ranked before submitting")

    tier_keys = {t.key for t in load_tier_config(voting_session.tier_config)}
    unknown = sorted({v.tier_key for v in payload.votes} - tier_keys)
    if unknown:
        raise HTTPException(status_code=400, detail=f"Unknown tier keys: {', '.join(unknown)}")

    existing = {
        v.session_item_id: v
        for v in session.exec(select(TierVote).where(TierVote.participant_id == payload.participant_id)).all()
    }
    for placement in payload.votes:
        vote = existing.get(placement.session_item_id)
        if vote is None:
            vote = TierVote(
                participant_id=payload.participant_id,
                session_item_id=placement.session_item_id,
                tier_key=placement.tier_key,
                rank_in_tier=placement.rank_in_tier,
            )
        else:
            vote.tier_key = placement.tier_key
            vote.rank_in_tier = placement.rank_in_tier
        session.add(vote)
    session.commit()

    return {"count": len(payload.votes)}


@router.get("/sessions/{session_id}/votes/consensus", response_model=List[ConsensusTierResponse])
def get_consensus(session_id: int, session: Session = Depends(get_session)):
    """Aggregate all participants' tier lists into one consensus tier list"""
    voting_session = get_voting_session_or_404(session, session_id)
    items = session.exec(
        select(SessionItem).where(SessionItem.session_id == session_id).order_by(SessionItem.sort_order)
    ).all()
    votes = [vote for vote, _ in _session_votes(session, session_id)]
    tiers = compute_consensus(votes, load_tier_config(voting_session.tier_config), items)
    return [ConsensusTierResponse(**asdict(t)) for t in tiers]


@router.get("/sessions/{session_id}/votes/{participant_id}", response_model=ParticipantVotesResponse)
def get_participant_votes(session_id: int, participant_id: int, session: Session = Depends(get_session)):
    """One participant's submitted tier list, ordered by rank within tier. 404 until they submit."""
    get_voting_session_or_404(session, session_id)
    participant = require_participant(session, participant_id, session_id)

    rows = _session_votes(session, session_id, participant_id)
    if not rows:
        raise HTTPException(status_code=404, detail="This participant has not submitted votes yet")

    items = {
        item.id: item
        for item in session.exec(select(SessionItem).where(SessionItem.session_id == session_id)).all()
    }
    return ParticipantVotesResponse(
        participant=ParticipantRef(id=participant.id, nickname=participant.nickname),
        votes=[
            ParticipantVote(
                session_item_id=vote.session_item_id,
                tier_key=vote.tier_key,
                rank_in_tier=vote.rank_in_tier,
                item=PlacedItem(
                    id=vote.session_item_id,
                    label=items[vote.session_item_id].label,
                    image_url=items[vote.session_item_id].image_url,
                ),
            )
            for vote, _ in rows
        ],
    )
