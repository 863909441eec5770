from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import BaseModel, field_validator
from sqlalchemy import delete
from sqlmodel import Session, func, select

from tiervote.database import get_session
from tiervote.models.bracket import Bracket
from tiervote.models.bracket_matchup import BracketMatchup
from tiervote.models.bracket_vote import BracketVote
from tiervote.models.participant import Participant
from tiervote.models.session_item import SessionItem
from tiervote.models.tier_vote import TierVote
from tiervote.models.voting_session import SESSION_OPEN, SESSION_STATUSES, VotingSession
from tiervote.services.join_codes import generate_join_code, normalize_join_code
from tiervote.services.tier_config import (
    DEFAULT_TIER_CONFIG,
    TierConfig,
    derive_tier_keys,
    dump_tier_config,
    load_tier_config,
)
from tiervote.utils.session_guards import get_voting_session_or_404

router = APIRouter()

JOIN_CODE_ATTEMPTS = 5


class SessionItemCreate(BaseModel):
    label: str
    image_url: str = ""

    @field_validator("label")
    @classmethod
    def validate_label(cls, v):
        if not v or not v.strip():
            raise ValueError("label is required")
        return v.strip()


class TierConfigInput(BaseModel):
    label: str
    color: str = ""
    key: Optional[str] = None


class SessionCreate(BaseModel):
    name: str
    items: List[SessionItemCreate]
    tier_config: Optional[List[TierConfigInput]] = None
    bracket_enabled: bool = False
    nickname: Optional[str] = None  # creator auto-joins when given

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()

    @field_validator("tier_config")
    @classmethod
    def validate_tier_config(cls, v):
        if v is not None and len(v) == 0:
            raise ValueError("tier_config must contain at least one tier")
        return v


class SessionUpdate(BaseModel):
    name: Optional[str] = None
    status: Optional[str] = None
    is_locked: Optional[bool] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        if v is not None and v not in SESSION_STATUSES:
            raise ValueError(f"status must be one of {', '.join(SESSION_STATUSES)}")
        return v


class SessionItemResponse(BaseModel):
    id: int
    label: str
    image_url: str
    sort_order: int

    class Config:
        from_attributes = True


class SessionResponse(BaseModel):
    id: int
    name: str
    join_code: str
    status: str
    is_locked: bool
    bracket_enabled: bool
    tier_config: List[TierConfig]
    items: List[SessionItemResponse]
    participant_count: int
    created_at: datetime
    updated_at: datetime


class SessionCreateResponse(SessionResponse):
    participant_id: Optional[int] = None
    participant_nickname: Optional[str] = None


class JoinRequest(BaseModel):
    join_code: str
    nickname: str

    @field_validator("nickname")
    @classmethod
    def validate_nickname(cls, v):
        if not v or not v.strip():
            raise ValueError("nickname is required")
        return v.strip()


class JoinResponse(BaseModel):
    session_id: int
    participant_id: int
    nickname: str
    bracket_enabled: bool


def _session_response(session: Session, voting_session: VotingSession) -> dict:
    items = session.exec(
        select(SessionItem)
        .where(SessionItem.session_id == voting_session.id)
        .order_by(SessionItem.sort_order, SessionItem.id)
    ).all()
    participant_count = session.exec(
        select(func.count(Participant.id)).where(Participant.session_id == voting_session.id)
    ).one()
    return dict(
        id=voting_session.id,
        name=voting_session.name,
        join_code=voting_session.join_code,
        status=voting_session.status,
        is_locked=voting_session.is_locked,
        bracket_enabled=voting_session.bracket_enabled,
        tier_config=load_tier_config(voting_session.tier_config),
        items=[SessionItemResponse.model_validate(i) for i in items],
        participant_count=participant_count,
        created_at=voting_session.created_at,
        updated_at=voting_session.updated_at,
    )


def _unique_join_code(session: Session) -> str:
    for _ in range(JOIN_CODE_ATTEMPTS):
        code = generate_join_code()
        taken = session.exec(select(VotingSession).where(VotingSession.join_code == code)).first()
        if not taken:
            return code
    raise HTTPException(status_code=503, detail="Could not allocate a unique join code")


@router.get("/sessions", response_model=List[SessionResponse])
def list_sessions(status: Optional[str] = Query(default=None), session: Session = Depends(get_session)):
    """List voting sessions, newest first, optionally filtered by status"""
    if status is not None and status not in SESSION_STATUSES:
        raise HTTPException(
            status_code=400, detail=f"Invalid status filter. Must be {', '.join(SESSION_STATUSES)}"
        )
    query = select(VotingSession).order_by(VotingSession.created_at.desc(), VotingSession.id.desc())
    if status is not None:
        query = query.where(VotingSession.status == status)
    return [_session_response(session, s) for s in session.exec(query).all()]


@router.post("/sessions", response_model=SessionCreateResponse, status_code=201)
def create_session(payload: SessionCreate, session: Session = Depends(get_session)):
    """Create a voting session with its items; optionally join the creator as a participant"""
    if not payload.items:
        raise HTTPException(status_code=400, detail="Session needs at least one item")

    if payload.tier_config is None:
        tiers = list(DEFAULT_TIER_CONFIG)
    else:
        tiers = derive_tier_keys(
            [TierConfig(key=t.key or "", label=t.label, color=t.color, sort_order=i) for i, t in enumerate(payload.tier_config)]
        )

    voting_session = VotingSession(
        name=payload.name,
        join_code=_unique_join_code(session),
        bracket_enabled=payload.bracket_enabled,
        tier_config=dump_tier_config(tiers),
    )
    session.add(voting_session)
    session.flush()

    for i, item in enumerate(payload.items):
        session.add(
            SessionItem(session_id=voting_session.id, label=item.label, image_url=item.image_url, sort_order=i)
        )

    participant = None
    if payload.nickname and payload.nickname.strip():
        participant = Participant(session_id=voting_session.id, nickname=payload.nickname.strip())
        session.add(participant)

    session.commit()
    session.refresh(voting_session)
    if participant is not None:
        session.refresh(participant)

    return SessionCreateResponse(
        **_session_response(session, voting_session),
        participant_id=participant.id if participant else None,
        participant_nickname=participant.nickname if participant else None,
    )


@router.post("/sessions/join", response_model=JoinResponse)
def join_session(payload: JoinRequest, session: Session = Depends(get_session)):
    """Join by code. An existing nickname rejoins as the same participant."""
    code = normalize_join_code(payload.join_code)
    voting_session = session.exec(select(VotingSession).where(VotingSession.join_code == code)).first()
    if not voting_session:
        raise HTTPException(status_code=404, detail="Session not found")
    if voting_session.status != SESSION_OPEN:
        raise HTTPException(status_code=400, detail="Session is no longer accepting votes")

    participant = session.exec(
        select(Participant).where(
            Participant.session_id == voting_session.id,
            Participant.nickname == payload.nickname,
        )
    ).first()
    if participant is None:
        if voting_session.is_locked:
            raise HTTPException(status_code=400, detail="Session is locked. New participants cannot join.")
        participant = Participant(session_id=voting_session.id, nickname=payload.nickname)
        try:
            session.add(participant)
            session.commit()
            session.refresh(participant)
        except Exception as e:
            session.rollback()
            if "UNIQUE constraint failed" in str(e) or "IntegrityError" in str(type(e).__name__):
                raise HTTPException(status_code=409, detail="Nickname is already taken in this session")
            raise

    return JoinResponse(
        session_id=voting_session.id,
        participant_id=participant.id,
        nickname=participant.nickname,
        bracket_enabled=voting_session.bracket_enabled,
    )


@router.get("/sessions/{session_id}", response_model=SessionResponse)
def get_voting_session(session_id: int, session: Session = Depends(get_session)):
    voting_session = get_voting_session_or_404(session, session_id)
    return _session_response(session, voting_session)


@router.patch("/sessions/{session_id}", response_model=SessionResponse)
def update_voting_session(session_id: int, payload: SessionUpdate, session: Session = Depends(get_session)):
    """Rename, change status (OPEN/CLOSED/ARCHIVED) or lock a session"""
    voting_session = get_voting_session_or_404(session, session_id)

    update_data = payload.model_dump(exclude_unset=True)
    if "name" in update_data and not (update_data["name"] or "").strip():
        raise HTTPException(status_code=400, detail="name cannot be empty")
    for field, value in update_data.items():
        if value is not None:
            setattr(voting_session, field, value.strip() if field == "name" else value)

    session.add(voting_session)
    session.commit()
    session.refresh(voting_session)
    return _session_response(session, voting_session)


@router.delete("/sessions/{session_id}", status_code=204)
def delete_voting_session(session_id: int, session: Session = Depends(get_session)):
    """Delete a session and everything hanging off it"""
    get_voting_session_or_404(session, session_id)

    bracket_ids = select(Bracket.id).where(Bracket.session_id == session_id)
    matchup_ids = select(BracketMatchup.id).where(BracketMatchup.bracket_id.in_(bracket_ids))
    participant_ids = select(Participant.id).where(Participant.session_id == session_id)

    # Order matters: children before parents
    session.execute(delete(BracketVote).where(BracketVote.matchup_id.in_(matchup_ids)))
    session.execute(delete(BracketMatchup).where(BracketMatchup.bracket_id.in_(bracket_ids)))
    session.execute(delete(Bracket).where(Bracket.session_id == session_id))
    session.execute(delete(TierVote).where(TierVote.participant_id.in_(participant_ids)))
    session.execute(delete(Participant).where(Participant.session_id == session_id))
    session.execute(delete(SessionItem).where(SessionItem.session_id == session_id))
    session.execute(delete(VotingSession).where(VotingSession.id == session_id))
    session.commit()
    return Response(status_code=204)
