"""
Voting session guards for route handlers.

- Session existence (404)
- Open-only mutations (votes, bracket advancement)
- Participant ownership
"""

from fastapi import HTTPException
from sqlmodel import Session

from tiervote.models.participant import Participant
from tiervote.models.voting_session import SESSION_OPEN, VotingSession


def get_voting_session_or_404(session: Session, session_id: int) -> VotingSession:
    voting_session = session.get(VotingSession, session_id)
    if not voting_session:
        raise HTTPException(status_code=404, detail="Session not found")
    return voting_session


def require_open_session(session: Session, session_id: int) -> VotingSession:
    """
    Require that a voting session is OPEN, otherwise raise 400.

    Raises:
        HTTPException 404: Session not found
        HTTPException 400: Session is CLOSED or ARCHIVED
    """
    voting_session = get_voting_session_or_404(session, session_id)
    if voting_session.status != SESSION_OPEN:
        raise HTTPException(
            status_code=400,
            detail=f"SESSION_NOT_OPEN: Session status is '{voting_session.status}'. Only open sessions accept votes.",
        )
    return voting_session


def require_participant(session: Session, participant_id: int, session_id: int) -> Participant:
    participant = session.get(Participant, participant_id)
    if not participant or participant.session_id != session_id:
        raise HTTPException(status_code=404, detail="Participant not found in this session")
    return participant
