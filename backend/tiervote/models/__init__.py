from tiervote.models.bracket import Bracket
from tiervote.models.bracket_matchup import BracketMatchup
from tiervote.models.bracket_vote import BracketVote
from tiervote.models.participant import Participant
from tiervote.models.session_item import SessionItem
from tiervote.models.tier_vote import TierVote
from tiervote.models.voting_session import VotingSession

__all__ = [
    "VotingSession",
    "SessionItem",
    "Participant",
    "Bracket",
    "BracketMatchup",
    "BracketVote",
    "TierVote",
]
