from cornhole_bracket.models.match import Match
from cornhole_bracket.models.player import Player
from cornhole_bracket.models.team import Team
from cornhole_bracket.models.tournament import Tournament

__all__ = [
    "Tournament",
    "Team",
    "Player",
    "Match",
]
