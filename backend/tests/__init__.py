# Force SQLModel table registration at test discovery time
# This ensures all models are registered before any test database creation
from cornhole_bracket.models.match import Match  # noqa: F401
from cornhole_bracket.models.player import Player  # noqa: F401
from cornhole_bracket.models.team import Team  # noqa: F401
from cornhole_bracket.models.tournament import Tournament  # noqa: F401
