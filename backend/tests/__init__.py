# Force SQLModel table registration at test discovery time
# This ensures all models are registered before any test database creation
from matchplay.models.entrant import Entrant  # noqa: F401
from matchplay.models.match import Match  # noqa: F401
from matchplay.models.player import Player  # noqa: F401
from matchplay.models.registration import Registration  # noqa: F401
from matchplay.models.tournament import Tournament  # noqa: F401
