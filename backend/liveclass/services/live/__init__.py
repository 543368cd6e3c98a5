"""Live room services: scoring, room state, progression and timers.

This package holds the room engine used by socket handlers and HTTP
routes, keeping transport concerns separated from scoring and task
progression.
"""

from .progression import Outcome, SessionController
from .rooms import COMPLETE, LOBBY, TASK_ACTIVE, Room, RoomStore
from .scoring import LIVE, RANKED, ScoringConfig, compute_scores, get_strategy, live_points
