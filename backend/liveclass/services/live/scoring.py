"""Point calculation for live rooms.

Two strategies coexist because two product surfaces use them:

- ``ranked``: end-of-round grading. Every correct team gets the base points
  and the fastest correct teams get a ranked speed bonus from a table.
- ``live``: the lightweight leaderboard ticker. Each submission is scored on
  its own: base points when correct, plus a flat bonus when it came in under
  a time threshold.

Both expose ``score_task(submissions, roster)`` so the controller can apply
either one the same way. Their totals differ on purpose; do not merge them.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence


DEFAULT_BASE_POINTS = 10
DEFAULT_SPEED_BONUSES = (5, 3, 2)
DEFAULT_FAST_THRESHOLD_MS = 5000
DEFAULT_FAST_BONUS = 5

RANKED = 'ranked'
LIVE = 'live'
SCORING_MODES = (RANKED, LIVE)


@dataclass
class ScoringConfig:
    base_points: int = DEFAULT_BASE_POINTS
    speed_bonuses: Sequence[int] = field(default_factory=lambda: list(DEFAULT_SPEED_BONUSES))
    fast_threshold_ms: int = DEFAULT_FAST_THRESHOLD_MS
    fast_bonus: int = DEFAULT_FAST_BONUS

    def with_base(self, base_points: Optional[int]) -> 'ScoringConfig':
        if base_points is None:
            return self
        return ScoringConfig(
            base_points=int(base_points),
            speed_bonuses=list(self.speed_bonuses),
            fast_threshold_ms=self.fast_threshold_ms,
            fast_bonus=self.fast_bonus,
        )


def _field(entry, name, default=None):
    # Submissions arrive either as Submission objects or as plain payload dicts
    if isinstance(entry, dict):
        return entry.get(name, default)
    return getattr(entry, name, default)


def _team_key(entry) -> Optional[str]:
    if entry is None:
        return None
    team_id = _field(entry, 'team_id')
    if team_id is None:
        team_id = _field(entry, 'teamId')
    if team_id is None or team_id == '':
        return None
    return str(team_id)


def _is_correct(entry) -> bool:
    value = _field(entry, 'is_correct')
    if value is None:
        value = _field(entry, 'isCorrect')
    if value is None:
        value = _field(entry, 'correct')
    return value is True


def _response_time(entry) -> float:
    value = _field(entry, 'response_time_ms')
    if value is None:
        value = _field(entry, 'responseTimeMs')
    try:
        return float(value) if value is not None else 0.0
    except (TypeError, ValueError):
        return 0.0


def compute_scores(submissions: Iterable, roster: Iterable = (), config: Optional[ScoringConfig] = None) -> Dict[str, int]:
    """Return the points to add per team for one task's submissions.

    Incorrect teams get 0, correct teams get ``base_points``, and the k-th
    fastest correct submission (stable on ties, so earlier arrivals win)
    also gets ``speed_bonuses[k]``. Every roster team is present in the
    result, as is every team referenced by a submission. Entries without a
    team id are skipped. Inputs are never mutated.
    """
    cfg = config or ScoringConfig()
    entries = [s for s in (submissions or []) if _team_key(s) is not None]

    deltas: Dict[str, int] = {}
    for entry in entries:
        deltas[_team_key(entry)] = cfg.base_points if _is_correct(entry) else 0

    # sorted() is stable, ties keep arrival order
    ranked = sorted((e for e in entries if _is_correct(e)), key=_response_time)
    bonuses = list(cfg.speed_bonuses)
    for rank, entry in enumerate(ranked):
        if rank < len(bonuses):
            key = _team_key(entry)
            deltas[key] = deltas.get(key, 0) + int(bonuses[rank])

    for team_id in roster or ():
        if team_id is None:
            continue
        deltas.setdefault(str(team_id), 0)
    return deltas


def live_points(correct: bool, elapsed_ms: Optional[float], config: Optional[ScoringConfig] = None) -> int:
    """Score a single submission for the live ticker: base if correct, plus a fast bonus."""
    cfg = config or ScoringConfig()
    if not correct:
        return 0
    points = cfg.base_points
    if elapsed_ms is not None and elapsed_ms < cfg.fast_threshold_ms:
        points += cfg.fast_bonus
    return points


class RankedStrategy:
    name = RANKED

    def __init__(self, config: Optional[ScoringConfig] = None):
        self.config = config or ScoringConfig()

    def score_task(self, submissions, roster, base_points=None) -> Dict[str, int]:
        return compute_scores(submissions, roster, self.config.with_base(base_points))


class LiveStrategy:
    name = LIVE

    def __init__(self, config: Optional[ScoringConfig] = None):
        self.config = config or ScoringConfig()

    def score_task(self, submissions, roster, base_points=None) -> Dict[str, int]:
        cfg = self.config.with_base(base_points)
        deltas: Dict[str, int] = {}
        for entry in submissions or []:
            key = _team_key(entry)
            if key is None:
                continue
            base = _field(entry, 'base_points')
            elapsed = _field(entry, 'response_time_ms')
            if elapsed is None:
                elapsed = _field(entry, 'responseTimeMs')
            points = live_points(_is_correct(entry), elapsed, cfg.with_base(base))
            deltas[key] = deltas.get(key, 0) + points
        for team_id in roster or ():
            if team_id is not None:
                deltas.setdefault(str(team_id), 0)
        return deltas


def get_strategy(mode: Optional[str], config: Optional[ScoringConfig] = None):
    """Strategy for a room's scoring mode; unknown modes fall back to ranked."""
    if mode == LIVE:
        return LiveStrategy(config)
    return RankedStrategy(config)


def scoring_config_from(settings) -> ScoringConfig:
    """Build a ScoringConfig from a Flask config mapping."""
    speed: List[int] = list(settings.get('SPEED_BONUSES') or DEFAULT_SPEED_BONUSES)
    return ScoringConfig(
        base_points=int(settings.get('BASE_POINTS', DEFAULT_BASE_POINTS)),
        speed_bonuses=speed,
        fast_threshold_ms=int(settings.get('LIVE_FAST_THRESHOLD_MS', DEFAULT_FAST_THRESHOLD_MS)),
        fast_bonus=int(settings.get('LIVE_FAST_BONUS', DEFAULT_FAST_BONUS)),
    )
