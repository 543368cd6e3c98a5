"""In-memory room state.

All live rooms of this process live in one RoomStore. There is no sharing
between processes: running several workers needs the store moved to a
shared backend with per-room atomic updates first.
"""

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .scoring import RANKED


LOBBY = 'lobby'
TASK_ACTIVE = 'task_active'
COMPLETE = 'complete'

DEFAULT_TASK_TYPE = 'short-answer'
DEFAULT_TASK_POINTS = 10

TEAM_COLORS = ['red', 'blue', 'green', 'yellow', 'purple', 'orange', 'teal', 'pink']


def now_ms() -> float:
    return time.time() * 1000.0


def normalize_code(code) -> str:
    return str(code or '').strip().upper()


def _clean_text(value) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass
class Team:
    team_id: str
    name: str
    color: str
    score: int = 0
    members: List[str] = field(default_factory=list)

    def to_dict(self):
        return {
            'teamId': self.team_id,
            'name': self.name,
            'color': self.color,
            'score': self.score,
            'members': list(self.members),
        }


@dataclass
class TaskDefinition:
    prompt: str = ''
    correct_answer: Optional[str] = None
    options: List[Any] = field(default_factory=list)
    task_type: Optional[str] = None
    points: Optional[int] = None
    title: Optional[str] = None

    @classmethod
    def from_payload(cls, data) -> Optional['TaskDefinition']:
        if not isinstance(data, dict):
            return None
        points = data.get('points')
        try:
            points = int(points) if points is not None else None
        except (TypeError, ValueError):
            points = None
        answer = data.get('correctAnswer', data.get('correct_answer'))
        return cls(
            prompt=str(data.get('prompt') or ''),
            correct_answer=None if answer is None else str(answer),
            options=list(data.get('options') or []),
            task_type=data.get('taskType') or data.get('type'),
            points=points,
            title=data.get('title'),
        )


@dataclass
class Submission:
    team_id: str
    team_name: str
    task_index: int
    correct: Optional[bool]
    response_time_ms: Optional[float]
    player_id: Optional[str] = None
    answer: Any = None
    base_points: Optional[int] = None
    points: int = 0
    submitted_at: float = 0.0

    @property
    def is_correct(self) -> bool:
        return self.correct is True

    @property
    def player_key(self) -> str:
        return self.player_id or f"{self.team_id}-anon"

    def to_dict(self):
        return {
            'teamId': self.team_id,
            'teamName': self.team_name,
            'playerId': self.player_id,
            'taskIndex': self.task_index,
            'answer': self.answer,
            'correct': self.correct,
            'responseTimeMs': self.response_time_ms,
            'points': self.points,
            'submittedAt': self.submitted_at,
        }


@dataclass
class CurrentTask:
    index: int
    prompt: str
    correct_answer: Optional[str]
    options: List[Any]
    task_type: str
    points: int
    started_at: float
    submissions: List[Submission] = field(default_factory=list)
    # points already credited to each team for this task
    awarded: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_definition(cls, index: int, definition: TaskDefinition, started_at: float) -> 'CurrentTask':
        return cls(
            index=index,
            prompt=(definition.prompt or '').strip(),
            correct_answer=_clean_text(definition.correct_answer),
            options=list(definition.options or []),
            task_type=definition.task_type or DEFAULT_TASK_TYPE,
            points=definition.points or DEFAULT_TASK_POINTS,
            started_at=started_at,
        )

    def submission_for(self, team_id: str) -> Optional[Submission]:
        for sub in self.submissions:
            if sub.team_id == team_id:
                return sub
        return None

    def to_dict(self):
        return {
            'index': self.index,
            'prompt': self.prompt,
            'options': list(self.options),
            'taskType': self.task_type,
            'points': self.points,
            'at': self.started_at,
            'submissionCount': len(self.submissions),
            'manualGrading': self.correct_answer is None,
        }


@dataclass
class Bonus:
    bonus_id: str
    points: int
    duration_ms: int
    expires_at: float

    def is_expired(self, at: float) -> bool:
        return at > self.expires_at

    def to_dict(self):
        return {'id': self.bonus_id, 'points': self.points, 'durationMs': self.duration_ms}


@dataclass
class Room:
    code: str
    created_at: float = field(default_factory=now_ms)
    scoring_mode: str = RANKED
    teams: Dict[str, Team] = field(default_factory=dict)
    task_plan: List[TaskDefinition] = field(default_factory=list)
    plan_name: Optional[str] = None
    current_task_index: int = -1
    current_task: Optional[CurrentTask] = None
    submissions: List[Submission] = field(default_factory=list)
    active_bonuses: Dict[str, Bonus] = field(default_factory=dict)
    started_at: Optional[float] = None
    final_results: Optional[dict] = None

    @property
    def phase(self) -> str:
        if self.final_results is not None:
            return COMPLETE
        if self.current_task is not None and 0 <= self.current_task_index < len(self.task_plan):
            return TASK_ACTIVE
        return LOBBY

    @property
    def is_complete(self) -> bool:
        return self.phase == COMPLETE

    def next_color(self) -> str:
        return TEAM_COLORS[len(self.teams) % len(TEAM_COLORS)]

    def unique_name(self, name: str, team_id: str) -> str:
        """Return ``name``, suffixed with a counter when another team already uses it."""
        taken = {t.name for tid, t in self.teams.items() if tid != team_id}
        candidate, n = name, 2
        while candidate in taken:
            candidate = f"{name} ({n})"
            n += 1
        return candidate

    def leaderboard(self) -> Dict[str, int]:
        return {team.name: team.score for team in self.teams.values()}

    def snapshot(self, at: Optional[float] = None) -> dict:
        at = now_ms() if at is None else at
        return {
            'roomCode': self.code,
            'phase': self.phase,
            'scoringMode': self.scoring_mode,
            'taskIndex': self.current_task_index,
            'totalTasks': len(self.task_plan),
            'teams': {tid: team.to_dict() for tid, team in self.teams.items()},
            'scores': self.leaderboard(),
            'currentTask': self.current_task.to_dict() if self.current_task else None,
            'bonuses': [b.to_dict() for b in self.active_bonuses.values() if not b.is_expired(at)],
        }


class RoomStore:
    """Process-scoped mapping of room code to Room."""

    def __init__(self):
        self._rooms: Dict[str, Room] = {}
        self.lock = threading.RLock()

    def get(self, code) -> Optional[Room]:
        """Return the room, or None when the code is unknown."""
        return self._rooms.get(normalize_code(code))

    def get_or_create(self, code, scoring_mode: Optional[str] = None) -> Room:
        key = normalize_code(code)
        with self.lock:
            room = self._rooms.get(key)
            if room is None:
                room = Room(code=key)
                if scoring_mode:
                    room.scoring_mode = scoring_mode
                self._rooms[key] = room
            return room

    def discard(self, code) -> Optional[Room]:
        with self.lock:
            return self._rooms.pop(normalize_code(code), None)

    def clear(self) -> None:
        with self.lock:
            self._rooms.clear()

    def codes(self) -> List[str]:
        return sorted(self._rooms)

    def __contains__(self, code) -> bool:
        return normalize_code(code) in self._rooms

    def __len__(self) -> int:
        return len(self._rooms)
