"""Room progression: joins, task advancement, submissions, bonuses, final results.

Every public method handles one inbound event as a single unit of work
against the RoomStore and returns an Outcome instead of raising, so the
transport decides whether a miss is worth telling the client about.

Single-process only: the store lock serialises handlers that Flask-SocketIO
runs on separate threads, nothing more.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Optional

from .analytics import build_final_results, build_session_analytics
from .broadcast import RecordingEmitter
from .rooms import (
    COMPLETE, DEFAULT_TASK_POINTS, DEFAULT_TASK_TYPE, LOBBY, TASK_ACTIVE, CurrentTask, Bonus, Room, RoomStore, Submission, TaskDefinition, Team,
    normalize_code, now_ms,
)
from .scoring import SCORING_MODES, ScoringConfig, get_strategy


OK = 'ok'
NOT_FOUND = 'not_found'
REJECTED = 'rejected'
NOOP = 'noop'


@dataclass
class Outcome:
    status: str
    reason: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == OK

    @property
    def found(self) -> bool:
        return self.status != NOT_FOUND

    def to_dict(self):
        payload = {'ok': self.ok, 'status': self.status}
        if self.reason:
            payload['error'] = self.reason
        payload.update(self.data)
        return payload


def _not_found(what='Room not found'):
    return Outcome(NOT_FOUND, what)


def _grade(answer, correct_answer: Optional[str]) -> Optional[bool]:
    if correct_answer is None:
        return None
    if answer is None:
        return False
    return str(answer).strip().lower() == correct_answer.strip().lower()


def _as_int(value) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _replace_or_append(entries, previous, new) -> None:
    for i, entry in enumerate(entries):
        if entry is previous:
            entries[i] = new
            return
    entries.append(new)


class SessionController:
    def __init__(self, store: Optional[RoomStore] = None, emitter=None,
                 scoring: Optional[ScoringConfig] = None, default_mode: str = 'ranked',
                 clock: Callable[[], float] = now_ms, logger: Optional[logging.Logger] = None,
                 bonus_points: int = 5, bonus_duration_ms: int = 8000):
        self.store = store if store is not None else RoomStore()
        self.emitter = emitter if emitter is not None else RecordingEmitter()
        self.scoring = scoring or ScoringConfig()
        self.default_mode = default_mode if default_mode in SCORING_MODES else 'ranked'
        self.clock = clock
        self.logger = logger or logging.getLogger(__name__)
        self.bonus_points = bonus_points
        self.bonus_duration_ms = bonus_duration_ms
        # called with (room, task_index) whenever every team has submitted
        self.on_all_submitted: Optional[Callable[[Room, int], None]] = None

    # ---- helpers ----

    def _emit(self, room: Room, event: str, payload=None, to=None) -> None:
        self.emitter.emit(room.code, event, payload, to=to)

    def _room(self, code) -> Optional[Room]:
        room = self.store.get(code)
        if room is None:
            self.logger.debug(f"[not-found] room={normalize_code(code)!r}")
        return room

    def _broadcast_leaderboard(self, room: Room) -> None:
        self._emit(room, 'leaderboardUpdate', room.leaderboard())

    def phase(self, code) -> Optional[str]:
        room = self.store.get(code)
        return room.phase if room else None

    def snapshot(self, code) -> Outcome:
        room = self._room(code)
        if room is None:
            return _not_found()
        return Outcome(OK, data={'roomState': room.snapshot(self.clock())})

    def leaderboard(self, code) -> Outcome:
        room = self._room(code)
        if room is None:
            return _not_found()
        return Outcome(OK, data={'scores': room.leaderboard()})

    # ---- room lifecycle ----

    def create_room(self, code, scoring_mode: Optional[str] = None) -> Outcome:
        key = normalize_code(code)
        if not key:
            return Outcome(REJECTED, 'roomCode is required')
        mode = scoring_mode if scoring_mode in SCORING_MODES else self.default_mode
        with self.store.lock:
            room = self.store.get_or_create(key, scoring_mode=mode)
            if scoring_mode in SCORING_MODES and room.phase == LOBBY:
                room.scoring_mode = scoring_mode
        self.logger.info(f"[room-create] room={key} mode={room.scoring_mode}")
        return Outcome(OK, data={'roomCode': key, 'scoringMode': room.scoring_mode})

    def join(self, code, display_name: Optional[str] = None, team_id: Optional[str] = None,
             members: Optional[Iterable[str]] = None) -> Outcome:
        """Register a team, creating the room on first join. Returns the leaderboard snapshot."""
        key = normalize_code(code)
        if not key:
            return Outcome(REJECTED, 'roomCode is required')
        clean_members = [str(m).strip() for m in (members or []) if str(m).strip()]
        with self.store.lock:
            room = self.store.get_or_create(key, scoring_mode=self.default_mode)
            tid = str(team_id) if team_id else uuid.uuid4().hex[:12]
            name = (display_name or '').strip() or (clean_members[0] if clean_members else f"Team-{tid[-4:]}")
            name = room.unique_name(name, tid)
            team = room.teams.get(tid)
            created = team is None
            if created:
                team = Team(team_id=tid, name=name, color=room.next_color(), members=clean_members)
                room.teams[tid] = team
            else:
                team.name = name
                if clean_members:
                    team.members = clean_members
            state = room.snapshot(self.clock())
        self.logger.info(f"[join] room={key} team={tid} name={name!r} new={created}")
        self._emit(room, 'room:state', state)
        self._broadcast_leaderboard(room)
        return Outcome(OK, data={
            'teamId': tid, 'team': team.to_dict(), 'created': created,
            'scores': room.leaderboard(), 'roomState': state,
        })

    def load_plan(self, code, tasks, name: Optional[str] = None, scoring_mode: Optional[str] = None) -> Outcome:
        room = self._room(code)
        if room is None:
            return _not_found()
        with self.store.lock:
            if room.phase != LOBBY or room.current_task_index != -1:
                return Outcome(REJECTED, 'Task plan can only be loaded in the lobby')
            plan = [d for d in (TaskDefinition.from_payload(t) for t in (tasks or [])) if d is not None]
            room.task_plan = plan
            room.plan_name = name
            room.current_task_index = -1
            if scoring_mode in SCORING_MODES:
                room.scoring_mode = scoring_mode
        self.logger.info(f"[plan-load] room={room.code} tasks={len(plan)} mode={room.scoring_mode}")
        self._emit(room, 'taskset:loaded', {'name': name, 'tasks': len(plan)})
        return Outcome(OK, data={'tasks': len(plan)})

    # ---- progression ----

    def advance(self, code) -> Outcome:
        room = self._room(code)
        if room is None:
            return _not_found()
        with self.store.lock:
            if room.is_complete:
                return Outcome(NOOP, 'Task plan already complete')
            if not room.task_plan:
                self.logger.info(f"[advance-skip] room={room.code} empty task plan")
                return Outcome(REJECTED, 'No task plan loaded')
            if room.started_at is None:
                room.started_at = self.clock()
            room.current_task_index += 1
            index = room.current_task_index
            if index >= len(room.task_plan):
                room.current_task = None
                results = build_final_results(room)
                room.final_results = results
                complete = True
            else:
                room.current_task = CurrentTask.from_definition(index, room.task_plan[index], self.clock())
                snapshot = room.current_task.to_dict()
                complete = False

        if complete:
            self.logger.info(f"[complete] room={room.code} tasks={len(room.task_plan)} players={len(results['players'])}")
            self._emit(room, 'tasksetComplete', {'roomCode': room.code, 'results': results})
            return Outcome(OK, data={'phase': COMPLETE, 'results': results})

        self.logger.info(f"[advance] room={room.code} index={index}")
        self._emit(room, 'taskUpdate', snapshot)
        self._emit(room, 'roundStarted', snapshot)
        return Outcome(OK, data={'phase': TASK_ACTIVE, 'task': snapshot})

    def launch_quick_task(self, code, prompt, correct_answer=None) -> Outcome:
        """Slot one ad-hoc short-answer task right after the current one and advance to it.

        Tasks already played keep their indexes; the cursor only moves forward.
        """
        text = (prompt or '').strip()
        if not text:
            return Outcome(REJECTED, 'prompt is required')
        key = normalize_code(code)
        if not key:
            return Outcome(REJECTED, 'roomCode is required')
        with self.store.lock:
            room = self.store.get_or_create(key, scoring_mode=self.default_mode)
            if room.is_complete:
                return Outcome(NOOP, 'Task plan already complete')
            definition = TaskDefinition(
                prompt=text, correct_answer=correct_answer, task_type=DEFAULT_TASK_TYPE, points=DEFAULT_TASK_POINTS,
            )
            room.task_plan.insert(room.current_task_index + 1, definition)
            if room.plan_name is None:
                room.plan_name = 'Quick task'
            index = room.current_task_index + 1
        self.logger.info(f"[quick-task] room={key} index={index}")
        return self.advance(key)

    def submit(self, code, team_id, correct: Optional[bool] = None, answer=None,
               elapsed_ms: Optional[float] = None, player_id: Optional[str] = None,
               base_points: Optional[int] = None) -> Outcome:
        """Record one team's submission for the active task and rescore it.

        A repeat submission from the same team replaces its earlier entry.
        Points credited for the task are recomputed with the room's strategy
        and only the difference is applied to cumulative scores.
        """
        room = self._room(code)
        if room is None:
            return _not_found()
        if not team_id:
            self.logger.info(f"[submit-skip] room={room.code} missing teamId")
            return Outcome(REJECTED, 'teamId is required')
        tid = str(team_id)
        with self.store.lock:
            if room.phase != TASK_ACTIVE:
                return Outcome(REJECTED, 'No active task')
            task = room.current_task
            at = self.clock()
            if elapsed_ms is None:
                elapsed_ms = max(0.0, at - task.started_at)
            if isinstance(correct, bool):
                verdict = correct
            else:
                verdict = _grade(answer, task.correct_answer)
            team = room.teams.get(tid)
            sub = Submission(
                team_id=tid,
                team_name=team.name if team else f"Team-{tid[-4:]}",
                task_index=task.index,
                correct=verdict,
                response_time_ms=float(elapsed_ms),
                player_id=player_id,
                answer=answer,
                base_points=_as_int(base_points),
                submitted_at=at,
            )
            previous = task.submission_for(tid)
            _replace_or_append(task.submissions, previous, sub)
            _replace_or_append(room.submissions, previous, sub)

            strategy = get_strategy(room.scoring_mode, self.scoring)
            deltas = strategy.score_task(task.submissions, room.teams.keys(), base_points=task.points)
            for key, points in deltas.items():
                change = points - task.awarded.get(key, 0)
                task.awarded[key] = points
                if change and key in room.teams:
                    room.teams[key].score += change
            for entry in task.submissions:
                entry.points = deltas.get(entry.team_id, 0)
            everyone_in = self._all_submitted(room)
            scores = room.leaderboard()
            index = task.index

        self.logger.info(
            f"[submit] room={room.code} task={index} team={tid} correct={verdict} "
            f"elapsed={int(elapsed_ms)}ms replaced={previous is not None}"
        )
        self._broadcast_leaderboard(room)
        if everyone_in and self.on_all_submitted is not None:
            self.on_all_submitted(room, index)
        return Outcome(OK, data={
            'correct': verdict, 'points': sub.points, 'scores': scores,
            'replaced': previous is not None, 'allSubmitted': everyone_in,
        })

    @staticmethod
    def _all_submitted(room: Room) -> bool:
        task = room.current_task
        if task is None or not room.teams:
            return False
        submitted = {s.team_id for s in task.submissions}
        return all(tid in submitted for tid in room.teams)

    def all_submitted(self, code) -> bool:
        room = self.store.get(code)
        if room is None or room.phase != TASK_ACTIVE:
            return False
        return self._all_submitted(room)

    # ---- bonus events ----

    def spawn_bonus(self, code, points: Optional[int] = None, duration_ms: Optional[int] = None) -> Outcome:
        room = self._room(code)
        if room is None:
            return _not_found()
        pts = int(points) if points is not None else self.bonus_points
        duration = int(duration_ms) if duration_ms is not None else self.bonus_duration_ms
        with self.store.lock:
            if room.is_complete:
                return Outcome(REJECTED, 'Session is complete')
            bonus = Bonus(bonus_id=uuid.uuid4().hex[:10], points=pts, duration_ms=duration,
                          expires_at=self.clock() + duration)
            room.active_bonuses[bonus.bonus_id] = bonus
        self.logger.info(f"[bonus-spawn] room={room.code} bonus={bonus.bonus_id} points={pts} duration={duration}ms")
        self._emit(room, 'bonusEvent', bonus.to_dict())
        return Outcome(OK, data={'bonus': bonus.to_dict()})

    def claim_bonus(self, code, bonus_id, team_id) -> Outcome:
        """Credit a bonus to the first team that claims it before it expires."""
        room = self._room(code)
        if room is None:
            return _not_found()
        with self.store.lock:
            bonus = room.active_bonuses.get(str(bonus_id)) if bonus_id else None
            if bonus is None:
                return _not_found('Bonus not available')
            if bonus.is_expired(self.clock()):
                del room.active_bonuses[bonus.bonus_id]
                self.logger.info(f"[bonus-expired] room={room.code} bonus={bonus.bonus_id}")
                return Outcome(REJECTED, 'Bonus expired')
            team = room.teams.get(str(team_id)) if team_id else None
            if team is None:
                return Outcome(REJECTED, 'Unknown team')
            del room.active_bonuses[bonus.bonus_id]
            team.score += bonus.points
        self.logger.info(f"[bonus-claim] room={room.code} bonus={bonus.bonus_id} team={team.team_id} points={bonus.points}")
        self._emit(room, 'bonusClaimed', {'id': bonus.bonus_id, 'teamId': team.team_id, 'teamName': team.name})
        self._broadcast_leaderboard(room)
        return Outcome(OK, data={'points': bonus.points, 'scores': room.leaderboard()})

    # ---- end of session ----

    def finish(self, code) -> Outcome:
        """Final results and analytics for a room, building results if the plan never completed."""
        room = self._room(code)
        if room is None:
            return _not_found()
        with self.store.lock:
            results = room.final_results or build_final_results(room)
            analytics = build_session_analytics(room, results)
        return Outcome(OK, data={'results': results, 'analytics': analytics})

    def teardown(self, code) -> Outcome:
        room = self.store.discard(code)
        if room is None:
            return _not_found()
        self.logger.info(f"[teardown] room={room.code}")
        return Outcome(OK)
