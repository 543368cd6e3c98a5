"""End-of-session aggregation: per-player grades and the session report object."""

import math
from typing import Dict, List, Optional


FAST_AVG_MS = 30000
STEADY_AVG_MS = 60000

ACCURACY_WEIGHT = 0.6
ENGAGEMENT_WEIGHT = 0.25
SPEED_WEIGHT = 0.15


def speed_score(avg_time_ms: Optional[float]) -> float:
    if avg_time_ms is None:
        return 0.0
    if avg_time_ms <= FAST_AVG_MS:
        return 1.0
    if avg_time_ms <= STEADY_AVG_MS:
        return 0.7
    return 0.4


def grade_for(accuracy: float, engagement: float, speed: float) -> int:
    raw = (accuracy * ACCURACY_WEIGHT + engagement * ENGAGEMENT_WEIGHT + speed * SPEED_WEIGHT) * 100
    if raw != raw:  # NaN
        return 0
    # trim float noise, then round half up
    return int(math.floor(round(raw, 9) + 0.5))


def player_summary(player_id: str, team_id: str, attempts: int, correct: int,
                   total_time_ms: float, total_tasks: int) -> dict:
    accuracy = correct / attempts if attempts else 0.0
    engagement = min(attempts / total_tasks, 1.0) if total_tasks > 0 else 0.0
    avg_time = total_time_ms / correct if correct > 0 else None
    speed = speed_score(avg_time)
    return {
        'playerId': player_id,
        'teamId': team_id,
        'attempts': attempts,
        'correct': correct,
        'totalTimeMs': total_time_ms,
        'accuracy': accuracy,
        'engagement': engagement,
        'avgTimeMs': avg_time,
        'speedScore': speed,
        'grade': grade_for(accuracy, engagement, speed),
    }


def build_final_results(room) -> dict:
    """Per-player results over the room's whole submission log.

    Players without an id are grouped as ``{teamId}-anon``. Time is only
    accumulated on correct answers.
    """
    totals: Dict[str, dict] = {}
    for sub in room.submissions:
        if sub is None or not sub.team_id:
            continue
        entry = totals.setdefault(sub.player_key, {
            'team_id': sub.team_id, 'attempts': 0, 'correct': 0, 'time': 0.0,
        })
        entry['attempts'] += 1
        if sub.is_correct:
            entry['correct'] += 1
            if sub.response_time_ms is not None:
                entry['time'] += float(sub.response_time_ms)

    total_tasks = len(room.task_plan)
    players = [
        player_summary(key, e['team_id'], e['attempts'], e['correct'], e['time'], total_tasks)
        for key, e in totals.items()
    ]
    return {'players': players, 'totalTasks': total_tasks}


def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def build_session_analytics(room, final_results: Optional[dict] = None) -> dict:
    """Aggregate a finished room into the object handed to the reporting collaborator."""
    results = final_results or build_final_results(room)
    players = results.get('players', [])

    tasks = []
    for index, definition in enumerate(room.task_plan):
        subs = [s for s in room.submissions if s.task_index == index]
        correct = [s for s in subs if s.is_correct]
        latencies = [s.response_time_ms for s in subs if s.response_time_ms is not None]
        tasks.append({
            'index': index,
            'title': definition.title or definition.task_type,
            'prompt': (definition.prompt or '').strip(),
            'taskType': definition.task_type or 'short-answer',
            'points': definition.points or 10,
            'submissionsCount': len(subs),
            'avgCorrectPct': round(len(correct) / len(subs) * 100) if subs else 0,
            'avgScore': _mean([s.points for s in subs]),
            'avgLatencyMs': _mean(latencies) if latencies else None,
        })

    teams = []
    for team_id, team in room.teams.items():
        subs = [s for s in room.submissions if s.team_id == team_id]
        latencies = [s.response_time_ms for s in subs if s.response_time_ms is not None]
        teams.append({
            'teamId': team_id,
            'teamName': team.name,
            'totalPoints': team.score,
            'correctCount': sum(1 for s in subs if s.is_correct),
            'incorrectCount': sum(1 for s in subs if s.correct is False),
            'avgLatencyMs': _mean(latencies) if latencies else None,
        })

    students = []
    for player in players:
        subs = [s for s in room.submissions if s.player_key == player['playerId']]
        students.append({
            'studentName': player['playerId'],
            'teamId': player['teamId'],
            'totalPoints': sum(s.points for s in subs),
            'accuracyPct': round(player['accuracy'] * 100),
            'tasksCompleted': player['attempts'],
            'tasksAssigned': results.get('totalTasks', 0),
            'avgLatencyMs': player['avgTimeMs'],
            'grade': player['grade'],
            'perTask': [
                {'taskIndex': s.task_index, 'isCorrect': s.correct, 'points': s.points, 'latencyMs': s.response_time_ms}
                for s in subs
            ],
        })

    return {
        'roomCode': room.code,
        'startedAt': room.started_at,
        'classAverageScore': _mean([p['grade'] for p in players]),
        'classAverageAccuracy': _mean([p['accuracy'] * 100 for p in players]),
        'tasks': tasks,
        'teams': teams,
        'students': students,
    }
