from flask import current_app, request
from flask_login import current_user
from flask_socketio import join_room, leave_room, emit
from sqlalchemy.exc import SQLAlchemyError
from typing import Dict, Any

from liveclass import socketio
from liveclass.services import records
from liveclass.services.live.broadcast import room_channel
from liveclass.services.live.rooms import normalize_code


_sid_to_ctx: Dict[str, Dict[str, Any]] = {}


def _get_sid() -> str:
    # request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _controller():
    return current_app.extensions['live_session']


def _ctx() -> Dict[str, Any]:
    return _sid_to_ctx.get(_get_sid(), {})


def _room_code(data) -> str:
    code = (data or {}).get('roomCode') or _ctx().get('room_code')
    return normalize_code(code)


def _reject(outcome, event='error'):
    """Tell the calling socket why a teacher command did nothing."""
    emit(event, {'message': outcome.reason or outcome.status, 'status': outcome.status})
    return outcome.to_dict()


def handle_connect(auth=None):
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(reason=None):
    # Scores are kept; the team record just goes offline until it reconnects
    ctx = _sid_to_ctx.pop(_get_sid(), None)
    if not ctx or not ctx.get('team_id'):
        return
    records.mark_offline(ctx['room_code'], ctx['team_id'])
    current_app.logger.info(f"[offline] room={ctx['room_code']} team={ctx['team_id']}")


def handle_create_room(data=None):
    data = data or {}
    code = normalize_code(data.get('roomCode'))
    if not code:
        emit('error', {'message': 'roomCode is required'})
        return {'ok': False, 'error': 'roomCode is required'}
    outcome = _controller().create_room(code, scoring_mode=data.get('scoring'))
    join_room(room_channel(code))
    _sid_to_ctx[_get_sid()] = {'room_code': code, 'role': 'teacher'}
    emit('room:created', {'roomCode': code, 'scoringMode': outcome.data.get('scoringMode')})
    return outcome.to_dict()


def handle_join(data=None):
    """Student (team) joins a room; the room is created on first join."""
    data = data or {}
    code = normalize_code(data.get('roomCode'))
    if not code:
        emit('join:error', {'message': 'roomCode is required'})
        return {'ok': False, 'error': 'roomCode is required'}
    team_id = data.get('teamId') or _get_sid()
    # Join the channel first so this socket also receives the broadcast snapshot
    join_room(room_channel(code))
    outcome = _controller().join(
        code,
        display_name=data.get('teamName') or data.get('displayName'),
        team_id=team_id,
        members=data.get('members'),
    )
    if not outcome.ok:
        leave_room(room_channel(code))
        emit('join:error', {'message': outcome.reason})
        return outcome.to_dict()
    _sid_to_ctx[_get_sid()] = {
        'room_code': code,
        'role': 'student',
        'team_id': outcome.data['teamId'],
        'player_id': data.get('playerId'),
    }
    team = outcome.data['team']
    records.create_team_session_record(code, team['teamId'], team['name'], team['color'], team['members'])
    return outcome.to_dict()


def handle_sync(data=None):
    """Reconnecting clients get the current snapshot rather than a replay."""
    outcome = _controller().snapshot(_room_code(data))
    if not outcome.ok:
        return outcome.to_dict()
    join_room(room_channel(outcome.data['roomState']['roomCode']))
    emit('room:state', outcome.data['roomState'])
    return outcome.to_dict()


def handle_load_task_plan(data=None):
    data = data or {}
    outcome = _controller().load_plan(
        _room_code(data), data.get('tasks'), name=data.get('name'), scoring_mode=data.get('scoring'),
    )
    if not outcome.ok:
        return _reject(outcome, 'taskset:error')
    return outcome.to_dict()


def handle_next_task(data=None):
    outcome = _controller().advance(_room_code(data))
    if not outcome.ok:
        return _reject(outcome)
    return outcome.to_dict()


def handle_teacher_launch_task(data=None):
    """Quick ad-hoc task when a prompt is given, otherwise the next task of the plan."""
    data = data or {}
    if data.get('prompt'):
        outcome = _controller().launch_quick_task(
            _room_code(data), data.get('prompt'), data.get('correctAnswer'),
        )
        if outcome.ok:
            join_room(room_channel(_room_code(data)))
    else:
        outcome = _controller().advance(_room_code(data))
    if not outcome.ok:
        return _reject(outcome)
    return outcome.to_dict()


def handle_submit(data=None):
    data = data or {}
    ctx = _ctx()
    elapsed = data.get('elapsedMs')
    try:
        elapsed = float(elapsed) if elapsed is not None else None
    except (TypeError, ValueError):
        elapsed = None
    outcome = _controller().submit(
        _room_code(data),
        data.get('teamId') or ctx.get('team_id'),
        correct=data.get('correct'),
        answer=data.get('answer'),
        elapsed_ms=elapsed,
        player_id=data.get('playerId') or ctx.get('player_id'),
        base_points=data.get('basePoints'),
    )
    # Late or duplicate student events are dropped quietly
    if outcome.ok:
        emit('task:received', {'correct': outcome.data['correct'], 'points': outcome.data['points']})
    return outcome.to_dict()


def handle_spawn_bonus(data=None):
    data = data or {}
    outcome = _controller().spawn_bonus(_room_code(data), data.get('points'), data.get('durationMs'))
    if not outcome.ok:
        return _reject(outcome)
    return outcome.to_dict()


def handle_claim_bonus(data=None):
    data = data or {}
    outcome = _controller().claim_bonus(
        _room_code(data), data.get('bonusId'), data.get('teamId') or _ctx().get('team_id'),
    )
    return outcome.to_dict()


def handle_end_session(data=None):
    """Aggregate the session, store it and hand it to the reporting collaborator.

    Collaborator failures are reported to the caller as ``report:error``;
    the live room is left as it was.
    """
    data = data or {}
    code = _room_code(data)
    outcome = _controller().finish(code)
    if not outcome.ok:
        return _reject(outcome, 'report:error')
    analytics = outcome.data['analytics']
    teacher_id = current_user.id if getattr(current_user, 'is_authenticated', False) else None
    try:
        row = records.store_session_analytics(analytics, teacher_id=teacher_id)
    except SQLAlchemyError as exc:
        current_app.logger.error(f"[report-error] room={code} store failed: {exc}")
        emit('report:error', {'message': 'Failed to store session analytics'})
        return {'ok': False, 'error': 'Failed to store session analytics'}

    dispatcher = current_app.extensions.get('report_dispatcher')
    if dispatcher is not None:
        try:
            dispatcher(analytics, data.get('teacherEmail'))
        except Exception as exc:  # collaborator failures must not reach the transport
            current_app.logger.error(f"[report-error] room={code} dispatch failed: {exc}")
            emit('report:error', {'message': 'Failed to send session report', 'analyticsId': row.id})
            return {'ok': False, 'error': 'Failed to send session report', 'analyticsId': row.id}

    current_app.logger.info(f"[report] room={code} analytics={row.id}")
    emit('report:sent', {'ok': True, 'analyticsId': row.id, 'email': data.get('teacherEmail')})
    return {'ok': True, 'analyticsId': row.id}


def handle_ping(data=None):
    emit('pong', data or {})


_HANDLERS = {
    'connect': handle_connect,
    'disconnect': handle_disconnect,
    'teacher:createRoom': handle_create_room,
    'join': handle_join,
    'student:joinRoom': handle_join,
    'room:sync': handle_sync,
    'teacher:loadTaskPlan': handle_load_task_plan,
    'teacher:nextTask': handle_next_task,
    'teacherLaunchTask': handle_teacher_launch_task,
    'submit': handle_submit,
    'student:submitAnswer': handle_submit,
    'spawnBonus': handle_spawn_bonus,
    'claimBonus': handle_claim_bonus,
    'teacher:endSession': handle_end_session,
    'ping': handle_ping,
}


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    for event, handler in _HANDLERS.items():
        socketio.on_event(event, handler, namespace='/ws')

    if testing:
        # Test-only mirror on default namespace
        for event, handler in _HANDLERS.items():
            socketio.on_event(event, handler, namespace='/')
