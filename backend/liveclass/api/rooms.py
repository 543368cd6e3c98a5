from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user
from liveclass import db
from liveclass.models import SessionAnalytics
from liveclass.services.live.progression import NOT_FOUND

rooms = Blueprint('rooms', __name__)

_STATUS_CODES = {NOT_FOUND: 404}


def _controller():
    return current_app.extensions['live_session']


def _reply(outcome):
    if outcome.ok:
        return jsonify(outcome.to_dict())
    return jsonify(outcome.to_dict()), _STATUS_CODES.get(outcome.status, 400)


@rooms.route('/rooms/<string:room_code>/state', methods=['GET'])
def get_room_state(room_code):
    outcome = _controller().snapshot(room_code)
    if not outcome.ok:
        return _reply(outcome)
    return jsonify(outcome.data['roomState'])


@rooms.route('/rooms/<string:room_code>/leaderboard', methods=['GET'])
def get_leaderboard(room_code):
    return _reply(_controller().leaderboard(room_code))


@rooms.route('/rooms/<string:room_code>/taskplan', methods=['POST'])
@login_required
def load_task_plan(room_code):
    data = request.get_json(silent=True) or {}
    tasks = data.get('tasks')
    if not isinstance(tasks, list):
        return jsonify({'error': 'tasks must be a list'}), 400
    controller = _controller()
    if room_code not in controller.store:
        controller.create_room(room_code, scoring_mode=data.get('scoring'))
    return _reply(controller.load_plan(room_code, tasks, name=data.get('name'), scoring_mode=data.get('scoring')))


@rooms.route('/rooms/<string:room_code>/results', methods=['GET'])
def get_results(room_code):
    outcome = _controller().finish(room_code)
    if not outcome.ok:
        return _reply(outcome)
    return jsonify(outcome.data['results'])


@rooms.route('/analytics/sessions', methods=['GET'])
@login_required
def list_sessions():
    """Recent stored session analytics for the logged-in teacher."""
    rows = (
        SessionAnalytics.query.filter_by(teacher_id=current_user.id)
        .order_by(SessionAnalytics.created_at.desc())
        .limit(50)
        .all()
    )
    return jsonify({'sessions': [row.to_dict() for row in rows]})


@rooms.route('/analytics/sessions/<int:analytics_id>', methods=['GET'])
@login_required
def get_session_details(analytics_id):
    row = db.session.get(SessionAnalytics, analytics_id)
    if row is None or row.teacher_id != current_user.id:
        return jsonify({'error': 'Session analytics not found'}), 404
    return jsonify(row.to_dict(detailed=True))
