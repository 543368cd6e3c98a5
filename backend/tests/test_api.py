import datetime
import json

from liveclass import db
from liveclass.models import TeamSessionRecord, User, utcnow
from liveclass.services import records


def register(client, username='ms_frizzle', password='bus'):
    return client.post('/register', json={'username': username, 'password': password})


def test_index(client):
    res = client.get('/')
    assert res.status_code == 200
    assert 'message' in res.get_json()


def test_register_login_logout(client):
    res = register(client)
    assert res.status_code == 201
    assert res.get_json()['user']['username'] == 'ms_frizzle'
    assert register(client).status_code == 400

    assert client.post('/logout').status_code == 200
    assert client.get('/check_login').status_code == 401
    assert client.post('/login', json={'username': 'ms_frizzle', 'password': 'nope'}).status_code == 401
    assert client.post('/login', json={'username': 'ms_frizzle', 'password': 'bus'}).status_code == 200
    assert client.get('/check_login').get_json()['user']['username'] == 'ms_frizzle'


def test_register_requires_fields(client):
    assert client.post('/register', json={'username': 'x'}).status_code == 400


def test_password_is_hashed(flask_app, client):
    register(client)
    user = User.query.filter_by(username='ms_frizzle').first()
    assert user.password_hash != 'bus'
    assert user.check_password('bus')


def test_state_unknown_room(client):
    res = client.get('/api/rooms/NOPE/state')
    assert res.status_code == 404
    assert res.get_json()['status'] == 'not_found'


def test_state_and_leaderboard(flask_app, client):
    flask_app.extensions['live_session'].join('ab', 'Owls', team_id='t1')
    state = client.get('/api/rooms/ab/state').get_json()
    assert state['roomCode'] == 'AB'
    assert state['teams']['t1']['name'] == 'Owls'
    assert state['taskIndex'] == -1
    board = client.get('/api/rooms/AB/leaderboard').get_json()
    assert board['scores'] == {'Owls': 0}


def test_task_plan_requires_login(client, make_plan):
    res = client.post('/api/rooms/AB/taskplan', json={'tasks': make_plan(2)})
    assert res.status_code == 401


def test_load_task_plan(flask_app, client, make_plan):
    register(client)
    assert client.post('/api/rooms/AB/taskplan', json={'tasks': 'nope'}).status_code == 400
    res = client.post('/api/rooms/ab/taskplan', json={'tasks': make_plan(2), 'name': 'Fractions', 'scoring': 'live'})
    assert res.status_code == 200
    assert res.get_json()['tasks'] == 2
    room = flask_app.extensions['live_session'].store.get('AB')
    assert room.scoring_mode == 'live'
    assert room.plan_name == 'Fractions'

    flask_app.extensions['live_session'].advance('AB')
    res = client.post('/api/rooms/AB/taskplan', json={'tasks': make_plan(1)})
    assert res.status_code == 400


def test_results_endpoint(flask_app, client, make_plan):
    controller = flask_app.extensions['live_session']
    controller.join('R9', 'Owls', team_id='o')
    controller.load_plan('R9', make_plan(1))
    controller.advance('R9')
    controller.submit('R9', 'o', answer='answer1', elapsed_ms=1000)
    res = client.get('/api/rooms/r9/results')
    assert res.status_code == 200
    data = res.get_json()
    assert data['totalTasks'] == 1
    assert data['players'][0]['playerId'] == 'o-anon'
    assert client.get('/api/rooms/none/results').status_code == 404


def test_analytics_listing_is_per_teacher(flask_app, client):
    register(client)
    me = User.query.filter_by(username='ms_frizzle').first()
    other = User(username='other')
    other.set_password('pw')
    db.session.add(other)
    db.session.commit()
    mine = records.store_session_analytics(
        {'roomCode': 'AB', 'classAverageScore': 71.0, 'classAverageAccuracy': 62.5, 'tasks': [{'index': 0}]},
        teacher_id=me.id,
    )
    theirs = records.store_session_analytics({'roomCode': 'CD'}, teacher_id=other.id)

    listing = client.get('/api/analytics/sessions').get_json()['sessions']
    assert [s['room_code'] for s in listing] == ['AB']
    assert listing[0]['classAverageScore'] == 71.0

    detail = client.get(f'/api/analytics/sessions/{mine.id}').get_json()
    assert detail['tasks'] == [{'index': 0}]
    assert client.get(f'/api/analytics/sessions/{theirs.id}').status_code == 404


def test_team_session_records_expire(flask_app):
    record = records.create_team_session_record('AB', 't1', 'Owls', 'red', ['Ann'])
    assert record.expires_at - record.created_at == datetime.timedelta(seconds=86400)
    assert records.mark_offline('AB', 't1')
    assert not records.mark_offline('AB', 'missing')

    later = record.created_at + datetime.timedelta(seconds=86401)
    assert records.purge_expired(now=later) == 1
    assert TeamSessionRecord.query.count() == 0


def test_record_timestamps_are_naive_utc(flask_app):
    before = datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)
    stamp = utcnow()
    assert stamp.tzinfo is None
    assert stamp - before < datetime.timedelta(seconds=5)
    record = records.create_team_session_record('AB', 't1', 'Owls', 'red')
    assert record.created_at.tzinfo is None


def test_rejoin_refreshes_record(flask_app):
    first = records.create_team_session_record('AB', 't1', 'Owls', 'red')
    records.mark_offline('AB', 't1')
    again = records.create_team_session_record('AB', 't1', 'Night Owls', 'red', ['Bo'])
    assert again.id == first.id
    assert again.status == 'online'
    assert json.loads(again.player_names) == ['Bo']


def test_purge_records_command(flask_app):
    records.create_team_session_record('AB', 't1', 'Owls', 'red')
    TeamSessionRecord.query.first().expires_at = datetime.datetime(2000, 1, 1)
    db.session.commit()
    result = flask_app.test_cli_runner().invoke(args=['purge-records'])
    assert 'Purged 1' in result.output
    assert TeamSessionRecord.query.count() == 0
