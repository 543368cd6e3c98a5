from liveclass.services.live.rooms import (
    COMPLETE, LOBBY, TASK_ACTIVE, TEAM_COLORS, Bonus, CurrentTask, RoomStore, TaskDefinition, Team, normalize_code,
)


def test_codes_are_case_normalized():
    store = RoomStore()
    room = store.get_or_create(' ab12 ')
    assert room.code == 'AB12'
    assert store.get('ab12') is room
    assert store.get_or_create('AB12') is room
    assert normalize_code(None) == ''


def test_unknown_room_is_none():
    store = RoomStore()
    assert store.get('NOPE') is None
    assert 'NOPE' not in store


def test_new_room_starts_empty():
    room = RoomStore().get_or_create('8A')
    assert room.teams == {}
    assert room.current_task is None
    assert room.current_task_index == -1
    assert room.active_bonuses == {}
    assert room.phase == LOBBY


def test_discard_and_clear():
    store = RoomStore()
    store.get_or_create('A1')
    store.get_or_create('B2')
    assert store.discard('a1').code == 'A1'
    assert store.discard('a1') is None
    assert store.codes() == ['B2']
    store.clear()
    assert len(store) == 0


def test_task_snapshot_defaults_and_trimming():
    definition = TaskDefinition.from_payload({'prompt': '  Name a prime  ', 'correctAnswer': '  7 '})
    task = CurrentTask.from_definition(0, definition, started_at=5.0)
    assert task.prompt == 'Name a prime'
    assert task.correct_answer == '7'
    assert task.task_type == 'short-answer'
    assert task.points == 10
    assert task.submissions == []

    blank = CurrentTask.from_definition(1, TaskDefinition.from_payload({'prompt': 'Draw', 'correctAnswer': '   '}), 0)
    assert blank.correct_answer is None


def test_task_definition_rejects_non_dict():
    assert TaskDefinition.from_payload('nope') is None
    assert TaskDefinition.from_payload({'points': 'x'}).points is None


def test_phase_tracks_progress():
    room = RoomStore().get_or_create('P1')
    room.task_plan = [TaskDefinition(prompt='q')]
    room.current_task_index = 0
    room.current_task = CurrentTask.from_definition(0, room.task_plan[0], 0)
    assert room.phase == TASK_ACTIVE
    room.final_results = {'players': [], 'totalTasks': 1}
    assert room.phase == COMPLETE


def test_snapshot_hides_expired_bonuses():
    room = RoomStore().get_or_create('S1')
    room.teams['t1'] = Team(team_id='t1', name='Owls', color=TEAM_COLORS[0], score=12)
    room.active_bonuses['live'] = Bonus('live', 5, 8000, expires_at=2000)
    room.active_bonuses['old'] = Bonus('old', 5, 8000, expires_at=500)
    state = room.snapshot(at=1000)
    assert state['scores'] == {'Owls': 12}
    assert [b['id'] for b in state['bonuses']] == ['live']
    assert state['phase'] == LOBBY
