import time
from typing import Set, Tuple

from liveclass import socketio


_scheduled_advance_keys: Set[Tuple[str, int]] = set()


def schedule_auto_advance(app, code: str, task_index: int) -> None:
    """Advance a room once every team has answered the task at ``task_index``.

    - No-ops unless AUTO_ADVANCE is enabled
    - Ensures a single timer per (room, task index)
    - Aborts if the room moved on (teacher advanced manually) before firing
    """
    if not app.config.get('AUTO_ADVANCE'):
        return
    key = (code, task_index)
    if key in _scheduled_advance_keys:
        app.logger.info(f"[timer-skip] room={code} index={task_index} already scheduled")
        return
    _scheduled_advance_keys.add(key)
    delay = int(app.config.get('AUTO_ADVANCE_DELAY_SEC', 3))
    app.logger.info(f"[timer-set] room={code} index={task_index} delay={delay}s")

    def _worker(room_code: str, expected_index: int, wait: int):
        if wait > 0:
            time.sleep(wait)
        _scheduled_advance_keys.discard((room_code, expected_index))
        with app.app_context():
            controller = app.extensions['live_session']
            room = controller.store.get(room_code)
            if room is None:
                return
            app.logger.info(
                f"[timer-fire] room={room_code} expected_index={expected_index} actual_index={room.current_task_index}"
            )
            if room.current_task_index != expected_index or room.is_complete:
                app.logger.info(f"[timer-abort] room={room_code} index moved on")
                return
            controller.advance(room_code)

    if app.config.get('TESTING') and not app.config.get('ENABLE_SCHEDULER_THREADS_IN_TESTS'):
        _worker(code, task_index, 0)
    else:
        socketio.start_background_task(_worker, code, task_index, delay)


def reset_schedule() -> None:
    _scheduled_advance_keys.clear()
