"""Team session records: the durable presence trail behind live rooms.

Records are best effort. A failing write is rolled back and logged; live
room state never depends on it.
"""

import datetime
import json
from typing import Iterable, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from liveclass import db
from liveclass.models import TeamSessionRecord, SessionAnalytics, utcnow


DEFAULT_TTL_SEC = 86400


def _ttl() -> int:
    try:
        return int(current_app.config.get('RECORD_TTL_SEC', DEFAULT_TTL_SEC))
    except (TypeError, ValueError):
        return DEFAULT_TTL_SEC


def create_team_session_record(room_code: str, team_id: str, team_name: str, team_color: str,
                               player_names: Optional[Iterable[str]] = None) -> Optional[TeamSessionRecord]:
    """Create (or refresh) the online record for a team in a room."""
    now = utcnow()
    try:
        record = TeamSessionRecord.query.filter_by(room_code=room_code, team_id=team_id).first()
        if record is None:
            record = TeamSessionRecord(room_code=room_code, team_id=team_id, created_at=now)
        record.team_name = team_name
        record.team_color = team_color
        record.player_names = json.dumps(list(player_names or []))
        record.status = 'online'
        record.last_seen_at = now
        record.expires_at = (record.created_at or now) + datetime.timedelta(seconds=_ttl())
        db.session.add(record)
        db.session.commit()
        return record
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.warning(f"[record-error] room={room_code} team={team_id} create failed: {exc}")
        return None


def mark_offline(room_code: str, team_id: str) -> bool:
    try:
        record = TeamSessionRecord.query.filter_by(room_code=room_code, team_id=team_id).first()
        if record is None:
            return False
        record.status = 'offline'
        record.last_seen_at = utcnow()
        db.session.add(record)
        db.session.commit()
        return True
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.warning(f"[record-error] room={room_code} team={team_id} offline failed: {exc}")
        return False


def purge_expired(now: Optional[datetime.datetime] = None) -> int:
    """Delete records past their retention window. Returns the number removed."""
    cutoff = now or utcnow()
    removed = TeamSessionRecord.query.filter(TeamSessionRecord.expires_at < cutoff).delete(synchronize_session=False)
    db.session.commit()
    return removed


def store_session_analytics(analytics: dict, teacher_id: Optional[int] = None) -> SessionAnalytics:
    row = SessionAnalytics(
        room_code=analytics.get('roomCode') or '',
        teacher_id=teacher_id,
        class_average_score=analytics.get('classAverageScore'),
        class_average_accuracy=analytics.get('classAverageAccuracy'),
        payload=json.dumps(analytics),
    )
    try:
        db.session.add(row)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        raise
    return row
