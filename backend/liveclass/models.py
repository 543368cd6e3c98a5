from liveclass import db, bcrypt
from flask_login import UserMixin
import datetime
import json


def utcnow():
    # naive UTC, matching the DateTime columns
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


class User(UserMixin, db.Model):
    """A teacher account."""
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
        }


class TeamSessionRecord(db.Model):
    """Presence record for a team in a room; expires after the retention TTL."""
    __tablename__ = 'team_session'
    id = db.Column(db.Integer, primary_key=True)
    room_code = db.Column(db.String(16), nullable=False, index=True)
    team_id = db.Column(db.String(64), nullable=False, index=True)
    team_name = db.Column(db.String(64), nullable=False)
    team_color = db.Column(db.String(32), nullable=False)
    player_names = db.Column(db.Text, nullable=True)  # JSON-encoded list of names
    status = db.Column(db.String(16), default='online', nullable=False)  # online, offline
    last_seen_at = db.Column(db.DateTime, default=utcnow, index=True)
    created_at = db.Column(db.DateTime, default=utcnow)
    expires_at = db.Column(db.DateTime, nullable=False, index=True)

    def to_dict(self):
        return {
            'id': self.id,
            'room_code': self.room_code,
            'team_id': self.team_id,
            'team_name': self.team_name,
            'team_color': self.team_color,
            'player_names': json.loads(self.player_names) if self.player_names else [],
            'status': self.status,
            'last_seen_at': self.last_seen_at.isoformat() if self.last_seen_at else None,
            'expires_at': self.expires_at.isoformat() if self.expires_at else None,
        }


class SessionAnalytics(db.Model):
    """Stored summary of a finished room, as handed to the reporting collaborator."""
    __tablename__ = 'session_analytics'
    id = db.Column(db.Integer, primary_key=True)
    room_code = db.Column(db.String(16), nullable=False, index=True)
    teacher_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True, index=True)
    class_average_score = db.Column(db.Float, nullable=True)
    class_average_accuracy = db.Column(db.Float, nullable=True)
    payload = db.Column(db.Text, nullable=False)  # JSON-encoded analytics object
    created_at = db.Column(db.DateTime, default=utcnow)

    teacher = db.relationship('User')

    @property
    def analytics(self):
        try:
            return json.loads(self.payload) if self.payload else {}
        except ValueError:
            return {}

    def to_dict(self, detailed=False):
        data = {
            'id': self.id,
            'room_code': self.room_code,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'classAverageScore': self.class_average_score,
            'classAverageAccuracy': self.class_average_accuracy,
        }
        if detailed:
            analytics = self.analytics
            data['tasks'] = analytics.get('tasks', [])
            data['teams'] = analytics.get('teams', [])
            data['students'] = analytics.get('students', [])
        return data
