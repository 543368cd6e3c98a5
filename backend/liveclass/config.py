import os


def _csv(value):
    return [item.strip() for item in value.split(',') if item.strip()]


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///liveclass.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = _csv(os.environ.get(
        'CORS_ORIGINS',
        'http://localhost:5173,http://127.0.0.1:5173,http://localhost:5174,http://127.0.0.1:5174',
    ))
    # Scoring strategy for new rooms: 'ranked' (batch, ranked speed bonus) or 'live' (threshold ticker)
    SCORING_MODE = os.environ.get('SCORING_MODE', 'ranked')
    BASE_POINTS = int(os.environ.get('BASE_POINTS', '10'))
    SPEED_BONUSES = [int(v) for v in _csv(os.environ.get('SPEED_BONUSES', '5,3,2'))]
    LIVE_FAST_THRESHOLD_MS = int(os.environ.get('LIVE_FAST_THRESHOLD_MS', '5000'))
    LIVE_FAST_BONUS = int(os.environ.get('LIVE_FAST_BONUS', '5'))
    # Bonus events
    BONUS_POINTS = int(os.environ.get('BONUS_POINTS', '5'))
    BONUS_DURATION_MS = int(os.environ.get('BONUS_DURATION_MS', '8000'))
    # Auto-advance once every team has submitted. 0 disables.
    AUTO_ADVANCE = os.environ.get('AUTO_ADVANCE', '0') == '1'
    AUTO_ADVANCE_DELAY_SEC = int(os.environ.get('AUTO_ADVANCE_DELAY_SEC', '3'))
    # Team session records retention (seconds)
    RECORD_TTL_SEC = int(os.environ.get('RECORD_TTL_SEC', '86400'))
