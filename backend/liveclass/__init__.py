from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from liveclass.config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
migrate = Migrate()
socketio = SocketIO(async_mode=None)


def create_app(config_class=Config, room_store=None, report_dispatcher=None):
    """Build the app and its process-scoped room engine.

    ``room_store`` lets callers inject an isolated RoomStore; by default each
    app owns a fresh one for its lifetime. ``report_dispatcher`` is called
    with (analytics, teacher_email) when a session ends.
    """
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from liveclass.services.live import SessionController, RoomStore
    from liveclass.services.live.broadcast import SocketEmitter
    from liveclass.services.live.scoring import scoring_config_from
    from liveclass.services.live.scheduler import schedule_auto_advance

    controller = SessionController(
        store=room_store if room_store is not None else RoomStore(),
        emitter=SocketEmitter(socketio),
        scoring=scoring_config_from(flask_app.config),
        default_mode=flask_app.config.get('SCORING_MODE', 'ranked'),
        logger=flask_app.logger,
        bonus_points=int(flask_app.config.get('BONUS_POINTS', 5)),
        bonus_duration_ms=int(flask_app.config.get('BONUS_DURATION_MS', 8000)),
    )
    controller.on_all_submitted = lambda room, index: schedule_auto_advance(flask_app, room.code, index)
    flask_app.extensions['live_session'] = controller
    flask_app.extensions['report_dispatcher'] = report_dispatcher

    from liveclass.main import main
    flask_app.register_blueprint(main)

    from liveclass.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api')

    # Register Socket.IO event handlers on the initialized socketio instance
    from liveclass.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    # Flask-Login user loader
    from liveclass.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Login required'}), 401

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the database, seeding a demo teacher."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            user = User(username='teacher')
            user.set_password('password')
            db.session.add(user)
            db.session.commit()
            print('Database has been reset and seeded!')

    @click.command('purge-records')
    def purge_records_command():
        """Deletes team session records past their retention window."""
        from liveclass.services.records import purge_expired
        with flask_app.app_context():
            removed = purge_expired()
            print(f'Purged {removed} expired team session records.')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(purge_records_command)

    return flask_app
