from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
from flask_login import LoginManager
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO(async_mode=None)
login_manager = LoginManager()

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = flask_app.config.get('ALLOWED_ORIGINS') or '*'

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    login_manager.init_app(flask_app)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # App-scoped engine: one presence directory, one lock table, one orchestrator
    from arena.repository import Repository
    from arena.services.presence import PresenceDirectory
    from arena.services.matchmaking import MatchRegistry
    from arena.services.settlement import SettlementEngine
    from arena.services.adjudicator import Adjudicator, MatchLocks

    repo = Repository(
        starting_balance=flask_app.config.get('STARTING_BALANCE'),
    )
    presence = PresenceDirectory()
    registry = MatchRegistry(repo)
    settlement = SettlementEngine(repo, fee_rate=flask_app.config.get('HOUSE_FEE_RATE'))
    flask_app.extensions['arena'] = Adjudicator(
        repo=repo,
        registry=registry,
        settlement=settlement,
        presence=presence,
        locks=MatchLocks(),
    )

    from arena.main import main
    flask_app.register_blueprint(main)

    from arena.api.users import users
    flask_app.register_blueprint(users, url_prefix='/api')

    from arena.api.matches import matches
    flask_app.register_blueprint(matches, url_prefix='/api/matches')

    # Register Socket.IO event handlers
    from arena.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    # Flask-Login user loader
    @login_manager.user_loader
    def load_user(user_id):
        return get_arena().repo.get_user(user_id)

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Login required'}), 401

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates the tables and seeds the shared guest player."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            guest = repo.get_or_create_guest()
            db.session.commit()
            print(f'Database has been reset! Guest player: {guest.id}')

    flask_app.cli.add_command(db_reset_command)

    return flask_app


def get_arena(app=None):
    """Return the Adjudicator bound to the given (or current) app."""
    if app is None:
        from flask import current_app
        app = current_app
    return app.extensions['arena']
