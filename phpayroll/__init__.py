# phpayroll/__init__.py
from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from config import config

db = SQLAlchemy()
migrate = Migrate()
login = LoginManager()


@login.user_loader
def load_user(id):
    from phpayroll.models.user import User
    return db.session.get(User, int(id))


@login.unauthorized_handler
def unauthorized():
    return jsonify({'error': 'Authentication required.'}), 401


def create_app(config_name='default'):
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config[config_name])

    # Initialize app-specific configuration (logging, etc.)
    config[config_name].init_app(app)

    db.init_app(app)
    migrate.init_app(app, db, directory=app.config.get('MIGRATION_DIR'))
    login.init_app(app)

    # --- Register Blueprints ---
    from .auth import bp as auth_bp
    app.register_blueprint(auth_bp)

    from .attendance import bp as attendance_bp
    app.register_blueprint(attendance_bp)

    from .payroll import bp as payroll_bp
    app.register_blueprint(payroll_bp)

    # --- Register Error Handlers ---
    from .engine.exceptions import PayrollError

    @app.errorhandler(PayrollError)
    def payroll_error(error):
        db.session.rollback()
        return jsonify({'error': error.message}), error.status_code

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({'error': 'Not found.'}), 404

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        return jsonify({'error': 'Internal server error.'}), 500

    return app
