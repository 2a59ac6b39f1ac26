import os
import sys
from dotenv import load_dotenv

# Project directory on sys.path so Alembic's env.py can import the package
sys.path.append(os.path.abspath(os.path.dirname(__file__)))

load_dotenv()

basedir = os.path.abspath(os.path.dirname(__file__))


def _rest_days_from_env(value, default=(5, 6)):
    """Parses DEFAULT_REST_DAYS ("5,6") into weekday numbers (Monday is 0)."""
    if not value:
        return frozenset(default)
    return frozenset(int(part) for part in value.split(',') if part.strip())


class Config:
    """Base configuration class."""
    # SECRET_KEY must be set via environment variable in production
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'instance', 'payroll.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    MIGRATION_DIR = os.path.join(basedir, 'migrations')

    # Payroll
    TIMEZONE = os.environ.get('TIMEZONE') or 'Asia/Manila'
    PAYROLL_RULESET = os.environ.get('PAYROLL_RULESET') or 'ph-standard-2026'
    PAYROLL_MAX_WORKERS = int(os.environ['PAYROLL_MAX_WORKERS']) \
        if os.environ.get('PAYROLL_MAX_WORKERS') else None
    DEFAULT_REST_DAYS = _rest_days_from_env(os.environ.get('DEFAULT_REST_DAYS'))

    # Logging
    LOG_TO_STDOUT = os.environ.get('LOG_TO_STDOUT')
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'INFO'
    LOG_FILE = os.environ.get('LOG_FILE') or os.path.join('logs', 'payroll.log')

    @staticmethod
    def init_app(app):
        """Initialize application-specific configuration."""
        import logging
        from logging import StreamHandler

        if app.debug or app.testing:
            return

        formatter = logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
        )
        level = getattr(logging, app.config.get('LOG_LEVEL', 'INFO').upper(), logging.INFO)

        if app.config.get('LOG_TO_STDOUT'):
            handler = StreamHandler()
        else:
            log_dir = os.path.dirname(app.config['LOG_FILE'])
            if log_dir and not os.path.exists(log_dir):
                os.makedirs(log_dir)
            handler = logging.FileHandler(app.config['LOG_FILE'])
        handler.setFormatter(formatter)
        handler.setLevel(level)

        app.logger.addHandler(handler)
        app.logger.setLevel(level)

        # Engine and service modules log under the package name
        package_logger = logging.getLogger('phpayroll')
        package_logger.addHandler(handler)
        package_logger.setLevel(level)

        app.logger.info('Payroll System startup')


class DevelopmentConfig(Config):
    DEBUG = True


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    WTF_CSRF_ENABLED = False
    PAYROLL_MAX_WORKERS = 1


class ProductionConfig(Config):
    DEBUG = False

    @staticmethod
    def init_app(app):
        """Initialize production configuration with validation."""
        Config.init_app(app)

        if not os.environ.get('SECRET_KEY'):
            raise ValueError("SECRET_KEY environment variable must be set in production!")

        if not os.environ.get('DATABASE_URL'):
            raise ValueError("DATABASE_URL environment variable must be set in production!")

        app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY')
        app.config['SQLALCHEMY_DATABASE_URI'] = os.environ.get('DATABASE_URL')


config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}
