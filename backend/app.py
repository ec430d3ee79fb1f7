"""Flask application factory for the property survey backend."""
from flask import Flask, jsonify
import os
import logging
from pathlib import Path
from werkzeug.exceptions import RequestEntityTooLarge
from .models import db, ensure_schema, ensure_admin_user
from .blueprints import auth, surveys
from .cli import (
    init_db_command, fix_owner_details_command, rewrite_legacy_urls_command,
    migrate_uploads_command, check_timestamps_command,
)
from .logging_config import setup_logging

logger = logging.getLogger(__name__)


def _env_flag(name, default):
    return os.getenv(name, str(default)).strip().lower() in ('1', 'true', 'yes', 'on')


def default_config():
    """Settings read from the environment; instance or test config override them."""
    upload_max_file_size = int(os.getenv('UPLOAD_MAX_FILE_SIZE', 10 * 1024 * 1024))
    upload_max_files = int(os.getenv('UPLOAD_MAX_FILES', 20))
    return {
        'SQLALCHEMY_DATABASE_URI': os.getenv('DATABASE_URL', 'sqlite:///property_survey.db'),
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'JWT_SECRET': os.getenv('JWT_SECRET', 'secret_dev_change_me'),
        'JWT_EXPIRY_HOURS': int(os.getenv('JWT_EXPIRY_HOURS', 8)),
        'ADMIN_EMAIL': os.getenv('ADMIN_EMAIL', 'admin@survey.com'),
        'ADMIN_PASSWORD': os.getenv('ADMIN_PASSWORD', 'admin2026'),
        'UPLOAD_MAX_FILE_SIZE': upload_max_file_size,
        'UPLOAD_MAX_FILES': upload_max_files,
        # Whole multipart body: every file at the limit plus room for form fields
        'MAX_CONTENT_LENGTH': upload_max_file_size * upload_max_files + 1024 * 1024,
        'LEGACY_UPLOADS_DIR': os.getenv('LEGACY_UPLOADS_DIR', './uploads'),
        'AUTO_ENSURE_SCHEMA': _env_flag('AUTO_ENSURE_SCHEMA', True),
        'LOG_LEVEL': os.getenv('LOG_LEVEL', 'INFO'),
        'LOG_DIR': os.getenv('LOG_DIR'),
    }


def create_app(test_config=None):
    """Flask application factory for the property survey backend.

    Creates and configures a Flask application instance with:
    - SQLAlchemy database integration
    - Schema ensure and admin bootstrap on start
    - Blueprint registration for API endpoints
    - CLI command registration
    - Logging configuration

    Args:
        test_config (dict, optional): Configuration overrides for testing

    Returns:
        Flask: Configured Flask application instance
    """
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_mapping(default_config())

    if test_config is None:
        config_loaded = app.config.from_pyfile('config.py', silent=True)
    else:
        app.config.from_mapping(test_config)
        config_loaded = False

    setup_logging(app)
    logger.info("Starting Flask application initialization")
    if config_loaded:
        logger.info("Loaded configuration from instance/config.py")
    elif test_config is not None:
        logger.info("Loaded test configuration")

    try:
        Path(app.instance_path).mkdir(parents=True, exist_ok=True)
    except OSError:
        logger.debug(f"Could not create instance directory: {app.instance_path}")

    if app.config['JWT_SECRET'] == 'secret_dev_change_me' and not app.config.get('TESTING'):
        logger.warning("JWT_SECRET is not set; using the development secret")

    db.init_app(app)
    logger.info("SQLAlchemy database initialized")

    app.register_blueprint(auth.bp)
    app.register_blueprint(surveys.bp)
    logger.debug("Registered auth and surveys blueprints")

    @app.route('/')
    def index():
        return 'Property Survey Backend Running'

    @app.errorhandler(RequestEntityTooLarge)
    def request_too_large(e):
        return jsonify({'error': 'Upload too large'}), 413

    app.cli.add_command(init_db_command)
    app.cli.add_command(fix_owner_details_command)
    app.cli.add_command(rewrite_legacy_urls_command)
    app.cli.add_command(migrate_uploads_command)
    app.cli.add_command(check_timestamps_command)
    logger.info("CLI commands registered: init-db, fix-owner-details, rewrite-legacy-urls, "
                "migrate-uploads, check-timestamps")

    if app.config['AUTO_ENSURE_SCHEMA']:
        with app.app_context():
            ensure_schema()
            ensure_admin_user(app.config['ADMIN_EMAIL'], app.config['ADMIN_PASSWORD'])

    logger.info("Flask application initialization completed successfully")
    return app


if __name__ == '__main__':
    app = create_app()
    app.run(debug=True)
