"""Flask application factory following Flask best practices."""
import logging
import os
from typing import Optional

from flask import Flask, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from utils.config import AppConfig, get_app_config
from utils.logging import configure_logging


def create_app(config: Optional[AppConfig] = None, config_override: Optional[dict] = None) -> Flask:
    """Create and configure Flask application using application factory pattern.

    Args:
        config: Explicit application config (defaults to the environment)
        config_override: Optional Flask config overrides for testing

    Returns:
        Flask app instance
    """
    app = Flask(__name__)

    # Load configuration
    config = config or get_app_config()
    app.config['APP_CONFIG'] = config
    app.config['SQLALCHEMY_DATABASE_URI'] = config.database_url
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False

    from codeconverter.services.converter import start_conversion
    app.config['CONVERSION_LAUNCHER'] = start_conversion

    # Apply any configuration overrides (useful for testing)
    if config_override:
        for key, value in config_override.items():
            app.config[key] = value

    # Configure CORS
    CORS(app, origins=list(config.allowed_origins))

    # Setup logging
    configure_logging()

    os.makedirs(config.work_dir, exist_ok=True)

    init_services(app)

    # Register blueprints
    register_blueprints(app)

    # Register error handlers
    register_error_handlers(app)

    return app


def init_services(app: Flask) -> None:
    """Attach the conversion store and outbound clients to the app."""
    from codeconverter.clients.git import GitClient
    from codeconverter.clients.github import GitHubClient
    from codeconverter.clients.openai import get_openai_client
    from codeconverter.services.store import create_store

    config: AppConfig = app.config['APP_CONFIG']

    if config.store_backend == 'sqlalchemy':
        from models import db, init_db
        import models.orm  # noqa: F401  registers the tables

        init_db(app)
        with app.app_context():
            db.create_all()
        logging.info(f"Database initialized at {config.database_url}")

    app.extensions['conversion_store'] = create_store(config.store_backend)
    app.extensions['github_client'] = GitHubClient(
        api_url=config.github.api_url,
        timeout=config.github.timeout_seconds
    )
    app.extensions['git_client'] = GitClient(
        author_name=config.git.author_name,
        author_email=config.git.author_email,
        timeout=config.git.timeout_seconds
    )
    app.extensions['openai_client_factory'] = get_openai_client
    logging.info(f"Conversion store backend: {config.store_backend}")


def register_blueprints(app: Flask) -> None:
    """Register all application blueprints."""
    # Import blueprints here to avoid circular imports
    from codeconverter.api.health import bp as health_bp
    from codeconverter.api.repository import bp as repository_bp
    from codeconverter.api.conversions import bp as conversions_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(repository_bp, url_prefix='/api/repository')
    app.register_blueprint(conversions_bp, url_prefix='/api/conversions')


def register_error_handlers(app: Flask) -> None:
    """Register global error handlers."""

    @app.errorhandler(HTTPException)
    def handle_http_exception(error):
        return jsonify({'error': error.description}), error.code

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'Endpoint not found'}), 404

    @app.errorhandler(500)
    def internal_error(error):
        app.logger.error(f"Internal server error: {error}")
        return jsonify({'error': 'Internal server error'}), 500
