"""Database models initialization."""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def init_db(app):
    """Initialize database extensions."""
    db.init_app(app)
