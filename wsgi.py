"""WSGI entry point for production deployment with gunicorn."""

from codeconverter import create_app

# Create Flask app instance
app = create_app()

# Export app for gunicorn (run with --threads so pipelines and polling share a worker)
application = app
