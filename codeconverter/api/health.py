"""Health check API blueprint."""
from flask import Blueprint, current_app, jsonify
import logging

bp = Blueprint('health', __name__)
logger = logging.getLogger(__name__)

SERVICE_NAME = "CodeConverter API"
VERSION = "1.0.0"


@bp.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint to verify service is running."""
    logger.debug("Health check requested")

    return jsonify({
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": VERSION,
        "store": current_app.config['APP_CONFIG'].store_backend
    })


@bp.route('/', methods=['GET'])
def root():
    """Root endpoint with API information."""
    return jsonify({
        "service": SERVICE_NAME,
        "version": VERSION,
        "status": "running",
        "endpoints": {
            "health": "/health",
            "repository": {
                "validate": "/api/repository/validate"
            },
            "conversions": {
                "create": "/api/conversions",
                "list": "/api/conversions?status={status}",
                "status": "/api/conversions/{id}",
                "download": "/api/conversions/{id}/download",
                "deploy": "/api/conversions/{id}/deploy",
                "file": "/api/conversions/{id}/files/{filename}"
            }
        }
    })
