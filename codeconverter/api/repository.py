"""Repository validation API blueprint."""
import logging
from flask import Blueprint, current_app, jsonify, request

from utils.exceptions import RepositoryValidationError


bp = Blueprint('repository', __name__)
logger = logging.getLogger(__name__)


@bp.route('/validate', methods=['POST'])
def validate_repository():
    """Check that a repository exists and is reachable.

    Accepts JSON with:
    - repositoryUrl: GitHub web or SSH URL (required)
    - accessToken: Personal access token for private repositories (optional)

    Returns:
        200: {isValid, name, description, lastUpdated}
        400: Malformed body, missing URL, malformed URL, not found, or rejected credentials
        500: Unexpected failure
    """
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        return jsonify({'error': 'Request body must be a JSON object'}), 400

    repository_url = data.get('repositoryUrl')
    access_token = data.get('accessToken') or None

    if not repository_url:
        return jsonify({'error': 'Repository URL is required'}), 400
    if not isinstance(repository_url, str) or not isinstance(access_token, (str, type(None))):
        return jsonify({'error': 'repositoryUrl and accessToken must be strings'}), 400

    try:
        validation = current_app.extensions['github_client'].validate_repository(
            repository_url, access_token
        )
        return jsonify(validation)

    except RepositoryValidationError as e:
        logger.warning(f"Repository validation failed for {repository_url}: {e}")
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        logger.error(f"Unexpected error validating repository: {e}")
        return jsonify({'error': 'Failed to validate repository'}), 500
