"""Conversions API - job creation, status polling, and output delivery."""
from flask import Blueprint, current_app, jsonify, request, send_file
import logging

from codeconverter.services.converter import get_conversion_service
from codeconverter.services.store import get_conversion_store
from models.conversion import STATUSES, STATUS_COMPLETED
from models.schemas import parse_conversion_request
from utils.exceptions import ArchiveError, PublishError, SchemaValidationError

bp = Blueprint('conversions', __name__)
logger = logging.getLogger(__name__)

DEPLOY_FIELDS = ('targetUrl', 'accessToken', 'branch', 'commitMessage')


@bp.route('', methods=['POST'])
def create_conversion():
    """Create a conversion job and start its pipeline in the background.

    Accepts JSON with the job configuration (camelCase keys):
    repositoryUrl, accessToken?, sourceLanguage, sourceFramework,
    sourceAutomationTool, targetFramework, targetLibrary, testStructure,
    modelApiKey (or openaiApiKey), modelSelection?

    Returns:
        200: Created job (status 'pending', progress 0); poll GET /{id} for progress
        400: Schema validation failure with field-level details
        500: Unexpected failure
    """
    try:
        conversion_request = parse_conversion_request(request.get_json(silent=True))
    except SchemaValidationError as e:
        logger.warning(f"Conversion request rejected: {e.details}")
        return jsonify({'error': str(e), 'details': e.details}), 400

    try:
        config = current_app.config['APP_CONFIG']
        job = get_conversion_store().create(conversion_request, config.openai.default_model)

        launcher = current_app.config['CONVERSION_LAUNCHER']
        launcher(current_app._get_current_object(), job.id)

        logger.info(f"Conversion {job.id} created for {job.repository_url}")
        return jsonify(job.to_dict()), 200

    except Exception as e:
        logger.error(f"Conversion creation error: {e}")
        return jsonify({'error': 'Failed to create conversion'}), 500


@bp.route('', methods=['GET'])
def list_conversions():
    """List conversions, optionally filtered by status.

    Query parameters:
    - status: pending | analyzing | converting | completed | failed (optional)

    Returns:
        200: {conversions, total}
        400: Unknown status filter
    """
    status_filter = request.args.get('status')
    if status_filter and status_filter not in STATUSES:
        return jsonify({'error': f'Invalid status filter. Must be one of: {", ".join(STATUSES)}'}), 400

    jobs = get_conversion_store().list_by_status(status_filter or None)
    return jsonify({
        'conversions': [job.to_summary_dict() for job in jobs],
        'total': len(jobs)
    }), 200


@bp.route('/<conversion_id>', methods=['GET'])
def get_conversion(conversion_id):
    """Get a conversion with its repository info.

    Returns:
        200: Job record plus 'repositoryInfo' (null until the scan stage has run)
        404: Conversion not found
        500: Unexpected failure
    """
    try:
        store = get_conversion_store()
        job = store.get(conversion_id)
        if not job:
            return jsonify({'error': 'Conversion not found'}), 404

        repository_info = store.get_repository_info(conversion_id)
        payload = job.to_dict()
        payload['repositoryInfo'] = repository_info.to_dict() if repository_info else None
        return jsonify(payload), 200

    except Exception as e:
        logger.error(f"Get conversion error: {e}")
        return jsonify({'error': 'Failed to get conversion'}), 500


@bp.route('/<conversion_id>/download', methods=['GET'])
def download_conversion(conversion_id):
    """Download the generated files of a completed conversion as a ZIP archive.

    Returns:
        200: application/zip attachment
        400: Conversion not completed yet
        404: Conversion not found
        500: Archive could not be built
    """
    job = get_conversion_store().get(conversion_id)
    if not job:
        return jsonify({'error': 'Conversion not found'}), 404

    if job.status != STATUS_COMPLETED:
        return jsonify({'error': 'Conversion not completed yet'}), 400

    try:
        archive = get_conversion_service().build_archive(job.id)
    except ArchiveError as e:
        logger.error(f"Download error for conversion {conversion_id}: {e}")
        return jsonify({'error': 'Failed to download files', 'details': str(e)}), 500

    return send_file(
        archive,
        mimetype='application/zip',
        as_attachment=True,
        download_name=f'robot-framework-conversion-{job.id}.zip'
    )


@bp.route('/<conversion_id>/deploy', methods=['POST'])
def deploy_conversion(conversion_id):
    """Push the generated files of a completed conversion to a repository.

    Accepts JSON with (all required): targetUrl, accessToken, branch, commitMessage

    Returns:
        200: {success: true}
        400: Malformed body, missing field or conversion not completed yet
        404: Conversion not found
        500: Push failed
    """
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        return jsonify({'error': 'Request body must be a JSON object'}), 400

    missing = [name for name in DEPLOY_FIELDS if not data.get(name)]
    if missing:
        return jsonify({
            'error': 'targetUrl, accessToken, branch, and commitMessage are required',
            'missing': missing
        }), 400

    invalid = [name for name in DEPLOY_FIELDS if not isinstance(data[name], str)]
    if invalid:
        return jsonify({'error': 'Deploy fields must be strings', 'invalid': invalid}), 400

    job = get_conversion_store().get(conversion_id)
    if not job:
        return jsonify({'error': 'Conversion not found'}), 404

    if job.status != STATUS_COMPLETED:
        return jsonify({'error': 'Conversion not completed yet'}), 400

    try:
        get_conversion_service().deploy(
            job.id,
            data['targetUrl'],
            data['accessToken'],
            data['branch'],
            data['commitMessage']
        )
    except PublishError as e:
        logger.error(f"Deploy error for conversion {conversion_id}: {e}")
        return jsonify({'error': 'Failed to deploy to GitHub', 'details': str(e)}), 500

    return jsonify({'success': True, 'message': 'Code deployed successfully'}), 200


@bp.route('/<conversion_id>/files/<path:filename>', methods=['GET'])
def get_file_content(conversion_id, filename):
    """Preview one generated file, matched by path suffix.

    Test files are searched before resource files.

    Returns:
        200: {content}
        400: Conversion not completed yet
        404: Conversion or file not found
    """
    job = get_conversion_store().get(conversion_id)
    if not job:
        return jsonify({'error': 'Conversion not found'}), 404

    if job.status != STATUS_COMPLETED or not job.converted_output:
        return jsonify({'error': 'Conversion not completed yet'}), 400

    content = get_conversion_service().find_generated_file(job, filename)
    if content is None:
        return jsonify({'error': 'File not found'}), 404

    return jsonify({'content': content}), 200
