"""
Tests for the conversions API endpoints.

The background launcher is replaced in conftest, so jobs stay where the
tests put them.
"""
import io
import zipfile
from unittest.mock import MagicMock

import pytest

from codeconverter.services.converter import build_conversion_service
from models.conversion import RepositoryInfo
from models.schemas import ConversionResult, parse_conversion_request
from utils.exceptions import PublishError


DEPLOY_BODY = {
    'targetUrl': 'https://github.com/acme/converted',
    'accessToken': 'ghp_secret',
    'branch': 'main',
    'commitMessage': 'Add converted tests',
}


@pytest.fixture
def pending_job(store, conversion_payload):
    return store.create(parse_conversion_request(conversion_payload), 'gpt-4o')


def _advance_to(store, job_id, status):
    if status == 'pending':
        return
    if status == 'failed':
        store.update(job_id, status='failed', error_log=['boom'])
        return
    store.update(job_id, status='analyzing', progress=10)
    if status == 'analyzing':
        return
    store.update(job_id, status='converting', progress=70)


@pytest.fixture
def completed_job(app, store, pending_job, conversion_result_payload):
    result = ConversionResult.model_validate(conversion_result_payload)
    service = build_conversion_service(app)
    service.save_converted_files(service.output_dir(pending_job.id), result, 'robot')

    _advance_to(store, pending_job.id, 'converting')
    return store.update(
        pending_job.id,
        status='completed',
        progress=100,
        converted_output=result.to_payload()
    )


class TestCreateConversion:
    """POST /api/conversions"""

    def test_create_returns_pending_job(self, client, conversion_payload, launched):
        response = client.post('/api/conversions', json=conversion_payload)

        assert response.status_code == 200
        data = response.get_json()
        assert data['status'] == 'pending'
        assert data['progress'] == 0
        assert data['repositoryUrl'] == 'https://github.com/acme/widgets'
        assert data['targetFramework'] == 'robot'
        assert data['errorLog'] is None
        assert launched == [data['id']]

    def test_secrets_are_not_echoed(self, client, conversion_payload):
        conversion_payload['accessToken'] = 'ghp_secret'

        data = client.post('/api/conversions', json=conversion_payload).get_json()

        assert 'modelApiKey' not in data
        assert 'accessToken' not in data
        assert 'sk-test-key' not in str(data)
        assert 'ghp_secret' not in str(data)

    def test_legacy_openai_api_key_is_accepted(self, client, conversion_payload):
        conversion_payload['openaiApiKey'] = conversion_payload.pop('modelApiKey')

        response = client.post('/api/conversions', json=conversion_payload)

        assert response.status_code == 200

    def test_client_status_is_ignored(self, client, conversion_payload):
        conversion_payload.update({'status': 'completed', 'progress': 100})

        data = client.post('/api/conversions', json=conversion_payload).get_json()

        assert data['status'] == 'pending'
        assert data['progress'] == 0

    def test_missing_model_selection_uses_default(self, client, conversion_payload):
        conversion_payload.pop('modelSelection')

        data = client.post('/api/conversions', json=conversion_payload).get_json()

        assert data['modelSelection'] == 'gpt-4o'

    @pytest.mark.parametrize('field', [
        'repositoryUrl',
        'sourceLanguage',
        'targetFramework',
        'testStructure',
        'modelApiKey',
    ])
    def test_missing_required_field(self, client, conversion_payload, launched, field):
        conversion_payload.pop(field)

        response = client.post('/api/conversions', json=conversion_payload)

        assert response.status_code == 400
        data = response.get_json()
        assert data['error'] == 'Invalid request data'
        assert data['details']
        assert launched == []

    def test_non_json_body(self, client, launched):
        response = client.post('/api/conversions', data='not json', content_type='text/plain')

        assert response.status_code == 400
        assert launched == []


class TestListConversions:
    """GET /api/conversions"""

    def test_list_all_and_filtered(self, client, store, conversion_payload):
        request_model = parse_conversion_request(conversion_payload)
        first = store.create(request_model, 'gpt-4o')
        second = store.create(request_model, 'gpt-4o')
        store.update(second.id, status='failed', error_log=['boom'])

        data = client.get('/api/conversions').get_json()
        assert data['total'] == 2

        failed = client.get('/api/conversions?status=failed').get_json()
        assert [job['id'] for job in failed['conversions']] == [second.id]
        assert failed['conversions'][0]['status'] == 'failed'

        pending = client.get('/api/conversions?status=pending').get_json()
        assert [job['id'] for job in pending['conversions']] == [first.id]

    def test_invalid_status_filter(self, client):
        response = client.get('/api/conversions?status=done')

        assert response.status_code == 400


class TestGetConversion:
    """GET /api/conversions/<id>"""

    def test_get_without_repository_info(self, client, pending_job):
        response = client.get(f'/api/conversions/{pending_job.id}')

        assert response.status_code == 200
        data = response.get_json()
        assert data['id'] == pending_job.id
        assert data['repositoryInfo'] is None

    def test_get_with_repository_info(self, client, store, pending_job):
        store.create_repository_info(RepositoryInfo(
            conversion_id=pending_job.id,
            name='acme/widgets',
            detected_files=['src/test/LoginTest.java'],
        ))

        data = client.get(f'/api/conversions/{pending_job.id}').get_json()

        assert data['repositoryInfo']['name'] == 'acme/widgets'
        assert data['repositoryInfo']['detectedFiles'] == ['src/test/LoginTest.java']

    def test_failed_job_exposes_error_log(self, client, store, pending_job):
        _advance_to(store, pending_job.id, 'failed')

        data = client.get(f'/api/conversions/{pending_job.id}').get_json()

        assert data['status'] == 'failed'
        assert data['errorLog'] == ['boom']

    def test_unknown_id(self, client):
        response = client.get('/api/conversions/does-not-exist')

        assert response.status_code == 404
        assert response.get_json()['error'] == 'Conversion not found'


class TestDownload:
    """GET /api/conversions/<id>/download"""

    @pytest.mark.parametrize('status', ['pending', 'analyzing', 'converting', 'failed'])
    def test_not_completed(self, client, store, pending_job, status):
        _advance_to(store, pending_job.id, status)

        response = client.get(f'/api/conversions/{pending_job.id}/download')

        assert response.status_code == 400
        assert response.get_json()['error'] == 'Conversion not completed yet'

    def test_unknown_id(self, client):
        assert client.get('/api/conversions/nope/download').status_code == 404

    def test_download_zip(self, client, completed_job, conversion_result_payload):
        response = client.get(f'/api/conversions/{completed_job.id}/download')

        assert response.status_code == 200
        assert response.mimetype == 'application/zip'
        assert (
            f'robot-framework-conversion-{completed_job.id}.zip'
            in response.headers['Content-Disposition']
        )

        with zipfile.ZipFile(io.BytesIO(response.data)) as archive:
            names = set(archive.namelist())
            assert {'README.md', 'requirements.txt', 'tests/login_test.robot'} <= names
            expected = conversion_result_payload['testFiles'][0]['content'].encode('utf-8')
            assert archive.read('tests/login_test.robot') == expected

    def test_missing_output_directory(self, app, client, completed_job):
        import shutil

        shutil.rmtree(build_conversion_service(app).output_dir(completed_job.id))

        response = client.get(f'/api/conversions/{completed_job.id}/download')

        assert response.status_code == 500


class TestDeploy:
    """POST /api/conversions/<id>/deploy"""

    @pytest.fixture
    def git_client(self, app):
        mock_git = MagicMock()
        app.extensions['git_client'] = mock_git
        return mock_git

    @pytest.mark.parametrize('field', list(DEPLOY_BODY))
    def test_missing_field(self, client, completed_job, git_client, field):
        body = dict(DEPLOY_BODY)
        body.pop(field)

        response = client.post(f'/api/conversions/{completed_job.id}/deploy', json=body)

        assert response.status_code == 400
        assert response.get_json()['missing'] == [field]
        git_client.push.assert_not_called()

    def test_unknown_id(self, client, git_client):
        response = client.post('/api/conversions/nope/deploy', json=DEPLOY_BODY)

        assert response.status_code == 404
        git_client.push.assert_not_called()

    def test_not_completed(self, client, pending_job, git_client):
        response = client.post(f'/api/conversions/{pending_job.id}/deploy', json=DEPLOY_BODY)

        assert response.status_code == 400
        git_client.push.assert_not_called()

    def test_deploy_success(self, app, client, completed_job, git_client):
        response = client.post(f'/api/conversions/{completed_job.id}/deploy', json=DEPLOY_BODY)

        assert response.status_code == 200
        assert response.get_json()['success'] is True
        git_client.push.assert_called_once_with(
            build_conversion_service(app).output_dir(completed_job.id),
            'https://github.com/acme/converted',
            'ghp_secret',
            'main',
            'Add converted tests'
        )

    def test_non_object_body(self, client, completed_job, git_client):
        response = client.post(f'/api/conversions/{completed_job.id}/deploy', json=['x'])

        assert response.status_code == 400
        git_client.push.assert_not_called()

    def test_non_string_field(self, client, completed_job, git_client):
        body = dict(DEPLOY_BODY, branch=['main'])

        response = client.post(f'/api/conversions/{completed_job.id}/deploy', json=body)

        assert response.status_code == 400
        assert response.get_json()['invalid'] == ['branch']
        git_client.push.assert_not_called()

    def test_push_failure(self, client, completed_job, git_client):
        git_client.push.side_effect = PublishError('Failed to push to repository: rejected')

        response = client.post(f'/api/conversions/{completed_job.id}/deploy', json=DEPLOY_BODY)

        assert response.status_code == 500
        assert 'rejected' in response.get_json()['details']


class TestFileContent:
    """GET /api/conversions/<id>/files/<filename>"""

    def test_test_file(self, client, completed_job, conversion_result_payload):
        response = client.get(f'/api/conversions/{completed_job.id}/files/login_test.robot')

        assert response.status_code == 200
        assert response.get_json()['content'] == conversion_result_payload['testFiles'][0]['content']

    def test_resource_file_by_full_path(self, client, completed_job, conversion_result_payload):
        response = client.get(
            f'/api/conversions/{completed_job.id}/files/resources/common_keywords.resource'
        )

        assert response.status_code == 200
        expected = conversion_result_payload['resourceFiles'][0]['content']
        assert response.get_json()['content'] == expected

    def test_unknown_file(self, client, completed_job):
        response = client.get(f'/api/conversions/{completed_job.id}/files/missing.robot')

        assert response.status_code == 404
        assert response.get_json()['error'] == 'File not found'

    def test_not_completed(self, client, pending_job):
        response = client.get(f'/api/conversions/{pending_job.id}/files/login_test.robot')

        assert response.status_code == 400

    def test_unknown_id(self, client):
        assert client.get('/api/conversions/nope/files/a.robot').status_code == 404
