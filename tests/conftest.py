"""Pytest configuration and fixtures."""
import os
import pytest

from utils.config import AppConfig


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment():
    """Set up test environment variables for all tests."""
    test_env_vars = {
        "CONVERSION_STORE": "memory",
        "DATABASE_URL": "sqlite:///:memory:",  # Use in-memory SQLite for tests
        "FLASK_ENV": "testing",
        "LOG_LEVEL": "DEBUG",
    }

    for key, value in test_env_vars.items():
        os.environ[key] = value

    yield

    # Clean up environment variables after tests
    for key in test_env_vars:
        os.environ.pop(key, None)


@pytest.fixture
def app_config(tmp_path):
    """Memory-backed config with a per-test work directory."""
    return AppConfig(work_dir=str(tmp_path / "work"), store_backend="memory")


@pytest.fixture
def launched():
    """Records conversion ids handed to the background launcher."""
    return []


@pytest.fixture
def app(app_config, launched):
    """Create app whose launcher records ids instead of starting threads."""
    from codeconverter import create_app

    app = create_app(
        config=app_config,
        config_override={
            'TESTING': True,
            'CONVERSION_LAUNCHER': lambda flask_app, conversion_id: launched.append(conversion_id),
        }
    )
    yield app


@pytest.fixture
def client(app):
    with app.test_client() as client:
        yield client


@pytest.fixture
def store(app):
    return app.extensions['conversion_store']


@pytest.fixture
def conversion_payload():
    """Valid body for POST /api/conversions."""
    return {
        'repositoryUrl': 'https://github.com/acme/widgets',
        'sourceLanguage': 'java',
        'sourceFramework': 'testng',
        'sourceAutomationTool': 'selenium',
        'targetFramework': 'robot',
        'targetLibrary': 'browser',
        'testStructure': 'modular',
        'modelApiKey': 'sk-test-key',
        'modelSelection': 'gpt-4o',
    }


@pytest.fixture
def conversion_result_payload():
    """Structured conversion output as returned by the model."""
    return {
        'testFiles': [
            {
                'path': 'tests/login_test.robot',
                'content': '*** Test Cases ***\nValid Login\n    Open Browser    ${URL}\n',
                'testCases': 1,
            }
        ],
        'resourceFiles': [
            {
                'path': 'resources/common_keywords.resource',
                'content': '*** Keywords ***\nOpen Login Page\n    New Page    ${URL}\n',
                'keywords': 1,
            }
        ],
        'requirements': ['robotframework==6.1.1', 'robotframework-browser==18.0.0'],
        'summary': {
            'totalTestFiles': 1,
            'totalTestCases': 1,
            'totalResourceFiles': 1,
            'warnings': ['Explicit waits were replaced by auto-waiting'],
            'recommendations': ['Run rfbrowser init after installing'],
        },
    }
