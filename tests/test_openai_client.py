"""Tests for the OpenAI analysis and conversion client."""
import json
from unittest.mock import MagicMock, patch

import pytest

from codeconverter.clients.openai import OpenAIClient, target_framework_name
from utils.exceptions import AnalysisError, ConversionError, ServiceError


ANALYSIS_PAYLOAD = {
    'testFiles': [
        {
            'path': 'src/test/LoginTest.java',
            'testCases': [
                {
                    'name': 'validLogin',
                    'description': 'Logs in with valid credentials',
                    'steps': ['open page', 'submit form'],
                    'assertions': ['title equals Dashboard'],
                    'tags': ['smoke'],
                }
            ],
            'keywords': ['login'],
            'complexity': 'low',
        }
    ],
    'framework': 'TestNG',
    'language': 'Java',
    'patterns': [{'type': 'page-object', 'description': 'LoginPage', 'occurrences': 1}],
    'dependencies': ['selenium-java'],
}


def _completion(content):
    completion = MagicMock()
    completion.choices = [MagicMock()]
    completion.choices[0].message.content = content
    return completion


@pytest.fixture
def mock_openai():
    with patch('codeconverter.clients.openai.openai.OpenAI') as mock_cls:
        yield mock_cls


def test_empty_key_is_rejected(mock_openai):
    with pytest.raises(ServiceError):
        OpenAIClient(api_key='   ')

    mock_openai.assert_not_called()


def test_client_disables_retries(mock_openai):
    OpenAIClient(api_key=' sk-test ', model='gpt-4o-mini', timeout=12)

    mock_openai.assert_called_once_with(api_key='sk-test', timeout=12, max_retries=0)


def test_analyze_code_success(mock_openai):
    mock_openai.return_value.chat.completions.create.return_value = _completion(
        json.dumps(ANALYSIS_PAYLOAD)
    )
    client = OpenAIClient(api_key='sk-test')

    result = client.analyze_code({'src/test/LoginTest.java': 'class LoginTest {}'})

    assert result.framework == 'TestNG'
    assert result.test_files[0].test_cases[0].name == 'validLogin'

    kwargs = mock_openai.return_value.chat.completions.create.call_args.kwargs
    assert kwargs['model'] == 'gpt-4o'
    assert kwargs['response_format'] == {'type': 'json_object'}
    assert 'class LoginTest {}' in kwargs['messages'][1]['content']


def test_analyze_code_invalid_json(mock_openai):
    mock_openai.return_value.chat.completions.create.return_value = _completion('not json')
    client = OpenAIClient(api_key='sk-test')

    with pytest.raises(AnalysisError, match='Code analysis failed'):
        client.analyze_code({'a_test.py': 'pass'})


def test_analyze_code_api_failure(mock_openai):
    mock_openai.return_value.chat.completions.create.side_effect = RuntimeError('quota exceeded')
    client = OpenAIClient(api_key='sk-test')

    with pytest.raises(AnalysisError, match='quota exceeded'):
        client.analyze_code({'a_test.py': 'pass'})


def test_convert_tests_success(mock_openai, conversion_result_payload):
    from models.schemas import CodeAnalysisResult

    mock_openai.return_value.chat.completions.create.return_value = _completion(
        json.dumps(conversion_result_payload)
    )
    client = OpenAIClient(api_key='sk-test')
    analysis = CodeAnalysisResult.model_validate(ANALYSIS_PAYLOAD)

    result = client.convert_tests(analysis, 'robot', 'browser', 'modular')

    assert [f.path for f in result.test_files] == ['tests/login_test.robot']
    assert result.summary.total_test_cases == 1

    messages = mock_openai.return_value.chat.completions.create.call_args.kwargs['messages']
    assert 'Robot Framework' in messages[0]['content']
    assert 'Target Library: browser' in messages[1]['content']


def test_convert_tests_shape_mismatch(mock_openai):
    from models.schemas import CodeAnalysisResult

    mock_openai.return_value.chat.completions.create.return_value = _completion(
        json.dumps({'testFiles': 'not-a-list'})
    )
    client = OpenAIClient(api_key='sk-test')

    with pytest.raises(ConversionError):
        client.convert_tests(CodeAnalysisResult(), 'robot', 'browser', 'modular')


def test_target_framework_name():
    assert target_framework_name('robot') == 'Robot Framework'
    assert target_framework_name('Cypress') == 'Cypress'
    assert target_framework_name('playwright') == 'playwright'
