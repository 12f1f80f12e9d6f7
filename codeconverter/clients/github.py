"""GitHub REST client used to validate repositories before conversion."""
import logging
import re
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

import requests

from utils.exceptions import (
    HostApiError,
    InsufficientPermissionError,
    InvalidCredentialError,
    InvalidUrlFormatError,
    RepositoryNotFoundError,
)


logger = logging.getLogger(__name__)

_URL_PATTERNS = (
    re.compile(r'github\.com/([^/]+)/([^/]+?)(?:\.git)?(?:/.*)?$'),
    re.compile(r'^git@github\.com:([^/]+)/([^/]+?)(?:\.git)?$'),
)


def parse_repository_url(url: str) -> Tuple[str, str]:
    """Extract ``(owner, name)`` from a GitHub web or SSH URL.

    Raises:
        InvalidUrlFormatError: If the URL matches no accepted shape
    """
    clean_url = (url or '').strip()
    if clean_url.endswith('/'):
        clean_url = clean_url[:-1]

    for pattern in _URL_PATTERNS:
        match = pattern.search(clean_url)
        if match:
            owner, name = match.groups()
            return owner, re.sub(r'\.git$', '', name)

    raise InvalidUrlFormatError(
        'Invalid GitHub URL format. Please use: https://github.com/owner/repository'
    )


def authorization_header(access_token: str) -> str:
    """Fine-grained and classic PATs use Bearer; anything else the legacy token scheme."""
    if access_token.startswith(('ghp_', 'github_pat_')):
        return f'Bearer {access_token}'
    return f'token {access_token}'


def format_last_updated(updated_at: Optional[str]) -> Optional[str]:
    """Render an ISO-8601 timestamp as ``M/D/YYYY``."""
    if not updated_at:
        return None
    moment = datetime.fromisoformat(updated_at.replace('Z', '+00:00'))
    return f'{moment.month}/{moment.day}/{moment.year}'


class GitHubClient:
    """Read-only client for repository metadata."""

    def __init__(self, api_url: str = 'https://api.github.com', timeout: float = 30.0):
        self.api_url = api_url.rstrip('/')
        self.timeout = timeout

    def _headers(self, access_token: Optional[str]) -> Dict[str, str]:
        headers = {
            'User-Agent': 'CodeConverter-Pro/1.0',
            'Accept': 'application/vnd.github.v3+json',
        }
        if access_token:
            headers['Authorization'] = authorization_header(access_token)
        return headers

    def validate_repository(self, url: str, access_token: Optional[str] = None) -> Dict[str, Any]:
        """Confirm a repository exists and is reachable with the given token.

        Args:
            url: Repository URL (web or SSH form)
            access_token: Optional personal access token

        Returns:
            ``{isValid, name, description, lastUpdated}`` for display

        Raises:
            RepositoryValidationError: One subclass per failure kind
        """
        owner, name = parse_repository_url(url)
        api_url = f'{self.api_url}/repos/{owner}/{name}'
        logger.info(f"Validating repository: {owner}/{name}")

        try:
            response = requests.get(
                api_url,
                headers=self._headers(access_token),
                timeout=self.timeout
            )
        except requests.RequestException as exc:
            logger.error(f"GitHub API request failed: {exc}")
            raise HostApiError('Network error: Unable to connect to GitHub API') from exc

        logger.info(f"GitHub API response status: {response.status_code}")

        if response.status_code == 404:
            if access_token:
                raise RepositoryNotFoundError(
                    'Repository not found or access denied. Check the URL and token permissions.'
                )
            raise RepositoryNotFoundError(
                'Repository not found. For private repositories, please provide an access token.'
            )
        if response.status_code == 401:
            raise InvalidCredentialError(
                'Invalid access token. Please check your GitHub personal access token.'
            )
        if response.status_code == 403:
            raise InsufficientPermissionError(
                'Access forbidden. Your token may not have the required permissions.'
            )
        if not response.ok:
            logger.error(f"GitHub API error: {response.status_code} - {response.text}")
            raise HostApiError(
                f'GitHub API error ({response.status_code}): {response.reason}',
                status_code=response.status_code
            )

        repo_data = response.json()
        logger.info(f"Repository validated successfully: {repo_data.get('full_name')}")

        return {
            'isValid': True,
            'name': repo_data.get('full_name') or f'{owner}/{name}',
            'description': repo_data.get('description') or 'No description provided',
            'lastUpdated': format_last_updated(repo_data.get('updated_at')),
        }
