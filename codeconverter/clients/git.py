"""Git command-line wrapper for cloning working copies and publishing output."""
import base64
import logging
import os
import shutil
import subprocess
from typing import Dict, List, Optional

from utils.exceptions import CloneError, PublishError


logger = logging.getLogger(__name__)


def credential_env(access_token: Optional[str]) -> Dict[str, str]:
    """Build environment variables that authenticate git over HTTPS.

    The token travels as an ``http.extraHeader`` set through git's
    ``GIT_CONFIG_*`` environment, so it never appears in a remote URL,
    the process argument list or ``.git/config``.
    """
    env = {'GIT_TERMINAL_PROMPT': '0'}
    if not access_token:
        return env

    basic = base64.b64encode(f'x-access-token:{access_token}'.encode('utf-8')).decode('ascii')
    env.update({
        'GIT_CONFIG_COUNT': '1',
        'GIT_CONFIG_KEY_0': 'http.extraHeader',
        'GIT_CONFIG_VALUE_0': f'Authorization: Basic {basic}',
    })
    return env


class GitClient:
    """Runs git as a subprocess with injected credentials."""

    def __init__(self, author_name: str, author_email: str, timeout: float = 600.0):
        self.author_name = author_name
        self.author_email = author_email
        self.timeout = timeout

    def _run(self, args: List[str], cwd: Optional[str] = None,
             access_token: Optional[str] = None) -> subprocess.CompletedProcess:
        env = os.environ.copy()
        env.update(credential_env(access_token))
        logger.debug(f"Running: git {' '.join(args)}")
        return subprocess.run(
            ['git', *args],
            cwd=cwd,
            env=env,
            capture_output=True,
            text=True,
            timeout=self.timeout,
            check=True
        )

    @staticmethod
    def _describe(exc: Exception) -> str:
        if isinstance(exc, subprocess.CalledProcessError):
            output = (exc.stderr or exc.stdout or '').strip()
            return output or f"git exited with status {exc.returncode}"
        if isinstance(exc, subprocess.TimeoutExpired):
            return f"git timed out after {exc.timeout} seconds"
        return str(exc)

    def clone(self, url: str, target_dir: str, access_token: Optional[str] = None) -> None:
        """Clone ``url`` into ``target_dir``, replacing anything already there.

        Raises:
            CloneError: If git fails, times out or is not installed
        """
        if os.path.exists(target_dir):
            shutil.rmtree(target_dir)
        os.makedirs(os.path.dirname(os.path.abspath(target_dir)), exist_ok=True)

        logger.info(f"Cloning {url} into {target_dir}")
        try:
            self._run(['clone', '--', url, target_dir], access_token=access_token)
        except (subprocess.SubprocessError, OSError) as exc:
            raise CloneError(f"Failed to clone repository: {self._describe(exc)}") from exc

    def push(self, source_dir: str, target_url: str, access_token: str,
             branch: str, commit_message: str) -> None:
        """Commit everything in ``source_dir`` as a fresh history and push it.

        Raises:
            PublishError: Option-like URL or branch, auth failure, rejected push,
                network error or missing git
        """
        for name, value in (('target URL', target_url), ('branch', branch)):
            if not value or value.startswith('-'):
                raise PublishError(f"Invalid {name}: {value!r}")

        git_dir = os.path.join(source_dir, '.git')
        if os.path.exists(git_dir):
            shutil.rmtree(git_dir)

        identity = [
            '-c', f'user.name={self.author_name}',
            '-c', f'user.email={self.author_email}',
        ]
        steps = [
            (['init'], None),
            (['add', '-A'], None),
            ([*identity, 'commit', '-m', commit_message], None),
            (['branch', '-M', branch], None),
            (['remote', 'add', '--', 'origin', target_url], None),
            (['push', '-u', 'origin', branch], access_token),
        ]

        logger.info(f"Publishing {source_dir} to {target_url} (branch {branch})")
        try:
            for args, token in steps:
                self._run(args, cwd=source_dir, access_token=token)
        except (subprocess.SubprocessError, OSError) as exc:
            raise PublishError(f"Failed to push to repository: {self._describe(exc)}") from exc

        logger.info(f"Published {source_dir} to {target_url}")
