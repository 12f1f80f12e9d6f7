"""Conversion pipeline orchestrator.

Drives one job through clone -> scan -> extract -> analyze -> convert ->
materialize, persisting status and progress after every stage:

    pending -> analyzing (10, 25, 40, 60) -> converting (70) -> completed (100)

Any failure moves the job to ``failed`` with the error message as its log and
leaves progress at the last value reached. A job is run at most once.
"""
import io
import logging
import os
import shutil
import threading
import zipfile
from typing import Callable, Dict, Optional

from flask import Flask, current_app

from codeconverter.clients.git import GitClient
from codeconverter.clients.github import parse_repository_url
from codeconverter.clients.openai import OpenAIClient, get_openai_client, target_framework_name
from codeconverter.services.extractor import extract_test_files
from codeconverter.services.scanner import FileStructure, scan_repository
from codeconverter.services.store import ConversionStore
from models.conversion import (
    ConversionJob,
    RepositoryInfo,
    STATUS_ANALYZING,
    STATUS_COMPLETED,
    STATUS_CONVERTING,
    STATUS_FAILED,
    STATUS_PENDING,
)
from models.schemas import ConversionResult
from utils.exceptions import (
    ArchiveError,
    InvalidUrlFormatError,
    JobNotFoundError,
    JobStateError,
    MaterializationError,
    PublishError,
    ServiceError,
)


logger = logging.getLogger(__name__)

OpenAIClientFactory = Callable[[str, str, Optional[float]], OpenAIClient]


def _repository_name(url: str) -> str:
    try:
        owner, name = parse_repository_url(url)
    except InvalidUrlFormatError:
        return url
    return f"{owner}/{name}"


def _resolve_inside(root: str, relative_path: str) -> str:
    """Resolve a generated path under ``root``; paths escaping it are rejected."""
    real_root = os.path.realpath(root)
    target = os.path.realpath(os.path.join(real_root, relative_path.lstrip('/\\')))
    if target == real_root or os.path.commonpath([real_root, target]) != real_root:
        raise MaterializationError(f"Generated file path escapes output directory: {relative_path}")
    return target


def _write_text(path: str, content: str) -> None:
    # newline='' keeps the generated bytes exactly as returned by the model
    with open(path, 'w', encoding='utf-8', newline='') as handle:
        handle.write(content)


def generate_readme(result: ConversionResult, target_framework: str) -> str:
    """README summarizing the generated suite."""
    framework_name = target_framework_name(target_framework)
    summary = result.summary

    lines = [
        f"# {framework_name} Test Suite",
        "",
        "This test suite was automatically converted from another test automation framework.",
        "",
        "## Summary",
        f"- Total Test Files: {summary.total_test_files}",
        f"- Total Test Cases: {summary.total_test_cases}",
        f"- Total Resource Files: {summary.total_resource_files}",
        "",
        "## Setup",
        "1. Install Python 3.8+",
        "2. Install dependencies: `pip install -r requirements.txt`",
    ]
    if target_framework.lower() == 'robot':
        lines.append("3. Run tests: `robot tests/`")
    lines += [
        "",
        "## Structure",
        "- `tests/` - Test case files",
        "- `resources/` - Reusable keywords and support files",
        "",
    ]
    if summary.warnings:
        lines += ["## Warnings", *[f"- {warning}" for warning in summary.warnings], ""]
    if summary.recommendations:
        lines += [
            "## Recommendations",
            *[f"- {recommendation}" for recommendation in summary.recommendations],
            "",
        ]
    lines.append("Generated by CodeConverter Pro")
    return "\n".join(lines) + "\n"


class ConversionService:
    """Runs conversion jobs and serves their generated output.

    Each job owns ``<work_dir>/repo-<id>`` (working copy) and
    ``<work_dir>/output-<id>`` (generated files).
    """

    def __init__(self, store: ConversionStore, work_dir: str, git_client: GitClient,
                 openai_factory: OpenAIClientFactory = get_openai_client,
                 openai_timeout: Optional[float] = None):
        self.store = store
        self.work_dir = work_dir
        self.git = git_client
        self.openai_factory = openai_factory
        self.openai_timeout = openai_timeout

    def working_dir(self, conversion_id: str) -> str:
        return os.path.join(self.work_dir, f"repo-{conversion_id}")

    def output_dir(self, conversion_id: str) -> str:
        return os.path.join(self.work_dir, f"output-{conversion_id}")

    def run(self, conversion_id: str) -> ConversionJob:
        """Run the full pipeline for a pending job.

        Returns:
            The job in its terminal state (``completed`` or ``failed``)

        Raises:
            JobNotFoundError: Unknown id (store untouched)
            JobStateError: Job is not pending (store untouched)
        """
        job = self.store.get(conversion_id)
        if job is None:
            raise JobNotFoundError(f"Conversion with id {conversion_id} not found")
        if job.status != STATUS_PENDING:
            raise JobStateError(f"Conversion {conversion_id} is {job.status}; it cannot be run again")

        logger.info(f"Starting conversion {conversion_id} for {job.repository_url}")
        try:
            self._advance(conversion_id, STATUS_ANALYZING, 10)

            repo_dir = self.working_dir(conversion_id)
            self.git.clone(job.repository_url, repo_dir, job.access_token)

            structure = scan_repository(repo_dir)
            self._advance(conversion_id, STATUS_ANALYZING, 25)

            test_files = extract_test_files(repo_dir, structure.files)
            self._record_repository_info(job, structure, test_files)
            self._advance(conversion_id, STATUS_ANALYZING, 40)

            analysis = self._client(job).analyze_code(test_files)
            self.store.update(
                conversion_id,
                analysis_result=analysis.model_dump(by_alias=True),
                progress=60
            )

            self._advance(conversion_id, STATUS_CONVERTING, 70)
            result = self._client(job).convert_tests(
                analysis,
                job.target_framework,
                job.target_library,
                job.test_structure
            )

            self.save_converted_files(self.output_dir(conversion_id), result, job.target_framework)
            job = self.store.update(
                conversion_id,
                converted_output=result.to_payload(),
                status=STATUS_COMPLETED,
                progress=100
            )
        except Exception as exc:
            logger.error(f"Conversion {conversion_id} failed: {exc}")
            return self.store.update(conversion_id, status=STATUS_FAILED, error_log=[str(exc)])

        logger.info(f"Conversion {conversion_id} completed successfully")
        return job

    def _advance(self, conversion_id: str, status: str, progress: int) -> None:
        self.store.update(conversion_id, status=status, progress=progress)
        logger.info(f"Conversion {conversion_id}: {status} {progress}%")

    def _client(self, job: ConversionJob) -> OpenAIClient:
        return self.openai_factory(job.model_api_key, job.model_selection, self.openai_timeout)

    def _record_repository_info(self, job: ConversionJob, structure: FileStructure,
                                test_files: Dict[str, str]) -> None:
        if self.store.get_repository_info(job.id) is not None:
            return
        self.store.create_repository_info(RepositoryInfo(
            conversion_id=job.id,
            name=_repository_name(job.repository_url),
            detected_files=sorted(test_files),
            file_structure=structure.to_dict(),
        ))

    def save_converted_files(self, output_dir: str, result: ConversionResult,
                             target_framework: str) -> None:
        """Write the generated suite, requirements manifest and README to ``output_dir``.

        Raises:
            MaterializationError: On an unsafe path or any filesystem failure
        """
        try:
            if os.path.exists(output_dir):
                shutil.rmtree(output_dir)
            os.makedirs(os.path.join(output_dir, 'tests'))
            os.makedirs(os.path.join(output_dir, 'resources'))

            for generated in [*result.test_files, *result.resource_files]:
                file_path = _resolve_inside(output_dir, generated.path)
                os.makedirs(os.path.dirname(file_path), exist_ok=True)
                _write_text(file_path, generated.content)

            _write_text(os.path.join(output_dir, 'requirements.txt'), "\n".join(result.requirements))
            _write_text(os.path.join(output_dir, 'README.md'), generate_readme(result, target_framework))
        except OSError as exc:
            raise MaterializationError(f"Failed to save converted files: {exc}") from exc

        logger.info(
            f"Saved {len(result.test_files)} test files and "
            f"{len(result.resource_files)} resource files to {output_dir}"
        )

    def get_output_dir(self, conversion_id: str) -> str:
        """Output directory of a job, which must already exist.

        Raises:
            ArchiveError: Nothing has been materialized for the job
        """
        output_dir = self.output_dir(conversion_id)
        if not os.path.isdir(output_dir):
            raise ArchiveError("Converted files not found")
        return output_dir

    @staticmethod
    def find_generated_file(job: ConversionJob, filename: str) -> Optional[str]:
        """Content of a generated file of a completed job, matched by path suffix."""
        if not job.converted_output:
            return None
        return ConversionResult.model_validate(job.converted_output).find_file(filename)

    def build_archive(self, conversion_id: str) -> io.BytesIO:
        """Zip the output directory of a completed job.

        Raises:
            ArchiveError: Output directory missing or unreadable
        """
        output_dir = self.get_output_dir(conversion_id)

        buffer = io.BytesIO()
        try:
            with zipfile.ZipFile(buffer, 'w', zipfile.ZIP_DEFLATED, compresslevel=9) as archive:
                for current_dir, dir_names, file_names in os.walk(output_dir):
                    dir_names[:] = sorted(name for name in dir_names if name != '.git')
                    for file_name in sorted(file_names):
                        full_path = os.path.join(current_dir, file_name)
                        arcname = os.path.relpath(full_path, output_dir).replace(os.sep, '/')
                        archive.write(full_path, arcname)
        except OSError as exc:
            raise ArchiveError(f"Failed to archive converted files: {exc}") from exc

        buffer.seek(0)
        return buffer

    def deploy(self, conversion_id: str, target_url: str, access_token: str,
               branch: str, commit_message: str) -> None:
        """Publish the output directory of a completed job.

        Raises:
            PublishError: Output missing or the push failed
        """
        try:
            output_dir = self.get_output_dir(conversion_id)
        except ArchiveError as exc:
            raise PublishError(str(exc)) from exc
        self.git.push(output_dir, target_url, access_token, branch, commit_message)
        logger.info(f"Conversion {conversion_id} deployed to {target_url} ({branch})")


def build_conversion_service(app: Flask) -> ConversionService:
    config = app.config['APP_CONFIG']
    return ConversionService(
        store=app.extensions['conversion_store'],
        work_dir=config.work_dir,
        git_client=app.extensions['git_client'],
        openai_factory=app.extensions['openai_client_factory'],
        openai_timeout=config.openai.timeout_seconds,
    )


def get_conversion_service() -> ConversionService:
    """Service bound to the current Flask application."""
    return build_conversion_service(current_app)


def _run_conversion(app: Flask, conversion_id: str) -> None:
    with app.app_context():
        try:
            build_conversion_service(app).run(conversion_id)
        except ServiceError as exc:
            logger.error(f"Conversion {conversion_id} was not run: {exc}")


def start_conversion(app: Flask, conversion_id: str) -> threading.Thread:
    """Run a job's pipeline on a background thread and return immediately.

    The caller learns the outcome only by polling the store.
    """
    thread = threading.Thread(
        target=_run_conversion,
        args=(app, conversion_id),
        name=f"conversion-{conversion_id}",
        daemon=True
    )
    thread.start()
    return thread
