"""Conversion job and repository records shared by every store backend."""
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, List, Optional

from utils.exceptions import JobStateError


STATUS_PENDING = 'pending'
STATUS_ANALYZING = 'analyzing'
STATUS_CONVERTING = 'converting'
STATUS_COMPLETED = 'completed'
STATUS_FAILED = 'failed'

STATUSES = (
    STATUS_PENDING,
    STATUS_ANALYZING,
    STATUS_CONVERTING,
    STATUS_COMPLETED,
    STATUS_FAILED,
)
TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_FAILED)

# Self-transitions carry progress-only updates within a stage.
_TRANSITIONS = {
    STATUS_PENDING: {STATUS_ANALYZING, STATUS_FAILED},
    STATUS_ANALYZING: {STATUS_ANALYZING, STATUS_CONVERTING, STATUS_FAILED},
    STATUS_CONVERTING: {STATUS_CONVERTING, STATUS_COMPLETED, STATUS_FAILED},
    STATUS_COMPLETED: set(),
    STATUS_FAILED: set(),
}

MUTABLE_FIELDS = frozenset({
    'status',
    'progress',
    'analysis_result',
    'converted_output',
    'error_log',
})


def check_update(job: 'ConversionJob', changes: Dict[str, Any]) -> None:
    """Reject updates that would break the job lifecycle.

    Raises:
        ValueError: An immutable or unknown field is being changed
        JobStateError: Terminal job, illegal transition or progress regression
    """
    unknown = set(changes) - MUTABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")

    if job.status in TERMINAL_STATUSES:
        raise JobStateError(f"Conversion {job.id} is already {job.status}")

    new_status = changes.get('status', job.status)
    if new_status not in STATUSES:
        raise JobStateError(f"Unknown status: {new_status}")
    if 'status' in changes and new_status not in _TRANSITIONS[job.status]:
        raise JobStateError(
            f"Illegal transition for conversion {job.id}: {job.status} -> {new_status}"
        )

    if 'progress' in changes:
        progress = changes['progress']
        if not isinstance(progress, int) or not 0 <= progress <= 100:
            raise JobStateError(f"Progress must be an integer in [0, 100], got {progress!r}")
        if progress < job.progress:
            raise JobStateError(
                f"Progress for conversion {job.id} cannot go back from "
                f"{job.progress} to {progress}"
            )


@dataclass
class ConversionJob:
    """One request to convert a repository's tests to another stack.

    Jobs progress through states: pending -> analyzing -> converting -> completed,
    with failed reachable from any non-terminal state.
    """

    id: str
    repository_url: str
    source_language: str
    source_framework: str
    source_automation_tool: str
    target_framework: str
    target_library: str
    test_structure: str
    model_api_key: str
    model_selection: str
    created_at: datetime
    updated_at: datetime
    access_token: Optional[str] = None
    status: str = STATUS_PENDING
    progress: int = 0
    analysis_result: Optional[Dict[str, Any]] = None
    converted_output: Optional[Dict[str, Any]] = None
    error_log: Optional[List[str]] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def with_changes(self, changes: Dict[str, Any], updated_at: datetime) -> 'ConversionJob':
        check_update(self, changes)
        return replace(self, updated_at=updated_at, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Convert job to its API representation.

        The repository access token and model API key are write-only and
        never serialized.
        """
        return {
            'id': self.id,
            'repositoryUrl': self.repository_url,
            'sourceLanguage': self.source_language,
            'sourceFramework': self.source_framework,
            'sourceAutomationTool': self.source_automation_tool,
            'targetFramework': self.target_framework,
            'targetLibrary': self.target_library,
            'testStructure': self.test_structure,
            'modelSelection': self.model_selection,
            'status': self.status,
            'progress': self.progress,
            'analysisResult': self.analysis_result,
            'convertedOutput': self.converted_output,
            'errorLog': self.error_log,
            'createdAt': self.created_at.isoformat(),
            'updatedAt': self.updated_at.isoformat(),
        }

    def to_summary_dict(self) -> Dict[str, Any]:
        """Lightweight representation for list views."""
        return {
            'id': self.id,
            'repositoryUrl': self.repository_url,
            'targetFramework': self.target_framework,
            'status': self.status,
            'progress': self.progress,
            'createdAt': self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class RepositoryInfo:
    """Display metadata about the repository a job was created for."""

    conversion_id: str
    name: str
    description: Optional[str] = None
    last_updated: Optional[str] = None
    detected_files: Optional[List[str]] = None
    file_structure: Optional[Dict[str, Any]] = field(default=None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'conversionId': self.conversion_id,
            'name': self.name,
            'description': self.description,
            'lastUpdated': self.last_updated,
            'detectedFiles': self.detected_files,
            'fileStructure': self.file_structure,
        }
