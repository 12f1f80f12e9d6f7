"""Conversion job store: abstract interface plus memory and SQLAlchemy backends."""
from abc import ABC, abstractmethod
from datetime import datetime, timezone
import itertools
import logging
import threading
from typing import Any, Dict, List, Optional

from flask import current_app

from models import db
from models.conversion import ConversionJob, RepositoryInfo, STATUS_PENDING
from models.orm import ConversionRow, RepositoryInfoRow
from models.schemas import ConversionRequest
from utils.exceptions import JobNotFoundError


logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConversionStore(ABC):
    """Keyed record of conversion jobs and their repository metadata.

    ``update`` is atomic per job: concurrent updates to the same id never
    interleave their read-modify-write cycles.
    """

    @abstractmethod
    def create(self, request: ConversionRequest, default_model: str) -> ConversionJob:
        """Create a pending job with progress 0."""

    @abstractmethod
    def get(self, conversion_id: str) -> Optional[ConversionJob]:
        """Return the job, or None for unknown ids."""

    @abstractmethod
    def update(self, conversion_id: str, **changes: Any) -> ConversionJob:
        """Merge ``changes`` into the job and refresh ``updated_at``.

        Raises:
            JobNotFoundError: Unknown id
            JobStateError: Terminal job, illegal transition or progress regression
        """

    @abstractmethod
    def list_by_status(self, status: Optional[str] = None) -> List[ConversionJob]:
        """Jobs with the given status (all jobs when None), oldest first."""

    @abstractmethod
    def create_repository_info(self, info: RepositoryInfo) -> RepositoryInfo:
        """Record repository metadata for a job."""

    @abstractmethod
    def get_repository_info(self, conversion_id: str) -> Optional[RepositoryInfo]:
        """Repository metadata for a job, or None."""


def _job_fields(request: ConversionRequest, default_model: str) -> Dict[str, Any]:
    return {
        'repository_url': request.repository_url,
        'access_token': request.access_token,
        'source_language': request.source_language,
        'source_framework': request.source_framework,
        'source_automation_tool': request.source_automation_tool,
        'target_framework': request.target_framework,
        'target_library': request.target_library,
        'test_structure': request.test_structure,
        'model_api_key': request.model_api_key,
        'model_selection': request.model_selection or default_model,
    }


class MemoryConversionStore(ConversionStore):
    """In-process store with sequential ids, used for tests and local runs."""

    def __init__(self):
        self._conversions: Dict[str, ConversionJob] = {}
        self._repositories: Dict[str, RepositoryInfo] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def create(self, request: ConversionRequest, default_model: str) -> ConversionJob:
        now = _utcnow()
        with self._lock:
            conversion_id = str(next(self._ids))
            job = ConversionJob(
                id=conversion_id,
                status=STATUS_PENDING,
                progress=0,
                created_at=now,
                updated_at=now,
                **_job_fields(request, default_model)
            )
            self._conversions[conversion_id] = job
        logger.info(f"Created conversion {conversion_id}")
        return job

    def get(self, conversion_id: str) -> Optional[ConversionJob]:
        with self._lock:
            return self._conversions.get(str(conversion_id))

    def update(self, conversion_id: str, **changes: Any) -> ConversionJob:
        conversion_id = str(conversion_id)
        with self._lock:
            existing = self._conversions.get(conversion_id)
            if existing is None:
                raise JobNotFoundError(f"Conversion with id {conversion_id} not found")
            updated = existing.with_changes(changes, _utcnow())
            self._conversions[conversion_id] = updated
            return updated

    def list_by_status(self, status: Optional[str] = None) -> List[ConversionJob]:
        with self._lock:
            jobs = list(self._conversions.values())
        return [job for job in jobs if status is None or job.status == status]

    def create_repository_info(self, info: RepositoryInfo) -> RepositoryInfo:
        with self._lock:
            self._repositories[info.conversion_id] = info
        return info

    def get_repository_info(self, conversion_id: str) -> Optional[RepositoryInfo]:
        with self._lock:
            return self._repositories.get(str(conversion_id))


class SqlAlchemyConversionStore(ConversionStore):
    """Durable store on the Flask-SQLAlchemy session; ids are UUID hex strings.

    Every call needs an application context.
    """

    def create(self, request: ConversionRequest, default_model: str) -> ConversionJob:
        now = _utcnow()
        row = ConversionRow(
            status=STATUS_PENDING,
            progress=0,
            created_at=now,
            updated_at=now,
            **_job_fields(request, default_model)
        )
        db.session.add(row)
        db.session.commit()
        logger.info(f"Created conversion {row.id}")
        return row.to_record()

    def get(self, conversion_id: str) -> Optional[ConversionJob]:
        row = db.session.get(ConversionRow, str(conversion_id))
        return row.to_record() if row else None

    def update(self, conversion_id: str, **changes: Any) -> ConversionJob:
        conversion_id = str(conversion_id)
        try:
            row = db.session.execute(
                db.select(ConversionRow)
                .where(ConversionRow.id == conversion_id)
                .with_for_update()
            ).scalar_one_or_none()
            if row is None:
                raise JobNotFoundError(f"Conversion with id {conversion_id} not found")

            updated = row.to_record().with_changes(changes, _utcnow())
            for name in changes:
                setattr(row, name, getattr(updated, name))
            row.updated_at = updated.updated_at
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return row.to_record()

    def list_by_status(self, status: Optional[str] = None) -> List[ConversionJob]:
        query = db.select(ConversionRow).order_by(ConversionRow.created_at)
        if status is not None:
            query = query.where(ConversionRow.status == status)
        return [row.to_record() for row in db.session.execute(query).scalars()]

    def create_repository_info(self, info: RepositoryInfo) -> RepositoryInfo:
        row = RepositoryInfoRow(
            conversion_id=info.conversion_id,
            name=info.name,
            description=info.description,
            last_updated=info.last_updated,
            detected_files=info.detected_files,
            file_structure=info.file_structure,
        )
        db.session.add(row)
        db.session.commit()
        return row.to_record()

    def get_repository_info(self, conversion_id: str) -> Optional[RepositoryInfo]:
        row = db.session.execute(
            db.select(RepositoryInfoRow)
            .where(RepositoryInfoRow.conversion_id == str(conversion_id))
        ).scalar_one_or_none()
        return row.to_record() if row else None


def create_store(backend: str) -> ConversionStore:
    if backend == 'memory':
        return MemoryConversionStore()
    if backend == 'sqlalchemy':
        return SqlAlchemyConversionStore()
    raise ValueError(f"Unknown conversion store backend: {backend}")


def get_conversion_store() -> ConversionStore:
    """Store bound to the current Flask application."""
    return current_app.extensions['conversion_store']
