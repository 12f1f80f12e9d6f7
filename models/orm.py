"""SQLAlchemy rows backing the durable conversion store."""
from datetime import datetime, timezone
import uuid

from models import db
from models.conversion import ConversionJob, RepositoryInfo, STATUS_PENDING


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    """SQLite returns naive datetimes; every stored value is UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ConversionRow(db.Model):
    """Persisted conversion job."""

    __tablename__ = 'conversions'

    id = db.Column(db.String(32), primary_key=True, default=_new_id)
    repository_url = db.Column(db.Text, nullable=False)
    access_token = db.Column(db.Text, nullable=True)
    source_language = db.Column(db.String(100), nullable=False)
    source_framework = db.Column(db.String(100), nullable=False)
    source_automation_tool = db.Column(db.String(100), nullable=False)
    target_framework = db.Column(db.String(100), nullable=False)
    target_library = db.Column(db.String(100), nullable=False)
    test_structure = db.Column(db.String(100), nullable=False)
    model_api_key = db.Column(db.Text, nullable=False)
    model_selection = db.Column(db.String(100), nullable=False, default='gpt-4o')
    status = db.Column(db.String(20), nullable=False, default=STATUS_PENDING, index=True)
    progress = db.Column(db.Integer, nullable=False, default=0)
    analysis_result = db.Column(db.JSON, nullable=True)
    converted_output = db.Column(db.JSON, nullable=True)
    error_log = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_record(self) -> ConversionJob:
        return ConversionJob(
            id=self.id,
            repository_url=self.repository_url,
            access_token=self.access_token,
            source_language=self.source_language,
            source_framework=self.source_framework,
            source_automation_tool=self.source_automation_tool,
            target_framework=self.target_framework,
            target_library=self.target_library,
            test_structure=self.test_structure,
            model_api_key=self.model_api_key,
            model_selection=self.model_selection,
            status=self.status,
            progress=self.progress,
            analysis_result=self.analysis_result,
            converted_output=self.converted_output,
            error_log=self.error_log,
            created_at=_as_utc(self.created_at),
            updated_at=_as_utc(self.updated_at),
        )

    def __repr__(self):
        return f'<Conversion {self.id} status={self.status} progress={self.progress}>'


class RepositoryInfoRow(db.Model):
    """Repository metadata recorded once per conversion."""

    __tablename__ = 'repository_info'

    id = db.Column(db.Integer, primary_key=True)
    conversion_id = db.Column(
        db.String(32), db.ForeignKey('conversions.id'), nullable=False, unique=True, index=True
    )
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    last_updated = db.Column(db.String(50), nullable=True)
    detected_files = db.Column(db.JSON, nullable=True)
    file_structure = db.Column(db.JSON, nullable=True)

    def to_record(self) -> RepositoryInfo:
        return RepositoryInfo(
            conversion_id=self.conversion_id,
            name=self.name,
            description=self.description,
            last_updated=self.last_updated,
            detected_files=self.detected_files,
            file_structure=self.file_structure,
        )

    def __repr__(self):
        return f'<RepositoryInfo {self.id} conversion={self.conversion_id} name={self.name}>'
