"""Pydantic schemas validating request bodies and model responses."""
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from utils.exceptions import SchemaValidationError


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra='ignore',
        protected_namespaces=(),
    )


class ConversionRequest(CamelModel):
    """Body of ``POST /conversions``.

    ``status`` and ``progress`` are not accepted: every job starts pending.
    """

    repository_url: str = Field(min_length=1)
    access_token: Optional[str] = None
    source_language: str = Field(min_length=1)
    source_framework: str = Field(min_length=1)
    source_automation_tool: str = Field(min_length=1)
    target_framework: str = Field(min_length=1)
    target_library: str = Field(min_length=1)
    test_structure: str = Field(min_length=1)
    model_api_key: str = Field(
        min_length=1,
        validation_alias=AliasChoices('modelApiKey', 'openaiApiKey', 'model_api_key'),
    )
    model_selection: Optional[str] = None

    @field_validator('repository_url', mode='before')
    @classmethod
    def _strip_url(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator('access_token', 'model_selection', mode='before')
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


def parse_conversion_request(data: Any) -> ConversionRequest:
    """Validate a creation body, collecting field-level errors.

    Raises:
        SchemaValidationError: With one ``{field, message}`` entry per problem
    """
    try:
        return ConversionRequest.model_validate(data)
    except ValidationError as exc:
        details = [
            {
                'field': '.'.join(str(part) for part in error['loc']),
                'message': error['msg'],
            }
            for error in exc.errors()
        ]
        raise SchemaValidationError('Invalid request data', details) from exc


# Analysis response

class AnalyzedTestCase(CamelModel):
    name: str
    description: Optional[str] = None
    steps: List[str] = Field(default_factory=list)
    assertions: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)


class AnalyzedFile(CamelModel):
    path: str
    test_cases: List[AnalyzedTestCase] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)
    complexity: Optional[str] = None


class CodePattern(CamelModel):
    type: str
    description: str = ''
    occurrences: int = 0


class CodeAnalysisResult(CamelModel):
    test_files: List[AnalyzedFile] = Field(default_factory=list)
    framework: str = ''
    language: str = ''
    patterns: List[CodePattern] = Field(default_factory=list)
    dependencies: List[str] = Field(default_factory=list)


# Conversion response

class GeneratedTestFile(CamelModel):
    path: str = Field(min_length=1)
    content: str
    test_cases: int = 0


class GeneratedResourceFile(CamelModel):
    path: str = Field(min_length=1)
    content: str
    keywords: int = 0


class ConversionSummary(CamelModel):
    total_test_files: int = 0
    total_test_cases: int = 0
    total_resource_files: int = 0
    warnings: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


class ConversionResult(CamelModel):
    """Generated suite: primary test files, resource files, requirements, summary."""

    test_files: List[GeneratedTestFile] = Field(
        default_factory=list,
        validation_alias=AliasChoices('testFiles', 'robotFiles', 'test_files'),
        serialization_alias='testFiles',
    )
    resource_files: List[GeneratedResourceFile] = Field(default_factory=list)
    requirements: List[str] = Field(default_factory=list)
    summary: ConversionSummary = Field(default_factory=ConversionSummary)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)

    def find_file(self, filename: str) -> Optional[str]:
        """Return the content of the first generated file whose path ends with ``filename``.

        Primary test files are searched before resource files.
        """
        for generated in [*self.test_files, *self.resource_files]:
            if generated.path.endswith(filename):
                return generated.content
        return None
