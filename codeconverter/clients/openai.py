"""OpenAI chat client for test-code analysis and conversion with user API keys."""
import json
import logging
from typing import Dict, Optional, Type, TypeVar

import openai
from pydantic import BaseModel

from models.schemas import CodeAnalysisResult, ConversionResult
from utils.exceptions import AnalysisError, ConversionError, ServiceError


logger = logging.getLogger(__name__)

ResultT = TypeVar('ResultT', bound=BaseModel)

TARGET_FRAMEWORK_NAMES = {
    'robot': 'Robot Framework',
    'cucumber': 'Cucumber/Gherkin',
    'cypress': 'Cypress',
}

ANALYSIS_SYSTEM_PROMPT = (
    "You are an expert in test automation frameworks. Analyze code and provide "
    "detailed insights for framework conversion."
)

ANALYSIS_SCHEMA = """{
  "testFiles": [
    {
      "path": "string",
      "testCases": [
        {
          "name": "string",
          "description": "string",
          "steps": ["string"],
          "assertions": ["string"],
          "tags": ["string"]
        }
      ],
      "keywords": ["string"],
      "complexity": "low|medium|high"
    }
  ],
  "framework": "string",
  "language": "string",
  "patterns": [
    {
      "type": "string",
      "description": "string",
      "occurrences": number
    }
  ],
  "dependencies": ["string"]
}"""

CONVERSION_SCHEMA = """{
  "testFiles": [
    {
      "path": "string (e.g., tests/login_test.robot)",
      "content": "string (full test file source)",
      "testCases": number
    }
  ],
  "resourceFiles": [
    {
      "path": "string (e.g., resources/common_keywords.resource)",
      "content": "string (reusable keywords / support code)",
      "keywords": number
    }
  ],
  "requirements": ["string (e.g., robotframework==6.1.1)"],
  "summary": {
    "totalTestFiles": number,
    "totalTestCases": number,
    "totalResourceFiles": number,
    "warnings": ["string"],
    "recommendations": ["string"]
  }
}"""


def target_framework_name(target_framework: str) -> str:
    return TARGET_FRAMEWORK_NAMES.get(target_framework.lower(), target_framework)


class OpenAIClient:
    """Client for OpenAI chat completions using the job owner's API key.

    One instance is built per call; keys are never cached.
    """

    def __init__(self, api_key: str, model: str = "gpt-4o", timeout: Optional[float] = 300.0):
        """
        Initialize OpenAI client with the user's API key.

        Args:
            api_key: User's OpenAI API key
            model: Chat model used for both stages
            timeout: Per-request timeout in seconds

        Raises:
            ServiceError: If the API key is missing
        """
        if not api_key or not api_key.strip():
            raise ServiceError("OpenAI API key is required")

        # Single attempt per stage: retries are disabled on the SDK client.
        self._client = openai.OpenAI(api_key=api_key.strip(), timeout=timeout, max_retries=0)
        self._model = model
        logger.info(f"OpenAI client initialized with user API key, model {self._model}")

    def _complete_json(self, system_prompt: str, user_prompt: str, schema: Type[ResultT]) -> ResultT:
        response = self._client.chat.completions.create(
            model=self._model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt}
            ],
            response_format={"type": "json_object"},
        )
        content = response.choices[0].message.content or '{}'
        return schema.model_validate(json.loads(content))

    def analyze_code(self, file_contents: Dict[str, str]) -> CodeAnalysisResult:
        """Analyze extracted test files.

        Args:
            file_contents: Mapping of relative path to file text

        Returns:
            Structured analysis of test cases, patterns and dependencies

        Raises:
            AnalysisError: If the call fails or the response is not valid JSON of the expected shape
        """
        logger.info(f"Starting code analysis of {len(file_contents)} files")

        files_block = "\n".join(
            f"\nFile: {path}\nContent:\n{content}\n"
            for path, content in file_contents.items()
        )
        prompt = (
            "Analyze the following test automation code files and provide a detailed "
            "analysis in JSON format.\n\n"
            f"Files to analyze:\n{files_block}\n\n"
            f"Please provide your analysis in this exact JSON format:\n{ANALYSIS_SCHEMA}\n\n"
            "Focus on identifying test methods, page object patterns, wait strategies, "
            "assertions, and any complex logic that needs special handling during conversion."
        )

        try:
            result = self._complete_json(ANALYSIS_SYSTEM_PROMPT, prompt, CodeAnalysisResult)
        except Exception as exc:
            logger.error(f"Code analysis failed: {exc}")
            raise AnalysisError(f"Code analysis failed: {exc}") from exc

        logger.info(f"Code analysis completed: {len(result.test_files)} test files analyzed")
        return result

    def convert_tests(self, analysis: CodeAnalysisResult, target_framework: str,
                      target_library: str, test_structure: str) -> ConversionResult:
        """Generate a test suite for the target stack from an analysis.

        Raises:
            ConversionError: If the call fails or the response is not valid JSON of the expected shape
        """
        framework_name = target_framework_name(target_framework)
        logger.info(f"Starting conversion to {framework_name} with {target_library}")

        system_prompt = (
            f"You are an expert in {framework_name} and test automation conversion. "
            f"Generate high-quality, syntactically correct {framework_name} code."
        )
        prompt = (
            f"Convert the analyzed test automation code to {framework_name} format based on "
            "the following analysis and requirements:\n\n"
            f"Analysis Result:\n{json.dumps(analysis.model_dump(by_alias=True), indent=2)}\n\n"
            f"Target Framework: {framework_name}\n"
            f"Target Library: {target_library}\n"
            f"Test Structure: {test_structure}\n\n"
            f"Please convert the code and provide the result in this exact JSON format:\n"
            f"{CONVERSION_SCHEMA}\n\n"
            "Guidelines for conversion:\n"
            f"1. Use {target_library} for automation\n"
            f"2. Follow {framework_name} best practices\n"
            "3. Put test case files under tests/ and reusable keywords or support code under resources/\n"
            "4. Include proper test documentation and tags\n"
            "5. Handle wait strategies appropriately\n"
            f"6. Convert assertions to {framework_name} format\n"
            f"7. Organize tests according to the {test_structure} structure\n\n"
            "Ensure the generated code is syntactically correct."
        )

        try:
            result = self._complete_json(system_prompt, prompt, ConversionResult)
        except Exception as exc:
            logger.error(f"Code conversion failed: {exc}")
            raise ConversionError(f"Code conversion failed: {exc}") from exc

        logger.info(
            f"Code conversion completed: {len(result.test_files)} test files, "
            f"{len(result.resource_files)} resource files"
        )
        return result


def get_openai_client(api_key: str, model: str, timeout: Optional[float] = None) -> OpenAIClient:
    """Build a fresh client for one pipeline stage."""
    return OpenAIClient(api_key=api_key, model=model, timeout=timeout)
