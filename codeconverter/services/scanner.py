"""Working-copy scanner: file listing plus language/framework detection."""
from dataclasses import dataclass, field
import logging
import os
from typing import Any, Dict, List, Optional

from utils.exceptions import ScanError


logger = logging.getLogger(__name__)

LANGUAGE_BY_EXTENSION = {
    '.java': 'Java',
    '.py': 'Python',
    '.cs': 'C#',
    '.js': 'JavaScript/TypeScript',
    '.ts': 'JavaScript/TypeScript',
}


@dataclass(frozen=True)
class FileInfo:
    path: str
    type: str  # "file" or "directory"
    extension: Optional[str] = None
    size: Optional[int] = None

    @property
    def is_file(self) -> bool:
        return self.type == 'file'

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {'path': self.path, 'type': self.type}
        if self.extension is not None:
            result['extension'] = self.extension
        if self.size is not None:
            result['size'] = self.size
        return result


@dataclass
class FileStructure:
    files: List[FileInfo] = field(default_factory=list)
    detected_language: Optional[str] = None
    detected_framework: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'files': [info.to_dict() for info in self.files],
            'detectedLanguage': self.detected_language,
            'detectedFramework': self.detected_framework,
        }


def detect_language(extension: str) -> Optional[str]:
    return LANGUAGE_BY_EXTENSION.get(extension)


def detect_framework(filename: str) -> Optional[str]:
    if filename in ('pom.xml', 'testng.xml'):
        return 'TestNG'
    if 'junit' in filename:
        return 'JUnit'
    if filename == 'pytest.ini':
        return 'PyTest'
    if filename in ('cypress.json', 'cypress.config.js'):
        return 'Cypress'
    return None


def scan_repository(root: str) -> FileStructure:
    """Recursively list a working copy, skipping hidden entries.

    Entries are visited in name order. Language and framework are taken from
    the first file that matches and are never revised afterwards, even if a
    stronger signal appears later in the walk.

    Raises:
        ScanError: If any directory or file cannot be read
    """
    structure = FileStructure()

    def scan_directory(dir_path: str, relative_path: str) -> None:
        with os.scandir(dir_path) as iterator:
            entries = sorted(iterator, key=lambda entry: entry.name)

        for entry in entries:
            if entry.name.startswith('.'):
                continue

            relative_file_path = f"{relative_path}/{entry.name}" if relative_path else entry.name

            if entry.is_dir(follow_symlinks=False):
                structure.files.append(FileInfo(path=relative_file_path, type='directory'))
                scan_directory(entry.path, relative_file_path)
                continue

            extension = os.path.splitext(entry.name)[1]
            structure.files.append(FileInfo(
                path=relative_file_path,
                type='file',
                extension=extension,
                size=entry.stat(follow_symlinks=False).st_size
            ))

            if structure.detected_language is None:
                structure.detected_language = detect_language(extension)
            if structure.detected_framework is None:
                structure.detected_framework = detect_framework(entry.name)

    logger.info(f"Scanning repository structure at {root}")
    try:
        scan_directory(root, '')
    except OSError as exc:
        raise ScanError(f"Failed to analyze repository structure: {exc}") from exc

    logger.info(
        f"Scanned {len(structure.files)} entries "
        f"(language={structure.detected_language}, framework={structure.detected_framework})"
    )
    return structure
