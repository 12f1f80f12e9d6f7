"""Selects test files from a scan result and loads their contents."""
import logging
import os
import re
from typing import Dict, Iterable

from codeconverter.services.scanner import FileInfo


logger = logging.getLogger(__name__)

TEST_FILE_PATTERNS = (
    re.compile(r'Test\.java$'),
    re.compile(r'test\.py$'),
    re.compile(r'\.test\.js$'),
    re.compile(r'\.test\.ts$'),
    re.compile(r'Tests\.cs$'),
    re.compile(r'spec\.js$'),
    re.compile(r'spec\.ts$'),
)


def is_test_file(path: str) -> bool:
    """Classify a relative path as test code.

    Any path containing "test" (case-insensitive) matches as well, so
    fixture directories such as ``testdata/`` are included on purpose.
    """
    return (
        any(pattern.search(path) for pattern in TEST_FILE_PATTERNS)
        or 'test' in path.lower()
    )


def _inside(real_root: str, path: str) -> bool:
    target = os.path.realpath(path)
    return target != real_root and os.path.commonpath([real_root, target]) == real_root


def extract_test_files(root: str, files: Iterable[FileInfo]) -> Dict[str, str]:
    """Read every scanned test file under ``root``.

    Content is returned exactly as stored (line endings included). A file
    whose real path lies outside ``root``, for example a symlink into the
    host filesystem, is never opened. Such files, and files that cannot be
    read or decoded as UTF-8, are logged and skipped; extraction continues
    with the remaining files.

    Returns:
        Mapping of relative path to file text
    """
    test_files: Dict[str, str] = {}
    real_root = os.path.realpath(root)

    for info in files:
        if not info.is_file or not is_test_file(info.path):
            continue

        full_path = os.path.join(root, *info.path.split('/'))
        if not _inside(real_root, full_path):
            logger.warning(f"Skipping {info.path}: resolves outside the repository")
            continue

        try:
            with open(full_path, 'r', encoding='utf-8', newline='') as handle:
                test_files[info.path] = handle.read()
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning(f"Failed to read file {info.path}: {exc}")

    logger.info(f"Extracted {len(test_files)} test files")
    return test_files
