"""File classification used by the risk evaluators."""

import re
from pathlib import PurePosixPath
from re import Pattern

# Sensitive paths whose modification raises risk
CRITICAL_PATTERNS: list[Pattern[str]] = [
    re.compile(r"auth", re.IGNORECASE),
    re.compile(r"security", re.IGNORECASE),
    re.compile(r"payment", re.IGNORECASE),
    re.compile(r"database", re.IGNORECASE),
    re.compile(r"migration", re.IGNORECASE),
    re.compile(r"schema", re.IGNORECASE),
    re.compile(r"api.*route", re.IGNORECASE),
    re.compile(r"middleware", re.IGNORECASE),
    re.compile(r"config", re.IGNORECASE),
    re.compile(r"\.env", re.IGNORECASE),
]

# Test files: *.test.*, *.spec.*, test_*.py, *_test.py / *_test.go
TEST_FILE_PATTERN = re.compile(
    r"(\.(test|spec)\.[^/]+$)|((^|/)test_[^/]+\.py$)|(_test\.(py|go)$)"
)

# Directories whose contents are tests
TEST_DIRECTORIES = {"__tests__", "__test__", "tests", "test"}

# Common programming language file extensions
CODE_EXTENSIONS = {
    ".py",
    ".js",
    ".ts",
    ".jsx",
    ".tsx",
    ".mjs",
    ".cjs",
    ".go",
    ".java",
    ".kt",
    ".kts",
    ".cpp",
    ".c",
    ".h",
    ".hpp",
    ".rs",
    ".rb",
    ".php",
    ".swift",
    ".m",
    ".scala",
    ".sh",
    ".bash",
    ".zsh",
    ".dart",
    ".vue",
    ".svelte",
}


def is_code_file(file_path: str) -> bool:
    """Check if a file is a code file based on extension.

    Args:
        file_path: Path to the file

    Returns:
        True if the file has a code extension
    """
    return PurePosixPath(file_path).suffix.lower() in CODE_EXTENSIONS


def is_test_file(file_path: str) -> bool:
    """Check if a file is a test file by name or by living under a test directory.

    Args:
        file_path: Path to the file

    Returns:
        True if the file is a test file
    """
    if TEST_FILE_PATTERN.search(file_path):
        return True
    directories = PurePosixPath(file_path).parts[:-1]
    return any(part in TEST_DIRECTORIES for part in directories)


def is_critical_file(file_path: str) -> bool:
    """Check if a path touches a sensitive area (auth, payments, schema, config...).

    Args:
        file_path: Path to the file

    Returns:
        True if any critical pattern matches the path
    """
    return any(pattern.search(file_path) for pattern in CRITICAL_PATTERNS)
