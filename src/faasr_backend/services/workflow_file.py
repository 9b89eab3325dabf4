"""Workflow file naming and content rules.

Uploaded files land at the root of the user's FaaSr-workflow fork, so names are
restricted to a flat, safe alphabet and the payload must be strict JSON.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field

MAX_FILE_SIZE = 1024 * 1024
DEFAULT_FILE_NAME = "workflow.json"
JSON_SUFFIX = ".json"

_FILE_NAME_PATTERN = re.compile(r"[A-Za-z0-9_-]+\.json")
_PATH_SEPARATORS = re.compile(r"[/\\]")
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]")
_LEADING_DOTS = re.compile(r"^\.+")
_DOT_RUNS = re.compile(r"\.{2,}")


@dataclass(frozen=True, slots=True)
class FileValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)
    sanitized_file_name: str | None = None


def sanitize_file_name(file_name: str) -> str:
    """Normalize an uploaded file name into a safe `<name>.json`.

    Never fails: anything that sanitizes down to nothing becomes
    :data:`DEFAULT_FILE_NAME`. Applying it twice gives the same result as once.
    """

    sanitized = _PATH_SEPARATORS.sub("", file_name or "")
    sanitized = _UNSAFE_CHARS.sub("", sanitized)
    sanitized = _LEADING_DOTS.sub("", sanitized)

    if sanitized.endswith(JSON_SUFFIX):
        name_part = sanitized[: -len(JSON_SUFFIX)]
        sanitized = _DOT_RUNS.sub(".", name_part) + JSON_SUFFIX
    else:
        sanitized = _DOT_RUNS.sub(".", sanitized) + JSON_SUFFIX

    if not sanitized or sanitized == JSON_SUFFIX:
        return DEFAULT_FILE_NAME
    return sanitized


def _reject_constant(value: str) -> float:
    # Python accepts NaN/Infinity literals; JSON does not.
    raise ValueError(f"Invalid JSON constant: {value}")


def validate_workflow_file(file_name: str, content: str, size_bytes: int) -> FileValidationResult:
    """Run every check and collect all violations rather than stopping at the first."""

    errors: list[str] = []

    if not file_name:
        errors.append("File name is required")
    else:
        if "/" in file_name or "\\" in file_name:
            errors.append("File name cannot contain path separators")
        if not file_name.endswith(JSON_SUFFIX):
            errors.append("File must have .json extension")
        if not _FILE_NAME_PATTERN.fullmatch(file_name):
            errors.append("File name must contain only letters, numbers, hyphens, and underscores")

    if size_bytes > MAX_FILE_SIZE:
        errors.append(f"File size exceeds maximum of {MAX_FILE_SIZE} bytes")

    try:
        json.loads(content, parse_constant=_reject_constant)
    except ValueError:
        errors.append("Invalid JSON: File must contain valid JSON syntax")

    return FileValidationResult(valid=not errors, errors=errors)
