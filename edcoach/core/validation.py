"""Validation primitives shared by the roster loader and the insight parsers."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional


class ValidationFailure(ValueError):
    """Raised by strict validators when a check fails."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "validation failed")


@dataclass(frozen=True)
class ValidationResult:
    """Tagged outcome of a validation check.

    ``valid`` discriminates the two cases: a successful result carries the
    normalized ``data``; a failed one carries a non-empty ``errors`` list and,
    where the caller distinguishes failure kinds, a ``reason`` tag.
    """

    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    data: Any = None
    reason: Any = None

    @classmethod
    def ok(cls, data: Any, *, warnings: Optional[List[str]] = None) -> "ValidationResult":
        return cls(valid=True, errors=[], warnings=list(warnings or []), data=data)

    @classmethod
    def fail(cls, errors: List[str], *, reason: Any = None) -> "ValidationResult":
        if not errors:
            raise ValueError("A failed ValidationResult needs at least one error")
        return cls(valid=False, errors=list(errors), data=None, reason=reason)

    @property
    def has_warnings(self) -> bool:
        return len(self.warnings) > 0

    def raise_if_invalid(self) -> None:
        """Raise ValidationFailure if validation failed."""
        if not self.valid:
            raise ValidationFailure(self.errors)


class ValidationFramework:
    """File-level checks used before handing data to the domain validators."""

    def __init__(self, *, strict: bool = True):
        self.strict = strict
        self.logger = logging.getLogger(__name__)

    def validate_file_exists(self, path: Path | str) -> ValidationResult:
        """Validate that a file exists and is readable."""
        errors = []
        warnings = []
        path_obj = Path(path)

        if not path_obj.exists():
            errors.append(f"File does not exist: {path}")
        elif not path_obj.is_file():
            errors.append(f"Path is not a file: {path}")
        elif not path_obj.stat().st_size:
            warnings.append(f"File is empty: {path}")

        result = ValidationResult(
            valid=len(errors) == 0,
            errors=errors,
            warnings=warnings,
            data=path_obj if not errors else None,
        )

        if not result.valid:
            self.logger.error("File validation failed: %s", result.errors)
        elif result.has_warnings:
            self.logger.warning("File validation warnings: %s", result.warnings)

        if self.strict and not result.valid:
            result.raise_if_invalid()

        return result

    def validate_json_file(self, path: Path | str) -> ValidationResult:
        """Validate and load a JSON file."""
        file_result = self.validate_file_exists(path)
        if not file_result.valid:
            return file_result

        errors = []
        data = None
        try:
            content = Path(path).read_text(encoding="utf-8")
            if not content.strip():
                errors.append(f"JSON file is empty: {path}")
            else:
                data = json.loads(content)
                self.logger.info("Loaded JSON from %s", path)
        except json.JSONDecodeError as exc:
            errors.append(f"Invalid JSON in {path}: {exc}")
        except OSError as exc:
            errors.append(f"Error reading JSON file {path}: {exc}")

        result = ValidationResult(valid=len(errors) == 0, errors=errors, data=data)

        if not result.valid:
            self.logger.error("JSON validation failed: %s", result.errors)

        if self.strict and not result.valid:
            result.raise_if_invalid()

        return result


strict_validation = ValidationFramework(strict=True)


__all__ = [
    "ValidationFailure",
    "ValidationFramework",
    "ValidationResult",
    "strict_validation",
]
