"""
Parameter validation — check CLI/driver inputs before any work starts.

Each validator returns a ValidationResult holding either the cleaned
value or the list of problems found. ``unwrap()`` turns a failed result
into a ValidationError for callers that want to raise.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from devbox.core.errors import ValidationError

NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")
MAX_NAME_LENGTH = 128


@dataclass
class ValidationResult:
    """Outcome of validating one parameter."""

    value: Any = None
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def unwrap(self) -> Any:
        """Return the value, or raise ValidationError with every problem."""
        if self.errors:
            raise ValidationError(self.errors)
        return self.value


def _validate_name(raw: str | None, label: str) -> ValidationResult:
    value = (raw or "").strip()
    if not value:
        return ValidationResult(errors=[f"{label} is required"])

    errors = []
    if len(value) > MAX_NAME_LENGTH:
        errors.append(f"{label} '{value[:20]}...' is longer than {MAX_NAME_LENGTH} characters")
    if not NAME_PATTERN.match(value):
        errors.append(
            f"{label} '{value}' may only contain letters, digits, '.', '_' and '-'"
            " and must start with a letter or digit"
        )
    if errors:
        return ValidationResult(errors=errors)
    return ValidationResult(value=value)


def validate_service_name(raw: str | None) -> ValidationResult:
    return _validate_name(raw, "Service name")


def validate_module_name(raw: str | None) -> ValidationResult:
    return _validate_name(raw, "Module name")


def validate_runnable_id(raw: str | None) -> ValidationResult:
    """A declared runnable name, or an ad-hoc shell command (single line)."""
    value = (raw or "").strip()
    if not value:
        return ValidationResult(errors=["Runnable id is required"])
    if "\n" in value or "\r" in value:
        return ValidationResult(errors=["Runnable id must be a single line"])
    return ValidationResult(value=value)


def is_runnable_name(value: str) -> bool:
    """True if ``value`` looks like a declared runnable name, not a command."""
    return bool(NAME_PATTERN.match(value))


def validate_value_identifier(raw: str | None) -> ValidationResult:
    """A value identifier is ``<service>.<name>``; the service part has no dot."""
    value = (raw or "").strip()
    if not value:
        return ValidationResult(errors=["Value identifier is required"])

    service_name, sep, provider_name = value.partition(".")
    if not sep:
        return ValidationResult(errors=[f"Value identifier '{value}' must look like '<service>.<name>'"])

    errors = []
    errors.extend(validate_service_name(service_name).errors)
    if not provider_name:
        errors.append(f"Value identifier '{value}' has an empty value name")
    if errors:
        return ValidationResult(errors=errors)
    return ValidationResult(value=value)
