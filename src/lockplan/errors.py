"""Typed planning error model with stable, machine-readable error codes."""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum


class ErrorCode(StrEnum):
    """Stable error identifiers used across API surfaces."""

    VALIDATION = "E_VALIDATION"
    MALFORMED_MANIFEST = "E_MALFORMED_MANIFEST"
    INVALID_OVERRIDE = "E_INVALID_OVERRIDE"
    RESTRICTED_PACKAGE = "E_RESTRICTED_PACKAGE"
    FILTER_COMPOSITION = "E_FILTER_COMPOSITION"


class LockplanError(Exception):
    """Base error class that carries code, optional hint, and context."""

    code: str
    hint: str | None
    context: Mapping[str, str]

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code.value
        self.hint = hint
        self.context = dict(context or {})

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        if self.context:
            for k, v in self.context.items():
                if v:
                    parts.append(f"  {k}: {v}")
        return "\n".join(parts)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "code": self.code,
            "message": str(self),
            "context": dict(self.context),
        }
        if self.hint is not None:
            payload["hint"] = self.hint
        return payload


class ValidationError(LockplanError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.VALIDATION, hint=hint, context=context)


class MalformedManifestError(LockplanError):
    """Structural defect in the locked manifest; aborts planning."""

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.MALFORMED_MANIFEST, hint=hint, context=context)


class InvalidOverrideError(LockplanError):
    """An override attempted a disallowed mutation or is misconfigured."""

    package: str
    field: str

    def __init__(
        self,
        message: str,
        *,
        package: str,
        field: str,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        merged = {"package": package, "field": field, **dict(context or {})}
        super().__init__(message, code=ErrorCode.INVALID_OVERRIDE, hint=hint, context=merged)
        self.package = package
        self.field = field


class RestrictedPackageError(LockplanError):
    """The gate policy denied a package."""

    package: str
    license: str | None

    def __init__(
        self,
        message: str,
        *,
        package: str,
        license: str | None,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        merged = {"package": package, "license": license or "<none>", **dict(context or {})}
        super().__init__(message, code=ErrorCode.RESTRICTED_PACKAGE, hint=hint, context=merged)
        self.package = package
        self.license = license


class FilterCompositionError(LockplanError):
    """A source filter pattern could not be compiled."""

    pattern: str

    def __init__(
        self,
        message: str,
        *,
        pattern: str,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        merged = {"pattern": pattern, **dict(context or {})}
        super().__init__(message, code=ErrorCode.FILTER_COMPOSITION, hint=hint, context=merged)
        self.pattern = pattern


__all__ = [
    "ErrorCode",
    "FilterCompositionError",
    "InvalidOverrideError",
    "LockplanError",
    "MalformedManifestError",
    "RestrictedPackageError",
    "ValidationError",
]
