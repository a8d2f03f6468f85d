"""Structured planning logs keyed by package and unit id."""

from __future__ import annotations

import json
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


@dataclass(slots=True)
class StructuredLogger:
    """In-memory plan log.

    Each record names the planning ``phase`` (``plan``, ``gate``,
    ``generate``, ``override``) and, where one applies, the package name
    and the ``unit`` id (``name-version``) it concerns.
    """

    records: list[dict[str, Any]] = field(default_factory=list)

    def log(
        self,
        *,
        operation: str,
        phase: str,
        message: str,
        package: str | None = None,
        unit: str | None = None,
        level: str = "info",
        extra: dict[str, Any] | None = None,
    ) -> None:
        record: dict[str, Any] = {
            "level": level,
            "operation": operation,
            "phase": phase,
            "package": package,
            "unit": unit,
            "message": message,
        }
        if extra is not None:
            record["extra"] = extra
        self.records.append(record)

    def records_for_package(self, package: str) -> list[dict[str, Any]]:
        return [record for record in self.records if record.get("package") == package]

    def records_for_unit(self, unit_id: str) -> list[dict[str, Any]]:
        return [record for record in self.records if record.get("unit") == unit_id]

    def records_for_operation(self, operation: str) -> list[dict[str, Any]]:
        return [record for record in self.records if record.get("operation") == operation]

    def errors(self) -> list[dict[str, Any]]:
        return [record for record in self.records if record.get("level") == "error"]

    def operation_counts(self) -> dict[str, int]:
        counts = Counter(record["operation"] for record in self.records)
        return dict(sorted(counts.items()))

    def to_json_lines(self, path: str | Path) -> Path:
        output_path = Path(path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        lines = [json.dumps(record, sort_keys=True) for record in self.records]
        output_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return output_path
