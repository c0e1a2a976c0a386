"""Warning accumulation for a single build run."""

from __future__ import annotations

import logging
from collections import Counter
from typing import Iterator, List, Optional

from .logging import get_logger
from .models import BuildWarning

MISSING_MEMBER = "missing-member"
UNKNOWN_CATEGORY = "unknown-category"
EMPTY_RULE = "empty-rule"
DANGLING_REFERENCE = "dangling-reference"
MISSING_GLOBAL = "missing-global"
DUPLICATE_NAME = "duplicate-name"
UNASSIGNED_FILE = "unassigned-file"
UNKNOWN_DISPLAY_KEY = "unknown-display-key"
DROPPED_TEXTURE = "dropped-texture"


class Diagnostics:
    """Collects recoverable warnings and logs each one as it is recorded."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._warnings: List[BuildWarning] = []
        self._logger = logger or get_logger("diagnostics")

    def warn(
        self,
        code: str,
        message: str,
        *,
        package: Optional[str] = None,
        path: Optional[str] = None,
    ) -> BuildWarning:
        warning = BuildWarning(code=code, message=message, package=package, path=path)
        self._warnings.append(warning)
        prefix = f"[{package}] " if package else ""
        self._logger.warning("%s%s", prefix, message)
        return warning

    @property
    def warnings(self) -> List[BuildWarning]:
        return list(self._warnings)

    def by_code(self, code: str) -> List[BuildWarning]:
        return [warning for warning in self._warnings if warning.code == code]

    def __iter__(self) -> Iterator[BuildWarning]:
        return iter(list(self._warnings))

    def __len__(self) -> int:
        return len(self._warnings)

    def summary(self) -> str:
        """Return a one-line count of warnings grouped by code."""
        if not self._warnings:
            return "no warnings"
        counts = Counter(warning.code for warning in self._warnings)
        parts = [f"{count} {code}" for code, count in sorted(counts.items())]
        total = len(self._warnings)
        noun = "warning" if total == 1 else "warnings"
        return f"{total} {noun} ({', '.join(parts)})"
