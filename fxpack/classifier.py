"""Category and pre-release classification from file naming conventions."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Iterable, Pattern

from .config import DEFAULT_CATEGORIES, DEFAULT_PRE_RELEASE_PATTERN
from .models import (
    CATEGORY_INCLUDE,
    CATEGORY_OTHER,
    KIND_INCLUDE,
    KIND_SHADER,
    KIND_TEXTURE,
)

# <prefix>_<CATEGORY>_<rest>, e.g. AS_VFX_BoomSticks.1.fx
_CATEGORY_RE = re.compile(r"^[^_]+_([A-Za-z0-9]+)_.+")


@dataclass(frozen=True)
class Classification:
    category: str
    kind: str
    pre_release: bool


class Classifier:
    """Assigns category tags, file kinds and pre-release flags."""

    def __init__(
        self,
        categories: Iterable[str] = DEFAULT_CATEGORIES,
        *,
        include_extensions: Iterable[str] = (".fxh",),
        texture_extensions: Iterable[str] = (),
        pre_release_pattern: Pattern[str] | str = DEFAULT_PRE_RELEASE_PATTERN,
    ) -> None:
        self.categories = frozenset(category.lower() for category in categories)
        self.include_extensions = frozenset(ext.lower() for ext in include_extensions)
        self.texture_extensions = frozenset(ext.lower() for ext in texture_extensions)
        if isinstance(pre_release_pattern, str):
            pre_release_pattern = re.compile(pre_release_pattern)
        self.pre_release_pattern = pre_release_pattern

    def classify(self, name: str) -> Classification:
        """Classify a file by its base name; never fails, unknowns become ``other``."""
        suffix = PurePosixPath(name).suffix.lower()
        pre_release = self.is_pre_release(name)

        if suffix in self.texture_extensions:
            return Classification(CATEGORY_OTHER, KIND_TEXTURE, pre_release)
        if suffix in self.include_extensions:
            return Classification(CATEGORY_INCLUDE, KIND_INCLUDE, pre_release)
        return Classification(self.category_of(name), KIND_SHADER, pre_release)

    def category_of(self, name: str) -> str:
        stripped = self.pre_release_pattern.sub("", name, count=1).lstrip("_- ")
        match = _CATEGORY_RE.match(stripped)
        if match:
            token = match.group(1).lower()
            if token in self.categories:
                return token
        return CATEGORY_OTHER

    def is_pre_release(self, name: str) -> bool:
        return self.pre_release_pattern.search(name) is not None
