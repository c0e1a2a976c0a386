"""Source tree scanning and source pool construction."""

from __future__ import annotations

import os
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Pattern, Sequence

from .classifier import Classifier
from .config import BuildConfig
from .diagnostics import DUPLICATE_NAME, Diagnostics
from .logging import get_logger
from .models import SourceFile, SourcePool

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "node_modules",
    "__pycache__",
    ".pytest_cache",
    ".idea",
    ".vs",
}

_EXCLUDED_FILES = {
    ".DS_Store",
    "Thumbs.db",
    "desktop.ini",
}


def _iter_files(root: Path) -> Iterator[Path]:
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(name for name in dirnames if name not in _EXCLUDED_DIRS)
        current_dir = Path(dirpath)
        for filename in sorted(filenames):
            if filename in _EXCLUDED_FILES:
                continue
            yield current_dir / filename


def _is_excluded(rel_path: str, patterns: Sequence[Pattern[str]]) -> bool:
    return any(pattern.search(rel_path) for pattern in patterns)


class SourceScanner:
    """Walks source directories and returns the files a build may package."""

    def __init__(self) -> None:
        self.logger = get_logger("scanner")

    def scan(
        self,
        root: str | Path,
        extensions: Iterable[str],
        exclude_patterns: Sequence[Pattern[str]] = (),
        *,
        relative_to: str | Path | None = None,
    ) -> List[str]:
        """Return posix paths (relative to ``relative_to`` or ``root``) of qualifying files.

        A file qualifies when its suffix is in ``extensions`` and no exclusion
        pattern matches its relative path. Results are sorted.
        """
        root_path = Path(root).expanduser().resolve()
        if not root_path.exists():
            raise FileNotFoundError(f"Source directory not found: {root}")
        if not root_path.is_dir():
            raise NotADirectoryError(f"Source path is not a directory: {root}")

        base = Path(relative_to).expanduser().resolve() if relative_to else root_path
        allowed = {ext.lower() for ext in extensions}

        results: List[str] = []
        for path in _iter_files(root_path):
            if path.suffix.lower() not in allowed:
                continue
            try:
                rel_path = path.relative_to(base).as_posix()
            except ValueError:
                rel_path = path.relative_to(root_path).as_posix()
            if _is_excluded(rel_path, exclude_patterns):
                self.logger.debug("Excluded %s", rel_path)
                continue
            results.append(rel_path)
        return sorted(results)

    def scan_pool(
        self,
        config: BuildConfig,
        classifier: Classifier,
        diagnostics: Diagnostics | None = None,
    ) -> SourcePool:
        """Scan shader and texture directories into an immutable, classified pool."""
        diagnostics = diagnostics if diagnostics is not None else Diagnostics()
        paths = self.scan(
            config.source_path,
            config.file_extensions,
            config.exclude_patterns,
            relative_to=config.root,
        )
        if config.texture_path.is_dir():
            paths.extend(
                self.scan(
                    config.texture_path,
                    config.texture_extensions,
                    config.exclude_patterns,
                    relative_to=config.root,
                )
            )
        else:
            self.logger.debug("Texture directory %s not present", config.texture_path)

        files: List[SourceFile] = []
        by_name: Dict[str, SourceFile] = {}
        for rel_path in sorted(set(paths)):
            name = rel_path.rsplit("/", 1)[-1]
            classification = classifier.classify(name)
            source = SourceFile(
                path=rel_path,
                name=name,
                category=classification.category,
                kind=classification.kind,
                pre_release=classification.pre_release,
            )
            existing = by_name.get(name)
            if existing is not None:
                diagnostics.warn(
                    DUPLICATE_NAME,
                    f"{rel_path} shares its name with {existing.path}; keeping {existing.path}",
                    path=rel_path,
                )
                continue
            by_name[name] = source
            files.append(source)

        self.logger.debug("Scanner discovered %d files", len(files))
        return SourcePool(
            root=str(config.root), files=tuple(files), by_name=MappingProxyType(by_name)
        )
