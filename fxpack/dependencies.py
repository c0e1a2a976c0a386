"""Static include and texture reference extraction."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, Pattern, Set

from .config import DEFAULT_INCLUDE_PATTERN, DEFAULT_TEXTURE_PATTERN
from .logging import get_logger
from .models import DependencyGraph, SourcePool


@dataclass
class References:
    """Names referenced by one file, split by reference kind."""

    includes: Set[str] = field(default_factory=set)
    textures: Set[str] = field(default_factory=set)

    def __bool__(self) -> bool:
        return bool(self.includes or self.textures)


def reference_name(token: str) -> str:
    """Reduce a referenced path token to the base name used by the flat source pool."""
    cleaned = token.strip().strip("\"'<>").replace("\\", "/")
    return cleaned.rsplit("/", 1)[-1]


class DependencyExtractor:
    """Finds include directives and texture sources by line-wise pattern matching.

    Matching is textual: references behind preprocessor conditionals are always
    collected and references assembled at compile time are never seen.
    """

    def __init__(
        self,
        include_pattern: Pattern[str] | str = DEFAULT_INCLUDE_PATTERN,
        texture_pattern: Pattern[str] | str = DEFAULT_TEXTURE_PATTERN,
        *,
        external_references: Iterable[str] = (),
    ) -> None:
        self.include_pattern = _as_pattern(include_pattern)
        self.texture_pattern = _as_pattern(texture_pattern)
        self.external_references = frozenset(external_references)
        self.logger = get_logger("dependencies")

    def extract(self, text: str) -> References:
        refs = References()
        for line in text.splitlines():
            for match in self.include_pattern.finditer(line):
                name = _first_group(match)
                if name:
                    refs.includes.add(name)
            for match in self.texture_pattern.finditer(line):
                name = _first_group(match)
                if name:
                    refs.textures.add(name)
        return refs

    def build_graph(self, pool: SourcePool) -> DependencyGraph:
        """Extract every non-texture file in ``pool`` into an adjacency list.

        References naming nothing in the pool are kept aside as dangling; includes
        listed as external references are dropped silently.
        """
        root = Path(pool.root)
        edges: Dict[str, FrozenSet[str]] = {}
        dangling: Dict[str, FrozenSet[str]] = {}

        for source in pool.primaries:
            text = (root / source.path).read_text(encoding="utf-8", errors="replace")
            refs = self.extract(text)

            targets: Set[str] = set()
            missing: Set[str] = set()
            for name in refs.includes:
                if name in self.external_references:
                    continue
                (targets if name in pool else missing).add(name)
            for name in refs.textures:
                (targets if name in pool else missing).add(name)
            targets.discard(source.name)

            edges[source.name] = frozenset(targets)
            if missing:
                dangling[source.name] = frozenset(missing)
                self.logger.debug(
                    "%s references missing files: %s", source.name, ", ".join(sorted(missing))
                )

        edge_count = sum(len(targets) for targets in edges.values())
        self.logger.debug("Extracted %d dependency edges from %d files", edge_count, len(edges))
        return DependencyGraph(edges=MappingProxyType(edges), dangling=MappingProxyType(dangling))


def _as_pattern(pattern: Pattern[str] | str) -> Pattern[str]:
    if isinstance(pattern, str):
        return re.compile(pattern, re.MULTILINE)
    return pattern


def _first_group(match: re.Match[str]) -> str:
    token = match.group(1) if match.groups() else match.group(0)
    return reference_name(token or "")
