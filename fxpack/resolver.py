"""Package membership resolution over the dependency graph."""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Set

from .config import BuildConfig, ConfigError, DynamicPackage, ExplicitPackage, PackageDefinition
from .diagnostics import (
    DANGLING_REFERENCE,
    DROPPED_TEXTURE,
    EMPTY_RULE,
    MISSING_GLOBAL,
    MISSING_MEMBER,
    UNASSIGNED_FILE,
    UNKNOWN_CATEGORY,
    Diagnostics,
)
from .logging import get_logger
from .models import CATEGORY_INCLUDE, CATEGORY_OTHER, DependencyGraph, ResolvedPackage, SourcePool

_VISITING = 1
_DONE = 2


class PackageResolver:
    """Computes each package's self-contained member set.

    The pool and graph are read-only snapshots; resolving one package never sees
    another package's partial state, only the finished result of its parent.
    """

    def __init__(
        self,
        config: BuildConfig,
        pool: SourcePool,
        graph: DependencyGraph,
        diagnostics: Diagnostics | None = None,
    ) -> None:
        self.config = config
        self.pool = pool
        self.graph = graph
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()
        self.logger = get_logger("resolver")
        self._known_categories = set(config.categories) | {CATEGORY_INCLUDE, CATEGORY_OTHER}

    def resolution_order(self) -> List[str]:
        """Return package keys with every parent ahead of the packages inheriting from it.

        Raises ``ConfigError`` for unknown parents and inheritance cycles.
        """
        packages = self.config.packages
        state: Dict[str, int] = {}
        order: List[str] = []

        def visit(key: str, trail: List[str]) -> None:
            status = state.get(key)
            if status == _DONE:
                return
            if status == _VISITING:
                cycle = " -> ".join(trail[trail.index(key):] + [key])
                raise ConfigError(f"Inheritance cycle between packages: {cycle}")
            state[key] = _VISITING
            definition = packages[key]
            parent = definition.inherits if isinstance(definition, DynamicPackage) else None
            if parent is not None:
                if parent not in packages:
                    raise ConfigError(
                        f"Package '{key}' inherits from unknown package '{parent}'"
                    )
                visit(parent, trail + [key])
            state[key] = _DONE
            order.append(key)

        for key in packages:
            visit(key, [])
        return order

    def resolve_all(self) -> Dict[str, ResolvedPackage]:
        """Resolve every configured package, keyed in definition order."""
        order = self.resolution_order()
        globals_present = self._global_dependencies()

        resolved: Dict[str, ResolvedPackage] = {}
        for key in order:
            definition = self.config.packages[key]
            resolved[key] = self.resolve(definition, resolved, global_dependencies=globals_present)
            self.logger.info(
                "Resolved %s: %d files, %d textures",
                key,
                resolved[key].file_count,
                resolved[key].texture_count,
            )

        self._report_unassigned(resolved.values())
        return {key: resolved[key] for key in self.config.packages}

    def resolve(
        self,
        definition: PackageDefinition,
        resolved: Mapping[str, ResolvedPackage],
        *,
        global_dependencies: Iterable[str] | None = None,
    ) -> ResolvedPackage:
        key = definition.key
        inherited_textures: Set[str] = set()

        if isinstance(definition, ExplicitPackage):
            seeds = self._explicit_seeds(definition)
        else:
            seeds = set()
            if definition.inherits is not None:
                parent = resolved.get(definition.inherits)
                if parent is None:
                    raise ConfigError(
                        f"Package '{key}' requires '{definition.inherits}' to be resolved first"
                    )
                seeds.update(parent.files)
                inherited_textures.update(parent.textures)
            seeds.update(self._category_seeds(definition))

        if global_dependencies is None:
            global_dependencies = self._global_dependencies(report=False)
        seeds.update(global_dependencies)

        members = self.closure(seeds)
        self._report_dangling(key, members)

        reached_textures = {name for name in members if self._is_texture(name)}
        files = members - reached_textures

        textures: Set[str] = set(inherited_textures)
        if definition.include_all_textures:
            textures.update(source.name for source in self.pool.textures)
            textures.update(reached_textures)
        elif definition.include_textures:
            textures.update(reached_textures)

        if isinstance(definition, ExplicitPackage):
            self._report_dropped_textures(definition, textures)

        stem = self.config.package_names.archive_stem(key)
        return ResolvedPackage(
            key=key,
            name=stem,
            zip_file=f"{stem}.zip",
            description=definition.description,
            version=self.config.version,
            files=sorted(files),
            textures=sorted(textures),
            include_textures=definition.include_textures or bool(inherited_textures),
        )

    def closure(self, seeds: Iterable[str]) -> Set[str]:
        """Return every name reachable from ``seeds``; each node is visited once."""
        visited: Set[str] = set()
        stack = sorted(set(seeds), reverse=True)
        while stack:
            name = stack.pop()
            if name in visited:
                continue
            visited.add(name)
            for target in sorted(self.graph.targets(name), reverse=True):
                if target not in visited:
                    stack.append(target)
        return visited

    def _explicit_seeds(self, definition: ExplicitPackage) -> Set[str]:
        seeds: Set[str] = set()
        for name in definition.files:
            if name in self.pool:
                seeds.add(name)
            else:
                self.diagnostics.warn(
                    MISSING_MEMBER,
                    f"Listed file {name} was not found in the source pool",
                    package=definition.key,
                )
        return seeds

    def _report_dropped_textures(self, definition: ExplicitPackage, textures: Set[str]) -> None:
        for name in definition.files:
            if name in self.pool and self._is_texture(name) and name not in textures:
                self.diagnostics.warn(
                    DROPPED_TEXTURE,
                    f"Listed texture {name} is left out because includeTextures is off",
                    package=definition.key,
                    path=name,
                )

    def _category_seeds(self, definition: DynamicPackage) -> Set[str]:
        categories = set()
        for category in definition.categories:
            if category in self._known_categories:
                categories.add(category)
            else:
                self.diagnostics.warn(
                    UNKNOWN_CATEGORY,
                    f"Unknown category '{category}' contributes no files",
                    package=definition.key,
                )

        seeds = {
            source.name
            for source in self.pool.primaries
            if source.category in categories
            and not (source.pre_release and definition.exclude_pre_release)
        }
        if definition.categories and not seeds:
            self.diagnostics.warn(
                EMPTY_RULE,
                f"Category rule {sorted(definition.categories)} matched no files",
                package=definition.key,
            )
        return seeds

    def _global_dependencies(self, *, report: bool = True) -> List[str]:
        present: List[str] = []
        for name in self.config.global_dependencies:
            if name in self.pool:
                present.append(name)
            elif report:
                self.diagnostics.warn(
                    MISSING_GLOBAL,
                    f"Global dependency {name} was not found in the source pool",
                )
        return present

    def _report_dangling(self, key: str, members: Iterable[str]) -> None:
        for name in sorted(members):
            for target in sorted(self.graph.dangling.get(name, ())):
                self.diagnostics.warn(
                    DANGLING_REFERENCE,
                    f"{name} references {target}, which is not in the source pool",
                    package=key,
                    path=target,
                )

    def _report_unassigned(self, packages: Iterable[ResolvedPackage]) -> None:
        assigned: Set[str] = set()
        for package in packages:
            assigned.update(package.files)
        for source in self.pool.primaries:
            if source.name in assigned or source.pre_release:
                continue
            self.diagnostics.warn(
                UNASSIGNED_FILE,
                f"{source.path} (category '{source.category}') is not part of any package",
                path=source.path,
            )

    def _is_texture(self, name: str) -> bool:
        source = self.pool.get(name)
        return source is not None and source.is_texture
