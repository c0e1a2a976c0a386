"""Pipeline orchestration for resolve and build runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List

from .archiver import ArchiveError, Archiver
from .classifier import Classifier
from .config import BuildConfig, load_config
from .dependencies import DependencyExtractor
from .diagnostics import Diagnostics
from .logging import get_logger
from .manifest import ManifestBuilder, build_timestamp
from .models import BuildWarning, DependencyGraph, Manifest, ResolvedPackage, SourcePool
from .resolver import PackageResolver
from .source_scanner import SourceScanner


@dataclass
class ResolveOutcome:
    """Everything computed before any output is written."""

    config: BuildConfig
    pool: SourcePool
    graph: DependencyGraph
    packages: Dict[str, ResolvedPackage]
    manifest: Manifest
    warnings: List[BuildWarning] = field(default_factory=list)


@dataclass
class BuildOutcome:
    """Result of a full build: archives written, packages that failed, warnings."""

    manifest: Manifest
    manifest_path: Path
    archives: Dict[str, Path]
    failed: Dict[str, str] = field(default_factory=dict)
    warnings: List[BuildWarning] = field(default_factory=list)
    summary: str = ""

    @property
    def succeeded(self) -> bool:
        return not self.failed


class Orchestrator:
    """Runs scanner, extractor, resolver, manifest builder and archiver in sequence."""

    def __init__(
        self,
        scanner: SourceScanner | None = None,
        *,
        clock: Callable[[], datetime] = build_timestamp,
    ) -> None:
        self.scanner = scanner or SourceScanner()
        self.clock = clock
        self.logger = get_logger("orchestrator")

    def load(
        self,
        path: str | Path,
        *,
        config_path: str | Path | None = None,
        output_dir: str | Path | None = None,
    ) -> BuildConfig:
        root = Path(path).expanduser().resolve()
        config = load_config(Path(config_path) if config_path else root, root=root)
        if output_dir is not None:
            config.output_dir = str(Path(output_dir).expanduser().resolve())
        return config

    def run_resolve(
        self,
        path: str | Path,
        *,
        config_path: str | Path | None = None,
        config: BuildConfig | None = None,
        diagnostics: Diagnostics | None = None,
    ) -> ResolveOutcome:
        """Scan, extract and resolve every package without touching the output directory."""
        diagnostics = diagnostics if diagnostics is not None else Diagnostics()
        if config is None:
            config = self.load(path, config_path=config_path)
        self.logger.info("Resolving packages for %s (version %s)", config.root, config.version)

        classifier = Classifier(
            config.categories,
            include_extensions=config.include_extensions,
            texture_extensions=config.texture_extensions,
            pre_release_pattern=config.pre_release_pattern,
        )
        pool = self.scanner.scan_pool(config, classifier, diagnostics)

        extractor = DependencyExtractor(
            config.reference_patterns.include,
            config.reference_patterns.texture,
            external_references=config.external_references,
        )
        graph = extractor.build_graph(pool)

        resolver = PackageResolver(config, pool, graph, diagnostics)
        packages = resolver.resolve_all()

        builder = ManifestBuilder(config.display_order, clock=self.clock, diagnostics=diagnostics)
        manifest = builder.build(config.version, packages)
        return ResolveOutcome(
            config=config,
            pool=pool,
            graph=graph,
            packages=packages,
            manifest=manifest,
            warnings=diagnostics.warnings,
        )

    def run_build(
        self,
        path: str | Path,
        *,
        config_path: str | Path | None = None,
        output_dir: str | Path | None = None,
    ) -> BuildOutcome:
        """Resolve all packages, then replace the previous archives and manifest.

        Configuration errors surface before anything is deleted or written. A package
        whose archive fails is reported and left out of the manifest; the remaining
        packages are still archived.
        """
        diagnostics = Diagnostics()
        config = self.load(path, config_path=config_path, output_dir=output_dir)
        archiver = Archiver(config, clock=self.clock)
        resolved = self.run_resolve(path, config=config, diagnostics=diagnostics)
        archiver.prepare(resolved.manifest.packages)

        archiver.clean()
        archives: Dict[str, Path] = {}
        failed: Dict[str, str] = {}
        try:
            for package in resolved.manifest.packages:
                try:
                    archives[package.key] = archiver.archive(package, resolved.pool)
                except ArchiveError as exc:
                    self.logger.error("%s", exc)
                    failed[package.key] = str(exc)
        finally:
            archiver.cleanup()

        builder = ManifestBuilder(config.display_order, clock=self.clock, diagnostics=diagnostics)
        manifest = Manifest(
            version=resolved.manifest.version,
            generated=resolved.manifest.generated,
            packages=[package for package in resolved.manifest.packages if package.key in archives],
        )
        manifest_path = builder.write(manifest, archiver.manifest_path)

        summary = diagnostics.summary()
        if failed:
            self.logger.error("%d of %d packages failed", len(failed), len(resolved.packages))
        self.logger.info("Build finished with %s", summary)
        return BuildOutcome(
            manifest=manifest,
            manifest_path=manifest_path,
            archives=archives,
            failed=failed,
            warnings=diagnostics.warnings,
            summary=summary,
        )
