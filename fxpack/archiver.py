"""Package materialization and zip archive creation."""

from __future__ import annotations

import shutil
import zipfile
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Iterable, List

from jinja2 import Environment, Template, TemplateError

from .config import BuildConfig, ConfigError
from .logging import get_logger
from .manifest import build_timestamp
from .models import ResolvedPackage, SourcePool

# Zip timestamps cannot predate 1980-01-01.
_ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)


class ArchiveError(RuntimeError):
    """Raised when a single package cannot be materialized or compressed."""

    def __init__(self, package: str, message: str) -> None:
        super().__init__(f"Package '{package}': {message}")
        self.package = package


def _placeholder_environment() -> Environment:
    # Readme templates use single-brace placeholders such as {version}.
    return Environment(
        variable_start_string="{",
        variable_end_string="}",
        autoescape=False,
        keep_trailing_newline=True,
    )


class Archiver:
    """Copies package members into a staging tree and zips it up."""

    def __init__(
        self,
        config: BuildConfig,
        *,
        clock: Callable[[], datetime] = build_timestamp,
    ) -> None:
        self.config = config
        self.layout = config.layout
        self.output_dir = config.output_path
        self.staging_dir = self.output_dir / self.layout.staging_dir
        self.clock = clock
        self.logger = get_logger("archiver")
        self._readmes: Dict[str, str] = {}

        env = _placeholder_environment()
        try:
            self._readme = env.from_string(config.readme_template)
            self._texture_note = env.from_string(config.texture_note)
        except TemplateError as exc:
            raise ConfigError(f"Invalid readme template: {exc}") from exc

    @property
    def manifest_path(self) -> Path:
        return self.output_dir / self.layout.manifest_file

    def clean(self) -> None:
        """Remove archives, manifest and staging left behind by earlier runs."""
        if self.staging_dir.exists():
            shutil.rmtree(self.staging_dir)
        if not self.output_dir.is_dir():
            return
        for stale in sorted(self.output_dir.glob("*.zip")):
            self.logger.debug("Removing stale archive %s", stale.name)
            stale.unlink()
        if self.manifest_path.exists():
            self.manifest_path.unlink()

    def cleanup(self) -> None:
        if self.staging_dir.exists():
            shutil.rmtree(self.staging_dir)

    def prepare(self, packages: Iterable[ResolvedPackage]) -> None:
        """Render every package readme up front so template errors surface before cleaning."""
        self._readmes = {package.key: self.render_readme(package) for package in packages}

    def render_readme(self, package: ResolvedPackage) -> str:
        texture_note = ""
        if package.textures:
            texture_note = _render(
                self._texture_note, textureDir=self.layout.texture_dir, package=package.key
            )
        return _render(
            self._readme,
            version=package.version,
            description=package.description,
            textureNote=texture_note,
            supportUrl=self.config.support_url,
            name=package.name,
            package=package.key,
        )

    def entries(self, package: ResolvedPackage) -> Dict[str, str]:
        """Map archive member paths to package member names."""
        entries: Dict[str, str] = {}
        for name in package.files:
            entries[f"{self.layout.shader_dir}/{name}"] = name
        for name in package.textures:
            entries[f"{self.layout.texture_dir}/{name}"] = name
        return entries

    def materialize(self, package: ResolvedPackage, pool: SourcePool) -> Path:
        """Copy members into ``staging/<key>`` and write the readme next to them."""
        package_dir = self.staging_dir / package.key
        if package_dir.exists():
            shutil.rmtree(package_dir)
        package_dir.mkdir(parents=True)

        root = Path(pool.root)
        for archive_path, name in self.entries(package).items():
            source = pool.get(name)
            if source is None:
                raise ArchiveError(package.key, f"{name} is not in the source pool")
            target = package_dir / archive_path
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(root / source.path, target)

        readme = package_dir / self.layout.readme_file
        text = self._readmes.get(package.key)
        if text is None:
            text = self.render_readme(package)
        readme.write_text(text, encoding="utf-8")
        return package_dir

    def compress(self, package: ResolvedPackage, package_dir: Path) -> Path:
        """Zip ``package_dir`` into ``<output>/<zipFile>`` with sorted, fixed-time entries."""
        archive_path = self.output_dir / package.zip_file
        date_time = max(self.clock().timetuple()[:6], _ZIP_EPOCH)

        members: List[Path] = sorted(
            (path for path in package_dir.rglob("*") if path.is_file()),
            key=lambda path: path.relative_to(package_dir).as_posix(),
        )
        with zipfile.ZipFile(archive_path, "w", zipfile.ZIP_DEFLATED) as archive:
            for path in members:
                info = zipfile.ZipInfo(path.relative_to(package_dir).as_posix(), date_time)
                info.compress_type = zipfile.ZIP_DEFLATED
                info.external_attr = 0o644 << 16
                archive.writestr(info, path.read_bytes())
        return archive_path

    def verify(self, package: ResolvedPackage, archive_path: Path) -> None:
        """Check that every member the manifest will list is inside the archive."""
        with zipfile.ZipFile(archive_path) as archive:
            names = set(archive.namelist())
        missing = sorted(set(self.entries(package)) - names)
        if missing:
            raise ArchiveError(
                package.key, f"archive is missing {len(missing)} members: {', '.join(missing)}"
            )

    def archive(self, package: ResolvedPackage, pool: SourcePool) -> Path:
        """Materialize, compress and verify one package."""
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            package_dir = self.materialize(package, pool)
            archive_path = self.compress(package, package_dir)
            self.verify(package, archive_path)
        except ArchiveError:
            self._discard(package)
            raise
        except (OSError, zipfile.BadZipFile) as exc:
            self._discard(package)
            raise ArchiveError(package.key, str(exc)) from exc
        self.logger.info("Packaged %s (%d members)", archive_path.name, len(package.members))
        return archive_path

    def _discard(self, package: ResolvedPackage) -> None:
        partial = self.output_dir / package.zip_file
        try:
            partial.unlink(missing_ok=True)
        except OSError as exc:
            self.logger.warning("Could not remove partial archive %s: %s", partial, exc)


def _render(template: Template, **context: object) -> str:
    try:
        return template.render(**context)
    except TemplateError as exc:
        raise ConfigError(f"Failed to render readme template: {exc}") from exc
