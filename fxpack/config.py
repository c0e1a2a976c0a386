"""Configuration loading for fxpack (package-config.json / .yml)."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Pattern, Sequence, Union

import yaml

CONFIG_FILENAMES = ("package-config.json", "package-config.yml", "package-config.yaml")

DEFAULT_CATEGORIES = ("bgx", "vfx", "lfx", "gfx", "afx")
DEFAULT_INCLUDE_PATTERN = r'^\s*#\s*include\s+["<]([^">]+)[">]'
DEFAULT_TEXTURE_PATTERN = r'\bsource\s*=\s*"([^"]+)"'
DEFAULT_PRE_RELEASE_PATTERN = r"^\[PRE\]"
DEFAULT_TEXTURE_NOTE = "Textures used by these effects are in the {textureDir} folder."
DEFAULT_README_TEMPLATE = """{description}

Version: {version}

Copy the contents of this archive into your reshade-shaders folder.
{textureNote}

Support and updates: {supportUrl}
"""


class ConfigError(RuntimeError):
    """Raised when the package configuration is missing or invalid."""


@dataclass
class PackageNames:
    """Archive naming: a shared prefix plus a per-package suffix."""

    prefix: str = "package"
    suffixes: Dict[str, str] = field(default_factory=dict)

    def archive_stem(self, key: str) -> str:
        if key in self.suffixes:
            return f"{self.prefix}{self.suffixes[key]}"
        if key == "complete":
            return self.prefix
        return f"{self.prefix}_{key}"


@dataclass
class OutputLayout:
    """Directory and file names used inside and next to the archives."""

    shader_dir: str = "Shaders"
    texture_dir: str = "Textures"
    manifest_file: str = "package-manifest.json"
    readme_file: str = "README.txt"
    staging_dir: str = ".staging"


@dataclass
class ReferencePatterns:
    """Compiled patterns used by the dependency extractor."""

    include: Pattern[str]
    texture: Pattern[str]


@dataclass
class ExplicitPackage:
    """Package whose membership is a fixed list of file names."""

    key: str
    description: str
    files: List[str]
    include_textures: bool = False
    include_all_textures: bool = False


@dataclass
class DynamicPackage:
    """Package computed from category rules and an optional parent package."""

    key: str
    description: str
    categories: List[str]
    inherits: Optional[str] = None
    exclude_pre_release: bool = True
    include_textures: bool = False
    include_all_textures: bool = False


PackageDefinition = Union[ExplicitPackage, DynamicPackage]


@dataclass
class BuildConfig:
    """Everything a build needs, parsed once from the configuration document."""

    root: Path
    version: str
    packages: Dict[str, PackageDefinition]
    reference_patterns: ReferencePatterns
    pre_release_pattern: Pattern[str]
    support_url: str = ""
    source_dir: str = "Shaders"
    texture_source_dir: str = "Textures"
    output_dir: str = "packages"
    file_extensions: List[str] = field(default_factory=lambda: [".fx", ".fxh"])
    include_extensions: List[str] = field(default_factory=lambda: [".fxh"])
    texture_extensions: List[str] = field(
        default_factory=lambda: [".png", ".jpg", ".jpeg", ".bmp", ".dds", ".tga"]
    )
    exclude_patterns: List[Pattern[str]] = field(default_factory=list)
    categories: List[str] = field(default_factory=lambda: list(DEFAULT_CATEGORIES))
    external_references: List[str] = field(default_factory=list)
    global_dependencies: List[str] = field(default_factory=list)
    package_names: PackageNames = field(default_factory=PackageNames)
    display_order: List[str] = field(default_factory=list)
    layout: OutputLayout = field(default_factory=OutputLayout)
    readme_template: str = DEFAULT_README_TEMPLATE
    texture_note: str = DEFAULT_TEXTURE_NOTE
    config_path: Optional[Path] = None

    @property
    def source_path(self) -> Path:
        return self.root / self.source_dir

    @property
    def texture_path(self) -> Path:
        return self.root / self.texture_source_dir

    @property
    def output_path(self) -> Path:
        return self.root / self.output_dir


def load_config(config_path: Path, root: Path | None = None) -> BuildConfig:
    """Load and validate the package configuration.

    ``config_path`` may point at the document itself or at a directory holding
    ``package-config.json`` (directly or under ``config/``). Relative directories in
    the document are resolved against ``root``, which defaults to the directory
    containing the configuration file.
    """
    config_file = resolve_config_path(config_path)
    if not config_file.is_file():
        raise ConfigError(f"Package configuration not found: {config_file}")

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{config_file.name} must contain a mapping at the root")

    project_root = (root or config_file.parent).expanduser().resolve()

    version = _as_str(data.get("version"))
    if not version:
        raise ConfigError(f"{config_file.name} is missing the required 'version' field")

    patterns_data = _as_dict(data.get("referencePatterns"))
    reference_patterns = ReferencePatterns(
        include=_compile(
            _as_str(patterns_data.get("include")) or DEFAULT_INCLUDE_PATTERN,
            "referencePatterns.include",
            flags=re.MULTILINE,
        ),
        texture=_compile(
            _as_str(patterns_data.get("texture")) or DEFAULT_TEXTURE_PATTERN,
            "referencePatterns.texture",
            flags=re.MULTILINE,
        ),
    )
    pre_release_pattern = _compile(
        _as_str(data.get("preReleasePattern")) or DEFAULT_PRE_RELEASE_PATTERN,
        "preReleasePattern",
    )
    exclude_patterns = [
        _compile(pattern, "excludePatterns") for pattern in _as_str_list(data.get("excludePatterns"))
    ]

    names_data = _as_dict(data.get("packageNames"))
    package_names = PackageNames(
        prefix=_as_str(names_data.get("prefix")) or "package",
        suffixes={
            str(key): ("" if value is None else str(value))
            for key, value in names_data.items()
            if key != "prefix"
        },
    )

    layout_data = _as_dict(data.get("layout"))
    defaults = OutputLayout()
    layout = OutputLayout(
        shader_dir=_as_str(layout_data.get("shaderDir")) or defaults.shader_dir,
        texture_dir=_as_str(layout_data.get("textureDir")) or defaults.texture_dir,
        manifest_file=_as_str(layout_data.get("manifestFile")) or defaults.manifest_file,
        readme_file=_as_str(layout_data.get("readmeFile")) or defaults.readme_file,
        staging_dir=_as_str(layout_data.get("stagingDir")) or defaults.staging_dir,
    )

    packages = _parse_packages(data.get("packages"))

    config = BuildConfig(
        root=project_root,
        version=version,
        packages=packages,
        reference_patterns=reference_patterns,
        pre_release_pattern=pre_release_pattern,
        exclude_patterns=exclude_patterns,
        package_names=package_names,
        layout=layout,
        config_path=config_file,
    )

    config.support_url = _as_str(data.get("supportUrl")) or ""
    config.source_dir = _as_str(data.get("sourceDir")) or config.source_dir
    config.texture_source_dir = _as_str(data.get("textureDir")) or config.texture_source_dir
    config.output_dir = _as_str(data.get("outputDir")) or config.output_dir
    if "fileExtensions" in data:
        config.file_extensions = _as_extensions(data.get("fileExtensions"))
    if "includeExtensions" in data:
        config.include_extensions = _as_extensions(data.get("includeExtensions"))
    if "textureExtensions" in data:
        config.texture_extensions = _as_extensions(data.get("textureExtensions"))
    if "categories" in data:
        config.categories = [item.lower() for item in _as_str_list(data.get("categories"))]
    config.external_references = _as_str_list(data.get("externalReferences"))
    config.global_dependencies = _as_str_list(data.get("globalDependencies"))
    config.display_order = _as_str_list(data.get("packageDisplayOrder"))
    config.readme_template = _as_str(data.get("readmeTemplate")) or config.readme_template
    config.texture_note = _as_str(data.get("textureNote")) or config.texture_note
    return config


def resolve_config_path(config_path: Path) -> Path:
    config_path = Path(config_path).expanduser()
    if config_path.is_dir():
        for directory in (config_path, config_path / "config"):
            for filename in CONFIG_FILENAMES:
                candidate = directory / filename
                if candidate.is_file():
                    return candidate.resolve()
        return (config_path / "config" / CONFIG_FILENAMES[0]).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read {path}: {exc}") from exc
    if not text.strip():
        raise ConfigError(f"{path.name} is empty")

    if path.suffix.lower() == ".json":
        try:
            loaded = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    else:
        try:
            loaded = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _parse_packages(value: Any) -> Dict[str, PackageDefinition]:
    if not isinstance(value, Mapping) or not value:
        raise ConfigError("'packages' must be a non-empty mapping of package definitions")

    packages: Dict[str, PackageDefinition] = {}
    for raw_key, raw_definition in value.items():
        key = str(raw_key)
        definition = _as_dict(raw_definition)
        if not definition:
            raise ConfigError(f"Package '{key}' must be a mapping")

        has_files = "files" in definition
        has_categories = "categories" in definition or "inherits" in definition
        if has_files and has_categories:
            raise ConfigError(
                f"Package '{key}' mixes an explicit 'files' list with dynamic rules"
            )
        if not has_files and not has_categories:
            raise ConfigError(
                f"Package '{key}' needs either a 'files' list or 'categories'/'inherits'"
            )

        description = _as_str(definition.get("description")) or ""
        include_textures = _as_bool(definition.get("includeTextures")) or False
        include_all = _as_bool(definition.get("includeAllTextures")) or False

        if has_files:
            packages[key] = ExplicitPackage(
                key=key,
                description=description,
                files=_dedupe(_as_str_list(definition.get("files"))),
                include_textures=include_textures or include_all,
                include_all_textures=include_all,
            )
            continue

        exclude_pre_release = _as_bool(definition.get("excludePreRelease"))
        packages[key] = DynamicPackage(
            key=key,
            description=description,
            categories=_dedupe(item.lower() for item in _as_str_list(definition.get("categories"))),
            inherits=_as_str(definition.get("inherits")),
            exclude_pre_release=True if exclude_pre_release is None else exclude_pre_release,
            include_textures=include_textures or include_all,
            include_all_textures=include_all,
        )
    return packages


def _compile(pattern: str, key: str, flags: int = 0) -> Pattern[str]:
    try:
        return re.compile(pattern, flags)
    except re.error as exc:
        raise ConfigError(f"Invalid regular expression for {key}: {pattern!r} ({exc})") from exc


def _dedupe(items: Any) -> List[str]:
    seen: Dict[str, None] = {}
    for item in items:
        seen.setdefault(item, None)
    return list(seen)


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    return str(value) if isinstance(value, (str, int, float)) else None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []


def _as_extensions(value: Any) -> List[str]:
    extensions = []
    for item in _as_str_list(value):
        item = item.strip().lower()
        if item and not item.startswith("."):
            item = f".{item}"
        if item:
            extensions.append(item)
    return extensions
