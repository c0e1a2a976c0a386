"""Core data models shared across fxpack components."""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Mapping, Optional, Tuple

KIND_SHADER = "shader"
KIND_INCLUDE = "include"
KIND_TEXTURE = "texture"

CATEGORY_INCLUDE = "fxh"
CATEGORY_OTHER = "other"


@dataclass(frozen=True)
class SourceFile:
    """A scanned file with its classification."""

    path: str
    name: str
    category: str
    kind: str
    pre_release: bool = False

    @property
    def is_texture(self) -> bool:
        return self.kind == KIND_TEXTURE


@dataclass(frozen=True)
class SourcePool:
    """Immutable snapshot of every scanned file, indexed by base name."""

    root: str
    files: Tuple[SourceFile, ...]
    by_name: Mapping[str, SourceFile]

    def get(self, name: str) -> Optional[SourceFile]:
        return self.by_name.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self.by_name

    @property
    def textures(self) -> List[SourceFile]:
        return [file for file in self.files if file.is_texture]

    @property
    def primaries(self) -> List[SourceFile]:
        return [file for file in self.files if not file.is_texture]


@dataclass(frozen=True)
class DependencyGraph:
    """Adjacency list of resolved references plus the ones that point nowhere."""

    edges: Mapping[str, FrozenSet[str]]
    dangling: Mapping[str, FrozenSet[str]] = field(default_factory=dict)

    def targets(self, name: str) -> FrozenSet[str]:
        return self.edges.get(name, frozenset())


@dataclass
class ResolvedPackage:
    """Final membership of one distributable package."""

    key: str
    name: str
    zip_file: str
    description: str
    version: str
    files: List[str]
    textures: List[str] = field(default_factory=list)
    include_textures: bool = False

    @property
    def file_count(self) -> int:
        return len(self.files)

    @property
    def texture_count(self) -> int:
        return len(self.textures)

    @property
    def members(self) -> List[str]:
        return sorted(set(self.files) | set(self.textures))


@dataclass
class BuildWarning:
    """Recoverable problem noticed while resolving or packaging."""

    code: str
    message: str
    package: Optional[str] = None
    path: Optional[str] = None


@dataclass
class Manifest:
    """Complete description of one build's packages."""

    version: str
    generated: str
    packages: List[ResolvedPackage]

    def to_dict(self) -> Dict[str, object]:
        entries: Dict[str, object] = {}
        for package in self.packages:
            entry: Dict[str, object] = {
                "name": package.name,
                "zipFile": package.zip_file,
                "description": package.description,
                "version": package.version,
                "fileCount": package.file_count,
                "files": list(package.files),
            }
            if package.include_textures:
                entry["textures"] = {
                    "fileCount": package.texture_count,
                    "files": list(package.textures),
                }
            entries[package.key] = entry
        return {
            "version": self.version,
            "generated": self.generated,
            "packages": entries,
        }
