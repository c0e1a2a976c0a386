"""End-to-end tests for fxpack.orchestrator."""

from __future__ import annotations

import json
import zipfile
from pathlib import Path

import pytest

from fxpack.archiver import ArchiveError, Archiver
from fxpack.config import ConfigError
from fxpack.diagnostics import MISSING_MEMBER
from fxpack.orchestrator import Orchestrator
from tests._fixtures.pool_builder import PoolBuilder, base_config

PROJECT_FILES = {
    "Shaders/AS/AS_Utils.1.fxh": '#include "ReShade.fxh"\n',
    "Shaders/AS/AS_Noise.1.fxh": '#include "AS_Utils.1.fxh"\n',
    "Shaders/AS/AS_VFX_Sparkle.1.fx": """
        #include "AS_Noise.1.fxh"
        texture SparkleTex < source = "AS_Sparkle.png"; >;
    """,
    "Shaders/AS/AS_BGX_Stars.1.fx": '#include "AS_Utils.1.fxh"\n',
    "Shaders/AS/AS_GFX_Frame.1.fx": "// no includes\n",
    "Shaders/AS/[PRE]_AS_VFX_Draft.1.fx": '#include "AS_Utils.1.fxh"\n',
}


def _project(pool_builder: PoolBuilder, **overrides) -> Path:
    pool_builder.write(PROJECT_FILES)
    pool_builder.write_bytes("Textures/AS_Sparkle.png", b"sparkle")
    pool_builder.write_bytes("Textures/AS_Extra.png", b"extra")
    document = base_config(
        version="1.8.0",
        packageNames={"prefix": "AS_StageFX", "complete": "", "essentials": "_Essentials"},
        packageDisplayOrder=["complete", "essentials", "backgrounds"],
        globalDependencies=["AS_Utils.1.fxh"],
        layout={"shaderDir": "Shaders/AS"},
        packages={
            "essentials": {
                "description": "Hand-picked essentials",
                "files": ["AS_VFX_Sparkle.1.fx", "AS_VFX_Missing.1.fx"],
                "includeTextures": True,
            },
            "backgrounds": {
                "description": "Backgrounds on top of essentials",
                "categories": ["bgx"],
                "inherits": "essentials",
            },
            "complete": {
                "description": "Every released effect",
                "categories": ["bgx", "vfx", "lfx", "gfx", "afx", "other"],
                "includeAllTextures": True,
            },
        },
    )
    document.update(overrides)
    pool_builder.write_config(document)
    return pool_builder.path()


def _manifest(root: Path) -> dict:
    return json.loads((root / "packages" / "package-manifest.json").read_text(encoding="utf-8"))


def _archive_members(root: Path) -> dict:
    members = {}
    for path in (root / "packages").glob("*.zip"):
        with zipfile.ZipFile(path) as archive:
            members[path.name] = archive.namelist()
    return members


def test_build_writes_archives_and_manifest(pool_builder: PoolBuilder, fixed_clock) -> None:
    root = _project(pool_builder)

    outcome = Orchestrator(clock=fixed_clock).run_build(str(root))

    assert outcome.succeeded
    assert sorted(path.name for path in (root / "packages").iterdir()) == [
        "AS_StageFX.zip",
        "AS_StageFX_Essentials.zip",
        "AS_StageFX_backgrounds.zip",
        "package-manifest.json",
    ]
    manifest = _manifest(root)
    assert manifest["version"] == "1.8.0"
    assert list(manifest["packages"]) == ["complete", "essentials", "backgrounds"]

    complete = manifest["packages"]["complete"]
    assert complete["zipFile"] == "AS_StageFX.zip"
    assert complete["files"] == [
        "AS_BGX_Stars.1.fx",
        "AS_GFX_Frame.1.fx",
        "AS_Noise.1.fxh",
        "AS_Utils.1.fxh",
        "AS_VFX_Sparkle.1.fx",
    ]
    assert complete["textures"] == {"fileCount": 2, "files": ["AS_Extra.png", "AS_Sparkle.png"]}

    essentials = manifest["packages"]["essentials"]
    assert essentials["fileCount"] == 3
    assert "AS_VFX_Missing.1.fx" not in essentials["files"]
    assert essentials["textures"]["files"] == ["AS_Sparkle.png"]

    backgrounds = manifest["packages"]["backgrounds"]
    assert set(essentials["files"]) <= set(backgrounds["files"])
    assert "AS_BGX_Stars.1.fx" in backgrounds["files"]

    assert [warning.code for warning in outcome.warnings] == [MISSING_MEMBER]
    assert not (root / "packages" / ".staging").exists()


def test_manifest_matches_archive_contents(pool_builder: PoolBuilder, fixed_clock) -> None:
    root = _project(pool_builder)

    Orchestrator(clock=fixed_clock).run_build(str(root))

    for package in _manifest(root)["packages"].values():
        with zipfile.ZipFile(root / "packages" / package["zipFile"]) as archive:
            names = set(archive.namelist())
        for name in package["files"]:
            assert f"Shaders/AS/{name}" in names
        for name in package.get("textures", {}).get("files", []):
            assert f"Textures/{name}" in names
        assert "README.txt" in names


def test_rebuild_is_idempotent_and_deterministic(pool_builder: PoolBuilder, fixed_clock) -> None:
    root = _project(pool_builder)
    orchestrator = Orchestrator(clock=fixed_clock)

    orchestrator.run_build(str(root))
    first_manifest = (root / "packages" / "package-manifest.json").read_bytes()
    first_listing = sorted(path.name for path in (root / "packages").iterdir())
    first_members = _archive_members(root)

    orchestrator.run_build(str(root))

    assert (root / "packages" / "package-manifest.json").read_bytes() == first_manifest
    assert sorted(path.name for path in (root / "packages").iterdir()) == first_listing
    assert _archive_members(root) == first_members


def test_renamed_package_leaves_no_stale_archive(pool_builder: PoolBuilder, fixed_clock) -> None:
    root = _project(pool_builder)
    Orchestrator(clock=fixed_clock).run_build(str(root))

    config_path = root / "config" / "package-config.json"
    document = json.loads(config_path.read_text(encoding="utf-8"))
    document["packageNames"]["essentials"] = "_Core"
    config_path.write_text(json.dumps(document), encoding="utf-8")
    Orchestrator(clock=fixed_clock).run_build(str(root))

    archives = sorted(path.name for path in (root / "packages").glob("*.zip"))
    assert archives == ["AS_StageFX.zip", "AS_StageFX_Core.zip", "AS_StageFX_backgrounds.zip"]


def test_configuration_error_writes_nothing(pool_builder: PoolBuilder, fixed_clock) -> None:
    root = _project(pool_builder)
    Orchestrator(clock=fixed_clock).run_build(str(root))
    before = sorted(path.name for path in (root / "packages").iterdir())

    config_path = root / "config" / "package-config.json"
    document = json.loads(config_path.read_text(encoding="utf-8"))
    document["packages"]["backgrounds"]["inherits"] = "nonexistent"
    config_path.write_text(json.dumps(document), encoding="utf-8")

    with pytest.raises(ConfigError, match="nonexistent"):
        Orchestrator(clock=fixed_clock).run_build(str(root))

    assert sorted(path.name for path in (root / "packages").iterdir()) == before


def test_failed_package_is_omitted_from_manifest(
    pool_builder: PoolBuilder, fixed_clock, monkeypatch
) -> None:
    root = _project(pool_builder)
    original = Archiver.archive

    def _flaky(self, package, pool):
        if package.key == "backgrounds":
            raise ArchiveError(package.key, "cannot write archive")
        return original(self, package, pool)

    monkeypatch.setattr(Archiver, "archive", _flaky)

    outcome = Orchestrator(clock=fixed_clock).run_build(str(root))

    assert not outcome.succeeded
    assert list(outcome.failed) == ["backgrounds"]
    assert sorted(outcome.archives) == ["complete", "essentials"]
    assert list(_manifest(root)["packages"]) == ["complete", "essentials"]


def test_run_resolve_writes_nothing(pool_builder: PoolBuilder, fixed_clock) -> None:
    root = _project(pool_builder)

    resolved = Orchestrator(clock=fixed_clock).run_resolve(str(root))

    assert not (root / "packages").exists()
    assert [package.key for package in resolved.manifest.packages] == [
        "complete",
        "essentials",
        "backgrounds",
    ]
    assert resolved.manifest.generated == "2024-05-01T12:30:00Z"


def test_output_directory_override(pool_builder: PoolBuilder, fixed_clock, tmp_path: Path) -> None:
    root = _project(pool_builder)
    output = tmp_path / "dist"

    outcome = Orchestrator(clock=fixed_clock).run_build(str(root), output_dir=str(output))

    assert outcome.manifest_path == output / "package-manifest.json"
    assert (output / "AS_StageFX.zip").exists()
    assert not (root / "packages").exists()


def test_readme_render_error_leaves_previous_outputs(
    pool_builder: PoolBuilder, fixed_clock
) -> None:
    root = _project(pool_builder)
    Orchestrator(clock=fixed_clock).run_build(str(root))
    before = {path.name: path.read_bytes() for path in (root / "packages").iterdir()}

    _project(pool_builder, readmeTemplate="{description.x.y}\n")

    with pytest.raises(ConfigError, match="readme template"):
        Orchestrator(clock=fixed_clock).run_build(str(root))

    after = {path.name: path.read_bytes() for path in (root / "packages").iterdir()}
    assert after == before


def test_build_outcome_collects_warnings(pool_builder: PoolBuilder, fixed_clock) -> None:
    pool_builder.write({"Shaders/AS_VFX_Alpha.fx": "// alpha\n"})
    pool_builder.write_config(base_config(packages={"picked": {"files": ["Nope.fx", "AS_VFX_Alpha.fx"]}}))

    outcome = Orchestrator(clock=fixed_clock).run_build(str(pool_builder.path()))

    assert [(warning.code, warning.package) for warning in outcome.warnings] == [
        (MISSING_MEMBER, "picked")
    ]
    assert outcome.summary == "1 warning (1 missing-member)"
