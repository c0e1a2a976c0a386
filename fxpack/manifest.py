"""Manifest assembly and serialization."""

from __future__ import annotations

import json
import os
from datetime import UTC, datetime
from pathlib import Path
from typing import Callable, List, Mapping, Sequence

from .diagnostics import UNKNOWN_DISPLAY_KEY, Diagnostics
from .logging import get_logger
from .models import Manifest, ResolvedPackage


def build_timestamp() -> datetime:
    """Return the build time, pinned by ``SOURCE_DATE_EPOCH`` when it is set."""
    epoch = os.environ.get("SOURCE_DATE_EPOCH")
    if epoch:
        try:
            return datetime.fromtimestamp(int(epoch), UTC)
        except ValueError:
            pass
    return datetime.now(UTC)


def format_timestamp(moment: datetime) -> str:
    return moment.astimezone(UTC).replace(microsecond=0).isoformat().replace("+00:00", "Z")


class ManifestBuilder:
    """Orders resolved packages for display and renders the manifest document."""

    def __init__(
        self,
        display_order: Sequence[str] = (),
        *,
        clock: Callable[[], datetime] = build_timestamp,
        diagnostics: Diagnostics | None = None,
    ) -> None:
        self.display_order = list(display_order)
        self.clock = clock
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()
        self.logger = get_logger("manifest")

    def order(self, packages: Mapping[str, ResolvedPackage]) -> List[ResolvedPackage]:
        """Named keys first in configured order, then the rest in discovery order."""
        ordered: List[ResolvedPackage] = []
        placed = set()
        for key in self.display_order:
            if key in placed:
                continue
            package = packages.get(key)
            if package is None:
                self.diagnostics.warn(
                    UNKNOWN_DISPLAY_KEY,
                    f"Display order names '{key}', which is not a built package",
                )
                continue
            ordered.append(package)
            placed.add(key)
        ordered.extend(package for key, package in packages.items() if key not in placed)
        return ordered

    def build(self, version: str, packages: Mapping[str, ResolvedPackage]) -> Manifest:
        return Manifest(
            version=version,
            generated=format_timestamp(self.clock()),
            packages=self.order(packages),
        )

    def render(self, manifest: Manifest) -> str:
        return json.dumps(manifest.to_dict(), indent=2, ensure_ascii=False) + "\n"

    def write(self, manifest: Manifest, path: Path) -> Path:
        """Write the manifest whole; readers never observe a partial document."""
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(f".{path.name}.tmp")
        tmp_path.write_text(self.render(manifest), encoding="utf-8")
        os.replace(tmp_path, path)
        self.logger.info("Wrote manifest with %d packages to %s", len(manifest.packages), path)
        return path
