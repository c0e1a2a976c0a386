"""Tests for fxpack.dependencies."""

from __future__ import annotations

from fxpack.classifier import Classifier
from fxpack.dependencies import DependencyExtractor, reference_name
from fxpack.source_scanner import SourceScanner
from tests._fixtures.pool_builder import PoolBuilder, base_config


def test_extract_finds_includes_and_textures() -> None:
    text = """
#include "ReShade.fxh"
  #include <AS_Utils.1.fxh>
#include "../Shared/AS_Noise.1.fxh"
texture NoiseTex < source = "AS_Noise.png"; > { Width = 256; Height = 256; };
texture MaskTex < source = "Masks/AS_Mask.png"; >;
float4 main() : SV_Target { return 0; }
"""

    refs = DependencyExtractor().extract(text)

    assert refs.includes == {"ReShade.fxh", "AS_Utils.1.fxh", "AS_Noise.1.fxh"}
    assert refs.textures == {"AS_Noise.png", "AS_Mask.png"}


def test_extract_tolerates_files_without_references() -> None:
    refs = DependencyExtractor().extract("float4 main() : SV_Target { return 1; }\n")

    assert not refs
    assert refs.includes == set()
    assert refs.textures == set()


def test_extract_handles_multiple_matches_on_one_line() -> None:
    extractor = DependencyExtractor(texture_pattern=r'source\s*=\s*"([^"]+)"')

    refs = extractor.extract('texture A < source = "a.png"; >; texture B < source = "b.png"; >;')

    assert refs.textures == {"a.png", "b.png"}


def test_reference_name_normalises_paths() -> None:
    assert reference_name('"..\\Shared\\AS_Utils.fxh"') == "AS_Utils.fxh"
    assert reference_name(" <AS_Core.fxh> ") == "AS_Core.fxh"


def test_build_graph_records_edges_and_dangling_references(pool_builder: PoolBuilder) -> None:
    pool_builder.write(
        {
            "Shaders/AS_VFX_Alpha.fx": """
                #include "ReShade.fxh"
                #include "AS_Utils.1.fxh"
                texture T < source = "AS_Noise.png"; >;
                texture U < source = "AS_Missing.png"; >;
            """,
            "Shaders/AS_Utils.1.fxh": """
                #include "AS_Utils.1.fxh"
                #include "AS_Gone.fxh"
            """,
        }
    )
    pool_builder.write_bytes("Textures/AS_Noise.png")
    pool_builder.write_config(base_config())
    config = pool_builder.config()
    pool = SourceScanner().scan_pool(
        config, Classifier(texture_extensions=config.texture_extensions)
    )
    extractor = DependencyExtractor(
        config.reference_patterns.include,
        config.reference_patterns.texture,
        external_references=config.external_references,
    )

    graph = extractor.build_graph(pool)

    assert graph.targets("AS_VFX_Alpha.fx") == {"AS_Utils.1.fxh", "AS_Noise.png"}
    assert graph.targets("AS_Utils.1.fxh") == frozenset()
    assert graph.dangling["AS_VFX_Alpha.fx"] == {"AS_Missing.png"}
    assert graph.dangling["AS_Utils.1.fxh"] == {"AS_Gone.fxh"}
    assert "AS_Noise.png" not in graph.edges
