"""CLI entrypoints for fxpack commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import ConfigError
from .logging import configure_logging
from .manifest import ManifestBuilder
from .orchestrator import Orchestrator


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_project_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the project root (defaults to current directory).",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Package configuration file (defaults to package-config.json under the project).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fxpack",
        description="Resolve shader packages and build release archives.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Only report warnings and errors.",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Also write log output to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    build_parser = subparsers.add_parser(
        "build",
        help="Resolve packages, write one archive per package and the manifest.",
    )
    _add_verbose_option(build_parser, suppress_default=True)
    _add_project_options(build_parser)
    build_parser.add_argument(
        "--output",
        default=None,
        help="Output directory (overrides outputDir from the configuration).",
    )

    resolve_parser = subparsers.add_parser(
        "resolve",
        help="Resolve packages and print the manifest without writing anything.",
    )
    _add_verbose_option(resolve_parser, suppress_default=True)
    _add_project_options(resolve_parser)

    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the HTTP service.",
    )
    _add_verbose_option(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default="127.0.0.1", help="Interface to bind.")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to listen on.")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for fxpack commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    log_file = Path(args.log_file) if args.log_file else None
    configure_logging(verbose=bool(args.verbose), quiet=args.quiet, log_file=log_file)

    orchestrator = Orchestrator()

    if args.command == "build":
        try:
            outcome = orchestrator.run_build(
                args.path,
                config_path=args.config,
                output_dir=args.output,
            )
        except ConfigError as exc:
            parser.exit(1, f"Configuration error: {exc}\n")
        except (FileNotFoundError, NotADirectoryError) as exc:
            parser.exit(1, f"{exc}\n")
        except Exception as exc:  # pragma: no cover
            parser.exit(1, f"fxpack build failed: {exc}\nRun with --verbose for more details.\n")

        for key, archive in outcome.archives.items():
            print(f"{key}: {_relativize(archive)}")
        print(f"Manifest written to {_relativize(outcome.manifest_path)}")
        print(f"Build finished with {outcome.summary}")
        if outcome.failed:
            failed = ", ".join(sorted(outcome.failed))
            parser.exit(1, f"Packages failed: {failed}\n")
    elif args.command == "resolve":
        try:
            resolved = orchestrator.run_resolve(args.path, config_path=args.config)
        except ConfigError as exc:
            parser.exit(1, f"Configuration error: {exc}\n")
        except (FileNotFoundError, NotADirectoryError) as exc:
            parser.exit(1, f"{exc}\n")
        sys.stdout.write(ManifestBuilder().render(resolved.manifest))
    elif args.command == "serve":
        from .service import run_service

        run_service(host=args.host, port=args.port)
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
