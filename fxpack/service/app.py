"""FastAPI application entrypoint for fxpack service mode."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional

import uvicorn
from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..config import ConfigError
from ..orchestrator import BuildOutcome, Orchestrator, ResolveOutcome


class ProjectRequest(BaseModel):
    path: str
    config: Optional[str] = None


class BuildRequest(ProjectRequest):
    output: Optional[str] = None


class WarningModel(BaseModel):
    code: str
    message: str
    package: Optional[str] = None
    path: Optional[str] = None


class BuildResponse(BaseModel):
    status: str
    manifest_path: str
    archives: Dict[str, str]
    failed: Dict[str, str]
    warnings: List[WarningModel]


class ResolveResponse(BaseModel):
    manifest: Dict[str, Any]
    warnings: List[WarningModel]


class HealthResponse(BaseModel):
    status: str


def _default_orchestrator() -> Orchestrator:
    return Orchestrator()


def _warnings(outcome: BuildOutcome | ResolveOutcome) -> List[WarningModel]:
    return [
        WarningModel(
            code=warning.code,
            message=warning.message,
            package=warning.package,
            path=warning.path,
        )
        for warning in outcome.warnings
    ]


def create_app(
    orchestrator_factory: Callable[[], Orchestrator] = _default_orchestrator,
) -> FastAPI:
    """Create the FastAPI application exposing fxpack operations."""

    app = FastAPI(title="fxpack Service", version="1.0.0")

    async def get_orchestrator() -> Orchestrator:
        # Fresh orchestrator per request; builds share no state.
        return orchestrator_factory()

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.post("/build", response_model=BuildResponse)
    async def build(
        payload: BuildRequest,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> BuildResponse:
        def _run_build() -> BuildOutcome:
            return orchestrator.run_build(
                payload.path, config_path=payload.config, output_dir=payload.output
            )

        loop = asyncio.get_running_loop()
        outcome = await loop.run_in_executor(None, _run_build)
        return BuildResponse(
            status="ok" if outcome.succeeded else "failed",
            manifest_path=str(outcome.manifest_path),
            archives={key: str(path) for key, path in outcome.archives.items()},
            failed=dict(outcome.failed),
            warnings=_warnings(outcome),
        )

    @app.post("/resolve", response_model=ResolveResponse)
    async def resolve(
        payload: ProjectRequest,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> ResolveResponse:
        def _run_resolve() -> ResolveOutcome:
            return orchestrator.run_resolve(payload.path, config_path=payload.config)

        loop = asyncio.get_running_loop()
        outcome = await loop.run_in_executor(None, _run_resolve)
        return ResolveResponse(manifest=outcome.manifest.to_dict(), warnings=_warnings(outcome))

    @app.exception_handler(ConfigError)
    async def config_error_handler(_: Any, exc: ConfigError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(FileNotFoundError)
    async def file_not_found_handler(
        _: Any, exc: FileNotFoundError
    ) -> JSONResponse:  # pragma: no cover - simple mapping
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(NotADirectoryError)
    async def not_a_directory_handler(_: Any, exc: NotADirectoryError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    return app


def run_service(
    host: str = "127.0.0.1", port: int = 8000
) -> None:  # pragma: no cover - integration path
    app = create_app()
    uvicorn.run(app, host=host, port=port)
