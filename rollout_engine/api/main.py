# rollout_engine/api/main.py
"""Admin API for configs, deployments and feature flags."""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from rollout_engine.api.routes.configs import router as configs_router
from rollout_engine.api.routes.deployments import router as deployments_router
from rollout_engine.api.routes.feature_flags import router as feature_flags_router
from rollout_engine.container import build_engine
from rollout_engine.core.errors import (
    ConfigNotFound,
    DeploymentNotFound,
    FeatureFlagNotFound,
    InvalidFeatureFlag,
    InvalidStateTransition,
    InvalidStrategyParameters,
    RecordAlreadyExists,
    RolloutEngineError,
)
from rollout_engine.orchestrator.deployment_engine import DeploymentEngine

logger = logging.getLogger(__name__)

# Most specific first
_STATUS_CODES = (
    (ConfigNotFound, 404),
    (DeploymentNotFound, 404),
    (FeatureFlagNotFound, 404),
    (RecordAlreadyExists, 409),
    (InvalidStateTransition, 409),
    (InvalidStrategyParameters, 422),
    (InvalidFeatureFlag, 422),
)


def status_code_for(error: RolloutEngineError) -> int:
    for error_type, status_code in _STATUS_CODES:
        if isinstance(error, error_type):
            return status_code
    return 500


def create_app(engine: Optional[DeploymentEngine] = None) -> FastAPI:
    app = FastAPI(
        title="Rollout Engine API",
        description="Progressive delivery orchestration",
        version="1.0.0",
    )
    app.state.engine = engine or build_engine()

    @app.exception_handler(RolloutEngineError)
    async def rollout_error_handler(request: Request, exc: RolloutEngineError) -> JSONResponse:
        status_code = status_code_for(exc)
        if status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(
            status_code=status_code,
            content={"detail": str(exc), "error": type(exc).__name__},
        )

    @app.get("/health")
    def health():
        return {"status": "ok"}

    app.include_router(configs_router)
    app.include_router(deployments_router)
    app.include_router(feature_flags_router)
    return app
