# rollout_engine/api/routes/configs.py
"""Deployment config API routes."""

from typing import List

from fastapi import APIRouter, Depends, HTTPException

from rollout_engine.api.dependencies import get_engine
from rollout_engine.api.schemas.config import (
    DeploymentConfigCreateRequest,
    DeploymentConfigResponse,
)

router = APIRouter(prefix="/configs", tags=["configs"])


@router.post("/", response_model=DeploymentConfigResponse, status_code=201)
def create_config(
    request: DeploymentConfigCreateRequest,
    engine=Depends(get_engine),
):
    """Validate and store a deployment config; its feature flags are registered too."""
    config = engine.create_deployment_config(request.to_domain())
    return DeploymentConfigResponse.from_domain(config)


@router.get("/", response_model=List[DeploymentConfigResponse])
def list_configs(engine=Depends(get_engine)):
    return [DeploymentConfigResponse.from_domain(c) for c in engine.list_deployment_configs()]


@router.get("/{config_id}", response_model=DeploymentConfigResponse)
def get_config(config_id: str, engine=Depends(get_engine)):
    config = engine.get_deployment_config(config_id)

    if not config:
        raise HTTPException(status_code=404, detail="Deployment config not found")

    return DeploymentConfigResponse.from_domain(config)
