# rollout_engine/api/routes/deployments.py
"""Deployment API routes - start, control and inspect rollouts."""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException

from rollout_engine.api.dependencies import get_engine
from rollout_engine.api.schemas.deployment import (
    ControlResponse,
    DeploymentResponse,
    DeployRequest,
    RollbackRequest,
    RollbackResultResponse,
    TrafficSplitRequest,
    TrafficSplitResponse,
)
from rollout_engine.orchestrator.deployment_engine import MANUAL_ROLLBACK_REASON

router = APIRouter(prefix="/deployments", tags=["deployments"])


@router.post("/", response_model=DeploymentResponse, status_code=202)
def start_deployment(request: DeployRequest, engine=Depends(get_engine)):
    """
    Start a deployment for a stored config.

    Returns immediately; the rollout runs in the background.
    """
    deployment = engine.deploy(request.config_id)
    return DeploymentResponse.from_domain(deployment)


@router.get("/", response_model=List[DeploymentResponse])
def list_deployments(engine=Depends(get_engine)):
    return [DeploymentResponse.from_domain(d) for d in engine.get_all_deployments()]


@router.get("/active", response_model=List[DeploymentResponse])
def list_active_deployments(engine=Depends(get_engine)):
    return [DeploymentResponse.from_domain(d) for d in engine.get_active_deployments()]


@router.get("/{deployment_id}", response_model=DeploymentResponse)
def get_deployment(deployment_id: str, engine=Depends(get_engine)):
    deployment = engine.get_deployment(deployment_id)

    if not deployment:
        raise HTTPException(status_code=404, detail="Deployment not found")

    return DeploymentResponse.from_domain(deployment)


# -------------------------
# CONTROL
# -------------------------

def _control_response(engine, deployment_id: str, accepted: bool) -> ControlResponse:
    deployment = engine.get_deployment(deployment_id)
    return ControlResponse(
        deployment_id=deployment_id,
        accepted=accepted,
        status=deployment.status.value,
    )


@router.post("/{deployment_id}/pause", response_model=ControlResponse)
def pause_deployment(deployment_id: str, engine=Depends(get_engine)):
    """Takes effect at the next phase boundary."""
    return _control_response(engine, deployment_id, engine.pause(deployment_id))


@router.post("/{deployment_id}/resume", response_model=ControlResponse)
def resume_deployment(deployment_id: str, engine=Depends(get_engine)):
    return _control_response(engine, deployment_id, engine.resume(deployment_id))


@router.post("/{deployment_id}/cancel", response_model=ControlResponse)
def cancel_deployment(deployment_id: str, engine=Depends(get_engine)):
    return _control_response(engine, deployment_id, engine.cancel(deployment_id))


@router.post("/{deployment_id}/rollback", response_model=RollbackResultResponse)
def rollback_deployment(
    deployment_id: str,
    request: Optional[RollbackRequest] = None,
    engine=Depends(get_engine),
):
    reason = (request.reason if request else None) or MANUAL_ROLLBACK_REASON
    result = engine.rollback(deployment_id, reason)
    return RollbackResultResponse.from_domain(result)


@router.put("/{deployment_id}/traffic", response_model=TrafficSplitResponse)
def update_traffic(
    deployment_id: str,
    request: TrafficSplitRequest,
    engine=Depends(get_engine),
):
    """Operator override; the targets are applied per key, the total is not enforced."""
    split = engine.update_traffic_split(
        deployment_id,
        [t.to_domain() for t in request.targets],
    )
    return TrafficSplitResponse(deployment_id=deployment_id, traffic_split=split)
