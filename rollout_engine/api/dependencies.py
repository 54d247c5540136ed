"""Shared dependencies for route modules."""

from fastapi import HTTPException, Request

from rollout_engine.orchestrator.deployment_engine import DeploymentEngine


def get_engine(request: Request) -> DeploymentEngine:
    """
    Get the deployment engine from app state.

    Raises:
        HTTPException: If the engine was not attached to the app
    """
    if not hasattr(request.app.state, "engine"):
        raise HTTPException(status_code=500, detail="Deployment engine not initialized")
    return request.app.state.engine
