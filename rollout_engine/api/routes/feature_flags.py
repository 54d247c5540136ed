# rollout_engine/api/routes/feature_flags.py
"""Feature flag API routes."""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response

from rollout_engine.api.dependencies import get_engine
from rollout_engine.api.schemas.feature_flag import (
    EvaluateRequest,
    EvaluateResponse,
    FeatureFlagCreateRequest,
    FeatureFlagResponse,
    FeatureFlagUpdateRequest,
    ToggleRequest,
)

router = APIRouter(prefix="/feature-flags", tags=["feature-flags"])


@router.post("/", response_model=FeatureFlagResponse, status_code=201)
def create_flag(request: FeatureFlagCreateRequest, engine=Depends(get_engine)):
    flag = engine.create_feature_flag(request.to_domain())
    return FeatureFlagResponse.from_domain(flag)


@router.get("/", response_model=List[FeatureFlagResponse])
def list_flags(engine=Depends(get_engine)):
    return [FeatureFlagResponse.from_domain(f) for f in engine.feature_flags.list_feature_flags()]


@router.get("/{flag_id}", response_model=FeatureFlagResponse)
def get_flag(flag_id: str, engine=Depends(get_engine)):
    flag = engine.feature_flags.get_feature_flag(flag_id)

    if not flag:
        raise HTTPException(status_code=404, detail="Feature flag not found")

    return FeatureFlagResponse.from_domain(flag)


@router.patch("/{flag_id}", response_model=FeatureFlagResponse)
def update_flag(
    flag_id: str,
    request: FeatureFlagUpdateRequest,
    engine=Depends(get_engine),
):
    flag = engine.feature_flags.update_feature_flag(flag_id, **request.to_changes())
    return FeatureFlagResponse.from_domain(flag)


@router.post("/{flag_id}/toggle", response_model=FeatureFlagResponse)
def toggle_flag(flag_id: str, request: ToggleRequest, engine=Depends(get_engine)):
    if not engine.toggle_feature_flag(flag_id, request.enabled):
        raise HTTPException(status_code=404, detail="Feature flag not found")
    return FeatureFlagResponse.from_domain(engine.feature_flags.get_feature_flag(flag_id))


@router.delete("/{flag_id}", status_code=204)
def delete_flag(flag_id: str, engine=Depends(get_engine)):
    """Irreversible."""
    if not engine.feature_flags.delete_feature_flag(flag_id):
        raise HTTPException(status_code=404, detail="Feature flag not found")
    return Response(status_code=204)


@router.post("/{flag_key}/evaluate", response_model=EvaluateResponse)
def evaluate_flag(flag_key: str, request: EvaluateRequest, engine=Depends(get_engine)):
    enabled = engine.evaluate_feature_flag(flag_key, request.user_id, request.context)
    variant = engine.feature_flags.evaluate_variant(flag_key, request.user_id) if enabled else None
    return EvaluateResponse(
        flag_key=flag_key,
        user_id=request.user_id,
        enabled=enabled,
        variant=variant.name if variant else None,
    )
