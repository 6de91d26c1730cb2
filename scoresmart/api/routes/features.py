"""
Feature Flag API Endpoints

GET /api/v1/features/{student_id}        - Enabled features (admin or the student)
PUT /api/v1/features/{student_id}/{key}  - Enable/disable a feature (admin only)
"""
from fastapi import APIRouter, Depends, HTTPException, Path
from pydantic import BaseModel

from scoresmart.api.auth import get_current_caller
from scoresmart.api.responses import failure_response
from scoresmart.services.feature_gate import FEATURE_KEYS, FeatureStore, get_feature_store
from scoresmart.services.results import ErrorCode, Failure
from scoresmart.services.session_types import Caller, CallerRole

router = APIRouter(prefix="/api/v1/features", tags=["features"])

KNOWN_FEATURES = sorted(FEATURE_KEYS.values())


class FeatureToggleRequest(BaseModel):
    enabled: bool


class FeatureResponse(BaseModel):
    data: dict


@router.get("/{student_id}", response_model=FeatureResponse)
async def get_student_features(
    student_id: str = Path(..., description="Student identifier"),
    caller: Caller = Depends(get_current_caller),
    store: FeatureStore = Depends(get_feature_store),
):
    if caller.role != CallerRole.ADMIN and caller.id != student_id:
        return failure_response(Failure(ErrorCode.NOT_PERMITTED, "You can only view your own features"))

    enabled = await store.enabled_features(student_id)
    return FeatureResponse(data={
        "student_id": student_id,
        "features": {key: key in enabled for key in KNOWN_FEATURES},
    })


@router.put("/{student_id}/{feature_key}", response_model=FeatureResponse)
async def set_student_feature(
    request: FeatureToggleRequest,
    student_id: str = Path(..., description="Student identifier"),
    feature_key: str = Path(..., description="Feature key (smart_quad, masterclass, one_to_one)"),
    caller: Caller = Depends(get_current_caller),
    store: FeatureStore = Depends(get_feature_store),
):
    """Admin action toggling a student's access to a session type"""
    if caller.role != CallerRole.ADMIN:
        return failure_response(Failure(ErrorCode.NOT_PERMITTED, "Only administrators can change features"))

    if feature_key not in KNOWN_FEATURES:
        raise HTTPException(
            status_code=404,
            detail=f"Feature '{feature_key}' not found. Valid features: {KNOWN_FEATURES}"
        )

    await store.set_feature(student_id, feature_key, request.enabled)
    return FeatureResponse(data={
        "student_id": student_id,
        "feature": feature_key,
        "enabled": request.enabled,
    })
