"""
Generation API Routes
"""

import asyncio
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator
from typing import Optional

from shotgen.api.dependencies import (
    GenerationJobs,
    get_credential_pool,
    get_dispatcher,
    get_generation_jobs,
    get_group_store,
)
from shotgen.config.constants import (
    MAX_GENERATION_DURATION_S,
    MIN_GENERATION_DURATION_S,
    SUPPORTED_ASPECT_RATIOS,
)
from shotgen.models.generation import GenerationRequest, build_image_with_roles
from shotgen.models.shot import AssetPurpose, CalibrationStatus, GroupStatus, ShotGroup
from shotgen.services.credential_pool import CredentialPool
from shotgen.services.dispatcher import GenerationDispatcher
from shotgen.services.group_store import GroupStore
from shotgen.services.observability import logger


# Request/Response Models


class GenerateGroupRequest(BaseModel):
    """Request to generate video for a shot group"""

    prompt: Optional[str] = Field(
        None,
        description="Generation prompt; defaults to the group's calibrated prompt",
    )
    negative_prompt: str = ""
    aspect_ratio: str = Field(default="16:9", description="One of 16:9, 9:16, 4:3, 3:4, 21:9, 1:1")
    resolution: str = Field(default="720p", description="480p, 720p or 1080p")
    duration: Optional[int] = Field(
        None,
        ge=MIN_GENERATION_DURATION_S,
        le=MAX_GENERATION_DURATION_S,
        description="Seconds; defaults to the group's duration",
    )
    first_frame_url: Optional[str] = None
    last_frame_url: Optional[str] = None
    enable_audio: bool = True
    camera_fixed: Optional[bool] = None
    model: Optional[str] = Field(None, description="Video model id; defaults to VIDEO_MODEL")

    @field_validator("aspect_ratio")
    @classmethod
    def validate_aspect_ratio(cls, v):
        if v not in SUPPORTED_ASPECT_RATIOS:
            raise ValueError(f"aspect_ratio must be one of: {', '.join(SUPPORTED_ASPECT_RATIOS)}")
        return v


class GenerateGroupResponse(BaseModel):
    """Response for an accepted generation"""

    group_id: str
    status: str
    message: str


class CancelGenerationResponse(BaseModel):
    """Response for a cancellation request"""

    group_id: str
    cancelled: bool
    message: str


# Router
router = APIRouter()


def _group_or_404(store: GroupStore, group_id: str) -> ShotGroup:
    if group_id not in store:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "error": {
                    "code": "GROUP_NOT_FOUND",
                    "message": f"Shot group {group_id} not found",
                }
            },
        )
    return store.get(group_id)


def _conflict(code: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={"error": {"code": code, "message": message}},
    )


def build_generation_request(group: ShotGroup, request: GenerateGroupRequest) -> GenerationRequest:
    """
    Assemble the logical generation request for a group

    The first-frame image falls back to the group's first-frame reference,
    and the group's video/audio references are forwarded by locator.
    """
    prompt = request.prompt or group.calibration.calibrated_prompt or group.last_prompt
    if not prompt:
        raise ValueError("prompt is required when the group has no calibrated prompt")

    first_frame_url = request.first_frame_url
    if not first_frame_url:
        first_frame_ref = next(
            (ref for ref in group.image_refs if ref.purpose == AssetPurpose.FIRST_FRAME and ref.locator),
            None,
        )
        first_frame_url = first_frame_ref.locator if first_frame_ref else None

    duration = request.duration or min(max(group.total_duration, MIN_GENERATION_DURATION_S), MAX_GENERATION_DURATION_S)

    return GenerationRequest(
        prompt=prompt,
        negative_prompt=request.negative_prompt,
        aspect_ratio=request.aspect_ratio,
        resolution=request.resolution,
        duration=duration,
        images=build_image_with_roles(first_frame_url, request.last_frame_url),
        video_refs=[ref.locator for ref in group.video_refs if ref.locator],
        audio_refs=[ref.locator for ref in group.audio_refs if ref.locator],
        enable_audio=request.enable_audio,
        camera_fixed=request.camera_fixed,
    )


@router.post(
    "/shot-groups/{group_id}/generate",
    response_model=GenerateGroupResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def generate_group(
    group_id: str,
    request: GenerateGroupRequest,
    store: GroupStore = Depends(get_group_store),
    dispatcher: GenerationDispatcher = Depends(get_dispatcher),
    credentials: CredentialPool = Depends(get_credential_pool),
    jobs: GenerationJobs = Depends(get_generation_jobs),
):
    """
    Start video generation for a shot group

    Quotas are validated before the background job starts; progress and the
    result are read back through GET /v1/shot-groups/{group_id}.

    Args:
        group_id: Shot group identifier
        request: Generation parameters

    Returns:
        GenerateGroupResponse
    """
    group = _group_or_404(store, group_id)

    if jobs.is_running(group_id) or group.status == GroupStatus.GENERATING:
        raise _conflict("GENERATION_IN_PROGRESS", f"Group {group_id} is already generating")
    if group.calibration.status == CalibrationStatus.CALIBRATING:
        raise _conflict("CALIBRATION_IN_PROGRESS", f"Group {group_id} is calibrating")

    generation_request = build_generation_request(group, request)
    dispatcher.validator.validate_group(group)
    dispatcher.validator.validate_request(generation_request)

    logger.info(
        "generate_request",
        group_id=group_id,
        prompt=generation_request.prompt[:100],
        duration=generation_request.duration,
        resolution=generation_request.resolution,
    )

    def run(cancel_event: asyncio.Event):
        return dispatcher.dispatch(
            group_id,
            generation_request,
            credentials,
            model=request.model,
            cancel_event=cancel_event,
        )

    jobs.start(group_id, run)

    return GenerateGroupResponse(
        group_id=group_id,
        status=GroupStatus.GENERATING.value,
        message=f"Generation started. Use GET /v1/shot-groups/{group_id} to check progress.",
    )


@router.post(
    "/shot-groups/{group_id}/cancel",
    response_model=CancelGenerationResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def cancel_generation(
    group_id: str,
    store: GroupStore = Depends(get_group_store),
    jobs: GenerationJobs = Depends(get_generation_jobs),
):
    """Cancel a running generation; the group ends failed with CANCELLED"""
    _group_or_404(store, group_id)

    if not jobs.cancel(group_id):
        raise _conflict("NO_ACTIVE_GENERATION", f"Group {group_id} has no running generation")

    return CancelGenerationResponse(
        group_id=group_id,
        cancelled=True,
        message="Cancellation requested",
    )
