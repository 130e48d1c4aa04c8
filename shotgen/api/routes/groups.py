"""
Shot Group API Routes
"""

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from typing import List, Optional

from shotgen.api.dependencies import get_group_store
from shotgen.core.shot_grouper import GroupingConfig, generate_group_name, group_shots, recalc_duration
from shotgen.models.shot import AssetKind, AssetPurpose, AssetRef, Shot, ShotGroup
from shotgen.services.group_store import GroupStore
from shotgen.services.observability import logger


# Request/Response Models


class CreateGroupsRequest(BaseModel):
    """Request to (re)group an ordered shot list"""

    shots: List[Shot] = Field(..., description="Ordered shots")
    config: Optional[GroupingConfig] = None
    descriptive_names: bool = Field(
        default=False,
        description="Name groups after the first shot's scene and shot range",
    )


class GroupListResponse(BaseModel):
    """Shot groups with aggregate counts"""

    groups: List[ShotGroup]
    total_shots: int
    total_groups: int


class GroupDurationResponse(BaseModel):
    """Reported versus summed group duration"""

    group_id: str
    total_duration: int
    actual_duration_s: float


class AddRefRequest(BaseModel):
    """Request to attach a reference asset"""

    kind: AssetKind
    purpose: AssetPurpose = AssetPurpose.GENERAL
    tag: str = ""
    local_url: str = ""
    http_url: Optional[str] = None
    file_name: str = ""
    file_size: int = Field(default=0, ge=0)
    duration: Optional[float] = Field(default=None, ge=0)


# Router
router = APIRouter()


def _not_found(group_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={
            "error": {
                "code": "GROUP_NOT_FOUND",
                "message": f"Shot group {group_id} not found",
            }
        },
    )


def _list_response(store: GroupStore) -> GroupListResponse:
    groups = store.list()
    return GroupListResponse(
        groups=groups,
        total_shots=sum(len(g.shot_ids) for g in groups),
        total_groups=len(groups),
    )


@router.post("/shot-groups", response_model=GroupListResponse, status_code=status.HTTP_201_CREATED)
async def create_groups(
    request: CreateGroupsRequest,
    store: GroupStore = Depends(get_group_store),
):
    """
    Group shots and replace the current groups

    Args:
        request: Ordered shots and optional grouping config
        store: Group store

    Returns:
        GroupListResponse
    """
    groups = group_shots(request.shots, request.config)
    if request.descriptive_names:
        for i, group in enumerate(groups):
            group.name = generate_group_name(group, request.shots, i)

    await store.replace_groups(groups, shots=request.shots)

    logger.info(
        "groups_created",
        shot_count=len(request.shots),
        group_count=len(groups),
    )
    return _list_response(store)


@router.get("/shot-groups", response_model=GroupListResponse)
async def list_groups(store: GroupStore = Depends(get_group_store)):
    """List shot groups in order"""
    return _list_response(store)


@router.get("/shot-groups/{group_id}", response_model=ShotGroup)
async def get_group(group_id: str, store: GroupStore = Depends(get_group_store)):
    """Get one shot group"""
    if group_id not in store:
        raise _not_found(group_id)
    return store.get(group_id)


@router.get("/shot-groups/{group_id}/duration", response_model=GroupDurationResponse)
async def get_group_duration(group_id: str, store: GroupStore = Depends(get_group_store)):
    """Compare the group's reported duration with the sum of its shots"""
    if group_id not in store:
        raise _not_found(group_id)
    group = store.get(group_id)
    return GroupDurationResponse(
        group_id=group_id,
        total_duration=group.total_duration,
        actual_duration_s=recalc_duration(group, store.shots),
    )


@router.post("/shot-groups/{group_id}/refs", response_model=ShotGroup, status_code=status.HTTP_201_CREATED)
async def add_ref(
    group_id: str,
    request: AddRefRequest,
    store: GroupStore = Depends(get_group_store),
):
    """
    Attach a reference asset to a group

    Quota violations are rejected with 400.
    """
    if group_id not in store:
        raise _not_found(group_id)
    ref = AssetRef(**request.model_dump())
    return await store.add_ref(group_id, ref)


@router.delete("/shot-groups/{group_id}/refs/{ref_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_ref(
    group_id: str,
    ref_id: str,
    store: GroupStore = Depends(get_group_store),
):
    """Detach a reference asset from a group"""
    if group_id not in store:
        raise _not_found(group_id)
    removed = await store.remove_ref(group_id, ref_id)
    if not removed:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "error": {
                    "code": "REF_NOT_FOUND",
                    "message": f"Reference {ref_id} not found in group {group_id}",
                }
            },
        )
