"""
Generation Request and Vendor Task Models
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from shotgen.config.constants import (
    MAX_GENERATION_DURATION_S,
    MIN_GENERATION_DURATION_S,
    SUPPORTED_ASPECT_RATIOS,
    SUPPORTED_RESOLUTIONS,
)


class ImageRole(str, Enum):
    """Role of a conditioning image"""

    FIRST_FRAME = "first_frame"
    LAST_FRAME = "last_frame"


class ImageWithRole(BaseModel):
    """Conditioning image tagged with its frame role"""

    model_config = ConfigDict(frozen=True)

    url: str
    role: ImageRole


class GenerationRequest(BaseModel):
    """
    Logical video generation request

    Constructed fresh per submission and never mutated; request builders
    translate it into the wire payload of one protocol variant.
    """

    model_config = ConfigDict(frozen=True)

    prompt: str
    negative_prompt: str = ""
    aspect_ratio: str = "16:9"
    resolution: str = "720p"
    duration: int = Field(default=5, ge=MIN_GENERATION_DURATION_S, le=MAX_GENERATION_DURATION_S)
    images: List[ImageWithRole] = Field(default_factory=list)
    video_refs: List[str] = Field(default_factory=list)
    audio_refs: List[str] = Field(default_factory=list)
    enable_audio: bool = True
    camera_fixed: Optional[bool] = None

    @field_validator("aspect_ratio")
    @classmethod
    def validate_aspect_ratio(cls, v):
        if v not in SUPPORTED_ASPECT_RATIOS:
            raise ValueError(f"aspect_ratio must be one of: {', '.join(SUPPORTED_ASPECT_RATIOS)}")
        return v

    @field_validator("resolution")
    @classmethod
    def validate_resolution(cls, v):
        v = v.lower()
        if v not in SUPPORTED_RESOLUTIONS:
            raise ValueError(f"resolution must be one of: {', '.join(SUPPORTED_RESOLUTIONS)}")
        return v

    @property
    def first_frame(self) -> Optional[ImageWithRole]:
        return next((img for img in self.images if img.role == ImageRole.FIRST_FRAME and img.url), None)

    @property
    def last_frame(self) -> Optional[ImageWithRole]:
        return next((img for img in self.images if img.role == ImageRole.LAST_FRAME and img.url), None)


def build_image_with_roles(
    first_frame_url: Optional[str],
    last_frame_url: Optional[str] = None,
) -> List[ImageWithRole]:
    """Build the ordered image-with-role list, skipping empty urls"""
    images: List[ImageWithRole] = []
    if first_frame_url:
        images.append(ImageWithRole(url=first_frame_url, role=ImageRole.FIRST_FRAME))
    if last_frame_url:
        images.append(ImageWithRole(url=last_frame_url, role=ImageRole.LAST_FRAME))
    return images


class VendorPayload(BaseModel):
    """Vendor-specific HTTP request produced by a request builder"""

    method: str = "POST"
    path: str
    body: Dict[str, Any]
    headers: Dict[str, str] = Field(default_factory=dict)


class TaskState(str, Enum):
    """Polling state machine states"""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


TERMINAL_TASK_STATES = {
    TaskState.SUCCEEDED,
    TaskState.FAILED,
    TaskState.TIMED_OUT,
    TaskState.CANCELLED,
}


class VendorTask(BaseModel):
    """Live handle of a submitted vendor task"""

    task_id: str
    variant: str
    submitted_at: datetime = Field(default_factory=datetime.utcnow)
    state: TaskState = TaskState.PENDING
    progress: int = 0
    attempts: int = 0
    video_url: Optional[str] = None
    error: Optional[str] = None
    failure_kind: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_TASK_STATES


class DispatchResult(BaseModel):
    """Outcome of dispatching one shot group"""

    group_id: str
    status: str  # "succeeded" or "failed"
    video_url: Optional[str] = None
    task_id: Optional[str] = None
    variant: Optional[str] = None
    failure_kind: Optional[str] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == "succeeded"
