"""
Shot and Shot Group Models
"""

import time
import uuid
from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


class AssetKind(str, Enum):
    """Kind of auxiliary reference asset"""

    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"


class AssetPurpose(str, Enum):
    """What a reference asset is meant to steer"""

    CHARACTER_REF = "character_ref"  # identity anchor
    SCENE_REF = "scene_ref"
    FIRST_FRAME = "first_frame"
    GRID_IMAGE = "grid_image"
    CAMERA_REPLICATE = "camera_replicate"
    ACTION_REPLICATE = "action_replicate"
    EFFECT_REPLICATE = "effect_replicate"
    BEAT_SYNC = "beat_sync"
    BGM = "bgm"
    VOICE_REF = "voice_ref"
    PREV_VIDEO = "prev_video"
    VIDEO_EXTEND = "video_extend"
    VIDEO_EDIT_SRC = "video_edit_src"
    GENERAL = "general"


class GroupStatus(str, Enum):
    """Generation status of a shot group"""

    IDLE = "idle"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"


class CalibrationStatus(str, Enum):
    """Status of the group-level calibration pass"""

    IDLE = "idle"
    CALIBRATING = "calibrating"
    DONE = "done"
    FAILED = "failed"


def new_group_id() -> str:
    return f"grp_{int(time.time() * 1000):x}_{uuid.uuid4().hex[:6]}"


def new_asset_id() -> str:
    return f"ref_{uuid.uuid4().hex[:12]}"


class Shot(BaseModel):
    """
    Atomic narrative unit

    A duration of zero (or less) means "unset"; the grouping config
    supplies the default in that case.
    """

    model_config = ConfigDict(frozen=True)

    id: int
    scene_name: str = ""
    character_ids: List[str] = Field(default_factory=list)
    duration: float = 0
    action_summary: str = ""
    dialogue: str = ""


class AssetRef(BaseModel):
    """Reference to an auxiliary image/video/audio used to steer generation"""

    id: str = Field(default_factory=new_asset_id)
    kind: AssetKind
    purpose: AssetPurpose = AssetPurpose.GENERAL
    tag: str = ""  # e.g. "@Video1"
    local_url: str = ""
    http_url: Optional[str] = None
    file_name: str = ""
    file_size: int = Field(default=0, ge=0)
    duration: Optional[float] = None  # seconds, video/audio only

    @property
    def locator(self) -> str:
        return self.http_url or self.local_url


class CalibrationRecord(BaseModel):
    """Group-level calibration output"""

    narrative_arc: str = ""
    transitions: List[str] = Field(default_factory=list)
    audio_design: str = ""
    calibrated_prompt: str = ""
    status: CalibrationStatus = CalibrationStatus.IDLE
    error: Optional[str] = None


class GenerationRecord(BaseModel):
    """One generation attempt in a group's history"""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    prompt: str
    video_url: Optional[str] = None
    status: GroupStatus
    error: Optional[str] = None
    failure_kind: Optional[str] = None
    variant: Optional[str] = None
    task_id: Optional[str] = None
    aspect_ratio: str
    resolution: str
    duration: int


class ShotGroup(BaseModel):
    """
    Bounded-duration cluster of shots submitted as one generation job

    total_duration is the clamped display duration assigned at grouping
    time; the literal sum is available through recalc_duration().
    """

    id: str = Field(default_factory=new_group_id)
    name: str
    shot_ids: List[int] = Field(default_factory=list)
    total_duration: int
    sort_index: int = 0

    # Reference assets
    image_refs: List[AssetRef] = Field(default_factory=list)
    video_refs: List[AssetRef] = Field(default_factory=list)
    audio_refs: List[AssetRef] = Field(default_factory=list)

    # Generation state
    status: GroupStatus = GroupStatus.IDLE
    progress: int = 0
    error: Optional[str] = None
    failure_kind: Optional[str] = None
    last_prompt: Optional[str] = None
    video_url: Optional[str] = None
    history: List[GenerationRecord] = Field(default_factory=list)

    calibration: CalibrationRecord = Field(default_factory=CalibrationRecord)

    @property
    def reference_count(self) -> int:
        return len(self.image_refs) + len(self.video_refs) + len(self.audio_refs)

    def refs_of_kind(self, kind: AssetKind) -> List[AssetRef]:
        if kind == AssetKind.IMAGE:
            return self.image_refs
        if kind == AssetKind.VIDEO:
            return self.video_refs
        return self.audio_refs
