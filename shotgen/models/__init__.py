"""
Data Models
"""

from shotgen.models.shot import (
    AssetKind,
    AssetPurpose,
    AssetRef,
    CalibrationRecord,
    CalibrationStatus,
    GenerationRecord,
    GroupStatus,
    Shot,
    ShotGroup,
)
from shotgen.models.generation import (
    DispatchResult,
    GenerationRequest,
    ImageRole,
    ImageWithRole,
    TaskState,
    VendorPayload,
    VendorTask,
    build_image_with_roles,
)

__all__ = [
    "AssetKind",
    "AssetPurpose",
    "AssetRef",
    "CalibrationRecord",
    "CalibrationStatus",
    "GenerationRecord",
    "GroupStatus",
    "Shot",
    "ShotGroup",
    "DispatchResult",
    "GenerationRequest",
    "ImageRole",
    "ImageWithRole",
    "TaskState",
    "VendorPayload",
    "VendorTask",
    "build_image_with_roles",
]
