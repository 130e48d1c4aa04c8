"""
Asset Validator - Per-group reference quotas enforced before any vendor call
"""

from typing import List, Optional

from shotgen.config.constants import (
    MAX_AUDIO_REFS,
    MAX_IMAGE_REFS,
    MAX_REF_CLIP_DURATION_S,
    MAX_TOTAL_REFS,
    MAX_VIDEO_REFS,
)
from shotgen.models.generation import GenerationRequest
from shotgen.models.shot import AssetKind, AssetRef, ShotGroup


class AssetQuotaError(ValueError):
    """Reference quota violation with suggested modifications"""

    def __init__(self, message: str, code: str, suggested_modifications: Optional[List[str]] = None):
        self.message = message
        self.code = code
        self.suggested_modifications = suggested_modifications or []
        super().__init__(self.message)


KIND_LIMITS = {
    AssetKind.IMAGE: MAX_IMAGE_REFS,
    AssetKind.VIDEO: MAX_VIDEO_REFS,
    AssetKind.AUDIO: MAX_AUDIO_REFS,
}

TIME_BOUNDED_KINDS = {AssetKind.VIDEO, AssetKind.AUDIO}


class AssetValidator:
    """
    Validate asset reference quotas

    Limits per group: 9 images, 3 videos, 3 audios, 12 references in total,
    and every video/audio clip at most 15 seconds with a known duration.
    """

    def check_clip(self, ref: AssetRef) -> None:
        """
        Validate a single reference on its own

        Raises:
            AssetQuotaError: If a time-bounded clip is too long or unmeasured
        """
        if ref.kind not in TIME_BOUNDED_KINDS:
            return
        if ref.duration is None:
            raise AssetQuotaError(
                f"{ref.kind.value} reference {ref.file_name or ref.id} has unknown duration",
                code="REF_DURATION_UNKNOWN",
                suggested_modifications=["Measure the clip duration before attaching it"],
            )
        if ref.duration > MAX_REF_CLIP_DURATION_S:
            raise AssetQuotaError(
                f"{ref.kind.value} reference {ref.file_name or ref.id} is {ref.duration:.1f}s, "
                f"limit is {MAX_REF_CLIP_DURATION_S}s",
                code="REF_DURATION_EXCEEDED",
                suggested_modifications=[f"Trim the clip to {MAX_REF_CLIP_DURATION_S}s or less"],
            )

    def check_can_add(self, group: ShotGroup, ref: AssetRef) -> None:
        """
        Validate that ref can be attached to group

        Args:
            group: Target shot group
            ref: Reference to add

        Raises:
            AssetQuotaError: If adding would exceed any quota
        """
        self.check_clip(ref)

        limit = KIND_LIMITS[ref.kind]
        current = len(group.refs_of_kind(ref.kind))
        if current + 1 > limit:
            raise AssetQuotaError(
                f"Group already has {current} {ref.kind.value} references (limit {limit})",
                code=f"{ref.kind.value.upper()}_QUOTA_EXCEEDED",
                suggested_modifications=[f"Remove a {ref.kind.value} reference first"],
            )

        if group.reference_count + 1 > MAX_TOTAL_REFS:
            raise AssetQuotaError(
                f"Group already has {group.reference_count} references (limit {MAX_TOTAL_REFS})",
                code="TOTAL_QUOTA_EXCEEDED",
                suggested_modifications=["Remove a reference first"],
            )

    def validate_group(self, group: ShotGroup) -> None:
        """
        Validate all references already attached to a group

        Raises:
            AssetQuotaError: On the first violated quota
        """
        for kind, limit in KIND_LIMITS.items():
            count = len(group.refs_of_kind(kind))
            if count > limit:
                raise AssetQuotaError(
                    f"Group has {count} {kind.value} references (limit {limit})",
                    code=f"{kind.value.upper()}_QUOTA_EXCEEDED",
                    suggested_modifications=[f"Remove {count - limit} {kind.value} reference(s)"],
                )

        for ref in group.video_refs + group.audio_refs:
            self.check_clip(ref)

        if group.reference_count > MAX_TOTAL_REFS:
            raise AssetQuotaError(
                f"Group has {group.reference_count} references (limit {MAX_TOTAL_REFS})",
                code="TOTAL_QUOTA_EXCEEDED",
                suggested_modifications=[f"Remove {group.reference_count - MAX_TOTAL_REFS} reference(s)"],
            )

    def validate_request(self, request: GenerationRequest) -> None:
        """
        Validate reference counts carried by a generation request

        Raises:
            AssetQuotaError: On the first violated quota
        """
        counts = {
            AssetKind.IMAGE: len(request.images),
            AssetKind.VIDEO: len(request.video_refs),
            AssetKind.AUDIO: len(request.audio_refs),
        }
        for kind, count in counts.items():
            limit = KIND_LIMITS[kind]
            if count > limit:
                raise AssetQuotaError(
                    f"Request has {count} {kind.value} references (limit {limit})",
                    code=f"{kind.value.upper()}_QUOTA_EXCEEDED",
                )

        total = sum(counts.values())
        if total > MAX_TOTAL_REFS:
            raise AssetQuotaError(
                f"Request has {total} references (limit {MAX_TOTAL_REFS})",
                code="TOTAL_QUOTA_EXCEEDED",
            )
