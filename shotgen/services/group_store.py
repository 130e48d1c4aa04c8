"""
Group Store - Own shot groups and guard their status transitions
"""

import asyncio
from typing import Dict, List, Optional

from shotgen.core.asset_validator import AssetValidator
from shotgen.models.shot import (
    AssetRef,
    CalibrationRecord,
    CalibrationStatus,
    GenerationRecord,
    GroupStatus,
    Shot,
    ShotGroup,
)
from shotgen.services.observability import logger


class GroupStateError(Exception):
    """Exception raised for invalid group status transitions"""

    pass


class GroupNotFoundError(KeyError):
    """Exception raised when a group id is unknown"""

    pass


# Valid generation status transitions
VALID_TRANSITIONS = {
    GroupStatus.IDLE: [GroupStatus.GENERATING],
    GroupStatus.GENERATING: [GroupStatus.COMPLETED, GroupStatus.FAILED],
    GroupStatus.COMPLETED: [GroupStatus.GENERATING],  # regeneration
    GroupStatus.FAILED: [GroupStatus.GENERATING],  # retry
}

# Valid calibration status transitions
CALIBRATION_TRANSITIONS = {
    CalibrationStatus.IDLE: [CalibrationStatus.CALIBRATING],
    CalibrationStatus.CALIBRATING: [CalibrationStatus.DONE, CalibrationStatus.FAILED],
    CalibrationStatus.DONE: [CalibrationStatus.CALIBRATING],
    CalibrationStatus.FAILED: [CalibrationStatus.CALIBRATING],
}


class GroupStore:
    """
    In-memory owner of all shot groups

    Every status write goes through a compare-and-swap transition under the
    group's lock. Generation and calibration never run on the same group at
    the same time.
    """

    def __init__(self, validator: Optional[AssetValidator] = None):
        self._groups: Dict[str, ShotGroup] = {}
        self.shots: List[Shot] = []
        self._locks: Dict[str, asyncio.Lock] = {}
        self.validator = validator or AssetValidator()

    def _lock(self, group_id: str) -> asyncio.Lock:
        lock = self._locks.get(group_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[group_id] = lock
        return lock

    def get(self, group_id: str) -> ShotGroup:
        """
        Get a group by id

        Raises:
            GroupNotFoundError: If the group does not exist
        """
        group = self._groups.get(group_id)
        if group is None:
            raise GroupNotFoundError(group_id)
        return group

    def list(self) -> List[ShotGroup]:
        return sorted(self._groups.values(), key=lambda g: g.sort_index)

    def __contains__(self, group_id: str) -> bool:
        return group_id in self._groups

    def __len__(self) -> int:
        return len(self._groups)

    async def replace_groups(
        self,
        groups: List[ShotGroup],
        shots: Optional[List[Shot]] = None,
    ) -> List[ShotGroup]:
        """
        Replace all groups after the upstream shot set changed

        Args:
            groups: New groups
            shots: Shot table the groups were built from

        Raises:
            GroupStateError: If any current group is generating or calibrating
        """
        busy = [
            g.id for g in self._groups.values()
            if g.status == GroupStatus.GENERATING
            or g.calibration.status == CalibrationStatus.CALIBRATING
        ]
        if busy:
            raise GroupStateError(f"Cannot replace groups while work is in flight: {busy}")

        self._groups = {g.id: g for g in groups}
        self.shots = list(shots or [])
        self._locks = {}
        logger.info("groups_replaced", group_count=len(groups))
        return self.list()

    async def transition(
        self,
        group_id: str,
        new_status: GroupStatus,
        expected: Optional[GroupStatus] = None,
    ) -> ShotGroup:
        """
        Transition a group's generation status with validation

        Args:
            group_id: Group identifier
            new_status: Target status
            expected: Status the caller believes is current (compare-and-swap)

        Returns:
            Updated ShotGroup

        Raises:
            GroupStateError: If transition is invalid or the expected status does not match
        """
        async with self._lock(group_id):
            group = self.get(group_id)
            self._check_transition(group, new_status, expected)
            group.status = new_status
            return group

    def _check_transition(
        self,
        group: ShotGroup,
        new_status: GroupStatus,
        expected: Optional[GroupStatus],
    ) -> None:
        current = group.status
        if expected is not None and current != expected:
            raise GroupStateError(
                f"Group {group.id} status is {current.value}, expected {expected.value}"
            )
        if new_status not in VALID_TRANSITIONS.get(current, []):
            raise GroupStateError(
                f"Invalid state transition: {current.value} -> {new_status.value}. "
                f"Valid transitions from {current.value}: {[s.value for s in VALID_TRANSITIONS.get(current, [])]}"
            )
        if new_status == GroupStatus.GENERATING and group.calibration.status == CalibrationStatus.CALIBRATING:
            raise GroupStateError(f"Group {group.id} is calibrating")

    async def begin_generation(self, group_id: str, prompt: str) -> ShotGroup:
        """
        Move a group into generating and reset its result fields

        Raises:
            GroupStateError: If the group is already generating or is calibrating
        """
        async with self._lock(group_id):
            group = self.get(group_id)
            self._check_transition(group, GroupStatus.GENERATING, None)
            group.status = GroupStatus.GENERATING
            group.progress = 0
            group.error = None
            group.failure_kind = None
            group.last_prompt = prompt
            logger.info("group_generation_started", group_id=group_id)
            return group

    async def update_progress(self, group_id: str, progress: int) -> None:
        """Record progress; ignored unless generating, never decreases"""
        async with self._lock(group_id):
            group = self.get(group_id)
            if group.status == GroupStatus.GENERATING and progress > group.progress:
                group.progress = min(progress, 100)

    async def complete_generation(
        self,
        group_id: str,
        video_url: str,
        record: Optional[GenerationRecord] = None,
    ) -> ShotGroup:
        async with self._lock(group_id):
            group = self.get(group_id)
            self._check_transition(group, GroupStatus.COMPLETED, GroupStatus.GENERATING)
            group.status = GroupStatus.COMPLETED
            group.video_url = video_url
            group.progress = 100
            if record is not None:
                group.history.append(record)
            return group

    async def fail_generation(
        self,
        group_id: str,
        failure_kind: str,
        message: str,
        record: Optional[GenerationRecord] = None,
    ) -> ShotGroup:
        async with self._lock(group_id):
            group = self.get(group_id)
            self._check_transition(group, GroupStatus.FAILED, GroupStatus.GENERATING)
            group.status = GroupStatus.FAILED
            group.failure_kind = failure_kind
            group.error = message
            if record is not None:
                group.history.append(record)
            return group

    async def transition_calibration(
        self,
        group_id: str,
        new_status: CalibrationStatus,
        record: Optional[CalibrationRecord] = None,
        error: Optional[str] = None,
    ) -> ShotGroup:
        """
        Transition a group's calibration status

        Args:
            group_id: Group identifier
            new_status: Target calibration status
            record: Calibration output to store (on done)
            error: Failure message (on failed)

        Raises:
            GroupStateError: If transition is invalid or the group is generating
        """
        async with self._lock(group_id):
            group = self.get(group_id)
            current = group.calibration.status
            if new_status not in CALIBRATION_TRANSITIONS.get(current, []):
                raise GroupStateError(
                    f"Invalid calibration transition: {current.value} -> {new_status.value}"
                )
            if new_status == CalibrationStatus.CALIBRATING and group.status == GroupStatus.GENERATING:
                raise GroupStateError(f"Group {group.id} is generating")

            if record is not None:
                group.calibration = record.model_copy(update={"status": new_status, "error": error})
            else:
                group.calibration = group.calibration.model_copy(update={"status": new_status, "error": error})
            return group

    async def add_ref(self, group_id: str, ref: AssetRef) -> ShotGroup:
        """
        Attach a reference asset after quota validation

        Raises:
            AssetQuotaError: If any quota would be exceeded
        """
        async with self._lock(group_id):
            group = self.get(group_id)
            self.validator.check_can_add(group, ref)
            group.refs_of_kind(ref.kind).append(ref)
            logger.info(
                "group_ref_added",
                group_id=group_id,
                kind=ref.kind.value,
                purpose=ref.purpose.value,
                reference_count=group.reference_count,
            )
            return group

    async def remove_ref(self, group_id: str, ref_id: str) -> bool:
        """Detach a reference asset; returns False when it was not attached"""
        async with self._lock(group_id):
            group = self.get(group_id)
            for refs in (group.image_refs, group.video_refs, group.audio_refs):
                for i, ref in enumerate(refs):
                    if ref.id == ref_id:
                        del refs[i]
                        return True
            return False
