"""
Shot Grouper - Greedy packing of ordered shots into bounded-duration groups
"""

import math
from typing import Dict, List, Optional, Sequence
from pydantic import BaseModel, Field

from shotgen.config.constants import (
    CHARACTER_OVERLAP_THRESHOLD,
    DEFAULT_MAX_GROUP_DURATION_S,
    DEFAULT_MAX_SHOTS_PER_GROUP,
    DEFAULT_MIN_SHOTS_PER_GROUP,
    DEFAULT_SHOT_DURATION_S,
    GROUP_DURATION_CLAMP_MAX_S,
    GROUP_DURATION_CLAMP_MIN_S,
)
from shotgen.core.duration_model import character_overlap, effective_duration, is_same_scene
from shotgen.models.shot import Shot, ShotGroup
from shotgen.services.observability import logger, log_grouping_result


class GroupingConfig(BaseModel):
    """Grouping budget and continuity parameters"""

    max_duration_s: float = Field(default=DEFAULT_MAX_GROUP_DURATION_S, gt=0)
    max_shots_per_group: int = Field(default=DEFAULT_MAX_SHOTS_PER_GROUP, ge=1)
    min_shots_per_group: int = Field(default=DEFAULT_MIN_SHOTS_PER_GROUP, ge=1)
    default_shot_duration_s: float = Field(default=DEFAULT_SHOT_DURATION_S, gt=0)


def clamp_group_duration(duration: float) -> int:
    """Clamp a group's summed duration into the reported [4, 15] window"""
    clamped = min(max(duration, GROUP_DURATION_CLAMP_MIN_S), GROUP_DURATION_CLAMP_MAX_S)
    # halves round up
    return int(math.floor(clamped + 0.5))


class ShotGrouper:
    """
    Partition an ordered shot sequence into groups

    Single left-to-right pass, no backtracking. Before each shot the
    current group is closed when it is full, when the shot would overflow
    the duration budget, or when the shot starts a new scene and shares
    less than half of its characters with the previous shot.
    """

    def __init__(self, config: Optional[GroupingConfig] = None):
        self.config = config or GroupingConfig()

    def group(self, shots: Sequence[Shot]) -> List[ShotGroup]:
        cfg = self.config
        if not shots:
            return []

        groups: List[ShotGroup] = []
        current_ids: List[int] = []
        current_duration = 0.0

        def flush() -> None:
            nonlocal current_ids, current_duration
            if not current_ids:
                return
            clamped = clamp_group_duration(current_duration)
            if clamped != current_duration:
                logger.debug(
                    "duration_clamped",
                    group_index=len(groups),
                    actual_duration_s=current_duration,
                    reported_duration_s=clamped,
                )
            groups.append(
                ShotGroup(
                    name=f"Group {len(groups) + 1}",
                    shot_ids=list(current_ids),
                    total_duration=clamped,
                    sort_index=len(groups),
                )
            )
            current_ids = []
            current_duration = 0.0

        for i, shot in enumerate(shots):
            duration = effective_duration(shot, cfg.default_shot_duration_s)

            if self._should_break(shots, i, current_ids, current_duration, duration):
                flush()

            current_ids.append(shot.id)
            current_duration += duration

        flush()

        log_grouping_result(
            shot_count=len(shots),
            group_count=len(groups),
            max_duration_s=cfg.max_duration_s,
            max_shots_per_group=cfg.max_shots_per_group,
        )
        return groups

    def _should_break(
        self,
        shots: Sequence[Shot],
        index: int,
        current_ids: List[int],
        current_duration: float,
        duration: float,
    ) -> bool:
        cfg = self.config

        if len(current_ids) >= cfg.max_shots_per_group:
            return True

        if current_ids and current_duration + duration > cfg.max_duration_s:
            return True

        if current_ids and index > 0:
            prev, shot = shots[index - 1], shots[index]
            if (
                not is_same_scene(prev, shot)
                and len(current_ids) >= cfg.min_shots_per_group
                and character_overlap(prev, shot) < CHARACTER_OVERLAP_THRESHOLD
            ):
                return True

        return False


def group_shots(shots: Sequence[Shot], config: Optional[GroupingConfig] = None) -> List[ShotGroup]:
    """Group an ordered shot list with the given (or default) config"""
    return ShotGrouper(config).group(shots)


def recalc_duration(
    group: ShotGroup,
    shots: Sequence[Shot],
    default_duration: float = DEFAULT_SHOT_DURATION_S,
) -> float:
    """
    Re-sum effective durations of the group's shots against a live shot table

    Shot ids no longer present in the table count as the default duration.
    """
    shot_map: Dict[int, Shot] = {shot.id: shot for shot in shots}
    total = 0.0
    for shot_id in group.shot_ids:
        shot = shot_map.get(shot_id)
        total += effective_duration(shot, default_duration) if shot else default_duration
    return total


def generate_group_name(group: ShotGroup, shots: Sequence[Shot], group_index: int) -> str:
    """
    Human label from the first shot's scene name and the group's position range

    Positions are 1-based indexes into the full shot sequence, so the label
    stays stable when shot ids are not contiguous.
    """
    if not group.shot_ids:
        return f"Group {group_index + 1}"

    all_ids = [shot.id for shot in shots]
    first_shot = next((shot for shot in shots if shot.id == group.shot_ids[0]), None)

    first_idx = all_ids.index(group.shot_ids[0]) if group.shot_ids[0] in all_ids else -1
    last_idx = all_ids.index(group.shot_ids[-1]) if group.shot_ids[-1] in all_ids else -1
    first_num = first_idx + 1 if first_idx >= 0 else 1
    last_num = last_idx + 1 if last_idx >= 0 else first_num + len(group.shot_ids) - 1

    if first_shot and first_shot.scene_name:
        return f"{first_shot.scene_name} (shots {first_num}-{last_num})"

    return f"Group {group_index + 1}: shots {first_num}-{last_num}"
