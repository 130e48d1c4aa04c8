"""
Duration/Overlap Model - Pure helpers used by the shot grouping engine
"""

from shotgen.config.constants import DEFAULT_SHOT_DURATION_S
from shotgen.models.shot import Shot


def effective_duration(shot: Shot, default_duration: float = DEFAULT_SHOT_DURATION_S) -> float:
    """Shot duration, or the default when the shot has none set"""
    return shot.duration if shot.duration > 0 else default_duration


def character_overlap(a: Shot, b: Shot) -> float:
    """
    Jaccard overlap of two shots' character sets

    Returns 0 when either shot has no characters.
    """
    if not a.character_ids or not b.character_ids:
        return 0.0
    set_a = set(a.character_ids)
    set_b = set(b.character_ids)
    union = set_a | set_b
    return len(set_a & set_b) / len(union) if union else 0.0


def is_same_scene(a: Shot, b: Shot) -> bool:
    """Scene identity by name; two unnamed shots count as the same scene"""
    if not a.scene_name and not b.scene_name:
        return True
    return a.scene_name == b.scene_name
