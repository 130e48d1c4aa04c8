"""
shotgen - Shot grouping and multi-vendor video generation
"""

from shotgen.core.shot_grouper import GroupingConfig, group_shots

__all__ = ["GroupingConfig", "group_shots"]
