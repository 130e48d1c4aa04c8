"""
Application Constants Configuration
"""

from typing import List


# Shot Grouping Defaults
DEFAULT_MAX_GROUP_DURATION_S: int = 15
DEFAULT_MAX_SHOTS_PER_GROUP: int = 4
DEFAULT_MIN_SHOTS_PER_GROUP: int = 1
DEFAULT_SHOT_DURATION_S: int = 5

# Reported group duration is clamped into the vendor output window
GROUP_DURATION_CLAMP_MIN_S: int = 4
GROUP_DURATION_CLAMP_MAX_S: int = 15

# Shots in different scenes stay together when character overlap reaches this
CHARACTER_OVERLAP_THRESHOLD: float = 0.5

# Asset Reference Quotas (per group)
MAX_IMAGE_REFS: int = 9
MAX_VIDEO_REFS: int = 3
MAX_AUDIO_REFS: int = 3
MAX_TOTAL_REFS: int = 12
MAX_REF_CLIP_DURATION_S: int = 15

# Generation Output Options
SUPPORTED_ASPECT_RATIOS: List[str] = ["16:9", "9:16", "4:3", "3:4", "21:9", "1:1"]
SUPPORTED_RESOLUTIONS: List[str] = ["480p", "720p", "1080p"]
MIN_GENERATION_DURATION_S: int = 1
MAX_GENERATION_DURATION_S: int = 15

# Polling
DEFAULT_POLL_INTERVAL_S: float = 5.0
DEFAULT_MAX_POLL_ATTEMPTS: int = 180
DEFAULT_NOT_FOUND_GRACE_ATTEMPTS: int = 3
PROGRESS_FLOOR: int = 20
PROGRESS_SPAN: int = 80
PROGRESS_CEILING: int = 99

# Vendor duration windows
ASYNC_SYNTHESIS_MIN_DURATION_S: int = 3
ASYNC_SYNTHESIS_MAX_DURATION_S: int = 10
TASK_BY_MODE_MIN_DURATION_S: int = 5
TASK_BY_MODE_MAX_DURATION_S: int = 10

# Content moderation vocabulary (matched case-insensitively)
CONTENT_MODERATION_KEYWORDS: List[str] = [
    "moderation",
    "content_sensitive",
    "sensitive",
    "policy",
    "refused",
    "inappropriate",
    "blocked",
    "prohibited",
    "内容审核",
    "违规",
    "敏感",
    "禁止",
    "拒绝",
    "不合规",
]

# Calibration
DEFAULT_TRANSITION: str = "natural transition"
