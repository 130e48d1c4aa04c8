"""
Vendor Format Router - Map a video model identifier to its wire protocol variant
"""

from enum import Enum
from typing import Dict, List, Optional

from shotgen.config.settings import settings
from shotgen.services.observability import logger, log_format_detected


class ProtocolVariant(str, Enum):
    """Closed set of vendor video-generation protocols"""

    UNIFIED = "unified"
    CONTENT_TASKS = "content_tasks"  # content-array task API (Seedance/Doubao family)
    ASYNC_SYNTHESIS = "async_synthesis"  # async video-synthesis job (Wan family)
    TASK_BY_MODE = "task_by_mode"  # text2video / image2video task API (Kling family)


# Capability tag -> protocol variant
ENDPOINT_TYPE_VARIANTS: Dict[str, ProtocolVariant] = {
    "视频统一格式": ProtocolVariant.UNIFIED,
    "openAI视频格式": ProtocolVariant.UNIFIED,
    "openAI官方视频格式": ProtocolVariant.UNIFIED,
    "grok视频": ProtocolVariant.UNIFIED,
    "openai-response": ProtocolVariant.UNIFIED,
    "海螺视频生成": ProtocolVariant.UNIFIED,
    "luma视频生成": ProtocolVariant.UNIFIED,
    "luma视频扩展": ProtocolVariant.UNIFIED,
    "runway图生视频": ProtocolVariant.UNIFIED,
    "aigc-video": ProtocolVariant.UNIFIED,
    "minimax/video-01异步": ProtocolVariant.UNIFIED,
    "豆包视频异步": ProtocolVariant.CONTENT_TASKS,
    "异步": ProtocolVariant.ASYNC_SYNTHESIS,
    "文生视频": ProtocolVariant.TASK_BY_MODE,
    "图生视频": ProtocolVariant.TASK_BY_MODE,
}

# Ordered name heuristics (lower-cased substring -> variant)
NAME_HEURISTICS: List[tuple] = [
    ("seedance", ProtocolVariant.CONTENT_TASKS),
    ("wan", ProtocolVariant.ASYNC_SYNTHESIS),
    ("kling", ProtocolVariant.TASK_BY_MODE),
]


class FormatRouter:
    """
    Select the protocol variant for a model

    Capability metadata is consulted first, then model-name heuristics,
    and UNIFIED is the fallback. Routing never raises.
    """

    def __init__(self, endpoint_types: Optional[Dict[str, List[str]]] = None):
        """
        Initialize router

        Args:
            endpoint_types: Model id -> capability tags. Defaults to the
                model_endpoint_types setting.
        """
        if endpoint_types is None:
            endpoint_types = settings.model_endpoint_types
        self.endpoint_types = dict(endpoint_types)

    def detect_format(self, model_id: str) -> ProtocolVariant:
        """
        Detect protocol variant for a model

        Args:
            model_id: Video model identifier

        Returns:
            ProtocolVariant
        """
        for tag in self.endpoint_types.get(model_id, []):
            variant = ENDPOINT_TYPE_VARIANTS.get(tag)
            if variant is not None:
                log_format_detected(model_id, variant.value, "metadata", endpoint_type=tag)
                return variant
            logger.debug("unknown_endpoint_type", model=model_id, endpoint_type=tag)

        name = (model_id or "").lower()
        for needle, variant in NAME_HEURISTICS:
            if needle in name:
                log_format_detected(model_id, variant.value, "name")
                return variant

        log_format_detected(model_id, ProtocolVariant.UNIFIED.value, "default")
        return ProtocolVariant.UNIFIED


def detect_format(model_id: str, endpoint_types: Optional[Dict[str, List[str]]] = None) -> ProtocolVariant:
    """Module-level shortcut for FormatRouter(endpoint_types).detect_format"""
    return FormatRouter(endpoint_types).detect_format(model_id)
