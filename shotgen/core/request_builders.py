"""
Request Builders - Translate a GenerationRequest into each vendor's wire payload
"""

import re
from typing import Any, Dict, List, Optional

from shotgen.config.constants import (
    ASYNC_SYNTHESIS_MAX_DURATION_S,
    ASYNC_SYNTHESIS_MIN_DURATION_S,
    TASK_BY_MODE_MAX_DURATION_S,
    TASK_BY_MODE_MIN_DURATION_S,
)
from shotgen.core.format_router import ProtocolVariant
from shotgen.models.generation import GenerationRequest, VendorPayload


DASHSCOPE_HOST_PATTERN = re.compile(r"dashscope\.aliyuncs\.com", re.IGNORECASE)


def is_direct_dashscope(base_url: Optional[str]) -> bool:
    """True when the base URL points at DashScope itself rather than a proxy"""
    return bool(base_url) and bool(DASHSCOPE_HOST_PATTERN.search(base_url))


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


class RequestBuilder:
    """Base class for per-variant payload builders"""

    variant: ProtocolVariant

    def build(
        self,
        request: GenerationRequest,
        model: str,
        base_url: Optional[str] = None,
    ) -> VendorPayload:
        raise NotImplementedError

    def extract_task_id(self, response_json: Any) -> Optional[str]:
        """Pull the vendor task id out of a submission response"""
        if not isinstance(response_json, dict):
            return None
        task_id = response_json.get("id")
        return str(task_id) if task_id else None


class UnifiedBuilder(RequestBuilder):
    """Aggregator-native format: POST /v1/video/create"""

    variant = ProtocolVariant.UNIFIED

    def build(self, request, model, base_url=None):
        images: List[str] = []
        if request.first_frame:
            images.append(request.first_frame.url)

        # last frame, duration, negative prompt and video/audio refs are not part of this format
        return VendorPayload(
            path="/v1/video/create",
            body={
                "model": model,
                "prompt": request.prompt,
                "aspect_ratio": request.aspect_ratio,
                "size": request.resolution.upper(),
                "images": images,
            },
        )


class ContentTasksBuilder(RequestBuilder):
    """
    Content-array task format: POST /volc/v1/contents/generations/tasks

    Resolution, aspect ratio, duration and camera lock travel as inline
    directives appended to the text block.
    """

    variant = ProtocolVariant.CONTENT_TASKS

    def build(self, request, model, base_url=None):
        text = request.prompt
        text += f" --rs {request.resolution.lower()}"
        text += f" --rt {request.aspect_ratio}"
        text += f" --dur {request.duration}"
        if request.camera_fixed is not None:
            text += f" --cf {'true' if request.camera_fixed else 'false'}"

        content: List[Dict[str, Any]] = [{"type": "text", "text": text}]

        for image in request.images:
            if image.url:
                content.append({
                    "type": "image_url",
                    "image_url": {"url": image.url},
                    "role": image.role.value,
                })

        for url in request.video_refs:
            if url:
                content.append({"type": "video_url", "video_url": {"url": url}})

        for url in request.audio_refs:
            if url:
                content.append({"type": "audio_url", "audio_url": {"url": url}})

        return VendorPayload(
            path="/volc/v1/contents/generations/tasks",
            body={"model": model, "content": content},
        )


class AsyncSynthesisBuilder(RequestBuilder):
    """Async synthesis job format: POST /services/aigc/video-generation/video-synthesis"""

    variant = ProtocolVariant.ASYNC_SYNTHESIS

    def build(self, request, model, base_url=None):
        input_block: Dict[str, Any] = {"prompt": request.prompt}
        if request.negative_prompt:
            input_block["negative_prompt"] = request.negative_prompt
        if request.first_frame:
            input_block["img_url"] = request.first_frame.url

        headers: Dict[str, str] = {}
        if is_direct_dashscope(base_url):
            headers["X-DashScope-Async"] = "enable"

        return VendorPayload(
            path="/services/aigc/video-generation/video-synthesis",
            body={
                "model": model,
                "input": input_block,
                "parameters": {
                    "resolution": request.resolution.upper(),
                    "prompt_extend": True,
                    "duration": _clamp(
                        request.duration,
                        ASYNC_SYNTHESIS_MIN_DURATION_S,
                        ASYNC_SYNTHESIS_MAX_DURATION_S,
                    ),
                    "audio": request.enable_audio,
                },
            },
            headers=headers,
        )

    def extract_task_id(self, response_json):
        if not isinstance(response_json, dict):
            return None
        output = response_json.get("output")
        task_id = output.get("task_id") if isinstance(output, dict) else None
        task_id = task_id or response_json.get("task_id")
        return str(task_id) if task_id else None


class TaskByModeBuilder(RequestBuilder):
    """Task-by-mode format: POST /kling/v1/videos/text2video or image2video"""

    variant = ProtocolVariant.TASK_BY_MODE

    def build(self, request, model, base_url=None):
        first_frame = request.first_frame
        mode_path = "image2video" if first_frame else "text2video"

        body: Dict[str, Any] = {
            "model_name": model,
            "prompt": request.prompt,
            "aspect_ratio": request.aspect_ratio,
            "duration": str(
                _clamp(request.duration, TASK_BY_MODE_MIN_DURATION_S, TASK_BY_MODE_MAX_DURATION_S)
            ),
            "mode": "pro" if request.resolution == "1080p" else "std",
        }
        if request.negative_prompt:
            body["negative_prompt"] = request.negative_prompt
        if first_frame:
            body["image"] = first_frame.url
            if request.last_frame:
                body["image_tail"] = request.last_frame.url

        return VendorPayload(path=f"/kling/v1/videos/{mode_path}", body=body)

    def extract_task_id(self, response_json):
        if not isinstance(response_json, dict):
            return None
        data = response_json.get("data")
        task_id = data.get("task_id") if isinstance(data, dict) else None
        return str(task_id) if task_id else None


BUILDERS: Dict[ProtocolVariant, RequestBuilder] = {
    ProtocolVariant.UNIFIED: UnifiedBuilder(),
    ProtocolVariant.CONTENT_TASKS: ContentTasksBuilder(),
    ProtocolVariant.ASYNC_SYNTHESIS: AsyncSynthesisBuilder(),
    ProtocolVariant.TASK_BY_MODE: TaskByModeBuilder(),
}

_missing = set(ProtocolVariant) - set(BUILDERS)
if _missing:
    raise RuntimeError(f"No request builder registered for: {sorted(v.value for v in _missing)}")


def get_builder(variant: ProtocolVariant) -> RequestBuilder:
    """Builder for a protocol variant"""
    return BUILDERS[variant]


def build_payload(
    variant: ProtocolVariant,
    request: GenerationRequest,
    model: str,
    base_url: Optional[str] = None,
) -> VendorPayload:
    """Build the vendor payload for a request"""
    return BUILDERS[variant].build(request, model, base_url)
