"""
Status Parsers - Per-variant task query URLs and status response mapping
"""

from typing import Any, Dict, Optional, Tuple
from pydantic import BaseModel

from shotgen.core.format_router import ProtocolVariant
from shotgen.core.request_builders import is_direct_dashscope
from shotgen.models.generation import TaskState


class StatusSnapshot(BaseModel):
    """Vendor task status normalized to the logical task states"""

    state: TaskState = TaskState.PENDING
    video_url: Optional[str] = None
    error: Optional[str] = None
    raw_status: str = ""


def normalize_url(value: Any) -> Optional[str]:
    """Return a stripped non-empty URL string or None"""
    if isinstance(value, str) and value.strip():
        return value.strip()
    if isinstance(value, list) and value:
        return normalize_url(value[0])
    return None


def _first_url(*candidates: Any) -> Optional[str]:
    for candidate in candidates:
        url = normalize_url(candidate)
        if url:
            return url
    return None


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_message(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        return str(value.get("message") or value.get("code") or value)
    return str(value)


class StatusParser:
    """Base class for per-variant status parsers"""

    variant: ProtocolVariant

    def query_request(self, task_id: str, base_url: str) -> Tuple[str, Dict[str, str]]:
        """
        Query location for a task

        Returns:
            (path relative to the base URL, query params)
        """
        raise NotImplementedError

    def parse(self, data: Any) -> StatusSnapshot:
        raise NotImplementedError


class UnifiedStatusParser(StatusParser):
    variant = ProtocolVariant.UNIFIED

    def query_request(self, task_id, base_url):
        return "/v1/video/query", {"id": task_id}

    def parse(self, data):
        data = _as_dict(data)
        status = str(data.get("status") or "unknown").lower()

        if status in ("completed", "succeeded", "success"):
            return StatusSnapshot(
                state=TaskState.SUCCEEDED,
                video_url=_first_url(data.get("video_url"), data.get("result_url"), data.get("url")),
                raw_status=status,
            )
        if status in ("failed", "error"):
            return StatusSnapshot(
                state=TaskState.FAILED,
                error=_as_message(data.get("error") or data.get("error_message")) or "video generation failed",
                raw_status=status,
            )
        return StatusSnapshot(raw_status=status)


class ContentTasksStatusParser(StatusParser):
    variant = ProtocolVariant.CONTENT_TASKS

    def query_request(self, task_id, base_url):
        return f"/volc/v1/contents/generations/tasks/{task_id}", {}

    def parse(self, data):
        data = _as_dict(data)
        status = str(data.get("status") or "unknown").lower()

        # queued / running stay pending
        if status == "succeeded":
            return StatusSnapshot(
                state=TaskState.SUCCEEDED,
                video_url=normalize_url(_as_dict(data.get("content")).get("video_url")),
                raw_status=status,
            )
        if status in ("failed", "expired", "cancelled"):
            error = _as_dict(data.get("error"))
            return StatusSnapshot(
                state=TaskState.FAILED,
                error=_as_message(error.get("message") or error.get("code")) or "video generation failed",
                raw_status=status,
            )
        return StatusSnapshot(raw_status=status)


class AsyncSynthesisStatusParser(StatusParser):
    variant = ProtocolVariant.ASYNC_SYNTHESIS

    def query_request(self, task_id, base_url):
        if is_direct_dashscope(base_url):
            return f"/tasks/{task_id}", {}
        return f"/alibailian/api/v1/tasks/{task_id}", {}

    def parse(self, data):
        data = _as_dict(data)
        output = _as_dict(data.get("output"))
        status = str(output.get("task_status") or "").upper()

        if status == "SUCCEEDED":
            return StatusSnapshot(
                state=TaskState.SUCCEEDED,
                video_url=_first_url(output.get("video_url"), output.get("url"), data.get("video_url"), data.get("url")),
                raw_status=status,
            )
        if status in ("FAILED", "CANCELED"):
            return StatusSnapshot(
                state=TaskState.FAILED,
                error=_as_message(output.get("message") or output.get("error")) or "video generation failed",
                raw_status=status,
            )
        return StatusSnapshot(raw_status=status)


class TaskByModeStatusParser(StatusParser):
    variant = ProtocolVariant.TASK_BY_MODE

    def query_request(self, task_id, base_url):
        return f"/kling/v1/videos/generations/{task_id}", {}

    def parse(self, data):
        inner = _as_dict(_as_dict(data).get("data"))
        status = str(inner.get("task_status") or "").lower()

        if status == "succeed":
            videos = _as_dict(inner.get("task_result")).get("videos") or []
            first = videos[0] if isinstance(videos, list) and videos else {}
            return StatusSnapshot(
                state=TaskState.SUCCEEDED,
                video_url=normalize_url(_as_dict(first).get("url")),
                raw_status=status,
            )
        if status == "failed":
            return StatusSnapshot(
                state=TaskState.FAILED,
                error=_as_message(inner.get("task_status_msg")) or "video generation failed",
                raw_status=status,
            )
        return StatusSnapshot(raw_status=status)


STATUS_PARSERS: Dict[ProtocolVariant, StatusParser] = {
    ProtocolVariant.UNIFIED: UnifiedStatusParser(),
    ProtocolVariant.CONTENT_TASKS: ContentTasksStatusParser(),
    ProtocolVariant.ASYNC_SYNTHESIS: AsyncSynthesisStatusParser(),
    ProtocolVariant.TASK_BY_MODE: TaskByModeStatusParser(),
}

_missing = set(ProtocolVariant) - set(STATUS_PARSERS)
if _missing:
    raise RuntimeError(f"No status parser registered for: {sorted(v.value for v in _missing)}")


def get_status_parser(variant: ProtocolVariant) -> StatusParser:
    """Status parser for a protocol variant"""
    return STATUS_PARSERS[variant]
