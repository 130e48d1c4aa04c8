"""
Observability and Logging Service
"""

import structlog
from typing import Optional


# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

# Get logger
logger = structlog.get_logger(__name__)


def log_grouping_result(
    shot_count: int,
    group_count: int,
    max_duration_s: float,
    max_shots_per_group: int,
) -> None:
    """
    Log shot grouping outcome

    Args:
        shot_count: Number of input shots
        group_count: Number of groups produced
        max_duration_s: Duration budget per group
        max_shots_per_group: Shot count cap per group
    """
    logger.info(
        "shots_grouped",
        shot_count=shot_count,
        group_count=group_count,
        max_duration_s=max_duration_s,
        max_shots_per_group=max_shots_per_group,
    )


def log_format_detected(
    model: str,
    variant: str,
    source: str,
    endpoint_type: Optional[str] = None,
) -> None:
    """
    Log protocol variant routing decision

    Args:
        model: Model identifier
        variant: Selected protocol variant
        source: "metadata", "name" or "default"
        endpoint_type: Capability tag that matched, if any
    """
    log_data = {
        "model": model,
        "variant": variant,
        "source": source,
    }
    if endpoint_type:
        log_data["endpoint_type"] = endpoint_type

    logger.info("format_detected", **log_data)


def log_key_rotation(
    from_index: int,
    to_index: int,
    failure_kind: str,
    status_code: Optional[int] = None,
) -> None:
    """
    Log credential rotation

    Args:
        from_index: Cursor position of the failing credential
        to_index: Cursor position after rotation
        failure_kind: Failure that triggered the rotation
        status_code: HTTP status of the failed call
    """
    logger.warning(
        "credential_rotated",
        from_index=from_index,
        to_index=to_index,
        failure_kind=failure_kind,
        status_code=status_code,
    )


def log_failure_classification(
    error_code: str,
    classification: str,
    retryable: bool,
    group_id: Optional[str] = None,
) -> None:
    """
    Log failure classification event

    Args:
        error_code: Failure kind (e.g., "RATE_LIMITED", "CONTENT_MODERATION")
        classification: Error classification ("retryable" or "non_retryable")
        retryable: Whether error is retryable
        group_id: Optional shot group ID for context
    """
    log_data = {
        "error_code": error_code,
        "classification": classification,
        "retryable": retryable,
    }
    if group_id:
        log_data["group_id"] = group_id

    logger.error("failure_classified", **log_data)


def log_generation_duration(
    group_id: str,
    duration_s: float,
    shot_count: int,
    variant: str,
    poll_attempts: int,
) -> None:
    """
    Log group video generation duration

    Args:
        group_id: Shot group ID
        duration_s: Wall-clock seconds from submission to result
        shot_count: Number of shots in the group
        variant: Protocol variant used
        poll_attempts: Number of status queries issued
    """
    logger.info(
        "generation_completed",
        group_id=group_id,
        duration_s=duration_s,
        shot_count=shot_count,
        variant=variant,
        poll_attempts=poll_attempts,
    )
