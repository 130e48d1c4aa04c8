"""
Calibration - Apply a language model's group-level calibration output to a shot group
"""

import json
import re
from typing import Any, Awaitable, Callable, Dict, Tuple

from shotgen.config.constants import DEFAULT_TRANSITION
from shotgen.models.shot import CalibrationRecord, CalibrationStatus, GroupStatus, ShotGroup
from shotgen.services.group_store import GroupStore
from shotgen.services.observability import logger


# Produces raw model text for a group; prompt authoring belongs to the caller
Calibrate = Callable[[ShotGroup], Awaitable[str]]

CODE_FENCE_PATTERN = re.compile(r"```(?:json)?\n?")


class CalibrationError(ValueError):
    """Calibration output could not be used"""

    pass


def _pick(parsed: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in parsed:
            return parsed[key]
    return None


def parse_calibration_output(raw: str, shot_count: int) -> CalibrationRecord:
    """
    Parse and normalize calibrator output

    Code fences and any text around the outermost JSON object are stripped.
    transitions is truncated or padded to shot_count - 1 entries.

    Args:
        raw: Raw model output
        shot_count: Number of shots in the group

    Returns:
        CalibrationRecord with status DONE

    Raises:
        CalibrationError: If the JSON is invalid or no calibrated prompt is present
    """
    cleaned = CODE_FENCE_PATTERN.sub("", raw or "").strip()
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start != -1 and end != -1:
        cleaned = cleaned[start:end + 1]

    try:
        parsed = json.loads(cleaned)
    except ValueError as e:
        raise CalibrationError("Calibration output is not valid JSON") from e
    if not isinstance(parsed, dict):
        raise CalibrationError("Calibration output is not a JSON object")

    narrative_arc = _pick(parsed, "narrativeArc", "narrative_arc")
    transitions = _pick(parsed, "transitions")
    audio_design = _pick(parsed, "groupAudioDesign", "audio_design", "audioDesign")
    calibrated_prompt = _pick(parsed, "calibratedPrompt", "calibrated_prompt")

    transitions = [str(t) for t in transitions] if isinstance(transitions, list) else []
    expected = max(shot_count - 1, 0)
    transitions = transitions[:expected]
    while len(transitions) < expected:
        transitions.append(DEFAULT_TRANSITION)

    if not isinstance(calibrated_prompt, str) or not calibrated_prompt:
        raise CalibrationError("Calibration output has no calibrated prompt")

    return CalibrationRecord(
        narrative_arc=narrative_arc if isinstance(narrative_arc, str) else "",
        transitions=transitions,
        audio_design=audio_design if isinstance(audio_design, str) else "",
        calibrated_prompt=calibrated_prompt,
        status=CalibrationStatus.DONE,
    )


async def run_calibration(store: GroupStore, group_id: str, calibrate: Calibrate) -> bool:
    """
    Calibrate one group and store the result

    The group is marked calibrating for the duration of the call, then done
    or failed. Calibration failures are recorded on the group, not raised.

    Returns:
        True on success

    Raises:
        GroupStateError: If the group is generating or already calibrating
    """
    await store.transition_calibration(group_id, CalibrationStatus.CALIBRATING)
    group = store.get(group_id)

    try:
        raw = await calibrate(group)
        record = parse_calibration_output(raw, len(group.shot_ids))
    except Exception as e:
        logger.error("calibration_failed", group_id=group_id, error=str(e))
        await store.transition_calibration(group_id, CalibrationStatus.FAILED, error=str(e))
        return False

    await store.transition_calibration(group_id, CalibrationStatus.DONE, record=record)
    logger.info("calibration_completed", group_id=group_id, transitions=len(record.transitions))
    return True


async def calibrate_all(
    store: GroupStore,
    calibrate: Calibrate,
    only_pending: bool = True,
) -> Tuple[int, int]:
    """
    Calibrate groups one after another

    Args:
        store: Group store
        calibrate: Model call producing raw calibration output
        only_pending: Skip groups whose calibration is already done

    Returns:
        (succeeded, attempted)
    """
    succeeded = 0
    attempted = 0
    for group in store.list():
        if only_pending and group.calibration.status == CalibrationStatus.DONE:
            continue
        if group.status == GroupStatus.GENERATING:
            continue
        attempted += 1
        if await run_calibration(store, group.id, calibrate):
            succeeded += 1
    return succeeded, attempted
