"""
Test Fixtures Package
"""

from .sample_data import (
    SAMPLE_SHOTS,
    SAMPLE_CALIBRATION_OUTPUT,
    get_sample_shots,
)

__all__ = [
    'SAMPLE_SHOTS',
    'SAMPLE_CALIBRATION_OUTPUT',
    'get_sample_shots',
]
