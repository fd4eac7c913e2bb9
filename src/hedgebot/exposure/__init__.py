"""Exposure sources feeding the hedge manager."""

from .sources import (
    ExposureSource,
    StaticExposureSource,
    CallableExposureSource,
)

__all__ = [
    'ExposureSource',
    'StaticExposureSource',
    'CallableExposureSource',
]
