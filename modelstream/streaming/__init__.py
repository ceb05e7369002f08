"""Streaming pipeline: delta extraction, text and structure streams."""

from modelstream.streaming.deltas import extract_text_deltas, text_growth
from modelstream.streaming.duration import DurationMeasurement, start_duration_measurement
from modelstream.streaming.stream_structure import stream_structure
from modelstream.streaming.stream_text import is_abort, stream_text

__all__ = [
    "DurationMeasurement",
    "extract_text_deltas",
    "is_abort",
    "start_duration_measurement",
    "stream_structure",
    "stream_text",
    "text_growth",
]
