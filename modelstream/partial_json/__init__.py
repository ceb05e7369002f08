"""Repair and parse JSON documents that are still being generated."""

from modelstream.partial_json.parse import parse_partial_json
from modelstream.partial_json.repair import Container, container_stack, repair_json

__all__ = ["Container", "container_stack", "parse_partial_json", "repair_json"]
