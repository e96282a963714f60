"""Shared helpers."""

from .logger import get_logger
from .quantity import parse_quantity, format_quantity

__all__ = ["get_logger", "parse_quantity", "format_quantity"]
