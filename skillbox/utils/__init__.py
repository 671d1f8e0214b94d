"""Utility functions for the Skillbox plugin service."""

from .sse_formatter import format_sse_message
from .text_repair import repair_mojibake

__all__ = [
    'format_sse_message',
    'repair_mojibake',
]
