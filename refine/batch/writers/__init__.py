"""
Star-format output writers.
"""

from .row_codec import clean_field, tab_row
from .star_writer import DEFAULT_CORE_FILE, DEFAULT_EXTENSION_FILE, StarFormatWriter

__all__ = [
    "clean_field",
    "tab_row",
    "StarFormatWriter",
    "DEFAULT_CORE_FILE",
    "DEFAULT_EXTENSION_FILE",
]
