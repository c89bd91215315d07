"""
Batch refinement of one dataset file into star format.
"""

from .dedup import EventDeduplicator
from .readers import DelimitedReader
from .writers import StarFormatWriter, tab_row
from .pipeline import RefinePipeline

__all__ = [
    "EventDeduplicator",
    "DelimitedReader",
    "StarFormatWriter",
    "tab_row",
    "RefinePipeline",
]
