"""
Raw record readers.
"""

from .delimited_reader import DelimitedReader

__all__ = [
    "DelimitedReader",
]
