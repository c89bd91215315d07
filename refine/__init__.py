"""
Dataset refinement pipeline.

Turns dataset-specific biodiversity tables into a sample-event / occurrence
star schema (events core + occurrences extension) with names verified
against a taxonomic backbone.
"""

__version__ = "0.1.0"
