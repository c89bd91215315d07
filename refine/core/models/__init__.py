"""
Core data models for the refinement pipeline.

All models use Pydantic for runtime validation and type safety.
"""

from .run_state import RunState
from .run_summary import PipelineState, RunSummary
from .taxon import Classification, MatchType, Rank, TaxonMatch, TaxonQuery

__all__ = [
    "Rank",
    "MatchType",
    "Classification",
    "TaxonQuery",
    "TaxonMatch",
    "RunState",
    "PipelineState",
    "RunSummary",
]
