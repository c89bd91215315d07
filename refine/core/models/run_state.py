"""
RunState model: mutable lookup tables scoped to one dataset run.
"""

from pydantic import BaseModel, Field

from .taxon import TaxonMatch, TaxonQuery


class RunState(BaseModel):
    """
    Per-run state owned by the pipeline driver and passed by reference.

    A fresh instance is created for every dataset run; nothing in it may be
    reused across datasets.

    Attributes:
        seen_events: Event keys already written to the core stream
        non_matching_names: Names already reported as not matching the backbone
        match_cache: Verifier results memoized by query
        event_fingerprints: Event-level field values of the first record per event
        inconsistent_events: Event keys whose later records disagreed with the first
    """

    seen_events: set[str] = Field(default_factory=set)
    non_matching_names: set[str] = Field(default_factory=set)
    match_cache: dict[TaxonQuery, TaxonMatch] = Field(default_factory=dict)
    event_fingerprints: dict[str, tuple[str | None, ...]] = Field(default_factory=dict)
    inconsistent_events: set[str] = Field(default_factory=set)
