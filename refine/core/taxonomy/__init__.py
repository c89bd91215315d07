"""
Name verification against the taxonomic backbone.
"""

from .ranks import lowest_rank
from .verifier import NameMatchingService, TaxonVerifier, match_from_response

__all__ = [
    "lowest_rank",
    "NameMatchingService",
    "TaxonVerifier",
    "match_from_response",
]
