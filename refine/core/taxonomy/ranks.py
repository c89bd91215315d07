"""
Rank inference from partial classifications.
"""

from refine.core.models import Classification, Rank

# Most specific first
_SPECIFICITY = (
    ("species", Rank.SPECIES),
    ("genus", Rank.GENUS),
    ("family", Rank.FAMILY),
    ("order", Rank.ORDER),
    ("class_", Rank.CLASS),
    ("phylum", Rank.PHYLUM),
    ("kingdom", Rank.KINGDOM),
)


def lowest_rank(classification: Classification | None) -> Rank | None:
    """
    Return the most specific rank populated in a classification.

    Args:
        classification: Partial classification (may be None)

    Returns:
        Lowest populated rank, or None when nothing is populated
    """
    if classification is None:
        return None
    for attribute, rank in _SPECIFICITY:
        if getattr(classification, attribute):
            return rank
    return None
