"""
Taxon verifier: checks scientific names against the taxonomic backbone.

The verifier wraps an injected name matching service and applies the
pipeline's trust policy:

- only a result flagged EXACT by the service may populate taxonomy fields
- the rank, when not supplied, is inferred from the classification hints
- names on the allow-list bypass the service entirely
- each distinct non-matching name is logged once per run
- results are memoized per run, keyed by the full query
"""

from typing import Any, Iterable, Protocol

from refine.core.models import Classification, MatchType, Rank, RunState, TaxonMatch, TaxonQuery
from refine.observability.logger import get_logger
from refine.observability.metrics import taxon_lookups_total

from .ranks import lowest_rank

logger = get_logger(__name__)


class NameMatchingService(Protocol):
    """Boundary of the external backbone (network call, synchronous, idempotent)."""

    def match(
        self,
        name: str,
        rank: Rank | None = None,
        classification: Classification | None = None,
    ) -> dict[str, Any]:
        """Return the raw match response for a name."""
        ...


def match_from_response(response: dict[str, Any]) -> TaxonMatch:
    """
    Convert a raw backbone response into a TaxonMatch.

    Responses that are not flagged EXACT keep only the fields needed for
    diagnostics; their classification is never carried over.
    """
    verbatim = response.get("matchType")
    if verbatim != MatchType.EXACT.value:
        return TaxonMatch(
            match_type=MatchType.NOT_EXACT,
            verbatim_match_type=verbatim,
            scientific_name=response.get("scientificName"),
            rank=response.get("rank"),
        )

    usage_key = response.get("usageKey")
    return TaxonMatch(
        match_type=MatchType.EXACT,
        verbatim_match_type=verbatim,
        kingdom=response.get("kingdom"),
        phylum=response.get("phylum"),
        class_=response.get("class"),
        order=response.get("order"),
        family=response.get("family"),
        genus=response.get("genus"),
        species=response.get("species"),
        scientific_name=response.get("scientificName"),
        canonical_name=response.get("canonicalName"),
        rank=response.get("rank"),
        status=response.get("status"),
        usage_key=str(usage_key) if usage_key is not None else None,
    )


class TaxonVerifier:
    """
    Verifies names against the backbone with exact-match gating.
    """

    def __init__(self, service: NameMatchingService, allow_list: Iterable[str] = ()):
        """
        Initialize the verifier.

        Args:
            service: Name matching service (see NameMatchingService)
            allow_list: Names known to be valid but absent from the backbone
        """
        self.service = service
        self.allow_list = frozenset(allow_list)

    def match(
        self,
        name: str,
        state: RunState,
        rank: Rank | None = None,
        hints: Classification | None = None,
        context: str | None = None,
    ) -> TaxonMatch:
        """
        Verify a name.

        Args:
            name: Scientific name as written in the source
            state: Run state holding the cache and the diagnostic name set
            rank: Rank to match at; inferred from hints when omitted
            hints: Higher classification known from the source record
            context: Record description included in the diagnostic message

        Returns:
            TaxonMatch (EXACT, NOT_EXACT, or NOT_EXACT with allow_listed=True)

        Raises:
            NameMatchingUnavailable: If the service cannot be reached
        """
        hints = hints or Classification()
        if rank is None:
            rank = lowest_rank(hints)

        if name in self.allow_list:
            taxon_lookups_total.labels(match_type="ALLOW_LISTED").inc()
            return TaxonMatch(
                match_type=MatchType.NOT_EXACT,
                scientific_name=name,
                rank=rank.value if rank else None,
                allow_listed=True,
            )

        query = TaxonQuery(name=name, rank=rank, hints=hints)
        match = state.match_cache.get(query)
        if match is None:
            response = self.service.match(name, rank=rank, classification=hints)
            match = match_from_response(response)
            state.match_cache[query] = match
            taxon_lookups_total.labels(match_type=match.verbatim_match_type or "UNKNOWN").inc()

        if not match.is_exact:
            self._report_non_matching(query, match, state, context)

        return match

    def _report_non_matching(
        self,
        query: TaxonQuery,
        match: TaxonMatch,
        state: RunState,
        context: str | None,
    ) -> None:
        if query.name in state.non_matching_names:
            return
        state.non_matching_names.add(query.name)
        rank = query.rank.value if query.rank else None
        message = (
            f"{match.verbatim_match_type} match for: {query.name} (with rank {rank}) "
            f"to: {match.scientific_name} (with rank {match.rank})"
        )
        if context:
            message += f". See example record {context}"
        logger.error(
            message,
            extra={
                "scientific_name": query.name,
                "verbatim_match_type": match.verbatim_match_type,
            },
        )
