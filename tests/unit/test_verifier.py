"""
Unit tests for the taxon verifier and rank inference.
"""

import pytest

from refine.core.errors import NameMatchingUnavailable
from refine.core.models import Classification, MatchType, Rank
from refine.core.taxonomy import TaxonVerifier, lowest_rank, match_from_response


@pytest.mark.unit
class TestLowestRank:
    """Tests for rank inference from hints"""

    def test_species_wins(self):
        cl = Classification(kingdom="Animalia", family="Acanthuridae", species="Naso lituratus")
        assert lowest_rank(cl) is Rank.SPECIES

    def test_family_over_class(self):
        cl = Classification(phylum="Chordata", class_="Actinopterygii", family="Labridae")
        assert lowest_rank(cl) is Rank.FAMILY

    @pytest.mark.parametrize("attribute,rank", [
        ("genus", Rank.GENUS),
        ("order", Rank.ORDER),
        ("class_", Rank.CLASS),
        ("phylum", Rank.PHYLUM),
        ("kingdom", Rank.KINGDOM),
    ])
    def test_single_rank(self, attribute, rank):
        assert lowest_rank(Classification(**{attribute: "X"})) is rank

    def test_empty(self):
        assert lowest_rank(Classification()) is None
        assert lowest_rank(None) is None


@pytest.mark.unit
class TestMatchFromResponse:
    """Tests for converting backbone responses"""

    def test_exact_copies_classification(self):
        match = match_from_response({
            "matchType": "EXACT",
            "usageKey": 2394331,
            "scientificName": "Naso lituratus (Forster, 1801)",
            "canonicalName": "Naso lituratus",
            "rank": "SPECIES",
            "status": "ACCEPTED",
            "kingdom": "Animalia",
            "class": "Actinopterygii",
            "species": "Naso lituratus",
        })
        assert match.match_type is MatchType.EXACT
        assert match.usage_key == "2394331"
        assert match.class_ == "Actinopterygii"
        assert match.canonical_name == "Naso lituratus"

    @pytest.mark.parametrize("verbatim", ["FUZZY", "HIGHERRANK", "NONE", None])
    def test_other_types_are_not_exact(self, verbatim):
        match = match_from_response({
            "matchType": verbatim,
            "scientificName": "Naso",
            "rank": "GENUS",
            "kingdom": "Animalia",
            "usageKey": 2394320,
        })
        assert match.match_type is MatchType.NOT_EXACT
        assert match.verbatim_match_type == verbatim
        assert match.kingdom is None
        assert match.usage_key is None


@pytest.mark.unit
class TestTaxonVerifier:
    """Tests for TaxonVerifier"""

    def test_exact_match(self, name_service, run_state):
        verifier = TaxonVerifier(name_service)
        match = verifier.match("Naso lituratus", run_state, rank=Rank.SPECIES)
        assert match.is_exact
        assert match.usage_key == "2394331"
        assert run_state.non_matching_names == set()

    def test_fuzzy_match_is_gated(self, name_service, run_state):
        name_service.add_response("Naso lituratis", {
            "matchType": "FUZZY",
            "scientificName": "Naso lituratus (Forster, 1801)",
            "usageKey": 2394331,
            "rank": "SPECIES",
            "kingdom": "Animalia",
        })
        verifier = TaxonVerifier(name_service)
        match = verifier.match("Naso lituratis", run_state)
        assert not match.is_exact
        assert match.kingdom is None
        assert "Naso lituratis" in run_state.non_matching_names

    def test_rank_inferred_from_hints(self, name_service, run_state):
        verifier = TaxonVerifier(name_service)
        hints = Classification(family="Acanthuridae", species="Naso lituratus")
        verifier.match("Naso lituratus", run_state, hints=hints)
        name, rank, classification = name_service.calls[-1]
        assert rank is Rank.SPECIES
        assert classification == hints

    def test_explicit_rank_wins(self, name_service, run_state):
        verifier = TaxonVerifier(name_service)
        hints = Classification(species="Naso lituratus")
        verifier.match("Naso lituratus", run_state, rank=Rank.GENUS, hints=hints)
        assert name_service.calls[-1][1] is Rank.GENUS

    def test_no_hints_no_rank(self, name_service, run_state):
        verifier = TaxonVerifier(name_service)
        verifier.match("Naso lituratus", run_state)
        assert name_service.calls[-1][1] is None

    def test_memoized_per_query(self, name_service, run_state):
        verifier = TaxonVerifier(name_service)
        for _ in range(5):
            verifier.match("Naso lituratus", run_state, rank=Rank.SPECIES)
        assert name_service.call_count("Naso lituratus") == 1

    def test_different_hints_are_separate_queries(self, name_service, run_state):
        verifier = TaxonVerifier(name_service)
        verifier.match("Naso", run_state, hints=Classification(family="Acanthuridae"))
        verifier.match("Naso", run_state, hints=Classification(family="Labridae"))
        assert name_service.call_count("Naso") == 2

    def test_cache_is_per_run(self, name_service, run_state):
        from refine.core.models import RunState

        verifier = TaxonVerifier(name_service)
        verifier.match("Naso lituratus", run_state)
        verifier.match("Naso lituratus", RunState())
        assert name_service.call_count("Naso lituratus") == 2

    def test_allow_list_bypasses_service(self, name_service, run_state, capture_logger, caplog):
        capture_logger("refine.core.taxonomy.verifier")
        verifier = TaxonVerifier(name_service, allow_list=["Limonium album"])
        match = verifier.match("Limonium album", run_state, rank=Rank.SPECIES)
        assert match.allow_listed
        assert not match.is_exact
        assert match.rank == "SPECIES"
        assert name_service.calls == []
        assert run_state.non_matching_names == set()
        assert not [r for r in caplog.records if r.levelname == "ERROR"]

    def test_non_matching_logged_once(self, name_service, run_state, capture_logger, caplog):
        capture_logger("refine.core.taxonomy.verifier")
        verifier = TaxonVerifier(name_service)
        for row in range(5):
            verifier.match("Unknownus fishus", run_state, context=f"at row {row}")
        errors = [r for r in caplog.records if r.levelname == "ERROR"]
        assert len(errors) == 1
        assert "NONE match for: Unknownus fishus" in errors[0].getMessage()
        assert "at row 0" in errors[0].getMessage()
        assert run_state.non_matching_names == {"Unknownus fishus"}

    def test_service_failure_propagates(self, name_service, run_state):
        name_service.fail_with(NameMatchingUnavailable("backbone down"))
        verifier = TaxonVerifier(name_service)
        with pytest.raises(NameMatchingUnavailable):
            verifier.match("Naso lituratus", run_state)
        assert run_state.match_cache == {}
