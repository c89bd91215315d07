"""
Taxonomic query and match models exchanged with the name matching service.
"""

from enum import Enum

from pydantic import BaseModel, Field


class Rank(str, Enum):
    """Linnean ranks understood by the backbone."""

    KINGDOM = "KINGDOM"
    PHYLUM = "PHYLUM"
    CLASS = "CLASS"
    ORDER = "ORDER"
    FAMILY = "FAMILY"
    GENUS = "GENUS"
    SPECIES = "SPECIES"
    SUBSPECIES = "SUBSPECIES"
    VARIETY = "VARIETY"
    FORM = "FORM"

    @classmethod
    def parse(cls, value: str | None) -> "Rank | None":
        """
        Interpret a verbatim rank column value.

        Empty strings and the literal "null" mean no rank.

        Raises:
            ValueError: If the value is not a known rank
        """
        if value is None:
            return None
        value = value.strip()
        if not value or value.lower() == "null":
            return None
        return cls(value.upper())


class MatchType(str, Enum):
    """
    Collapsed match confidence.

    Only EXACT is trusted to populate taxonomy fields; fuzzy, higher-rank and
    failed matches are all NOT_EXACT.
    """

    EXACT = "EXACT"
    NOT_EXACT = "NOT_EXACT"


class Classification(BaseModel):
    """Partial Linnean classification, used both as query hints and match result."""

    kingdom: str | None = None
    phylum: str | None = None
    class_: str | None = Field(None, alias="class")
    order: str | None = None
    family: str | None = None
    genus: str | None = None
    species: str | None = None

    class Config:
        frozen = True
        populate_by_name = True

    def is_empty(self) -> bool:
        return not any(self.as_params().values())

    def as_params(self) -> dict[str, str]:
        """Populated ranks keyed by their lower-case rank name."""
        values = {
            "kingdom": self.kingdom,
            "phylum": self.phylum,
            "class": self.class_,
            "order": self.order,
            "family": self.family,
            "genus": self.genus,
            "species": self.species,
        }
        return {key: value for key, value in values.items() if value}


class TaxonQuery(BaseModel):
    """
    A single name verification request (constructed per record, never retained).

    Frozen so it can key the per-run match cache.
    """

    name: str = Field(..., min_length=1)
    rank: Rank | None = None
    hints: Classification = Field(default_factory=Classification)

    class Config:
        frozen = True


class TaxonMatch(BaseModel):
    """
    Outcome of verifying one name.

    Attributes:
        match_type: EXACT or NOT_EXACT
        verbatim_match_type: Match type as reported by the service (EXACT, FUZZY, HIGHERRANK, NONE)
        kingdom..species: Backbone classification of the matched usage
        scientific_name: Matched scientific name, with authorship
        canonical_name: Matched name without authorship
        rank: Rank of the matched usage
        status: Taxonomic status (ACCEPTED, SYNONYM, DOUBTFUL...)
        usage_key: Stable backbone usage identifier
        allow_listed: Name was accepted from the allow-list without consulting the service
    """

    match_type: MatchType
    verbatim_match_type: str | None = None
    kingdom: str | None = None
    phylum: str | None = None
    class_: str | None = Field(None, alias="class")
    order: str | None = None
    family: str | None = None
    genus: str | None = None
    species: str | None = None
    scientific_name: str | None = None
    canonical_name: str | None = None
    rank: str | None = None
    status: str | None = None
    usage_key: str | None = None
    allow_listed: bool = False

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "match_type": "EXACT",
                "verbatim_match_type": "EXACT",
                "kingdom": "Animalia",
                "phylum": "Chordata",
                "class": "Actinopterygii",
                "order": "Perciformes",
                "family": "Acanthuridae",
                "genus": "Naso",
                "species": "Naso lituratus",
                "scientific_name": "Naso lituratus (Forster, 1801)",
                "canonical_name": "Naso lituratus",
                "rank": "SPECIES",
                "status": "ACCEPTED",
                "usage_key": "2394331",
            }
        }

    @property
    def is_exact(self) -> bool:
        return self.match_type == MatchType.EXACT

    @property
    def specific_epithet(self) -> str | None:
        """Second word of a binomial species name."""
        if not self.species:
            return None
        parts = self.species.split(" ")
        if len(parts) == 2:
            return parts[1]
        return None
