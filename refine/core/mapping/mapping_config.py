"""
Dataset mapping configuration.

A dataset mapping declares, for one source format, the output header and how
each output column is filled. Mappings are YAML files:

```yaml
dataset_id: rls-global-reef-fish
source:
  delimiter: ","
  quote_char: '"'
  encoding: utf-8
  skip_rows: 1
output:
  core_file: events.tab
  extension_file: occurrences.tab
columns:
  - name: occurrenceID            # positional copy of raw column 0
  - name: verbatimDepth
    derive:
      type: unit_suffix
      params: {unit: m}
  - name: license
    constant: http://creativecommons.org/licenses/by/4.0/legalcode
required: [eventID, scientificName]
event_key: eventID
event_fields: [eventDate, locationID]
taxonomy:
  name_column: scientificName
  hints: {phylum: phylum, class: class, family: family}
  binomial_hint: true
  output: {kingdom: kingdom, order: order, status: taxonomicStatus}
```
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from refine.core.errors import MappingConfigError
from refine.core.models import Rank

from .derivations import DERIVATION_REGISTRY, referenced_columns

HINT_RANKS = ("kingdom", "phylum", "class", "order", "family", "genus", "species")

MATCH_ATTRIBUTES = {
    "kingdom": "kingdom",
    "phylum": "phylum",
    "class": "class_",
    "order": "order",
    "family": "family",
    "genus": "genus",
    "species": "species",
    "specific_epithet": "specific_epithet",
    "scientific_name": "scientific_name",
    "canonical_name": "canonical_name",
    "rank": "rank",
    "status": "status",
    "usage_key": "usage_key",
}


def _as_text(value: Any) -> Any:
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (int, float, bool)):
        return str(value)
    return value


class SourceOptions(BaseModel):
    """How the raw file is read."""

    delimiter: str = Field(",", min_length=1)
    quote_char: str | None = '"'
    encoding: str = "utf-8"
    skip_rows: int = Field(1, ge=0)


class OutputOptions(BaseModel):
    """Output file names; core_file null means no events file."""

    core_file: str | None = "events.tab"
    extension_file: str = Field("occurrences.tab", min_length=1)


class DerivationSpec(BaseModel):
    """
    Reference to a registered derivation.

    Derivations run in column order, sorted first by 'order'; those flagged
    after_taxonomy run once the taxonomy columns are filled.
    """

    type: str
    params: dict[str, Any] = Field(default_factory=dict)
    order: int = 0
    after_taxonomy: bool = False

    @field_validator("type")
    @classmethod
    def check_registered(cls, v):
        if v not in DERIVATION_REGISTRY:
            raise ValueError(f"Unknown derivation type: {v}")
        return v


class ColumnSpec(BaseModel):
    """
    One output column.

    With no source/constant/derive the column is a positional copy of the raw
    column at the same index.
    """

    name: str = Field(..., min_length=1)
    source: int | None = Field(None, ge=0)
    constant: str | None = None
    derive: DerivationSpec | None = None
    description: str | None = None

    @field_validator("constant", mode="before")
    @classmethod
    def constant_as_text(cls, v):
        return _as_text(v)

    @model_validator(mode="after")
    def check_single_rule(self):
        rules = [rule for rule in (self.source, self.constant, self.derive) if rule is not None]
        if len(rules) > 1:
            raise ValueError(f"Column '{self.name}' may declare only one of source, constant, derive")
        return self


class TaxonomySpec(BaseModel):
    """
    Taxonomic augmentation of a record.

    Attributes:
        name_column: Column holding the scientific name to verify
        rank_column: Column holding a verbatim rank (optional)
        default_rank: Rank used when no rank column value is present
        binomial_hint: Add the name as species hint when it is a binomial
        hints: Hint rank -> column holding that rank's name
        output: Match attribute -> column receiving it on an exact match
        status_column: Column flagged 'misapplied'; defaults to output['status']
        lowercase: Match attributes written in lower case
        allow_list: Valid names absent from the backbone
    """

    name_column: str
    rank_column: str | None = None
    default_rank: Rank | None = None
    binomial_hint: bool = False
    hints: dict[str, str] = Field(default_factory=dict)
    output: dict[str, str] = Field(default_factory=dict)
    status_column: str | None = None
    lowercase: list[str] = Field(default_factory=list)
    allow_list: list[str] = Field(default_factory=list)

    @field_validator("default_rank", mode="before")
    @classmethod
    def upper_rank(cls, v):
        return v.upper() if isinstance(v, str) else v

    @field_validator("hints")
    @classmethod
    def check_hint_ranks(cls, v):
        unknown = set(v) - set(HINT_RANKS)
        if unknown:
            raise ValueError(f"Unknown hint ranks: {sorted(unknown)}")
        return v

    @field_validator("output")
    @classmethod
    def check_output_attributes(cls, v):
        unknown = set(v) - set(MATCH_ATTRIBUTES)
        if unknown:
            raise ValueError(f"Unknown match attributes: {sorted(unknown)}")
        return v

    @property
    def flag_column(self) -> str | None:
        return self.status_column or self.output.get("status")

    def columns(self) -> list[str]:
        names = [self.name_column, *self.hints.values(), *self.output.values()]
        if self.rank_column:
            names.append(self.rank_column)
        if self.flag_column:
            names.append(self.flag_column)
        return names


class DatasetMapping(BaseModel):
    """
    Declarative mapping of one source format onto the canonical output.
    """

    dataset_id: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    source: SourceOptions = Field(default_factory=SourceOptions)
    output: OutputOptions = Field(default_factory=OutputOptions)
    columns: list[ColumnSpec] = Field(..., min_length=1)
    required: list[str] = Field(default_factory=list)
    event_key: str | None = None
    event_fields: list[str] = Field(default_factory=list)
    taxonomy: TaxonomySpec | None = None

    @model_validator(mode="after")
    def check_references(self):
        names = [column.name for column in self.columns]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate column names: {duplicates}")

        known = set(names)
        references: list[tuple[str, str]] = [("required", name) for name in self.required]
        references += [("event_fields", name) for name in self.event_fields]
        if self.event_key:
            references.append(("event_key", self.event_key))
        if self.taxonomy:
            references += [("taxonomy", name) for name in self.taxonomy.columns()]
        for column in self.columns:
            if column.derive:
                for name in referenced_columns(column.derive.type, column.derive.params):
                    references.append((f"column '{column.name}'", name))

        for where, name in references:
            if name not in known:
                raise ValueError(f"{where} references unknown column '{name}'")

        if self.event_key and not self.output.core_file:
            raise ValueError("event_key requires output.core_file")
        return self

    @property
    def header(self) -> list[str]:
        return [column.name for column in self.columns]

    @property
    def column_index(self) -> dict[str, int]:
        return {column.name: position for position, column in enumerate(self.columns)}


class MappingConfigLoader:
    """
    Loads a dataset mapping from a YAML file.
    """

    def __init__(self, config_path: str | Path):
        """
        Initialize the loader.

        Args:
            config_path: Path to the YAML mapping file

        Raises:
            FileNotFoundError: If the file does not exist
        """
        self.config_path = Path(config_path)
        if not self.config_path.exists():
            raise FileNotFoundError(f"Dataset mapping file not found: {config_path}")

    def load(self) -> DatasetMapping:
        """
        Parse and validate the mapping.

        Raises:
            MappingConfigError: If the YAML is malformed or the mapping invalid
        """
        with open(self.config_path, encoding="utf-8") as f:
            try:
                config = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise MappingConfigError(f"Invalid YAML in {self.config_path}: {e}") from e

        if not isinstance(config, dict):
            raise MappingConfigError(f"Mapping file {self.config_path} must contain a mapping")

        return parse_mapping(config, origin=str(self.config_path))


def parse_mapping(config: dict[str, Any], origin: str = "<dict>") -> DatasetMapping:
    """
    Validate a mapping given as a plain dict.

    Raises:
        MappingConfigError: If the mapping is invalid
    """
    try:
        return DatasetMapping.model_validate(config)
    except ValidationError as e:
        raise MappingConfigError(f"Invalid dataset mapping {origin}: {e}") from e


def load_mapping(config_path: str | Path) -> DatasetMapping:
    """Shortcut for MappingConfigLoader(config_path).load()."""
    return MappingConfigLoader(config_path).load()
