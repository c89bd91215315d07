"""
Record augmenter: the generic engine turning a raw record into a canonical one.

For one dataset mapping, a canonical record is built in fixed phases:

1. positional copy of the raw record, padded with absent values to the header length
2. 'source' columns copied from other raw positions
3. constants
4. derivations (sorted by their order, then column position)
5. required columns and event key checked, except those filled by later phases
6. taxonomic augmentation through the TaxonVerifier
7. derivations flagged after_taxonomy (identifiers embedding the usage key)
8. remaining required columns checked

Any structural problem raises RecordSkipped; the record must then reach
neither output stream.
"""

from typing import Sequence

from refine.core.errors import RecordSkipped
from refine.core.models import Classification, Rank, RunState, TaxonMatch
from refine.core.taxonomy import TaxonVerifier
from refine.core.terms import MISAPPLIED

from .derivations import DERIVATION_REGISTRY, DerivationContext
from .mapping_config import MATCH_ATTRIBUTES, ColumnSpec, DatasetMapping

NON_SPECIES_SUFFIXES = ("sp.", "spp.")


def is_binomial(name: str) -> bool:
    """Two-word name that is not a 'Genus sp.' / 'Genus spp.' placeholder."""
    parts = name.split()
    return len(parts) == 2 and parts[1] not in NON_SPECIES_SUFFIXES


class RecordAugmenter:
    """
    Applies a DatasetMapping to raw records.
    """

    def __init__(self, mapping: DatasetMapping, verifier: TaxonVerifier | None = None):
        """
        Initialize the augmenter.

        Args:
            mapping: Dataset mapping
            verifier: Taxon verifier, required when the mapping has a taxonomy block
        """
        if mapping.taxonomy is not None and verifier is None:
            raise ValueError(f"Mapping '{mapping.dataset_id}' needs a TaxonVerifier")
        self.mapping = mapping
        self.verifier = verifier
        self.header = mapping.header
        self.index = mapping.column_index

        derived = [
            (position, column)
            for position, column in enumerate(mapping.columns)
            if column.derive is not None
        ]
        derived.sort(key=lambda item: (item[1].derive.order, item[0]))
        self._pre_taxonomy = [column for _, column in derived if not column.derive.after_taxonomy]
        self._post_taxonomy = [column for _, column in derived if column.derive.after_taxonomy]

        late = {column.name for column in self._post_taxonomy}
        if mapping.taxonomy is not None:
            late.update(mapping.taxonomy.output.values())
            if mapping.taxonomy.flag_column:
                late.add(mapping.taxonomy.flag_column)
        required = list(mapping.required)
        if mapping.event_key and mapping.event_key not in required:
            required.append(mapping.event_key)
        # columns filled before taxonomy are checked before the name is verified
        self._required_early = [name for name in required if name not in late]
        self._required_late = [name for name in required if name in late]

    @property
    def event_key_index(self) -> int | None:
        if self.mapping.event_key is None:
            return None
        return self.index[self.mapping.event_key]

    def augment(self, raw: Sequence[str], state: RunState, row_number: int = 0) -> list[str | None]:
        """
        Build the canonical record for one raw record.

        Args:
            raw: Raw record as read from the source file
            state: Run state (verifier cache and diagnostics)
            row_number: 1-based source row number

        Returns:
            Canonical record with exactly len(header) fields

        Raises:
            RecordSkipped: If the record fails a structural precondition
            NameMatchingUnavailable: If the name matching service is down
        """
        width = len(self.header)
        record: list[str | None] = list(raw[:width]) + [None] * max(0, width - len(raw))

        for position, column in enumerate(self.mapping.columns):
            if column.source is not None:
                record[position] = raw[column.source] if column.source < len(raw) else None
            elif column.constant is not None:
                record[position] = column.constant

        self._apply_derivations(self._pre_taxonomy, record, row_number)
        self._check_required(record, self._required_early)

        if self.mapping.taxonomy is not None:
            self._apply_taxonomy(record, state, row_number)

        self._apply_derivations(self._post_taxonomy, record, row_number)

        self._check_required(record, self._required_late)
        return record

    def event_key(self, record: Sequence[str | None]) -> str | None:
        """Event key of a canonical record (None for occurrence-only mappings)."""
        position = self.event_key_index
        if position is None:
            return None
        value = record[position]
        return value.strip() if value else None

    def _apply_derivations(
        self,
        columns: Sequence[ColumnSpec],
        record: list[str | None],
        row_number: int,
    ) -> None:
        for column in columns:
            derivation = DERIVATION_REGISTRY[column.derive.type]
            ctx = DerivationContext(
                column=column.name,
                record=record,
                index=self.index,
                row_number=row_number,
                params=column.derive.params,
            )
            try:
                record[self.index[column.name]] = derivation.fn(ctx)
            except (ValueError, TypeError) as e:
                raise RecordSkipped(column.derive.type, column.name, str(e)) from e

    def _check_required(self, record: Sequence[str | None], required: Sequence[str]) -> None:
        for name in required:
            value = record[self.index[name]]
            if value is None or not value.strip():
                raise RecordSkipped("required", name, "required column is empty")

    def _value(self, record: Sequence[str | None], name: str | None) -> str | None:
        if name is None:
            return None
        value = record[self.index[name]]
        if value is None:
            return None
        return value.strip() or None

    def _apply_taxonomy(self, record: list[str | None], state: RunState, row_number: int) -> None:
        spec = self.mapping.taxonomy
        name = self._value(record, spec.name_column)
        if name is None:
            self._clear_taxonomy(record)
            return

        try:
            rank = Rank.parse(self._value(record, spec.rank_column)) or spec.default_rank
        except ValueError as e:
            raise RecordSkipped("taxon_rank", spec.rank_column, str(e)) from e

        hint_values = {
            ("class_" if hint == "class" else hint): self._value(record, column)
            for hint, column in spec.hints.items()
        }
        if spec.binomial_hint and is_binomial(name):
            hint_values["species"] = name
        hints = Classification(**hint_values)

        context = f"at row {row_number}"
        if self.mapping.event_key:
            context += f" (event {self._value(record, self.mapping.event_key)})"
        match = self.verifier.match(name, state, rank=rank, hints=hints, context=context)

        self._clear_taxonomy(record)
        if match.is_exact:
            self._write_match(record, match)
        elif match.allow_listed:
            self._write_allow_listed(record, name, match.rank)
        elif spec.flag_column:
            record[self.index[spec.flag_column]] = MISAPPLIED

    def _clear_taxonomy(self, record: list[str | None]) -> None:
        for column in self.mapping.taxonomy.output.values():
            record[self.index[column]] = None

    def _write_match(self, record: list[str | None], match: TaxonMatch) -> None:
        spec = self.mapping.taxonomy
        for attribute, column in spec.output.items():
            value = getattr(match, MATCH_ATTRIBUTES[attribute])
            if value is not None and attribute in spec.lowercase:
                value = value.lower()
            record[self.index[column]] = value

    def _write_allow_listed(self, record: list[str | None], name: str, rank: str | None) -> None:
        spec = self.mapping.taxonomy
        values: dict[str, str | None] = {"scientific_name": name, "canonical_name": name}
        if rank is not None:
            values["rank"] = rank.lower() if "rank" in spec.lowercase else rank
        if is_binomial(name):
            genus, epithet = name.split()
            values["genus"] = genus
            values["specific_epithet"] = epithet
            values["species"] = name
        for attribute, column in spec.output.items():
            if attribute in values:
                record[self.index[column]] = values[attribute]
