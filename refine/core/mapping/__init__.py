"""
Declarative dataset mappings and the engine applying them.
"""

from .augmenter import RecordAugmenter, is_binomial
from .derivations import DERIVATION_REGISTRY, DerivationContext, register_derivation
from .mapping_config import (
    ColumnSpec,
    DatasetMapping,
    DerivationSpec,
    MappingConfigLoader,
    OutputOptions,
    SourceOptions,
    TaxonomySpec,
    load_mapping,
    parse_mapping,
)

__all__ = [
    "RecordAugmenter",
    "is_binomial",
    "DERIVATION_REGISTRY",
    "DerivationContext",
    "register_derivation",
    "ColumnSpec",
    "DatasetMapping",
    "DerivationSpec",
    "MappingConfigLoader",
    "OutputOptions",
    "SourceOptions",
    "TaxonomySpec",
    "load_mapping",
    "parse_mapping",
]
