"""Hypergraph <-> tensor translation, interning tables and pattern validation."""

from cogniecan.translation.symbols import PatternCodebook, SymbolTable
from cogniecan.translation.translator import (
    ATOM_TYPE_CODES,
    LINK_TYPE_CODES,
    MODALITY_CODES,
    HypergraphTranslator,
    PatternStructureError
)
from cogniecan.translation.validation import ValidationResult, validate_pattern

__all__ = [
    "PatternCodebook",
    "SymbolTable",
    "ATOM_TYPE_CODES",
    "LINK_TYPE_CODES",
    "MODALITY_CODES",
    "HypergraphTranslator",
    "PatternStructureError",
    "ValidationResult",
    "validate_pattern",
]
