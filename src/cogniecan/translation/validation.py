"""Structural checks for hypergraph patterns."""

from dataclasses import dataclass, field
from typing import List

from cogniecan.primitives import HypergraphPattern

MAX_DEPTH_DRIFT = 2


@dataclass
class ValidationResult:
    """
    Accumulated outcome of ``validate_pattern``.

    ``valid`` is False iff there is at least one error. Warnings never
    affect validity; the caller decides how much to tolerate.
    """
    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def __bool__(self):
        return self.valid


def validate_pattern(pattern: HypergraphPattern) -> ValidationResult:
    """
    Check a pattern's structure without raising.

    Errors:
    - Duplicate node ids
    - Links referencing node ids absent from the pattern
    - Truth values outside [0, 1]

    Warnings:
    - Links with no outgoing nodes
    - Element signatures that differ in modality or drift more than two
      depth levels from the first element

    Args:
        pattern: Pattern to check

    Returns:
        ValidationResult
    """
    errors = []
    warnings = []

    node_ids = set()
    for node in pattern.nodes:
        if node.id in node_ids:
            errors.append(f"Duplicate node ID: {node.id}")
        node_ids.add(node.id)

    for index, link in enumerate(pattern.links):
        if not link.outgoing:
            warnings.append(f"Link {index} ({link.id}) has no outgoing connections")
        for node_id in link.outgoing:
            if node_id not in node_ids:
                errors.append(f"Link {link.id} references non-existent node: {node_id}")

    elements = list(pattern.elements())
    if len(elements) > 1:
        first = elements[0].tensor
        inconsistent = any(
            el.tensor.modality != first.modality
            or abs(el.tensor.depth - first.depth) > MAX_DEPTH_DRIFT
            for el in elements[1:]
        )
        if inconsistent:
            warnings.append('Tensor signatures are inconsistent across pattern elements')

    for index, element in enumerate(elements):
        tv = element.truth_value
        if not tv.in_range():
            errors.append(f"Invalid truth value range for item {index} ({element.id}): "
                          f"strength={tv.strength}, confidence={tv.confidence}")

    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)
