"""Update dynamics for the attention kernel."""

from cogniecan.dynamics.spreading import (
    compute_activation_deltas,
    apply_activation_deltas,
    spread_step,
    total_activation
)

__all__ = [
    "compute_activation_deltas",
    "apply_activation_deltas",
    "spread_step",
    "total_activation"
]
