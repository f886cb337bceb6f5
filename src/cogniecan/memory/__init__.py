"""Tensor fragment storage for the attention economy."""

from cogniecan.memory.fragments import (
    FragmentMetadata,
    MergeStrategy,
    TensorFragment,
    TensorFragmentStore,
    priority_multiplier
)

__all__ = [
    "FragmentMetadata",
    "MergeStrategy",
    "TensorFragment",
    "TensorFragmentStore",
    "priority_multiplier",
]
