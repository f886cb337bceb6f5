"""
Utility functions for the attention economy.

Includes range clamping, id encoding helpers and metrics computation for the
activation network and the budget ledger.
"""

import numpy as np
from typing import Dict

_BASE36 = '0123456789abcdefghijklmnopqrstuvwxyz'


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    """Clamp ``value`` into ``[low, high]``."""
    return min(high, max(low, value))


def to_base36(number: int) -> str:
    """
    Encode a non-negative integer in base 36.

    Args:
        number: Value to encode

    Returns:
        str: Lowercase base-36 digits
    """
    if number < 0:
        raise ValueError(f"Expected non-negative integer, got {number}")
    if number == 0:
        return '0'
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36[rem])
    return ''.join(reversed(digits))


def compute_network_metrics(activations: np.ndarray, weights: np.ndarray) -> Dict[str, float]:
    """
    Compute activation network metrics for monitoring.

    Metrics include:
    - Total and mean activation over live nodes
    - Activation spread (standard deviation)
    - Mean edge weight

    Args:
        activations: Shape (N,) - activation of each live node
        weights: Shape (E,) - weight of each live edge

    Returns:
        dict: Computed metrics
    """
    if len(activations) == 0:
        return {
            'total_activation': 0.0,
            'mean_activation': 0.0,
            'activation_std': 0.0,
            'mean_weight': 0.0
        }

    return {
        'total_activation': float(np.sum(activations)),
        'mean_activation': float(np.mean(activations)),
        'activation_std': float(np.std(activations)),
        'mean_weight': float(np.mean(weights)) if len(weights) > 0 else 0.0
    }


def compute_utilization(available: float, total: float) -> float:
    """
    Fraction of a budget currently committed.

    utilization = 1 - available / total, clamped to [0, 1]

    Args:
        available: Budget still free
        total: Configured budget

    Returns:
        float: Utilization in [0, 1]
    """
    if total <= 0:
        return 0.0
    return clamp(1 - available / total)
