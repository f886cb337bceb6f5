"""
Activation spreading dynamics for the attention kernel.

One diffusion step over a weighted directed graph:

spread_e = a_src(e) · w_e · c_e · ρ         (per edge e)
Δa_i = Σ_{e: dst=i} spread_e − Σ_{e: src=i} spread_e − δ a_i
a_i ← max(0, a_i + Δa_i)

with global spreading rate ρ and decay rate δ. Every delta is computed from
the pre-step snapshot and applied only after all edges have been visited, so
the result does not depend on traversal order.

A node never gives away more than it holds: when its outflow plus decay
exceeds its activation, the whole outflow is scaled down proportionally.
This keeps the total activation from growing.
"""

import numpy as np
from typing import Tuple


def compute_activation_deltas(activations: np.ndarray,
                              sources: np.ndarray, targets: np.ndarray,
                              weights: np.ndarray, coefficients: np.ndarray,
                              spreading_rate: float, decay_rate: float) -> np.ndarray:
    """
    Compute per-node activation deltas for one spreading step.

    Args:
        activations: Shape (N,) - snapshot of node activations
        sources: Shape (E,) - source slot of each edge
        targets: Shape (E,) - target slot of each edge
        weights: Shape (E,) - edge weights in [0, 1]
        coefficients: Shape (E,) - per-edge spreading coefficients in [0, 1]
        spreading_rate: Global spreading rate ρ
        decay_rate: Per-cycle decay δ

    Returns:
        np.ndarray: Shape (N,) - deltas to add to the snapshot
    """
    n = len(activations)
    spread = activations[sources] * weights * coefficients * spreading_rate
    decay = activations * decay_rate

    outflow = np.zeros(n)
    np.add.at(outflow, sources, spread)

    # Cap each node's total loss at its current activation
    demand = outflow + decay
    scale = np.ones(n)
    over = demand > activations
    scale[over] = np.divide(activations[over], demand[over],
                            out=np.zeros(int(over.sum())), where=demand[over] > 0)
    spread = spread * scale[sources]

    deltas = np.zeros(n)
    np.add.at(deltas, targets, spread)
    np.add.at(deltas, sources, -spread)
    deltas -= decay * scale
    return deltas


def apply_activation_deltas(activations: np.ndarray, deltas: np.ndarray) -> np.ndarray:
    """
    Apply deltas and floor activations at zero.

    Returns:
        np.ndarray: New activations (inputs untouched)
    """
    return np.maximum(0.0, activations + deltas)


def spread_step(activations: np.ndarray, sources: np.ndarray, targets: np.ndarray,
                weights: np.ndarray, coefficients: np.ndarray,
                spreading_rate: float, decay_rate: float) -> Tuple[np.ndarray, np.ndarray]:
    """
    Perform one compute-then-apply spreading step.

    Returns:
        Tuple of (new_activations, deltas)
    """
    snapshot = np.array(activations, dtype=np.float64)
    deltas = compute_activation_deltas(snapshot, sources, targets, weights,
                                       coefficients, spreading_rate, decay_rate)
    return apply_activation_deltas(snapshot, deltas), deltas


def total_activation(activations: np.ndarray) -> float:
    """Sum of activation over all nodes."""
    return float(np.sum(activations))
