"""Attention-budget kernel: ledger, admission control and activation network."""

from cogniecan.kernel.activation import ActivationConnection, ActivationNetwork, ActivationNode
from cogniecan.kernel.budget import AttentionBudget, ResourceKind, ResourceLease, TaskResource
from cogniecan.kernel.ecan import ECANKernel, ECANTensorFactory

__all__ = [
    "ActivationConnection",
    "ActivationNetwork",
    "ActivationNode",
    "AttentionBudget",
    "ResourceKind",
    "ResourceLease",
    "TaskResource",
    "ECANKernel",
    "ECANTensorFactory",
]
