"""
Cognitive Economy: Economic Attention Allocation for Cognitive Workloads

This package implements a budget-constrained attention economy (ECAN) in
which scarce importance currency is distributed across competing tasks and
graph elements:
- Kernel: STI/LTI/VLTI budget ledger, task admission with resource leases,
  and an activation network with discrete spreading and decay
- Scheduler: task lifecycle, wait estimates, fallback proposals and metrics
- Fragment store: versioned numeric buffers keyed by tensor signature
- Translator: lossless hypergraph <-> tensor encoding via interned symbols

A cycle is the unit of decay and spreading; callers drive cycles explicitly.
"""

__version__ = "0.1.0"

from cogniecan.config import EconomicAllocation
from cogniecan.engine import CognitiveEconomy
from cogniecan.kernel import ECANKernel, ResourceLease, TaskResource
from cogniecan.memory import TensorFragment, TensorFragmentStore
from cogniecan.scheduler import AllocationDecision, ECANScheduler, SchedulerMetrics
from cogniecan.translation import HypergraphTranslator, PatternStructureError, validate_pattern

__all__ = [
    "EconomicAllocation",
    "CognitiveEconomy",
    "ECANKernel",
    "ResourceLease",
    "TaskResource",
    "TensorFragment",
    "TensorFragmentStore",
    "AllocationDecision",
    "ECANScheduler",
    "SchedulerMetrics",
    "HypergraphTranslator",
    "PatternStructureError",
    "validate_pattern",
]
