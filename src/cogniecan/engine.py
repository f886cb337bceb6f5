"""
Cognitive Economy: main orchestrator for the attention economy.

Wires one kernel, one fragment store attached to it, a scheduler and a
translator, and drives scheduling cycles over them.
"""

import logging
import time
from dataclasses import asdict
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from cogniecan.config import EconomicAllocation
from cogniecan.kernel import ECANKernel
from cogniecan.memory import TensorFragment, TensorFragmentStore
from cogniecan.primitives import HypergraphPattern, TensorSignature
from cogniecan.scheduler import AllocationDecision, ECANScheduler
from cogniecan.translation import HypergraphTranslator, ValidationResult

logger = logging.getLogger(__name__)


class CognitiveEconomy:
    """
    Facade over the attention kernel and its collaborators.

    Each call to ``step`` is one cycle: activation spreads once, queued
    tasks are promoted where they fit and metrics are refreshed.

    Attributes:
        config: Economic allocation parameters
        kernel: Attention-budget kernel
        store: Fragment store (kernel attached)
        scheduler: Task scheduler on the kernel
        translator: Pattern translator writing into the store
        metrics_history: Scheduler metrics after each cycle
    """

    def __init__(self, config: Optional[EconomicAllocation] = None,
                 clock: Callable[[], float] = time.time):
        """
        Initialize the economy.

        Args:
            config: Economic parameters (defaults if None)
            clock: Time source in seconds shared by every component
        """
        self.config = config or EconomicAllocation()
        self.kernel = ECANKernel(self.config)
        self.store = TensorFragmentStore(self.kernel, clock=clock)
        self.scheduler = ECANScheduler(self.kernel, self.store, clock=clock)
        self.translator = HypergraphTranslator(self.store, clock=clock)

        self.metrics_history: List[Dict] = []
        self.time_step = 0

    def submit_task(self, task_id: str, requested: Optional[Mapping] = None,
                    signature: Optional[TensorSignature] = None) -> AllocationDecision:
        """Schedule a task; see ``ECANScheduler.schedule_task``."""
        return self.scheduler.schedule_task(task_id, requested, signature)

    def complete_task(self, task_id: str) -> bool:
        return self.scheduler.complete_task(task_id)

    def submit_pattern(self, pattern: HypergraphPattern
                       ) -> Tuple[Optional[TensorFragment], ValidationResult]:
        """
        Validate a pattern, encode it and allocate attention to the fragment.

        Invalid patterns are not encoded.

        Args:
            pattern: Pattern to store

        Returns:
            (fragment or None, validation result)
        """
        result = self.translator.validate_pattern(pattern)
        if not result.valid:
            logger.warning("rejected pattern with %d errors: %s", len(result.errors), result.errors[0])
            return None, result
        for warning in result.warnings:
            logger.info("pattern warning: %s", warning)

        fragment = self.translator.create_tensor_fragment_from_pattern(pattern, self.store)
        self.store.allocate_ecan_attention([fragment.id])
        return fragment, result

    def step(self, evict_ttl: Optional[int] = None) -> Dict:
        """
        Perform one scheduling cycle.

        Args:
            evict_ttl: If set, evict activation nodes untouched for this
                many cycles after spreading

        Returns:
            dict: cycle, promoted task ids, evicted node ids, metrics
        """
        promoted = self.scheduler.process_scheduling_cycle()
        evicted = self.kernel.evict_stale_nodes(evict_ttl) if evict_ttl is not None else []

        metrics = asdict(self.scheduler.get_metrics())
        self.metrics_history.append(metrics)
        self.time_step += 1

        return {
            'step': self.time_step,
            'cycle': self.kernel.cycle_count,
            'promoted': promoted,
            'evicted': evicted,
            'metrics': metrics
        }

    def run_cycles(self, num_cycles: int, verbose: bool = True,
                   log_interval: int = 10, evict_ttl: Optional[int] = None) -> List[Dict]:
        """
        Run several scheduling cycles.

        Args:
            num_cycles: Number of cycles to run
            verbose: Whether to print progress
            log_interval: Print progress every N cycles
            evict_ttl: Passed to ``step``

        Returns:
            List of cycle results
        """
        results = []

        for cycle in range(num_cycles):
            result = self.step(evict_ttl)
            results.append(result)

            if verbose and (cycle + 1) % log_interval == 0:
                metrics = result['metrics']
                budget = self.kernel.get_attention_budget()
                print(f"Cycle {cycle + 1}/{num_cycles}: "
                      f"sti={budget.sti:.1f}, "
                      f"lti={budget.lti:.1f}, "
                      f"utilization={metrics['resource_utilization']:.3f}, "
                      f"efficiency={metrics['attention_efficiency']:.3f}")

        return results

    def get_state(self) -> Dict:
        """
        Get current state of the economy.

        Returns:
            dict: budget, scheduling status, network stats, fragment count
        """
        return {
            'time_step': self.time_step,
            'budget': asdict(self.kernel.get_attention_budget()),
            'scheduling': self.scheduler.get_scheduling_status(),
            'network': self.kernel.get_network_stats(),
            'fragments': len(self.store)
        }

    def __repr__(self):
        budget = self.kernel.get_attention_budget()
        return (f"CognitiveEconomy(step={self.time_step}, sti={budget.sti:.1f}, "
                f"lti={budget.lti:.1f}, fragments={len(self.store)})")
