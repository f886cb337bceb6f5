"""
ECAN kernel: economic attention allocation and activation spreading.

The kernel owns the global budget ledger (STI, LTI and VLTI pools), the
admission policy for tasks, the priority-ordered queue of rejected tasks and
the activation network. It has no timers and no locking: callers serialize
calls on one instance and drive ``spread_activation`` themselves.
"""

import logging
import math
from dataclasses import replace
from typing import Dict, List, Optional

from cogniecan.config import EconomicAllocation
from cogniecan.kernel.activation import ActivationNetwork
from cogniecan.kernel.budget import AttentionBudget, ResourceLease, TaskResource
from cogniecan.primitives import (
    AttentionValue,
    ContextType,
    ECANTensorSignature,
    HypergraphPattern,
    ModalityType
)
from cogniecan.utils import clamp

logger = logging.getLogger(__name__)


class ECANKernel:
    """
    Attention-budget kernel.

    Admission rule: a task is accepted iff the STI and LTI pools both cover
    its requirements and fewer than ``max_concurrent_tasks`` tasks are
    running. Accepted tasks get a ``ResourceLease``; rejected tasks join
    the queue, highest priority first.

    Attributes:
        params: Economic allocation parameters
        budget: Currency ledger
        network: Activation network
    """

    def __init__(self, params: Optional[EconomicAllocation] = None, **overrides):
        """
        Initialize kernel with a full budget.

        Args:
            params: Economic parameters (defaults if None)
            **overrides: Individual EconomicAllocation fields to replace
        """
        params = params or EconomicAllocation()
        if overrides:
            params = params.with_overrides(**overrides)
        self.params = params

        self.budget = AttentionBudget(params.total_sti, params.total_lti, params.total_vlti)
        self.network = ActivationNetwork()
        self._queue: List[TaskResource] = []
        self._running: Dict[str, TaskResource] = {}
        self._leases: Dict[str, ResourceLease] = {}

    # =========================================================================
    # Admission
    # =========================================================================

    def schedule_task(self, task: TaskResource) -> Optional[ResourceLease]:
        """
        Try to admit a task.

        On acceptance both pools are debited and the task starts running.
        On rejection the task is queued (stable sort, priority descending),
        replacing any earlier queued request with the same id. Admission
        drops a queued request with the same id. A task id that is already
        running is refused without queuing.

        Args:
            task: Resource request

        Returns:
            ResourceLease if admitted, otherwise None
        """
        if task.task_id in self._running:
            logger.warning("task %s is already running", task.task_id)
            return None

        self._dequeue(task.task_id)

        if not self._can_allocate(task):
            self._queue.append(task)
            self._queue.sort(key=lambda t: t.priority, reverse=True)
            logger.debug("task %s queued (sti=%.1f lti=%.1f running=%d)",
                         task.task_id, self.budget.sti, self.budget.lti, len(self._running))
            return None

        return self._admit(task)

    def _dequeue(self, task_id: str) -> None:
        self._queue = [queued for queued in self._queue if queued.task_id != task_id]

    def release(self, lease: ResourceLease) -> bool:
        """
        Return a lease's resources to the budget.

        Returns:
            bool: False if the lease is not live on this kernel
        """
        if lease.released or self._leases.get(lease.task_id) is not lease:
            return False

        self.budget.credit(lease.sti, lease.lti)
        del self._leases[lease.task_id]
        del self._running[lease.task_id]
        lease.released = True
        logger.info("released task %s (sti=%.1f lti=%.1f)", lease.task_id, lease.sti, lease.lti)
        return True

    def promote_queued(self) -> List[ResourceLease]:
        """
        Admit queued tasks that now fit, in priority order.

        Returns:
            Leases for every promoted task
        """
        promoted = []
        remaining = []
        for task in self._queue:
            if task.task_id not in self._running and self._can_allocate(task):
                promoted.append(self._admit(task))
            else:
                remaining.append(task)
        self._queue = remaining
        return promoted

    def get_lease(self, task_id: str) -> Optional[ResourceLease]:
        return self._leases.get(task_id)

    @property
    def queued_tasks(self) -> List[TaskResource]:
        return list(self._queue)

    @property
    def running_tasks(self) -> Dict[str, TaskResource]:
        return dict(self._running)

    def reserved_sti(self) -> float:
        return sum(task.required_sti for task in self._running.values())

    def reserved_lti(self) -> float:
        return sum(task.required_lti for task in self._running.values())

    # =========================================================================
    # Attention allocation
    # =========================================================================

    def allocate_attention(self, pattern: HypergraphPattern,
                           requested_resources: float = 0.0) -> HypergraphPattern:
        """
        Distribute available attention across a pattern's elements.

        Available STI is ``max(0, budget.sti - reserved STI)`` (LTI alike),
        split evenly across nodes and links and weighted by each element's
        salience (at least 0.1). STI is floored at ``min_threshold``, LTI at
        half of it, and VLTI decays by ``decay_rate``. The budget itself is
        not debited.

        Args:
            pattern: Pattern to update (not mutated)
            requested_resources: Amount the caller asked for; logged only

        Returns:
            HypergraphPattern: New pattern with updated attention values
        """
        total_elements = len(pattern.nodes) + len(pattern.links)
        if total_elements == 0:
            return HypergraphPattern(variables=list(pattern.variables))

        available_sti = max(0.0, self.budget.sti - self.reserved_sti())
        available_lti = max(0.0, self.budget.lti - self.reserved_lti())
        per_sti = available_sti / total_elements
        per_lti = available_lti / total_elements
        logger.debug("allocating %.1f sti / %.1f lti over %d elements (requested %.1f)",
                     available_sti, available_lti, total_elements, requested_resources)

        def updated(atom):
            return replace(atom, attention_value=self._new_attention_value(
                atom.attention_value, atom.tensor.salience, per_sti, per_lti))

        return HypergraphPattern(
            nodes=[updated(node) for node in pattern.nodes],
            links=[updated(link) for link in pattern.links],
            variables=list(pattern.variables)
        )

    def _new_attention_value(self, current: AttentionValue, salience: float,
                             allocated_sti: float, allocated_lti: float) -> AttentionValue:
        multiplier = max(0.1, salience)
        return AttentionValue(
            sti=max(self.params.min_threshold, current.sti + allocated_sti * multiplier),
            lti=max(self.params.min_threshold / 2, current.lti + allocated_lti * multiplier),
            vlti=max(0.0, current.vlti * (1 - self.params.decay_rate))
        )

    # =========================================================================
    # Activation network
    # =========================================================================

    def spread_activation(self) -> None:
        """One discrete diffusion step; increments the cycle counter."""
        self.network.spread(self.params.spreading_rate, self.params.decay_rate)

    def add_activation_node(self, node_id: str, base_activation: float = 50.0) -> int:
        return self.network.add_node(node_id, base_activation)

    def connect_activation_nodes(self, source_id: str, target_id: str, weight: float,
                                 spreading_coefficient: float = 1.0) -> bool:
        return self.network.connect(source_id, target_id, weight, spreading_coefficient)

    def remove_activation_node(self, node_id: str) -> bool:
        return self.network.remove_node(node_id)

    def evict_stale_nodes(self, ttl_cycles: int) -> List[str]:
        return self.network.evict_stale(ttl_cycles)

    def stimulate(self, node_id: str, amount: float) -> bool:
        return self.network.stimulate(node_id, amount)

    def get_activation(self, node_id: str) -> Optional[float]:
        return self.network.get_activation(node_id)

    @property
    def cycle_count(self) -> int:
        return self.network.cycle_count

    def get_network_stats(self) -> Dict:
        return self.network.get_stats()

    def to_networkx(self):
        return self.network.to_networkx()

    # =========================================================================
    # Status
    # =========================================================================

    def get_attention_budget(self) -> AttentionValue:
        """Snapshot of the currently available pools."""
        return self.budget.snapshot()

    def create_ecan_tensor_signature(self, tasks: float, attention: float,
                                     priority: float, resources: float,
                                     modality: ModalityType = ModalityType.ATTENTION,
                                     context: ContextType = ContextType.WORKING
                                     ) -> ECANTensorSignature:
        """
        Build a resource-allocation signature with every field clamped.

        Depth follows the task count (0-9), salience the attention weight
        and autonomy the available resources.
        """
        attention = clamp(attention)
        resources = clamp(resources)
        return ECANTensorSignature(
            modality=modality,
            depth=int(clamp(int(tasks), 0, 9)),
            context=context,
            salience=attention,
            autonomy_index=resources,
            tasks=clamp(tasks, 0, 10),
            attention=attention,
            priority=clamp(priority),
            resources=resources
        )

    # =========================================================================
    # Internals
    # =========================================================================

    def _can_allocate(self, task: TaskResource) -> bool:
        return (self.budget.can_cover(task.required_sti, task.required_lti)
                and len(self._running) < self.params.max_concurrent_tasks)

    def _admit(self, task: TaskResource) -> ResourceLease:
        self.budget.debit(task.required_sti, task.required_lti)
        self._running[task.task_id] = task
        lease = ResourceLease(
            task_id=task.task_id,
            sti=task.required_sti,
            lti=task.required_lti,
            granted_at_cycle=self.cycle_count,
            kernel=self
        )
        self._leases[task.task_id] = lease
        logger.info("admitted task %s (sti=%.1f lti=%.1f priority=%.2f)",
                    task.task_id, task.required_sti, task.required_lti, task.priority)
        return lease

    def __repr__(self):
        return (f"ECANKernel(sti={self.budget.sti:.1f}, lti={self.budget.lti:.1f}, "
                f"running={len(self._running)}, queued={len(self._queue)}, "
                f"cycle={self.cycle_count})")


class ECANTensorFactory:
    """Presets for resource-allocation signatures."""

    @staticmethod
    def create_low_priority_signature(tasks: float = 1, resources: float = 0.3) -> ECANTensorSignature:
        return ECANTensorSignature(
            modality=ModalityType.COGNITIVE, depth=2, context=ContextType.WORKING,
            salience=0.3, autonomy_index=resources,
            tasks=tasks, attention=0.3, priority=0.2, resources=resources
        )

    @staticmethod
    def create_high_priority_signature(tasks: float = 3, resources: float = 0.8) -> ECANTensorSignature:
        return ECANTensorSignature(
            modality=ModalityType.EXECUTIVE, depth=7, context=ContextType.IMMEDIATE,
            salience=0.9, autonomy_index=resources,
            tasks=tasks, attention=0.9, priority=0.9, resources=resources
        )

    @staticmethod
    def create_attention_signature(attention: float, priority: float = 0.5) -> ECANTensorSignature:
        return ECANTensorSignature(
            modality=ModalityType.ATTENTION, depth=int(attention * 9),
            context=ContextType.IMMEDIATE, salience=attention, autonomy_index=priority,
            tasks=math.ceil(attention * 5), attention=attention, priority=priority,
            resources=min(1.0, attention + 0.2)
        )
