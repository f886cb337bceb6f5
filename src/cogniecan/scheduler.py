"""
ECAN scheduler: task lifecycle, fallback proposals and performance metrics.

Builds on the kernel for admission. A rejected request is a normal result:
the decision carries an estimated wait time and two reduced-requirement
alternatives. Admitted tasks hold a lease until ``complete_task`` releases
it. ``process_scheduling_cycle`` is meant to be called periodically by the
caller (e.g. once a minute); the scheduler has no timers of its own.
"""

import logging
import math
import time
from collections import deque
from dataclasses import dataclass, asdict, replace
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Mapping, Optional, Sequence

from cogniecan.config import EconomicAllocation
from cogniecan.kernel import ECANKernel, ResourceKind, ResourceLease, TaskResource
from cogniecan.memory import TensorFragmentStore, priority_multiplier
from cogniecan.primitives import AttentionValue, TensorSignature
from cogniecan.utils import compute_utilization

logger = logging.getLogger(__name__)

COMPLETED_TASK_MAX_AGE = 300.0  # seconds
HISTORY_LIMIT = 100

TASK_DEFAULTS = {
    'required_sti': 50.0,
    'required_lti': 25.0,
    'priority': 0.5,
    'dependencies': (),
    'estimated_duration': 1000.0,
    'resource_type': ResourceKind.COGNITIVE,
}


class TaskPriority(str, Enum):
    CRITICAL = 'critical'  # 0.9-1.0
    HIGH = 'high'          # 0.7-0.9
    MEDIUM = 'medium'      # 0.4-0.7
    LOW = 'low'            # 0.0-0.4


PRIORITY_VALUES = {
    TaskPriority.CRITICAL: 0.95,
    TaskPriority.HIGH: 0.8,
    TaskPriority.MEDIUM: 0.55,
    TaskPriority.LOW: 0.25,
}


@dataclass
class AllocationDecision:
    """
    Outcome of a scheduling request.

    Attributes:
        task_id: Requested task
        allocated: Whether the task was admitted
        reason: Human-readable explanation
        estimated_wait_time: Milliseconds until resources may free up
            (rejections only)
        alternatives: Reduced-requirement variants (rejections only)
        lease: Resource lease (admissions only)
    """
    task_id: str
    allocated: bool
    reason: str
    estimated_wait_time: Optional[float] = None
    alternatives: Optional[List[TaskResource]] = None
    lease: Optional[ResourceLease] = None


@dataclass
class SchedulerMetrics:
    total_tasks_scheduled: int = 0
    average_wait_time: float = 0.0
    resource_utilization: float = 0.0
    attention_efficiency: float = 0.0
    activation_spread_cycles: int = 0


class ECANScheduler:
    """
    Economic resource scheduler over an ECAN kernel.

    Attributes:
        kernel: Attention kernel doing admission
        store: Fragment store mirroring tasks submitted with a signature
        scheduled_tasks: Running tasks admitted through this scheduler
        completed_tasks: Released tasks, pruned after five minutes
        task_fragments: task id -> fragment id of its mirror
        metrics: Latest performance metrics
    """

    def __init__(self, kernel: Optional[ECANKernel] = None,
                 store: Optional[TensorFragmentStore] = None,
                 params: Optional[EconomicAllocation] = None,
                 clock: Callable[[], float] = time.time):
        """
        Initialize scheduler.

        Args:
            kernel: Kernel to schedule on (created from ``params`` if None)
            store: Fragment store (created on the kernel if None)
            params: Economic parameters for a new kernel
            clock: Time source in seconds (injectable for tests)
        """
        self.kernel = kernel or ECANKernel(params)
        self.store = store or TensorFragmentStore(self.kernel, clock=clock)
        self.clock = clock

        self.scheduled_tasks: Dict[str, TaskResource] = {}
        self.completed_tasks: Dict[str, TaskResource] = {}
        self.completion_times: Dict[str, float] = {}
        self.task_fragments: Dict[str, str] = {}
        self.metrics = SchedulerMetrics()
        self.last_scheduling_cycle: Optional[float] = None

        self._leases: Dict[str, ResourceLease] = {}
        self._queued_at: Dict[str, float] = {}
        self._total_wait_time = 0.0
        self.scheduling_history: Deque[Dict] = deque(maxlen=HISTORY_LIMIT)

    # =========================================================================
    # Task lifecycle
    # =========================================================================

    def schedule_task(self, task_id: str,
                      requested: Optional[Mapping[str, Any]] = None,
                      signature: Optional[TensorSignature] = None) -> AllocationDecision:
        """
        Schedule a task with economic resource allocation.

        Missing request fields take defaults (STI 50, LTI 25, priority 0.5,
        duration 1000 ms, cognitive). With a signature, the task is also
        mirrored as a 4-value fragment and an activation node weighted
        ``priority * 100``.

        Args:
            task_id: Task identifier
            requested: Partial TaskResource fields
            signature: Optional signature for the fragment mirror

        Returns:
            AllocationDecision
        """
        task = self.build_task(task_id, requested)
        now = self.clock()

        if signature is not None:
            fragment = self.store.create_fragment(
                signature,
                [task.required_sti / 100, task.required_lti / 100,
                 task.priority, task.estimated_duration / 10000],
                [4],
                f"ecan_task_{task_id}"
            )
            self.task_fragments[task_id] = fragment.id
            self.kernel.add_activation_node(task_id, task.priority * 100)

        if task_id in self.kernel.running_tasks:
            return AllocationDecision(task_id, False, 'Task already running')

        lease = self.kernel.schedule_task(task)
        if lease is not None:
            self._queued_at.pop(task_id, None)
            self._record_admission(lease, now)
            return AllocationDecision(
                task_id, True, 'Resources available, scheduled immediately', lease=lease)

        self._queued_at.setdefault(task_id, now)
        logger.warning("task %s rejected, queued for later allocation", task_id)
        return AllocationDecision(
            task_id,
            False,
            'Insufficient resources, queued for later allocation',
            estimated_wait_time=self.estimate_wait_time(task),
            alternatives=self.find_alternative_resources(task)
        )

    def complete_task(self, task_id: str) -> bool:
        """
        Finish a running task and release its resources.

        A task whose lease was already released outside the scheduler is
        dropped from ``scheduled_tasks`` but not recorded as completed.

        Returns:
            bool: False if the task is not running under this scheduler
        """
        lease = self._leases.pop(task_id, None)
        if lease is None:
            return False
        if not self.kernel.release(lease):
            self.scheduled_tasks.pop(task_id, None)
            logger.warning("lease for task %s was released elsewhere, not recorded as completed",
                           task_id)
            return False
        self.completed_tasks[task_id] = self.scheduled_tasks.pop(task_id)
        self.completion_times[task_id] = self.clock()
        return True

    def process_scheduling_cycle(self) -> List[str]:
        """
        Run one scheduling cycle.

        Spreads activation once, promotes queued tasks that now fit,
        refreshes metrics and prunes completed-task bookkeeping older than
        five minutes (no budget is credited by pruning).

        Returns:
            Ids of tasks promoted from the queue
        """
        self.last_scheduling_cycle = self.clock()

        self.kernel.spread_activation()
        self.metrics.activation_spread_cycles += 1

        promoted = self._process_queued_tasks()
        self._update_metrics()
        self._cleanup_completed_tasks()
        return promoted

    # =========================================================================
    # Attention
    # =========================================================================

    def allocate_attention_to_fragments(self, fragment_ids: Sequence[str]) -> Dict[str, AttentionValue]:
        """
        Split a slice of the budget across fragments.

        Per cycle 10% of STI, 5% of LTI and 1% of VLTI are distributed,
        each share weighted by ``salience * priority_multiplier / count``
        (VLTI by priority only). The budget is not debited.

        Args:
            fragment_ids: Fragments to allocate to; unknown ids are skipped

        Returns:
            dict: fragment id -> AttentionValue
        """
        allocations = {}
        if not fragment_ids:
            return allocations

        budget = self.kernel.get_attention_budget()
        available_sti = budget.sti * 0.1
        available_lti = budget.lti * 0.05
        available_vlti = budget.vlti * 0.01
        count = len(fragment_ids)

        for fragment_id in fragment_ids:
            fragment = self.store.get_fragment(fragment_id)
            if fragment is None:
                continue
            salience = fragment.signature.salience
            priority = priority_multiplier(fragment.signature)
            allocations[fragment_id] = AttentionValue(
                sti=math.floor(available_sti * salience * priority / count),
                lti=math.floor(available_lti * salience * priority / count),
                vlti=math.floor(available_vlti * priority / count)
            )
        return allocations

    def connect_task_nodes(self, source_task_id: str, target_task_id: str, weight: float) -> bool:
        return self.kernel.connect_activation_nodes(source_task_id, target_task_id, weight)

    # =========================================================================
    # Estimates
    # =========================================================================

    @staticmethod
    def build_task(task_id: str, requested: Optional[Mapping[str, Any]] = None) -> TaskResource:
        """
        Fill defaults onto a partial request.

        Raises:
            ValueError: On a field TaskResource does not have
        """
        requested = dict(requested or {})
        unknown = set(requested) - set(TASK_DEFAULTS)
        if unknown:
            raise ValueError(f"Unknown task fields: {sorted(unknown)}")
        values = {**TASK_DEFAULTS, **{k: v for k, v in requested.items() if v is not None}}
        return TaskResource(task_id=task_id, **values)

    def calculate_current_utilization(self) -> float:
        """Committed fraction of the kernel's total budget, in [0, 1]."""
        return compute_utilization(self.kernel.budget.available(),
                                   self.kernel.params.total_budget)

    def estimate_wait_time(self, task: TaskResource) -> float:
        """
        Estimated wait in milliseconds.

        wait = max(1000, (sti + lti) / 200 * utilization * 5000)
        """
        complexity = (task.required_sti + task.required_lti) / 200
        return max(1000.0, complexity * self.calculate_current_utilization() * 5000)

    @staticmethod
    def find_alternative_resources(task: TaskResource) -> List[TaskResource]:
        """Two reduced variants: 70% ask at 0.8x priority, 50% ask at 0.6x priority and 1.5x duration."""
        return [
            replace(task,
                    task_id=f"{task.task_id}_alternative_1",
                    required_sti=task.required_sti * 0.7,
                    required_lti=task.required_lti * 0.7,
                    priority=task.priority * 0.8),
            replace(task,
                    task_id=f"{task.task_id}_alternative_2",
                    required_sti=task.required_sti * 0.5,
                    required_lti=task.required_lti * 0.5,
                    priority=task.priority * 0.6,
                    estimated_duration=task.estimated_duration * 1.5),
        ]

    @staticmethod
    def get_task_priority_class(priority: float) -> TaskPriority:
        if priority >= 0.9:
            return TaskPriority.CRITICAL
        if priority >= 0.7:
            return TaskPriority.HIGH
        if priority >= 0.4:
            return TaskPriority.MEDIUM
        return TaskPriority.LOW

    # =========================================================================
    # Status
    # =========================================================================

    def get_metrics(self) -> SchedulerMetrics:
        return replace(self.metrics)

    def get_scheduling_status(self) -> Dict:
        return {
            'active_tasks': len(self.scheduled_tasks),
            'queued_tasks': len(self.kernel.queued_tasks),
            'completed_tasks': len(self.completed_tasks),
            'attention_budget': self.kernel.get_attention_budget(),
            'network_stats': self.kernel.get_network_stats(),
            'metrics': asdict(self.metrics)
        }

    # =========================================================================
    # Internals
    # =========================================================================

    def _record_admission(self, lease: ResourceLease, now: float) -> None:
        task = self.kernel.running_tasks[lease.task_id]
        self.scheduled_tasks[lease.task_id] = replace(task, start_time=now)
        self._leases[lease.task_id] = lease
        self.metrics.total_tasks_scheduled += 1

    def _process_queued_tasks(self) -> List[str]:
        now = self.clock()
        promoted = []
        for lease in self.kernel.promote_queued():
            self._record_admission(lease, now)
            queued_at = self._queued_at.pop(lease.task_id, now)
            self._total_wait_time += (now - queued_at) * 1000
            promoted.append(lease.task_id)
            logger.info("promoted queued task %s", lease.task_id)

        self.scheduling_history.append({
            'timestamp': now,
            'tasks_scheduled': len(self.scheduled_tasks),
            'resources_used': self.calculate_current_utilization()
        })
        return promoted

    def _update_metrics(self) -> None:
        self.metrics.resource_utilization = self.calculate_current_utilization()
        if self.metrics.total_tasks_scheduled > 0:
            self.metrics.average_wait_time = self._total_wait_time / self.metrics.total_tasks_scheduled
        self.metrics.attention_efficiency = self.kernel.get_network_stats()['average_activation'] / 100

    def _cleanup_completed_tasks(self) -> None:
        now = self.clock()
        expired = [tid for tid, done in self.completion_times.items()
                   if now - done > COMPLETED_TASK_MAX_AGE]
        for task_id in expired:
            del self.completed_tasks[task_id]
            del self.completion_times[task_id]

    def __repr__(self):
        return (f"ECANScheduler(active={len(self.scheduled_tasks)}, "
                f"queued={len(self.kernel.queued_tasks)}, "
                f"completed={len(self.completed_tasks)})")


class SchedulingFactory:
    """Partial requests for common task kinds."""

    @staticmethod
    def priority_to_number(priority: TaskPriority) -> float:
        return PRIORITY_VALUES.get(TaskPriority(priority), 0.5)

    @staticmethod
    def create_cognitive_task(complexity: float = 0.5,
                              priority: TaskPriority = TaskPriority.MEDIUM) -> Dict[str, Any]:
        return {
            'required_sti': float(math.floor(complexity * 100)),
            'required_lti': float(math.floor(complexity * 50)),
            'priority': SchedulingFactory.priority_to_number(priority),
            'estimated_duration': complexity * 5000,
            'resource_type': ResourceKind.COGNITIVE
        }

    @staticmethod
    def create_executive_task(urgency: float = 0.8, resources: float = 0.7) -> Dict[str, Any]:
        return {
            'required_sti': float(math.floor(urgency * 150)),
            'required_lti': float(math.floor(resources * 100)),
            'priority': max(0.7, urgency),
            'estimated_duration': (1 - urgency) * 10000,
            'resource_type': ResourceKind.EXECUTIVE
        }
