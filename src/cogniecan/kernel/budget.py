"""
Budget ledger, task requests and resource leases.

Admission debits the ledger and hands back a ``ResourceLease``; releasing the
lease credits the same amounts back. At every point in time

    total_sti - budget.sti == sum(lease.sti for live leases)

and likewise for LTI.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Optional

from cogniecan.primitives import AttentionValue

if TYPE_CHECKING:
    from cogniecan.kernel.ecan import ECANKernel


class ResourceKind(str, Enum):
    """Kind of resource a task consumes."""
    COGNITIVE = 'cognitive'
    MOTOR = 'motor'
    SENSORY = 'sensory'
    EXECUTIVE = 'executive'


@dataclass(frozen=True)
class TaskResource:
    """
    Resource requirements of a schedulable task.

    Attributes:
        task_id: Unique task identifier
        required_sti: STI debited on admission
        required_lti: LTI debited on admission
        priority: Queue ordering key (0-1, higher first)
        dependencies: Ids of tasks this one depends on
        estimated_duration: Expected run time in milliseconds
        resource_type: Kind of resource consumed
        start_time: Timestamp the task started running, if it has
    """
    task_id: str
    required_sti: float
    required_lti: float
    priority: float
    dependencies: tuple = ()
    estimated_duration: float = 1000.0
    resource_type: ResourceKind = ResourceKind.COGNITIVE
    start_time: Optional[float] = None

    def __post_init__(self):
        object.__setattr__(self, 'dependencies', tuple(self.dependencies))
        object.__setattr__(self, 'resource_type', ResourceKind(self.resource_type))


@dataclass(eq=False)
class ResourceLease:
    """
    Handle for resources committed to a running task.

    Releasing the lease (``kernel.release(lease)`` or leaving a ``with``
    block) credits ``sti`` and ``lti`` back to the kernel's budget.
    """
    task_id: str
    sti: float
    lti: float
    granted_at_cycle: int
    kernel: Optional['ECANKernel'] = field(default=None, repr=False)
    released: bool = False

    def release(self) -> bool:
        if self.kernel is None:
            return False
        return self.kernel.release(self)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if not self.released:
            self.release()
        return False


class AttentionBudget:
    """
    Ledger of the three currency pools.

    Attributes:
        sti, lti, vlti: Currently available amounts
    """

    def __init__(self, sti: float, lti: float, vlti: float):
        self.sti = sti
        self.lti = lti
        self.vlti = vlti

    def can_cover(self, sti: float, lti: float) -> bool:
        return self.sti >= sti and self.lti >= lti

    def debit(self, sti: float, lti: float) -> None:
        self.sti -= sti
        self.lti -= lti

    def credit(self, sti: float, lti: float) -> None:
        self.sti += sti
        self.lti += lti

    def snapshot(self) -> AttentionValue:
        return AttentionValue(self.sti, self.lti, self.vlti)

    def available(self) -> float:
        return self.sti + self.lti + self.vlti

    def __repr__(self):
        return f"AttentionBudget(sti={self.sti}, lti={self.lti}, vlti={self.vlti})"
