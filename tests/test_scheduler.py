"""
Unit tests for the ECAN scheduler.

Tests allocation decisions, fallback proposals, task completion, scheduling
cycles, metrics and the task factories.
"""

import numpy as np
import pytest
from cogniecan.config import EconomicAllocation
from cogniecan.kernel import ResourceKind
from cogniecan.primitives import TensorSignatureFactory
from cogniecan.scheduler import ECANScheduler, SchedulingFactory, TaskPriority


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler(clock):
    return ECANScheduler(params=EconomicAllocation(total_sti=100), clock=clock)


class TestScheduleTask:
    """Test scheduling decisions."""

    def test_defaults_admitted(self, clock):
        """Test a request with defaults is admitted immediately."""
        scheduler = ECANScheduler(clock=clock)

        decision = scheduler.schedule_task('t1')

        assert decision.allocated
        assert decision.lease is not None
        assert decision.alternatives is None
        task = scheduler.scheduled_tasks['t1']
        assert task.required_sti == 50
        assert task.required_lti == 25
        assert task.resource_type == ResourceKind.COGNITIVE
        assert task.start_time == clock.now
        assert scheduler.get_metrics().total_tasks_scheduled == 1

    def test_unknown_field(self, scheduler):
        """Test that unknown request fields are rejected."""
        with pytest.raises(ValueError):
            scheduler.schedule_task('t1', {'colour': 'red'})

    def test_rejection_proposes_alternatives(self, scheduler):
        """Test a rejected request carries a wait estimate and alternatives."""
        scheduler.schedule_task('big', {'required_sti': 80})

        decision = scheduler.schedule_task('t2', {'required_sti': 50, 'priority': 0.5})

        assert not decision.allocated
        assert decision.lease is None
        assert decision.estimated_wait_time == 1000.0
        alt1, alt2 = decision.alternatives
        assert alt1.task_id == 't2_alternative_1'
        assert alt1.required_sti == pytest.approx(35.0)
        assert alt1.priority == pytest.approx(0.4)
        assert alt2.task_id == 't2_alternative_2'
        assert alt2.required_sti == pytest.approx(25.0)
        assert alt2.priority == pytest.approx(0.3)
        assert alt2.estimated_duration == pytest.approx(1500.0)

    def test_wait_time_grows_with_utilization(self, clock):
        """Test the wait estimate for a large request on a busy kernel."""
        params = EconomicAllocation(total_sti=1000, total_lti=1000, total_vlti=0)
        scheduler = ECANScheduler(params=params, clock=clock)
        scheduler.schedule_task('busy', {'required_sti': 900, 'required_lti': 900})

        decision = scheduler.schedule_task('t2', {'required_sti': 400, 'required_lti': 400})

        # utilization 0.9, complexity 4.0
        assert decision.estimated_wait_time == pytest.approx(18000.0)

    def test_already_running(self, scheduler):
        """Test that scheduling a running task again is refused."""
        scheduler.schedule_task('t1', {'required_sti': 10})

        decision = scheduler.schedule_task('t1', {'required_sti': 10})

        assert not decision.allocated
        assert decision.reason == 'Task already running'
        assert scheduler.kernel.queued_tasks == []

    def test_signature_mirror(self, clock):
        """Test a task with a signature is mirrored as fragment and node."""
        scheduler = ECANScheduler(clock=clock)
        signature = TensorSignatureFactory.create_cognitive_signature()

        scheduler.schedule_task('t1', {'priority': 0.5, 'estimated_duration': 1000}, signature)

        fragment = scheduler.store.get_fragment(scheduler.task_fragments['t1'])
        assert np.allclose(fragment.data, [0.5, 0.25, 0.5, 0.1])
        assert fragment.shape == (4,)
        assert fragment.metadata.source_label == 'ecan_task_t1'
        assert scheduler.kernel.get_activation('t1') == pytest.approx(50.0)


class TestLifecycle:
    """Test completion, cycles and metrics."""

    def test_complete_task(self, scheduler):
        """Test completion releases resources."""
        scheduler.schedule_task('t1', {'required_sti': 80})

        assert scheduler.complete_task('t1')
        assert scheduler.kernel.budget.sti == 100
        assert 't1' in scheduler.completed_tasks
        assert 't1' not in scheduler.scheduled_tasks
        assert not scheduler.complete_task('t1')
        assert not scheduler.complete_task('unknown')

    def test_completed_retry_not_promoted(self, scheduler):
        """Test a task admitted on retry is not run again by a later cycle."""
        scheduler.schedule_task('big', {'required_sti': 80})
        assert not scheduler.schedule_task('x', {'required_sti': 50}).allocated
        scheduler.complete_task('big')

        assert scheduler.schedule_task('x', {'required_sti': 50}).allocated
        assert scheduler.complete_task('x')

        assert scheduler.process_scheduling_cycle() == []
        assert scheduler.scheduled_tasks == {}
        assert scheduler.kernel.budget.sti == 100
        assert scheduler.get_scheduling_status()['queued_tasks'] == 0

    def test_complete_after_external_release(self, scheduler):
        """Test completion fails when the lease was already released directly."""
        decision = scheduler.schedule_task('t1', {'required_sti': 80})
        decision.lease.release()

        assert not scheduler.complete_task('t1')
        assert 't1' not in scheduler.completed_tasks
        assert 't1' not in scheduler.scheduled_tasks
        assert scheduler.kernel.budget.sti == 100

    def test_cycle_promotes_queued(self, scheduler, clock):
        """Test a cycle promotes waiting tasks and records wait time."""
        scheduler.schedule_task('t1', {'required_sti': 80})
        scheduler.schedule_task('t2', {'required_sti': 50})
        scheduler.complete_task('t1')
        clock.now += 2.0

        promoted = scheduler.process_scheduling_cycle()

        assert promoted == ['t2']
        assert 't2' in scheduler.scheduled_tasks
        metrics = scheduler.get_metrics()
        assert metrics.total_tasks_scheduled == 2
        assert metrics.average_wait_time == pytest.approx(1000.0)
        assert metrics.activation_spread_cycles == 1
        assert scheduler.kernel.cycle_count == 1

    def test_completed_tasks_pruned(self, scheduler, clock):
        """Test completed bookkeeping is dropped after five minutes."""
        scheduler.schedule_task('t1', {'required_sti': 10})
        scheduler.complete_task('t1')

        clock.now += 200
        scheduler.process_scheduling_cycle()
        assert 't1' in scheduler.completed_tasks

        clock.now += 101
        scheduler.process_scheduling_cycle()
        assert 't1' not in scheduler.completed_tasks
        assert scheduler.kernel.budget.sti == 100

    def test_attention_efficiency(self, scheduler):
        """Test efficiency follows the average activation."""
        scheduler.kernel.add_activation_node('x', 80)

        scheduler.process_scheduling_cycle()

        assert scheduler.get_metrics().attention_efficiency == pytest.approx(0.76)

    def test_resource_utilization(self, scheduler):
        """Test utilization against the configured totals."""
        scheduler.schedule_task('t1', {'required_sti': 80, 'required_lti': 20})
        scheduler.process_scheduling_cycle()

        # total budget 100 + 1000 + 500
        assert scheduler.get_metrics().resource_utilization == pytest.approx(100 / 1600)

    def test_history_bounded(self, scheduler):
        """Test the scheduling history keeps the last 100 entries."""
        for _ in range(150):
            scheduler.process_scheduling_cycle()

        assert len(scheduler.scheduling_history) == 100

    def test_status(self, scheduler):
        """Test the status snapshot."""
        scheduler.schedule_task('t1', {'required_sti': 80})
        scheduler.schedule_task('t2', {'required_sti': 80})

        status = scheduler.get_scheduling_status()

        assert status['active_tasks'] == 1
        assert status['queued_tasks'] == 1
        assert status['completed_tasks'] == 0
        assert status['attention_budget'].sti == 20


class TestAttentionToFragments:
    """Test budget slices over fragments."""

    def test_allocate(self, clock):
        """Test shares weighted by salience and priority."""
        scheduler = ECANScheduler(clock=clock)
        signature = TensorSignatureFactory.create_cognitive_signature()
        fragment = scheduler.store.create_fragment(signature, [1, 2])

        allocations = scheduler.allocate_attention_to_fragments([fragment.id, 'missing'])

        av = allocations[fragment.id]
        # 10% of STI, 5% of LTI, 1% of VLTI split over two requested ids
        assert av.sti == 23
        assert av.lti == 11
        assert av.vlti == 1
        assert 'missing' not in allocations

    def test_allocate_empty(self, scheduler):
        """Test no ids yield no allocations."""
        assert scheduler.allocate_attention_to_fragments([]) == {}


class TestPriorityAndFactory:
    """Test priority classes and task presets."""

    @pytest.mark.parametrize('priority,expected', [
        (0.95, TaskPriority.CRITICAL),
        (0.9, TaskPriority.CRITICAL),
        (0.7, TaskPriority.HIGH),
        (0.4, TaskPriority.MEDIUM),
        (0.39, TaskPriority.LOW),
    ])
    def test_priority_class(self, priority, expected):
        """Test priority class boundaries."""
        assert ECANScheduler.get_task_priority_class(priority) == expected

    def test_cognitive_task(self):
        """Test the cognitive task preset."""
        request = SchedulingFactory.create_cognitive_task(0.5, TaskPriority.HIGH)

        assert request['required_sti'] == 50
        assert request['required_lti'] == 25
        assert request['priority'] == 0.8
        assert request['estimated_duration'] == 2500
        assert request['resource_type'] == ResourceKind.COGNITIVE

    def test_executive_task(self):
        """Test the executive task preset."""
        request = SchedulingFactory.create_executive_task(0.5, 0.5)

        assert request['required_sti'] == 75
        assert request['required_lti'] == 50
        assert request['priority'] == 0.7
        assert request['estimated_duration'] == 5000
        assert request['resource_type'] == ResourceKind.EXECUTIVE

    def test_factory_request_schedules(self, clock):
        """Test a preset request can be scheduled directly."""
        scheduler = ECANScheduler(clock=clock)
        decision = scheduler.schedule_task('exec', SchedulingFactory.create_executive_task())

        assert decision.allocated
        assert scheduler.scheduled_tasks['exec'].priority == 0.8


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
