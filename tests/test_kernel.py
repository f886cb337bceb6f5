"""
Unit tests for the ECAN kernel.

Tests admission control, the budget ledger, resource leases, the priority
queue and attention allocation over hypergraph patterns.
"""

import pytest
from cogniecan.config import EconomicAllocation
from cogniecan.kernel import ECANKernel, ECANTensorFactory, TaskResource
from cogniecan.primitives import (
    AtomNode,
    AtomType,
    AttentionValue,
    ContextType,
    HypergraphPattern,
    ModalityType,
    TensorSignature,
    TruthValue
)


def task(task_id, sti=10.0, lti=10.0, priority=0.5):
    return TaskResource(task_id=task_id, required_sti=sti, required_lti=lti, priority=priority)


class TestAdmission:
    """Test task admission and the budget ledger."""

    def test_admit_then_reject(self):
        """Test a large task is admitted and a following one rejected."""
        kernel = ECANKernel(EconomicAllocation(total_sti=1000, total_lti=800, total_vlti=400))

        lease = kernel.schedule_task(task('t1', 950, 750, 0.8))

        assert lease
        assert kernel.get_attention_budget() == AttentionValue(50, 50, 400)
        assert kernel.schedule_task(task('t2', 100, 100, 0.5)) is None
        assert [t.task_id for t in kernel.queued_tasks] == ['t2']

    def test_ledger_matches_running_leases(self):
        """Test that spent budget equals the sum of live leases."""
        kernel = ECANKernel()
        leases = []
        for i, (sti, lti) in enumerate([(100, 50), (300, 200), (700, 100), (50, 25)]):
            lease = kernel.schedule_task(task(f"t{i}", sti, lti))
            if lease:
                leases.append(lease)
            live = [l for l in leases if not l.released]
            assert 1000 - kernel.budget.sti == pytest.approx(sum(l.sti for l in live))
            assert 1000 - kernel.budget.lti == pytest.approx(sum(l.lti for l in live))

        leases[0].release()
        live = [l for l in leases if not l.released]
        assert 1000 - kernel.budget.sti == pytest.approx(sum(l.sti for l in live))

    def test_concurrency_limit(self):
        """Test that at most max_concurrent_tasks run at once."""
        kernel = ECANKernel(max_concurrent_tasks=2)

        assert kernel.schedule_task(task('a'))
        assert kernel.schedule_task(task('b'))
        assert kernel.schedule_task(task('c')) is None
        assert len(kernel.running_tasks) == 2

    def test_duplicate_running_refused(self):
        """Test that a running task id is refused without queuing."""
        kernel = ECANKernel()
        kernel.schedule_task(task('a'))

        assert kernel.schedule_task(task('a')) is None
        assert kernel.queued_tasks == []
        assert kernel.budget.sti == 990

    def test_queue_priority_order(self):
        """Test the queue is sorted by priority, stable for ties."""
        kernel = ECANKernel(total_sti=5)
        for task_id, priority in [('low', 0.2), ('high', 0.9), ('mid1', 0.5), ('mid2', 0.5)]:
            kernel.schedule_task(task(task_id, priority=priority))

        assert [t.task_id for t in kernel.queued_tasks] == ['high', 'mid1', 'mid2', 'low']

    def test_exhausted_budget_rejects_until_release(self):
        """Test every request is rejected once STI cannot cover any of them."""
        kernel = ECANKernel(total_sti=100)
        first = kernel.schedule_task(task('first', 80))

        for i in range(6):
            assert kernel.schedule_task(task(f"t{i}", 30)) is None
            assert kernel.get_attention_budget() == AttentionValue(20, 990, 500)
            assert len(kernel.running_tasks) == 1

        first.release()

        assert kernel.schedule_task(task('after', 30))

    def test_full_slots_reject_until_release(self):
        """Test every request is rejected while all task slots are taken."""
        kernel = ECANKernel(max_concurrent_tasks=5)
        leases = [kernel.schedule_task(task(f"run{i}")) for i in range(5)]

        for i in range(6):
            assert kernel.schedule_task(task(f"t{i}", 1, 1)) is None
            assert kernel.budget.sti == 950
            assert kernel.budget.lti == 950

        leases[0].release()

        assert kernel.schedule_task(task('after', 1, 1))

    def test_requeue_replaces_entry(self):
        """Test a rejected retry replaces the earlier queued request."""
        kernel = ECANKernel(total_sti=100)
        kernel.schedule_task(task('first', 80))
        kernel.schedule_task(task('x', 50, priority=0.2))
        kernel.schedule_task(task('x', 40, priority=0.7))

        queued = kernel.queued_tasks
        assert [t.task_id for t in queued] == ['x']
        assert queued[0].required_sti == 40

    def test_direct_admission_clears_queue_entry(self):
        """Test a queued task admitted on retry is not promoted again later."""
        kernel = ECANKernel(total_sti=100)
        first = kernel.schedule_task(task('first', 80))
        assert kernel.schedule_task(task('x', 50)) is None

        first.release()
        retry = kernel.schedule_task(task('x', 50))

        assert retry
        assert kernel.queued_tasks == []
        retry.release()
        assert kernel.promote_queued() == []
        assert kernel.budget.sti == 100


class TestLeases:
    """Test releasing resources."""

    def test_release_credits_budget(self):
        """Test that releasing a lease restores the pools."""
        kernel = ECANKernel()
        lease = kernel.schedule_task(task('a', 200, 100))

        assert kernel.release(lease)
        assert kernel.budget.sti == 1000
        assert kernel.budget.lti == 1000
        assert 'a' not in kernel.running_tasks
        assert not kernel.release(lease)

    def test_lease_context_manager(self):
        """Test that leaving a with block releases the lease."""
        kernel = ECANKernel()

        with kernel.schedule_task(task('a', 200, 100)) as lease:
            assert kernel.get_lease('a') is lease
            assert kernel.budget.sti == 800

        assert lease.released
        assert kernel.budget.sti == 1000

    def test_foreign_lease_rejected(self):
        """Test that a lease from another kernel is not honoured."""
        kernel = ECANKernel()
        other = ECANKernel()
        lease = other.schedule_task(task('a'))

        assert not kernel.release(lease)
        assert other.budget.sti == 990

    def test_promote_queued(self):
        """Test queued tasks are promoted in priority order once they fit."""
        kernel = ECANKernel(total_sti=100)
        first = kernel.schedule_task(task('first', 80))
        kernel.schedule_task(task('low', 60, priority=0.1))
        kernel.schedule_task(task('high', 60, priority=0.9))

        first.release()
        promoted = kernel.promote_queued()

        assert [l.task_id for l in promoted] == ['high']
        assert [t.task_id for t in kernel.queued_tasks] == ['low']
        assert kernel.budget.sti == 40


class TestAttentionAllocation:
    """Test attention allocation over patterns."""

    def make_pattern(self, salience=0.5):
        sig = TensorSignature(ModalityType.COGNITIVE, 3, ContextType.WORKING, salience, 0.5)
        nodes = [
            AtomNode(f"n{i}", AtomType.CONCEPT, f"c{i}", TruthValue(0.8, 0.7),
                     AttentionValue(100, 50, 10), sig)
            for i in range(2)
        ]
        return HypergraphPattern(nodes=nodes)

    def test_allocate_attention(self):
        """Test the per-element share is weighted by salience."""
        kernel = ECANKernel()
        pattern = self.make_pattern()

        updated = kernel.allocate_attention(pattern)

        av = updated.nodes[0].attention_value
        assert av.sti == pytest.approx(350.0)
        assert av.lti == pytest.approx(300.0)
        assert av.vlti == pytest.approx(9.5)
        assert pattern.nodes[0].attention_value == AttentionValue(100, 50, 10)
        assert kernel.budget.sti == 1000

    def test_allocate_respects_reserved_and_threshold(self):
        """Test nothing is shared when all STI is reserved."""
        kernel = ECANKernel(total_sti=100, total_lti=100)
        kernel.schedule_task(task('a', 50, 50))
        sig = TensorSignature(ModalityType.COGNITIVE, 3, ContextType.WORKING, 0.5, 0.5)
        pattern = HypergraphPattern(nodes=[
            AtomNode('n', AtomType.CONCEPT, 'c', TruthValue(0.8, 0.7), AttentionValue(0, 0, 0), sig)
        ])

        av = kernel.allocate_attention(pattern).nodes[0].attention_value

        assert av.sti == 10.0
        assert av.lti == 5.0

    def test_allocate_empty_pattern(self):
        """Test an empty pattern yields an empty pattern."""
        result = ECANKernel().allocate_attention(HypergraphPattern())
        assert len(result) == 0


class TestSignatures:
    """Test resource-allocation signatures."""

    def test_create_signature_clamps(self):
        """Test that every field is clamped into range."""
        sig = ECANKernel().create_ecan_tensor_signature(tasks=12, attention=1.4,
                                                        priority=-1, resources=0.5)

        assert sig.depth == 9
        assert sig.tasks == 10
        assert sig.attention == 1.0
        assert sig.salience == 1.0
        assert sig.priority == 0.0
        assert sig.autonomy_index == 0.5

    def test_attention_preset(self):
        """Test the attention signature preset."""
        sig = ECANTensorFactory.create_attention_signature(0.5)

        assert sig.tasks == 3
        assert sig.depth == 4
        assert sig.resources == pytest.approx(0.7)
        assert sig.modality == ModalityType.ATTENTION


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
