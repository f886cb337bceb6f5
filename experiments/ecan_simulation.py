"""
Attention economy simulation.

Drives a CognitiveEconomy with a random stream of cognitive and executive
tasks, demonstrating:
- Admission against the STI/LTI budget and the concurrency limit
- Queueing, fallback proposals and promotion as tasks complete
- Activation spreading between task nodes with TTL eviction
- Pattern encoding of ML primitives into the fragment store

Parameters are read from ECAN_* environment variables (or a .env file at
the repository root) and can be overridden on the command line.
"""

import time
from pathlib import Path

import numpy as np

# Add parent directory to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from cogniecan import CognitiveEconomy, EconomicAllocation
from cogniecan.primitives import MLPrimitive, MLPrimitiveType, TensorSignatureFactory
from cogniecan.scheduler import SchedulingFactory, TaskPriority


def run_ecan_simulation(num_cycles: int = 200,
                        arrival_rate: float = 0.6,
                        mean_lifetime: int = 8,
                        evict_ttl: int = 20,
                        config: EconomicAllocation = None,
                        random_seed: int = 42,
                        verbose: bool = True):
    """
    Run the attention economy simulation.

    Args:
        num_cycles: Number of scheduling cycles
        arrival_rate: Probability of a new task per cycle
        mean_lifetime: Mean cycles a running task holds its lease
        evict_ttl: Cycles after which untouched activation nodes are evicted
        config: Economic parameters (read from the environment if None)
        random_seed: Random seed for reproducibility
        verbose: Whether to print progress

    Returns:
        dict: Simulation results including final state and decisions
    """
    config = config or EconomicAllocation.from_env(
        env_file=Path(__file__).parent.parent / '.env')
    rng = np.random.RandomState(random_seed)

    if verbose:
        print("=" * 70)
        print("ATTENTION ECONOMY - Simulation")
        print("=" * 70)
        print(f"Configuration:")
        print(f"  Budget: STI={config.total_sti}, LTI={config.total_lti}, VLTI={config.total_vlti}")
        print(f"  Rates: decay={config.decay_rate}, spreading={config.spreading_rate}")
        print(f"  Max concurrent tasks: {config.max_concurrent_tasks}")
        print(f"  Cycles: {num_cycles}, arrival rate: {arrival_rate}")
        print(f"  Random seed: {random_seed}")
        print("=" * 70)

    start_time = time.time()
    economy = CognitiveEconomy(config)

    # Encode a few primitives so the store has pattern fragments
    signature = TensorSignatureFactory.create_cognitive_signature()
    for primitive_type, params in [(MLPrimitiveType.ACTIVATION, {'activation': 'relu'}),
                                   (MLPrimitiveType.ATTENTION_MECHANISM, {'heads': 4}),
                                   (MLPrimitiveType.LINEAR_TRANSFORM, {'output_dim': 8})]:
        pattern = economy.translator.ml_primitive_to_hypergraph(
            MLPrimitive(primitive_type, signature, params))
        economy.submit_pattern(pattern)

    decisions = []
    completions = {}
    previous_task = None

    for cycle in range(num_cycles):
        if rng.uniform() < arrival_rate:
            task_id = f"task_{cycle}"
            if rng.uniform() < 0.3:
                request = SchedulingFactory.create_executive_task(
                    urgency=float(rng.uniform(0.5, 1.0)), resources=float(rng.uniform(0.2, 0.8)))
            else:
                priority = list(TaskPriority)[rng.randint(len(TaskPriority))]
                request = SchedulingFactory.create_cognitive_task(
                    complexity=float(rng.uniform(0.1, 1.0)), priority=priority)

            decision = economy.submit_task(task_id, request, signature)
            decisions.append(decision)
            if previous_task is not None:
                economy.scheduler.connect_task_nodes(previous_task, task_id, float(rng.uniform()))
            previous_task = task_id

        for task_id in list(economy.scheduler.scheduled_tasks):
            if task_id not in completions:
                completions[task_id] = cycle + 1 + rng.poisson(mean_lifetime)
            if completions[task_id] <= cycle:
                economy.complete_task(task_id)

        economy.step(evict_ttl)

        if verbose and (cycle + 1) % max(1, num_cycles // 10) == 0:
            status = economy.scheduler.get_scheduling_status()
            metrics = status['metrics']
            print(f"Cycle {cycle + 1}/{num_cycles}: "
                  f"active={status['active_tasks']}, "
                  f"queued={status['queued_tasks']}, "
                  f"utilization={metrics['resource_utilization']:.3f}, "
                  f"avg wait={metrics['average_wait_time']:.0f}ms")

    total_time = time.time() - start_time
    final_state = economy.get_state()
    accepted = sum(1 for d in decisions if d.allocated)

    if verbose:
        print("\n" + "=" * 70)
        print("SIMULATION COMPLETE")
        print("=" * 70)
        print(f"Total time: {total_time:.2f}s")
        print(f"Requests: {len(decisions)} ({accepted} admitted immediately)")
        print(f"Fragments stored: {final_state['fragments']}")
        print(f"Activation nodes: {final_state['network']['total_nodes']}")
        print(f"Final budget: STI={final_state['budget']['sti']:.1f}, "
              f"LTI={final_state['budget']['lti']:.1f}")
        print("=" * 70)

    return {
        'config': config,
        'timing': {'total': total_time},
        'decisions': decisions,
        'final_state': final_state
    }


def main():
    """Main entry point for the attention economy simulation."""
    import argparse

    parser = argparse.ArgumentParser(
        description='Run attention economy simulation'
    )
    parser.add_argument('--cycles', '-c', type=int, default=200,
                        help='Number of scheduling cycles (default: 200)')
    parser.add_argument('--arrival-rate', type=float, default=0.6,
                        help='Probability of a new task per cycle (default: 0.6)')
    parser.add_argument('--lifetime', type=int, default=8,
                        help='Mean task lifetime in cycles (default: 8)')
    parser.add_argument('--evict-ttl', type=int, default=20,
                        help='Activation node TTL in cycles (default: 20)')
    parser.add_argument('--total-sti', type=float, default=None,
                        help='Override total STI budget')
    parser.add_argument('--seed', type=int, default=42,
                        help='Random seed (default: 42)')
    parser.add_argument('--quiet', '-q', action='store_true',
                        help='Suppress output')

    args = parser.parse_args()

    config = EconomicAllocation.from_env(env_file=Path(__file__).parent.parent / '.env')
    if args.total_sti is not None:
        config = config.with_overrides(total_sti=args.total_sti)

    run_ecan_simulation(
        num_cycles=args.cycles,
        arrival_rate=args.arrival_rate,
        mean_lifetime=args.lifetime,
        evict_ttl=args.evict_ttl,
        config=config,
        random_seed=args.seed,
        verbose=not args.quiet
    )


if __name__ == '__main__':
    main()
