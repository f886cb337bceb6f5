"""
Activation network: an arena of nodes with stable integer slots.

Each node lives in a slot that does not change while the node exists.
Removing a node frees its slot (and its inbound and outbound edges); freed
slots are reused lowest first. Nodes not touched for a number of cycles can
be evicted with ``evict_stale``.
"""

import heapq
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np

from cogniecan.dynamics import spread_step
from cogniecan.utils import clamp, compute_network_metrics

logger = logging.getLogger(__name__)


@dataclass
class ActivationConnection:
    """Directed edge used for spreading."""
    target_id: str
    weight: float
    spreading_coefficient: float


@dataclass
class ActivationNode:
    """
    Node of the activation network.

    Attributes:
        id: External identifier
        slot: Stable arena index
        current_activation: Activation after the latest cycle
        base_activation: Activation the node was created with
        connections: Outgoing edges
        last_update: Cycle of the latest activation change
        last_touched: Cycle of the latest add/connect/stimulate
    """
    id: str
    slot: int
    current_activation: float
    base_activation: float
    connections: List[ActivationConnection] = field(default_factory=list)
    last_update: int = 0
    last_touched: int = 0


class ActivationNetwork:
    """
    Mutable directed graph of activation nodes.

    Attributes:
        cycle_count: Number of spreading steps performed
    """

    def __init__(self):
        self._slots: List[Optional[ActivationNode]] = []
        self._index: Dict[str, int] = {}
        self._free: List[int] = []
        self.cycle_count = 0

    # =========================================================================
    # Mutators
    # =========================================================================

    def add_node(self, node_id: str, base_activation: float = 50.0) -> int:
        """
        Add a node, or reset an existing one in place.

        Re-adding an id keeps its slot but resets its activation and drops
        its outgoing edges.

        Returns:
            int: The node's slot
        """
        if node_id in self._index:
            node = self._slots[self._index[node_id]]
            node.current_activation = base_activation
            node.base_activation = base_activation
            node.connections = []
            node.last_update = node.last_touched = self.cycle_count
            return node.slot

        if self._free:
            slot = heapq.heappop(self._free)
        else:
            slot = len(self._slots)
            self._slots.append(None)

        self._slots[slot] = ActivationNode(
            id=node_id,
            slot=slot,
            current_activation=base_activation,
            base_activation=base_activation,
            last_update=self.cycle_count,
            last_touched=self.cycle_count
        )
        self._index[node_id] = slot
        return slot

    def connect(self, source_id: str, target_id: str, weight: float,
                spreading_coefficient: float = 1.0) -> bool:
        """
        Add a directed edge; weight and coefficient are clamped to [0, 1].

        Returns:
            bool: False if either endpoint is unknown
        """
        source = self.get_node(source_id)
        if source is None or target_id not in self._index:
            return False
        source.connections.append(ActivationConnection(
            target_id=target_id,
            weight=clamp(weight),
            spreading_coefficient=clamp(spreading_coefficient)
        ))
        source.last_touched = self.cycle_count
        return True

    def remove_node(self, node_id: str) -> bool:
        """
        Remove a node and every edge touching it.

        Returns:
            bool: False if the node is unknown
        """
        slot = self._index.pop(node_id, None)
        if slot is None:
            return False
        self._slots[slot] = None
        heapq.heappush(self._free, slot)

        for node in self.nodes():
            node.connections = [c for c in node.connections if c.target_id != node_id]
        return True

    def evict_stale(self, ttl_cycles: int) -> List[str]:
        """
        Remove nodes not touched within the last ``ttl_cycles`` cycles.

        Returns:
            List of evicted node ids
        """
        horizon = self.cycle_count - ttl_cycles
        stale = [node.id for node in self.nodes() if node.last_touched < horizon]
        for node_id in stale:
            self.remove_node(node_id)
        if stale:
            logger.debug("evicted %d stale activation nodes", len(stale))
        return stale

    def stimulate(self, node_id: str, amount: float) -> bool:
        """Add ``amount`` to a node's activation (floored at 0)."""
        node = self.get_node(node_id)
        if node is None:
            return False
        node.current_activation = max(0.0, node.current_activation + amount)
        node.last_update = node.last_touched = self.cycle_count
        return True

    # =========================================================================
    # Dynamics
    # =========================================================================

    def spread(self, spreading_rate: float, decay_rate: float) -> np.ndarray:
        """
        Perform one two-phase spreading step over the live nodes.

        Deltas are computed from a snapshot of all activations and applied
        after every edge has been visited.

        Returns:
            np.ndarray: Deltas indexed by arena slot (0 for free slots)
        """
        activations = np.zeros(len(self._slots))
        sources, targets, weights, coefficients = [], [], [], []
        for node in self.nodes():
            activations[node.slot] = node.current_activation
            for conn in node.connections:
                sources.append(node.slot)
                targets.append(self._index[conn.target_id])
                weights.append(conn.weight)
                coefficients.append(conn.spreading_coefficient)

        new_activations, deltas = spread_step(
            activations,
            np.array(sources, dtype=np.intp),
            np.array(targets, dtype=np.intp),
            np.array(weights, dtype=np.float64),
            np.array(coefficients, dtype=np.float64),
            spreading_rate,
            decay_rate
        )

        self.cycle_count += 1
        for node in self.nodes():
            node.current_activation = float(new_activations[node.slot])
            node.last_update = self.cycle_count
        return deltas

    # =========================================================================
    # Accessors
    # =========================================================================

    def nodes(self) -> List[ActivationNode]:
        """Live nodes in slot order."""
        return [node for node in self._slots if node is not None]

    def get_node(self, node_id: str) -> Optional[ActivationNode]:
        slot = self._index.get(node_id)
        return None if slot is None else self._slots[slot]

    def slot_of(self, node_id: str) -> Optional[int]:
        return self._index.get(node_id)

    def get_activation(self, node_id: str) -> Optional[float]:
        node = self.get_node(node_id)
        return None if node is None else node.current_activation

    def activations(self) -> Dict[str, float]:
        return {node.id: node.current_activation for node in self.nodes()}

    def get_stats(self) -> Dict:
        """
        Network statistics.

        Returns:
            dict: total_nodes, total_connections, average_activation,
                cycle_count and the metrics from compute_network_metrics
        """
        live = self.nodes()
        activations = np.array([n.current_activation for n in live])
        weights = np.array([c.weight for n in live for c in n.connections])
        metrics = compute_network_metrics(activations, weights)
        return {
            'total_nodes': len(live),
            'total_connections': len(weights),
            'average_activation': metrics['mean_activation'],
            'cycle_count': self.cycle_count,
            **metrics
        }

    def to_networkx(self):
        """
        Export the network as a directed networkx graph.

        Node attributes: activation, base_activation, slot.
        Edge attributes: weight, spreading_coefficient (parallel edges are
        summed into one weight).

        Returns:
            networkx.DiGraph
        """
        import networkx as nx

        G = nx.DiGraph()
        for node in self.nodes():
            G.add_node(node.id, activation=node.current_activation,
                       base_activation=node.base_activation, slot=node.slot)
        for node in self.nodes():
            for conn in node.connections:
                if G.has_edge(node.id, conn.target_id):
                    G[node.id][conn.target_id]['weight'] += conn.weight
                else:
                    G.add_edge(node.id, conn.target_id, weight=conn.weight,
                               spreading_coefficient=conn.spreading_coefficient)
        return G

    def __len__(self):
        return len(self._index)

    def __contains__(self, node_id):
        return node_id in self._index

    def __repr__(self):
        return f"ActivationNetwork(nodes={len(self)}, cycle={self.cycle_count})"
