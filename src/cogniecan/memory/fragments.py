"""
Tensor Fragment Store: versioned numeric buffers keyed by tensor signature.

Fragments are immutable. ``update_fragment``, ``transform_fragment`` and
``merge_fragments`` produce new fragments; the store keeps the latest version
under each id plus a bounded history of up to ``HISTORY_LIMIT`` prior
versions. Fragments are only removed by explicit age-based ``cleanup``.
"""

import itertools
import logging
import math
import time
from collections import deque
from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING, Callable, Deque, Dict, List, Optional, Sequence, Union

import numpy as np

from cogniecan.primitives import (
    AttentionValue,
    ContextType,
    DimensionalFlow,
    ECANTensorSignature,
    MLPrimitive,
    MLPrimitiveType,
    ModalityType,
    ParamKind,
    TensorSignature,
    average_signatures,
    infer_dimensional_flow,
    signature_similarity
)
from cogniecan.primitives.signature import CATEGORICAL_FIELDS, MAX_DEPTH, NUMERIC_FIELDS
from cogniecan.utils import clamp, to_base36

if TYPE_CHECKING:
    from cogniecan.kernel.ecan import ECANKernel
    from cogniecan.translation.symbols import PatternCodebook

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 10
MATCH_EPSILON = 0.1


class MergeStrategy(str, Enum):
    CONCATENATE = 'concatenate'
    AVERAGE = 'average'
    MAX = 'max'
    MIN = 'min'


@dataclass(frozen=True)
class FragmentMetadata:
    """
    Bookkeeping attached to a fragment.

    Attributes:
        creation_time: Timestamp (seconds) the fragment id was first created
        last_updated: Timestamp of the latest version
        source_label: What produced the fragment (primitive type, task, ...)
        related_atom_ids: Atom ids this fragment is associated with
        dimensional_flow: Triad/dimension classification of the signature
    """
    creation_time: float
    last_updated: float
    source_label: str
    related_atom_ids: tuple
    dimensional_flow: DimensionalFlow


@dataclass(frozen=True, eq=False)
class TensorFragment:
    """
    A numeric buffer tagged with a signature.

    ``data`` is a read-only float64 array. ``codebook`` is set on fragments
    encoded from hypergraph patterns and carries the symbol table needed
    to decode them exactly. Updating the data drops the codebook.
    """
    id: str
    signature: TensorSignature
    data: np.ndarray
    shape: tuple
    metadata: FragmentMetadata
    codebook: Optional['PatternCodebook'] = None

    def __len__(self):
        return len(self.data)

    def __repr__(self):
        return (f"TensorFragment(id={self.id!r}, shape={self.shape}, "
                f"modality={self.signature.modality.value})")


def _frozen_array(data) -> np.ndarray:
    array = np.array(data, dtype=np.float64).ravel()
    array.setflags(write=False)
    return array


def priority_multiplier(signature: TensorSignature) -> float:
    """
    Attention priority heuristic for a signature.

    Starts from the ECAN priority (0.5 for plain signatures), then favours
    executive/attention/cognitive modalities and immediate/working/
    short-term contexts with fixed multipliers.

    Returns:
        float: Multiplier clamped to [0.1, 2.0]
    """
    multiplier = getattr(signature, 'priority', 0.0) or 0.5

    multiplier *= {
        ModalityType.EXECUTIVE: 1.5,
        ModalityType.ATTENTION: 1.3,
        ModalityType.COGNITIVE: 1.1,
    }.get(signature.modality, 1.0)

    multiplier *= {
        ContextType.IMMEDIATE: 1.4,
        ContextType.WORKING: 1.2,
        ContextType.SHORT_TERM: 1.1,
    }.get(signature.context, 1.0)

    return clamp(multiplier, 0.1, 2.0)


def base_attention(signature: TensorSignature) -> AttentionValue:
    """Attention a fragment earns from its signature alone."""
    return AttentionValue(
        sti=math.floor(50 * signature.salience * (1 + signature.depth / MAX_DEPTH)),
        lti=math.floor(25 * signature.salience * signature.autonomy_index),
        vlti=math.floor(10 * signature.autonomy_index)
    )


class TensorFragmentStore:
    """
    Owns tensor fragments, their version history and attention allocations.

    Attributes:
        fragments: Latest version of each fragment by id
        history: Bounded version ring per fragment id (oldest first)
        attention_allocations: Last ECAN allocation per fragment id
        kernel: Optional attention kernel for ECAN integration
        clock: Time source in seconds
    """

    def __init__(self, kernel: Optional['ECANKernel'] = None,
                 clock: Callable[[], float] = time.time):
        """
        Initialize an empty store.

        Args:
            kernel: Optional kernel used by the ECAN integration methods
            clock: Time source in seconds (injectable for tests)
        """
        self.fragments: Dict[str, TensorFragment] = {}
        self.history: Dict[str, Deque[TensorFragment]] = {}
        self.attention_allocations: Dict[str, AttentionValue] = {}
        self.kernel = kernel
        self.clock = clock
        self._sequence = itertools.count()

    # =========================================================================
    # Fragment lifecycle
    # =========================================================================

    def create_fragment(self, signature: TensorSignature, data,
                        shape: Optional[Sequence[int]] = None,
                        source_label: str = 'unknown',
                        dimensional_flow: Optional[DimensionalFlow] = None,
                        codebook: Optional['PatternCodebook'] = None) -> TensorFragment:
        """
        Create and store a new fragment.

        Args:
            signature: Classification signature
            data: Numeric buffer (copied)
            shape: Logical shape (defaults to the flat length)
            source_label: What produced the data
            dimensional_flow: Explicit flow (inferred from signature if None)
            codebook: Symbol table for pattern-encoded fragments

        Returns:
            TensorFragment: The stored fragment
        """
        array = _frozen_array(data)
        now = self.clock()
        fragment = TensorFragment(
            id=self._generate_fragment_id(signature, now),
            signature=signature,
            data=array,
            shape=tuple(shape) if shape is not None else (len(array),),
            metadata=FragmentMetadata(
                creation_time=now,
                last_updated=now,
                source_label=source_label,
                related_atom_ids=(),
                dimensional_flow=dimensional_flow or infer_dimensional_flow(signature)
            ),
            codebook=codebook
        )

        self.fragments[fragment.id] = fragment
        self._add_to_history(fragment)
        logger.debug("created fragment %s (%d values, source=%s)",
                     fragment.id, len(array), source_label)
        return fragment

    def update_fragment(self, fragment_id: str, new_data,
                        related_atoms: Optional[Sequence[str]] = None) -> Optional[TensorFragment]:
        """
        Store a new version of a fragment.

        Args:
            fragment_id: Fragment to update
            new_data: Replacement buffer
            related_atoms: Replacement related atom ids (kept if None)

        Returns:
            The new version, or None if ``fragment_id`` is unknown
        """
        fragment = self.fragments.get(fragment_id)
        if fragment is None:
            logger.warning("update of unknown fragment %s ignored", fragment_id)
            return None

        metadata = replace(
            fragment.metadata,
            last_updated=self.clock(),
            related_atom_ids=(tuple(related_atoms) if related_atoms is not None
                              else fragment.metadata.related_atom_ids)
        )
        # the codebook describes the old buffer only
        updated = replace(fragment, data=_frozen_array(new_data), metadata=metadata, codebook=None)

        self.fragments[fragment_id] = updated
        self._add_to_history(updated)
        return updated

    def get_fragment(self, fragment_id: str) -> Optional[TensorFragment]:
        return self.fragments.get(fragment_id)

    def get_fragment_history(self, fragment_id: str) -> List[TensorFragment]:
        """Prior versions of a fragment, oldest first (empty if unknown)."""
        return list(self.history.get(fragment_id, ()))

    def find_fragments(self, **criteria) -> List[TensorFragment]:
        """
        Find fragments whose signature matches a partial signature.

        Numeric fields (depth, salience, autonomy_index) match within 0.1;
        modality and context must be equal.

        Args:
            **criteria: Subset of signature fields; None values are ignored

        Returns:
            List of matching fragments

        Raises:
            ValueError: On a key that is not a signature field
        """
        unknown = set(criteria) - set(NUMERIC_FIELDS) - set(CATEGORICAL_FIELDS)
        if unknown:
            raise ValueError(f"Unknown signature fields: {sorted(unknown)}")
        wanted = {k: v for k, v in criteria.items() if v is not None}
        return [f for f in self.fragments.values() if self._matches(f.signature, wanted)]

    def cleanup(self, max_age: float = 3600.0) -> int:
        """
        Remove fragments created more than ``max_age`` seconds ago.

        History and attention allocations of removed fragments go too.

        Returns:
            int: Number of fragments removed
        """
        now = self.clock()
        expired = [fid for fid, f in self.fragments.items()
                   if now - f.metadata.creation_time > max_age]
        for fid in expired:
            del self.fragments[fid]
            self.history.pop(fid, None)
            self.attention_allocations.pop(fid, None)
        if expired:
            logger.debug("cleanup removed %d fragments older than %.0fs", len(expired), max_age)
        return len(expired)

    # =========================================================================
    # Pure transformations
    # =========================================================================

    def transform_fragment(self, fragment_id: str,
                           primitive: MLPrimitive) -> Optional[TensorFragment]:
        """
        Apply an ML primitive to a fragment, producing a new fragment.

        Linear transforms, activations (relu/sigmoid/tanh) and salience
        attention scaling change the data; other primitive types copy it.
        The result's signature is the primitive's output signature with
        depth incremented (max 9) and the autonomy index nudged.

        Args:
            fragment_id: Source fragment (left untouched)
            primitive: Operation to apply

        Returns:
            The new fragment, or None if ``fragment_id`` is unknown
        """
        source = self.fragments.get(fragment_id)
        if source is None:
            logger.warning("transform of unknown fragment %s ignored", fragment_id)
            return None

        data = apply_primitive(source.data, primitive)
        shape = transformed_shape(source.shape, len(data), primitive)

        out = primitive.output_tensor
        signature = replace(
            out,
            depth=min(MAX_DEPTH, source.signature.depth + 1),
            autonomy_index=transformed_autonomy(source.signature, primitive)
        )

        return self.create_fragment(
            signature, data, shape,
            source_label=primitive.type.value,
            dimensional_flow=source.metadata.dimensional_flow
        )

    def merge_fragments(self, fragment_ids: Sequence[str],
                        strategy: Union[MergeStrategy, str] = MergeStrategy.CONCATENATE
                        ) -> Optional[TensorFragment]:
        """
        Merge several fragments into a new one.

        Concatenation joins buffers in input order. Average, max and min
        reduce position by position; a fragment too short to reach a
        position is absent from that position's reduction.

        Args:
            fragment_ids: Fragments to merge; unknown ids are skipped
            strategy: concatenate, average, max or min

        Returns:
            The merged fragment, or None if no id is known
        """
        strategy = MergeStrategy(strategy)
        fragments = [self.fragments[fid] for fid in fragment_ids if fid in self.fragments]
        if not fragments:
            return None

        data, shape = merge_data(fragments, strategy)
        signature = average_signatures([f.signature for f in fragments])

        return self.create_fragment(
            signature, data, shape,
            source_label='merge_operation',
            dimensional_flow=fragments[0].metadata.dimensional_flow
        )

    # =========================================================================
    # ECAN integration
    # =========================================================================

    def attach_kernel(self, kernel: 'ECANKernel') -> None:
        self.kernel = kernel

    def create_ecan_fragment(self, signature: ECANTensorSignature, data,
                             shape: Optional[Sequence[int]] = None,
                             source_label: str = 'ecan_source') -> TensorFragment:
        """
        Create a fragment and mirror it as an activation node.

        The node's base activation is ``attention * priority * 100``; no node
        is added when no kernel is attached.
        """
        fragment = self.create_fragment(signature, data, shape, source_label)
        if self.kernel is not None:
            self.kernel.add_activation_node(
                fragment.id, signature.attention * signature.priority * 100)
        return fragment

    def allocate_ecan_attention(self, fragment_ids: Optional[Sequence[str]] = None
                                ) -> Dict[str, AttentionValue]:
        """
        Allocate attention to fragments from their signatures.

        Args:
            fragment_ids: Fragments to allocate to (all if None)

        Returns:
            dict: fragment id -> allocated AttentionValue

        Raises:
            RuntimeError: If no kernel is attached
        """
        if self.kernel is None:
            raise RuntimeError("ECAN kernel not attached. Call attach_kernel() first.")

        if fragment_ids is None:
            targets = list(self.fragments.values())
        else:
            targets = [self.fragments[fid] for fid in fragment_ids if fid in self.fragments]

        allocations = {}
        for fragment in targets:
            base = base_attention(fragment.signature)
            multiplier = priority_multiplier(fragment.signature)
            allocation = AttentionValue(
                sti=math.floor(base.sti * multiplier),
                lti=math.floor(base.lti * multiplier),
                vlti=math.floor(base.vlti * multiplier)
            )
            allocations[fragment.id] = allocation
            self.attention_allocations[fragment.id] = allocation
        return allocations

    def get_fragment_attention(self, fragment_id: str) -> Optional[AttentionValue]:
        return self.attention_allocations.get(fragment_id)

    def find_ecan_fragments(self, min_tasks: float = 0, min_attention: float = 0,
                            min_priority: float = 0,
                            min_resources: float = 0) -> List[TensorFragment]:
        """Fragments with ECAN signatures meeting every given minimum."""
        results = []
        for fragment in self.fragments.values():
            sig = fragment.signature
            if not isinstance(sig, ECANTensorSignature):
                if min_tasks or min_attention or min_priority or min_resources:
                    continue
                results.append(fragment)
                continue
            if (sig.tasks >= min_tasks and sig.attention >= min_attention
                    and sig.priority >= min_priority and sig.resources >= min_resources):
                results.append(fragment)
        return results

    def spread_attention_between_fragments(self, source_id: str, target_ids: Sequence[str],
                                           spreading_rate: float = 0.1) -> int:
        """
        Connect a fragment's activation node to related fragments.

        Edge weight is the signature similarity of the two fragments.

        Returns:
            int: Number of connections made (0 without a kernel)
        """
        if self.kernel is None:
            return 0
        source = self.fragments.get(source_id)
        if source is None:
            return 0

        connected = 0
        for target_id in target_ids:
            target = self.fragments.get(target_id)
            if target is None:
                continue
            weight = signature_similarity(source.signature, target.signature)
            if self.kernel.connect_activation_nodes(source_id, target_id, weight, spreading_rate):
                connected += 1
        return connected

    def get_fragments_by_attention_priority(self) -> List[TensorFragment]:
        """All fragments, highest total allocated attention first."""
        def total(fragment):
            allocation = self.attention_allocations.get(fragment.id)
            return allocation.total() if allocation else 0

        return sorted(self.fragments.values(), key=total, reverse=True)

    # =========================================================================
    # Internals
    # =========================================================================

    def _generate_fragment_id(self, signature: TensorSignature, now: float) -> str:
        # Sequence suffix keeps ids unique within one millisecond
        return '-'.join([
            signature.modality.value[:3].upper(),
            str(signature.depth),
            signature.context.value[:3].upper(),
            str(int(signature.salience * 100)),
            str(int(signature.autonomy_index * 100)),
            to_base36(int(now * 1000)),
            str(next(self._sequence))
        ])

    def _add_to_history(self, fragment: TensorFragment) -> None:
        if fragment.id not in self.history:
            self.history[fragment.id] = deque(maxlen=HISTORY_LIMIT)
        self.history[fragment.id].append(fragment)

    @staticmethod
    def _matches(signature: TensorSignature, criteria: Dict) -> bool:
        for key, value in criteria.items():
            actual = getattr(signature, key)
            if key in NUMERIC_FIELDS:
                if abs(actual - value) >= MATCH_EPSILON:
                    return False
            elif actual != value:
                return False
        return True

    def __len__(self):
        return len(self.fragments)

    def __contains__(self, fragment_id):
        return fragment_id in self.fragments

    def __repr__(self):
        return f"TensorFragmentStore(fragments={len(self.fragments)})"


def apply_primitive(data: np.ndarray, primitive: MLPrimitive) -> np.ndarray:
    """
    Apply a primitive's numeric operation to a flat buffer.

    Args:
        data: Shape (n,) - input buffer
        primitive: Operation to apply

    Returns:
        np.ndarray: New buffer (input untouched)
    """
    if primitive.type == MLPrimitiveType.LINEAR_TRANSFORM:
        return _linear(data, primitive.weights or [], primitive.bias or [])
    if primitive.type == MLPrimitiveType.ACTIVATION:
        return _activation(data, primitive.param('activation', 'relu'))
    if primitive.type == MLPrimitiveType.ATTENTION_MECHANISM:
        return _attention(data, primitive.param('attention_weights', []))
    return np.array(data, dtype=np.float64)


def _linear(data: np.ndarray, weights: List[float], bias: List[float]) -> np.ndarray:
    """
    out[i] = bias[i] + sum_j data[j] * W[i * n_in + j]

    Output length is len(bias), or len(data) without a bias. Missing
    weights count as zero.
    """
    if not weights:
        return np.array(data, dtype=np.float64)

    n_in = len(data)
    n_out = len(bias) if bias else n_in
    matrix = np.zeros(n_out * n_in)
    k = min(len(weights), n_out * n_in)
    matrix[:k] = weights[:k]

    offset = np.zeros(n_out)
    offset[:len(bias)] = bias
    return matrix.reshape(n_out, n_in) @ data + offset


def _activation(data: np.ndarray, name: str) -> np.ndarray:
    if name == 'relu':
        return np.maximum(0.0, data)
    if name == 'sigmoid':
        return 1.0 / (1.0 + np.exp(-data))
    if name == 'tanh':
        return np.tanh(data)
    return np.array(data, dtype=np.float64)


def _attention(data: np.ndarray, attention_weights: List[float]) -> np.ndarray:
    """Scale each value by its normalised attention weight (missing weights are 1)."""
    n = len(data)
    weights = np.ones(n)
    k = min(n, len(attention_weights))
    weights[:k] = attention_weights[:k]

    total = float(sum(attention_weights)) or float(n)
    if total == 0:
        return np.zeros(n)
    return data * (weights / total)


def transformed_shape(shape: tuple, length: int, primitive: MLPrimitive) -> tuple:
    """Logical shape after a transform; flat if the product disagrees with the data."""
    new_shape = tuple(shape)
    if primitive.type == MLPrimitiveType.LINEAR_TRANSFORM and new_shape:
        output_dim = primitive.param('output_dim')
        last = int(output_dim) if output_dim is not None else length
        new_shape = new_shape[:-1] + (last,)
    if int(np.prod(new_shape)) != length:
        return (length,)
    return new_shape


def transformed_autonomy(signature: TensorSignature, primitive: MLPrimitive) -> float:
    """Autonomy grows with processing complexity and shrinks with external control."""
    bonus = 0.1 if primitive.type == MLPrimitiveType.ATTENTION_MECHANISM else 0.05
    control = primitive.parameters.get('external_control')
    external_control = 0.0
    if control is not None and control.kind in (ParamKind.NUMBER, ParamKind.FLAG):
        external_control = float(control.value)
    return clamp(signature.autonomy_index + bonus - external_control)


def merge_data(fragments: List[TensorFragment], strategy: MergeStrategy):
    """
    Merge fragment buffers.

    Returns:
        Tuple of (data, shape)
    """
    if len(fragments) == 1:
        return np.array(fragments[0].data), fragments[0].shape

    if strategy == MergeStrategy.CONCATENATE:
        data = np.concatenate([f.data for f in fragments])
        return data, (len(data),)

    max_length = max(len(f.data) for f in fragments)
    stacked = np.zeros((len(fragments), max_length))
    absent = np.ones((len(fragments), max_length), dtype=bool)
    for row, fragment in enumerate(fragments):
        stacked[row, :len(fragment.data)] = fragment.data
        absent[row, :len(fragment.data)] = False

    masked = np.ma.masked_array(stacked, mask=absent)
    if strategy == MergeStrategy.AVERAGE:
        reduced = masked.mean(axis=0)
    elif strategy == MergeStrategy.MAX:
        reduced = masked.max(axis=0)
    else:
        reduced = masked.min(axis=0)
    data = np.ma.filled(reduced, 0.0).astype(np.float64)

    shape = fragments[0].shape
    if int(np.prod(shape)) != max_length:
        shape = (max_length,)
    return data, shape
