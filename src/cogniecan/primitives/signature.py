"""
Tensor signatures: the five-field classification key shared by every graph
element and tensor fragment.

A signature is [modality, depth, context, salience, autonomy_index]. It is a
classification key and a priority proxy, not an identity: many fragments can
share one signature.
"""

from collections import Counter
from dataclasses import dataclass, asdict, replace
from enum import Enum
from typing import Dict, List, Sequence

from cogniecan.utils import clamp


class ModalityType(str, Enum):
    """Processing modality of a cognitive state."""
    SENSORY = 'sensory'
    MOTOR = 'motor'
    COGNITIVE = 'cognitive'
    EMOTIONAL = 'emotional'
    MEMORY = 'memory'
    ATTENTION = 'attention'
    EXECUTIVE = 'executive'
    SOCIAL = 'social'


class ContextType(str, Enum):
    """Temporal or functional context of a cognitive state."""
    IMMEDIATE = 'immediate'
    SHORT_TERM = 'short_term'
    LONG_TERM = 'long_term'
    EPISODIC = 'episodic'
    SEMANTIC = 'semantic'
    PROCEDURAL = 'procedural'
    WORKING = 'working'
    GLOBAL = 'global'


NUMERIC_FIELDS = ('depth', 'salience', 'autonomy_index')
CATEGORICAL_FIELDS = ('modality', 'context')
MAX_DEPTH = 9


@dataclass(frozen=True)
class TensorSignature:
    """
    Classification descriptor attached to atoms and fragments.

    Attributes:
        modality: Processing modality
        depth: Cognitive processing depth (0-9)
        context: Temporal/functional context
        salience: Attention weight (0-1)
        autonomy_index: Autonomy level (0-1)
    """
    modality: ModalityType
    depth: int
    context: ContextType
    salience: float
    autonomy_index: float

    def clamped(self) -> 'TensorSignature':
        """Return a copy with every field forced into its valid range."""
        return replace(
            self,
            depth=int(clamp(round(self.depth), 0, MAX_DEPTH)),
            salience=clamp(self.salience),
            autonomy_index=clamp(self.autonomy_index),
        )

    def to_dict(self) -> Dict:
        d = asdict(self)
        d['modality'] = self.modality.value
        d['context'] = self.context.value
        return d


@dataclass(frozen=True)
class ECANTensorSignature(TensorSignature):
    """
    Signature extended with resource-allocation fields.

    Attributes:
        tasks: Number of concurrent tasks (0-10)
        attention: Attention allocation weight (0-1)
        priority: Task priority level (0-1)
        resources: Available resource units (0-1)
    """
    tasks: float = 0
    attention: float = 0.0
    priority: float = 0.0
    resources: float = 0.0


@dataclass(frozen=True)
class DimensionalFlow:
    """Bookkeeping classification of a signature within the triadic layout."""
    triad: str        # cerebral | somatic | autonomic
    dimension: str    # potential | commitment | performance
    flow_pattern: str  # [2-7] | [5-4] | [8-1]
    position: str


def infer_dimensional_flow(signature: TensorSignature) -> DimensionalFlow:
    """
    Classify a signature with the fixed triad/dimension decision table.

    Triad follows modality; dimension, flow pattern and position follow
    context, with salience or autonomy choosing between the two positions
    of each dimension.
    """
    if signature.modality in (ModalityType.COGNITIVE, ModalityType.EXECUTIVE):
        triad = 'cerebral'
    elif signature.modality in (ModalityType.MOTOR, ModalityType.SENSORY):
        triad = 'somatic'
    else:
        triad = 'autonomic'

    if signature.context in (ContextType.WORKING, ContextType.IMMEDIATE):
        dimension, flow_pattern = 'commitment', '[5-4]'
        position = 'production' if signature.salience > 0.5 else 'organization'
    elif signature.context in (ContextType.LONG_TERM, ContextType.SEMANTIC):
        dimension, flow_pattern = 'potential', '[2-7]'
        position = 'treasury' if signature.autonomy_index > 0.5 else 'development'
    else:
        dimension, flow_pattern = 'performance', '[8-1]'
        position = 'sales' if signature.salience > 0.5 else 'market'

    return DimensionalFlow(triad, dimension, flow_pattern, position)


def _most_common(values: List):
    # Counter keeps first-seen order, so ties go to the earliest value
    return Counter(values).most_common(1)[0][0]


def average_signatures(signatures: Sequence[TensorSignature]) -> TensorSignature:
    """
    Componentwise average of signatures.

    Numeric fields are averaged (depth rounded to an int), categorical
    fields take the most frequent value across inputs.

    Args:
        signatures: Signatures to combine

    Returns:
        TensorSignature: The combined signature

    Raises:
        ValueError: If no signatures are given
    """
    if not signatures:
        raise ValueError("Cannot average empty signature list")
    if len(signatures) == 1:
        s = signatures[0]
        return TensorSignature(s.modality, s.depth, s.context, s.salience, s.autonomy_index)

    n = len(signatures)
    return TensorSignature(
        modality=_most_common([s.modality for s in signatures]),
        depth=int(round(sum(s.depth for s in signatures) / n)),
        context=_most_common([s.context for s in signatures]),
        salience=sum(s.salience for s in signatures) / n,
        autonomy_index=sum(s.autonomy_index for s in signatures) / n,
    )


def signature_similarity(sig1: TensorSignature, sig2: TensorSignature) -> float:
    """
    Weighted similarity of two signatures, in [0, 0.2].

    Modality match weighs 0.3, context match 0.2, depth/salience closeness
    0.2 each and autonomy closeness 0.1; the sum is averaged over the five
    factors.
    """
    similarity = 0.0
    if sig1.modality == sig2.modality:
        similarity += 0.3
    if sig1.context == sig2.context:
        similarity += 0.2
    similarity += (1 - abs(sig1.depth - sig2.depth) / MAX_DEPTH) * 0.2
    similarity += (1 - abs(sig1.salience - sig2.salience)) * 0.2
    similarity += (1 - abs(sig1.autonomy_index - sig2.autonomy_index)) * 0.1
    return similarity / 5


class TensorSignatureFactory:
    """Presets for common signatures."""

    @staticmethod
    def create_sensory_signature(context: ContextType = ContextType.IMMEDIATE,
                                 salience: float = 0.8) -> TensorSignature:
        return TensorSignature(ModalityType.SENSORY, 1, context, clamp(salience), 0.2)

    @staticmethod
    def create_cognitive_signature(depth: int = 3,
                                   context: ContextType = ContextType.WORKING,
                                   autonomy: float = 0.6) -> TensorSignature:
        return TensorSignature(ModalityType.COGNITIVE, int(clamp(depth, 0, MAX_DEPTH)),
                               context, 0.7, clamp(autonomy))

    @staticmethod
    def create_memory_signature(context: ContextType = ContextType.LONG_TERM,
                                salience: float = 0.4) -> TensorSignature:
        return TensorSignature(ModalityType.MEMORY, 2, context, clamp(salience), 0.8)

    @staticmethod
    def create_motor_signature(salience: float = 0.9,
                               autonomy: float = 0.3) -> TensorSignature:
        return TensorSignature(ModalityType.MOTOR, 1, ContextType.IMMEDIATE,
                               clamp(salience), clamp(autonomy))
