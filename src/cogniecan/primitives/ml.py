"""
ML and cognitive primitives.

Primitive parameters are a tagged union (``ParamValue``) discriminated by an
explicit ``ParamKind`` rather than an open-ended map of arbitrary objects, so
every parameter can be encoded into, and recovered from, a hypergraph
pattern.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

import numpy as np

from cogniecan.primitives.atoms import HypergraphPattern
from cogniecan.primitives.signature import TensorSignature


class ParamKind(str, Enum):
    NUMBER = 'number'
    TEXT = 'text'
    FLAG = 'flag'
    VECTOR = 'vector'


@dataclass(frozen=True)
class ParamValue:
    """
    A single primitive parameter.

    Attributes:
        kind: Discriminator for ``value``
        value: float for NUMBER, str for TEXT, bool for FLAG,
            tuple of floats for VECTOR
    """
    kind: ParamKind
    value: Union[float, str, bool, tuple]

    @classmethod
    def of(cls, raw: Any) -> 'ParamValue':
        """
        Wrap a plain Python value.

        Args:
            raw: bool, int, float, str, or a sequence/array of numbers

        Returns:
            ParamValue: Tagged parameter

        Raises:
            TypeError: If ``raw`` has no parameter kind
        """
        if isinstance(raw, ParamValue):
            return raw
        # bool first: it is also an int
        if isinstance(raw, (bool, np.bool_)):
            return cls(ParamKind.FLAG, bool(raw))
        if isinstance(raw, (int, float, np.integer, np.floating)):
            return cls(ParamKind.NUMBER, float(raw))
        if isinstance(raw, str):
            return cls(ParamKind.TEXT, raw)
        if isinstance(raw, (list, tuple, np.ndarray)):
            return cls(ParamKind.VECTOR, tuple(float(x) for x in raw))
        raise TypeError(f"Unsupported parameter value: {raw!r}")

    def to_python(self) -> Any:
        if self.kind == ParamKind.VECTOR:
            return list(self.value)
        return self.value


class MLPrimitiveType(str, Enum):
    LINEAR_TRANSFORM = 'linear_transform'
    ACTIVATION = 'activation'
    CONVOLUTION = 'convolution'
    ATTENTION_MECHANISM = 'attention_mechanism'
    MEMORY_ACCESS = 'memory_access'
    PATTERN_MATCH = 'pattern_match'
    TEMPORAL_SEQUENCE = 'temporal_sequence'
    EMBEDDING = 'embedding'


@dataclass
class MLPrimitive:
    """
    Numeric operation that can be applied to a tensor fragment.

    Attributes:
        type: Operation kind
        parameters: Named tagged parameters (plain values are wrapped)
        input_tensor: Signature of the expected input
        output_tensor: Signature of the produced output (defaults to input)
        weights: Optional flat weight matrix, row-major (out x in)
        bias: Optional bias vector
    """
    type: MLPrimitiveType
    input_tensor: TensorSignature
    parameters: Dict[str, ParamValue] = field(default_factory=dict)
    output_tensor: Optional[TensorSignature] = None
    weights: Optional[List[float]] = None
    bias: Optional[List[float]] = None

    def __post_init__(self):
        self.type = MLPrimitiveType(self.type)
        self.parameters = {k: ParamValue.of(v) for k, v in self.parameters.items()}
        if self.output_tensor is None:
            self.output_tensor = self.input_tensor
        if self.weights is not None:
            self.weights = [float(w) for w in self.weights]
        if self.bias is not None:
            self.bias = [float(b) for b in self.bias]

    def param(self, name: str, default: Any = None) -> Any:
        """Plain value of parameter ``name``, or ``default``."""
        value = self.parameters.get(name)
        return default if value is None else value.to_python()


class PrimitiveType(str, Enum):
    PERCEPTION = 'perception'
    ATTENTION = 'attention'
    MEMORY = 'memory'
    REASONING = 'reasoning'
    PLANNING = 'planning'
    EXECUTION = 'execution'
    LEARNING = 'learning'
    EVALUATION = 'evaluation'


@dataclass
class CognitivePrimitive:
    """A named cognitive operation implemented by an ML primitive."""
    id: str
    name: str
    type: PrimitiveType
    tensor: TensorSignature
    ml_primitive: MLPrimitive
    atomspace_pattern: Optional[HypergraphPattern] = None
