"""
Hypergraph atoms: truth and attention values, nodes, links and patterns.

A pattern is a small typed graph of concept/value nodes joined by typed
relational links. Patterns have no storage of their own; they are the input
to, or output of, the translator.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, List, Optional, Set, Union

from cogniecan.primitives.signature import TensorSignature


class AtomType(str, Enum):
    """Types of hypergraph nodes."""
    CONCEPT = 'ConceptNode'
    PREDICATE = 'PredicateNode'
    SCHEMA = 'SchemaNode'
    NUMBER = 'NumberNode'
    VARIABLE = 'VariableNode'
    GROUNDED_SCHEMA = 'GroundedSchemaNode'


class LinkType(str, Enum):
    """Types of hypergraph relationships."""
    INHERITANCE = 'InheritanceLink'
    SIMILARITY = 'SimilarityLink'
    EVALUATION = 'EvaluationLink'
    IMPLICATION = 'ImplicationLink'
    LIST = 'ListLink'
    AND = 'AndLink'
    OR = 'OrLink'
    EXECUTION = 'ExecutionLink'


@dataclass(frozen=True)
class TruthValue:
    """
    Truth value with strength and confidence.

    Both fields must lie in [0, 1]; an out-of-range value is reported by
    pattern validation rather than rejected here.
    """
    strength: float
    confidence: float

    def in_range(self) -> bool:
        return 0.0 <= self.strength <= 1.0 and 0.0 <= self.confidence <= 1.0


@dataclass(frozen=True)
class AttentionValue:
    """
    Three independent importance currencies.

    Attributes:
        sti: Short-term importance
        lti: Long-term importance
        vlti: Very long-term importance
    """
    sti: float
    lti: float
    vlti: float

    def total(self) -> float:
        return self.sti + self.lti + self.vlti


DEFAULT_TRUTH = TruthValue(0.8, 0.7)
DEFAULT_NODE_ATTENTION = AttentionValue(100, 50, 10)
DEFAULT_LINK_ATTENTION = AttentionValue(80, 40, 5)


@dataclass(frozen=True)
class AtomNode:
    """Graph vertex; ``id`` is unique within a pattern."""
    id: str
    type: AtomType
    name: str
    truth_value: TruthValue
    attention_value: AttentionValue
    tensor: TensorSignature


@dataclass(frozen=True)
class AtomLink:
    """
    Graph edge over an ordered list of node ids.

    Every id in ``outgoing`` must reference a node of the same pattern.
    """
    id: str
    type: LinkType
    outgoing: tuple
    truth_value: TruthValue
    attention_value: AttentionValue
    tensor: TensorSignature

    def __post_init__(self):
        object.__setattr__(self, 'outgoing', tuple(self.outgoing))


Atom = Union[AtomNode, AtomLink]


@dataclass(frozen=True)
class PatternConstraint:
    """Constraint used by pattern matching on a variable binding."""
    type: str       # type | value | relation | truth_value | attention
    operator: str   # equals | greater | less | contains | matches
    value: Any


@dataclass(frozen=True)
class VariableBinding:
    variable: str
    type: AtomType
    constraints: tuple = ()

    def __post_init__(self):
        object.__setattr__(self, 'constraints', tuple(self.constraints))


@dataclass
class HypergraphPattern:
    """
    A labeled hypergraph fragment.

    Attributes:
        nodes: Concept/value nodes
        links: Typed relational links
        variables: Variable bindings for pattern matching
    """
    nodes: List[AtomNode] = field(default_factory=list)
    links: List[AtomLink] = field(default_factory=list)
    variables: List[VariableBinding] = field(default_factory=list)

    def node_ids(self) -> Set[str]:
        return {node.id for node in self.nodes}

    def find_node(self, node_id: str) -> Optional[AtomNode]:
        """Get the first node with ``node_id``, or None."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def elements(self) -> Iterator[Atom]:
        """Iterate nodes first, then links, in pattern order."""
        yield from self.nodes
        yield from self.links

    def __len__(self):
        return len(self.nodes) + len(self.links)

    def __repr__(self):
        return (f"HypergraphPattern(nodes={len(self.nodes)}, "
                f"links={len(self.links)}, variables={len(self.variables)})")
