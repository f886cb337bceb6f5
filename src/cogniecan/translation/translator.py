"""
Hypergraph <-> tensor translation.

Converts ML and cognitive primitives into hypergraph patterns and back, and
packs patterns into flat tensor fragments. Each element is encoded as eight
numbers, nodes first and then links, in pattern order:

    [type code, symbol, strength, confidence, depth, salience, autonomy, modality code]

``symbol`` is the interned node name for nodes and the outgoing count for
links. The ``PatternCodebook`` stored on the fragment carries the interned
strings, element ids, contexts and link targets, so decoding with the
encoded element counts is exact.
"""

import itertools
import json
import logging
import time
from dataclasses import replace
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from cogniecan.memory import TensorFragment, TensorFragmentStore
from cogniecan.primitives import (
    AtomLink,
    AtomNode,
    AtomType,
    AttentionValue,
    CognitivePrimitive,
    HypergraphPattern,
    LinkType,
    MLPrimitive,
    MLPrimitiveType,
    ModalityType,
    ParamKind,
    ParamValue,
    PatternConstraint,
    PrimitiveType,
    TensorSignature,
    TruthValue,
    VariableBinding,
    average_signatures
)
from cogniecan.primitives.atoms import DEFAULT_LINK_ATTENTION, DEFAULT_NODE_ATTENTION, DEFAULT_TRUTH
from cogniecan.primitives.signature import MAX_DEPTH
from cogniecan.translation.symbols import PatternCodebook, SymbolTable
from cogniecan.translation.validation import ValidationResult, validate_pattern

logger = logging.getLogger(__name__)


class PatternStructureError(ValueError):
    """Raised when a pattern lacks the nodes needed to rebuild a primitive."""


ELEMENT_FIELDS = 8
DEFAULT_DECODE_COUNT = 5

ATOM_TYPE_CODES = {atom_type: i + 1 for i, atom_type in enumerate(AtomType)}
LINK_TYPE_CODES = {link_type: i + 1 for i, link_type in enumerate(LinkType)}
MODALITY_CODES = {modality: i + 1 for i, modality in enumerate(ModalityType)}

_ATOM_TYPES_BY_CODE = {code: t for t, code in ATOM_TYPE_CODES.items()}
_LINK_TYPES_BY_CODE = {code: t for t, code in LINK_TYPE_CODES.items()}
_MODALITIES_BY_CODE = {code: m for m, code in MODALITY_CODES.items()}

ML_PREFIX = 'ml_primitive_'
PARAM_PREFIX = 'param_'
VALUE_PREFIX = 'value_'
WEIGHTS_PREFIX = 'weights_tensor_'
BIAS_PREFIX = 'bias_tensor_'
COGNITIVE_PREFIX = 'cognitive_'
PRIMITIVE_TYPE_PREFIX = 'primitive_type_'

# Truth and attention presets
MAIN_TRUTH = TruthValue(0.9, 0.8)
MAIN_ATTENTION = AttentionValue(150, 75, 15)
PARAM_TRUTH = TruthValue(0.7, 0.9)
VALUE_TRUTH = TruthValue(0.8, 0.95)
EVALUATION_TRUTH = TruthValue(0.85, 0.9)
TENSOR_TRUTH = TruthValue(0.9, 0.95)
INHERITANCE_TRUTH = TruthValue(0.95, 0.9)
COGNITIVE_TRUTH = TruthValue(0.9, 0.85)
COGNITIVE_ATTENTION = AttentionValue(200, 100, 20)
IMPLEMENTS_TRUTH = TruthValue(0.9, 0.8)


class _PatternBuilder:
    """Collects elements, interning nodes by (type, name)."""

    def __init__(self, next_id: Callable[[str], str]):
        self._next_id = next_id
        self._interned: Dict[Tuple[AtomType, str], str] = {}
        self.nodes: List[AtomNode] = []
        self.links: List[AtomLink] = []

    def node(self, atom_type: AtomType, name: str, tensor: TensorSignature,
             truth: TruthValue = DEFAULT_TRUTH,
             attention: AttentionValue = DEFAULT_NODE_ATTENTION) -> str:
        key = (AtomType(atom_type), name)
        if key not in self._interned:
            node = AtomNode(self._next_id('atom'), key[0], name, truth, attention, tensor)
            self.nodes.append(node)
            self._interned[key] = node.id
        return self._interned[key]

    def link(self, link_type: LinkType, outgoing: Sequence[str], tensor: TensorSignature,
             truth: TruthValue = DEFAULT_TRUTH,
             attention: AttentionValue = DEFAULT_LINK_ATTENTION) -> str:
        link = AtomLink(self._next_id('link'), LinkType(link_type), tuple(outgoing),
                        truth, attention, tensor)
        self.links.append(link)
        return link.id

    def build(self, variables: Optional[List[VariableBinding]] = None) -> HypergraphPattern:
        return HypergraphPattern(nodes=self.nodes, links=self.links, variables=variables or [])


def atom_type_for(value: ParamValue) -> AtomType:
    return AtomType.NUMBER if value.kind == ParamKind.NUMBER else AtomType.CONCEPT


def _json(value) -> str:
    if isinstance(value, tuple):
        value = list(value)
    return json.dumps(value)


class HypergraphTranslator:
    """
    Bidirectional translator between primitives, patterns and fragments.

    Attributes:
        store: Default fragment store for encoded patterns
        clock: Time source in seconds (used for cognitive primitive ids)
    """

    def __init__(self, store: Optional[TensorFragmentStore] = None,
                 clock: Callable[[], float] = time.time):
        self.store = store or TensorFragmentStore(clock=clock)
        self.clock = clock
        self._counter = itertools.count()

    def _next_id(self, kind: str) -> str:
        return f"{kind}_{next(self._counter)}"

    # =========================================================================
    # ML primitives
    # =========================================================================

    def ml_primitive_to_hypergraph(self, primitive: MLPrimitive) -> HypergraphPattern:
        """
        Translate an ML primitive into a hypergraph pattern.

        Produces an ``ml_primitive_<type>`` concept, a ``param_<name>`` /
        ``value_<json>`` pair joined by an evaluation link per parameter,
        weight and bias nodes with their ``has_weights``/``has_bias``
        predicates, and an inheritance link to ``ml_primitive_type``.

        Args:
            primitive: Primitive to translate

        Returns:
            HypergraphPattern: Pattern with one ``?<param>`` variable per parameter
        """
        builder = _PatternBuilder(self._next_id)
        self._add_ml_primitive(builder, primitive)
        return builder.build(self._variable_bindings(primitive))

    def _add_ml_primitive(self, builder: _PatternBuilder, primitive: MLPrimitive) -> str:
        tensor = primitive.input_tensor
        main = builder.node(AtomType.CONCEPT, f"{ML_PREFIX}{primitive.type.value}", tensor,
                            MAIN_TRUTH, MAIN_ATTENTION)

        for key, value in primitive.parameters.items():
            param = builder.node(AtomType.CONCEPT, f"{PARAM_PREFIX}{key}", tensor, PARAM_TRUTH)
            value_node = builder.node(atom_type_for(value), f"{VALUE_PREFIX}{_json(value.value)}",
                                      tensor, VALUE_TRUTH)
            builder.link(LinkType.EVALUATION, [param, main, value_node], tensor, EVALUATION_TRUTH)

        for predicate, prefix, values in (('has_weights', WEIGHTS_PREFIX, primitive.weights),
                                          ('has_bias', BIAS_PREFIX, primitive.bias)):
            if values is None:
                continue
            predicate_node = builder.node(AtomType.PREDICATE, predicate, tensor)
            tensor_node = builder.node(AtomType.CONCEPT, f"{prefix}{_json(values)}", tensor, TENSOR_TRUTH)
            builder.link(LinkType.EVALUATION, [predicate_node, main, tensor_node], tensor)

        type_node = builder.node(AtomType.CONCEPT, 'ml_primitive_type', tensor)
        builder.link(LinkType.INHERITANCE, [main, type_node], tensor, INHERITANCE_TRUTH)
        return main

    @staticmethod
    def _variable_bindings(primitive: MLPrimitive) -> List[VariableBinding]:
        return [
            VariableBinding(
                variable=f"?{key}",
                type=AtomType.VARIABLE,
                constraints=(PatternConstraint('type', 'equals', atom_type_for(value)),)
            )
            for key, value in primitive.parameters.items()
        ]

    def hypergraph_to_ml_primitive(self, pattern: HypergraphPattern,
                                   anchor_id: Optional[str] = None) -> MLPrimitive:
        """
        Rebuild an ML primitive from a pattern.

        The anchor is the first concept node named ``ml_primitive_<type>``
        with a known primitive type (or the node ``anchor_id``). Parameters
        come from evaluation links ``[param_<name>, anchor, value]``;
        weights and bias from their tensor nodes.

        Args:
            pattern: Pattern to read
            anchor_id: Explicit anchor node id

        Returns:
            MLPrimitive

        Raises:
            PatternStructureError: If no anchor node is found, or a weight
                or bias node cannot be parsed
        """
        anchor = self._find_ml_anchor(pattern, anchor_id)
        ml_type = MLPrimitiveType(anchor.name[len(ML_PREFIX):])

        nodes = {node.id: node for node in pattern.nodes}
        parameters = {}
        for link in pattern.links:
            if link.type != LinkType.EVALUATION or len(link.outgoing) < 3:
                continue
            if link.outgoing[1] != anchor.id:
                continue
            predicate = nodes.get(link.outgoing[0])
            value_node = nodes.get(link.outgoing[2])
            if predicate is None or value_node is None:
                continue
            if predicate.name.startswith(PARAM_PREFIX):
                parameters[predicate.name[len(PARAM_PREFIX):]] = self._parse_value(value_node)

        input_tensor = anchor.tensor
        return MLPrimitive(
            type=ml_type,
            input_tensor=input_tensor,
            parameters=parameters,
            output_tensor=replace(input_tensor, depth=min(MAX_DEPTH, input_tensor.depth + 1)),
            weights=self._parse_tensor_node(pattern, WEIGHTS_PREFIX),
            bias=self._parse_tensor_node(pattern, BIAS_PREFIX)
        )

    @staticmethod
    def _find_ml_anchor(pattern: HypergraphPattern, anchor_id: Optional[str]) -> AtomNode:
        known = {t.value for t in MLPrimitiveType}
        for node in pattern.nodes:
            if anchor_id is not None and node.id != anchor_id:
                continue
            if (node.type == AtomType.CONCEPT and node.name.startswith(ML_PREFIX)
                    and node.name[len(ML_PREFIX):] in known):
                return node
        raise PatternStructureError('No ML primitive concept node found in hypergraph pattern')

    @staticmethod
    def _parse_value(node: AtomNode) -> ParamValue:
        raw = node.name[len(VALUE_PREFIX):] if node.name.startswith(VALUE_PREFIX) else node.name
        try:
            value = json.loads(raw)
        except json.JSONDecodeError:
            return ParamValue(ParamKind.TEXT, raw)
        if value is None or isinstance(value, dict):
            return ParamValue(ParamKind.TEXT, raw)
        return ParamValue.of(value)

    @staticmethod
    def _parse_tensor_node(pattern: HypergraphPattern, prefix: str) -> Optional[List[float]]:
        for node in pattern.nodes:
            if not node.name.startswith(prefix):
                continue
            try:
                values = json.loads(node.name[len(prefix):])
            except json.JSONDecodeError as e:
                raise PatternStructureError(f"Cannot parse tensor node {node.name!r}") from e
            if not isinstance(values, list):
                raise PatternStructureError(f"Tensor node {node.name!r} does not hold a list")
            return [float(v) for v in values]
        return None

    # =========================================================================
    # Cognitive primitives
    # =========================================================================

    def cognitive_primitive_to_hypergraph(self, primitive: CognitivePrimitive) -> HypergraphPattern:
        """
        Translate a cognitive primitive into a pattern.

        An attached ``atomspace_pattern`` is returned as is. Otherwise the
        ML primitive's pattern is extended with a ``cognitive_<name>``
        concept, an inheritance link to ``primitive_type_<type>`` and an
        ``implements`` evaluation link to the ML anchor.
        """
        if primitive.atomspace_pattern is not None:
            return primitive.atomspace_pattern

        tensor = primitive.tensor
        builder = _PatternBuilder(self._next_id)
        cognitive = builder.node(AtomType.CONCEPT, f"{COGNITIVE_PREFIX}{primitive.name}", tensor,
                                 COGNITIVE_TRUTH, COGNITIVE_ATTENTION)
        type_node = builder.node(AtomType.CONCEPT, f"{PRIMITIVE_TYPE_PREFIX}{primitive.type.value}",
                                 tensor)
        implements = builder.node(AtomType.PREDICATE, 'implements', tensor)
        builder.link(LinkType.INHERITANCE, [cognitive, type_node], tensor, INHERITANCE_TRUTH)

        anchor = self._add_ml_primitive(builder, primitive.ml_primitive)
        builder.link(LinkType.EVALUATION, [implements, cognitive, anchor], tensor, IMPLEMENTS_TRUTH)
        return builder.build(self._variable_bindings(primitive.ml_primitive))

    def hypergraph_to_cognitive_primitive(self, pattern: HypergraphPattern) -> CognitivePrimitive:
        """
        Rebuild a cognitive primitive from a pattern.

        The type defaults to reasoning without a ``primitive_type_``
        inheritance link; the ML primitive defaults to an empty linear
        transform without an ``implements`` link.

        Raises:
            PatternStructureError: If no ``cognitive_<name>`` concept exists
        """
        cognitive = next((node for node in pattern.nodes
                          if node.type == AtomType.CONCEPT and node.name.startswith(COGNITIVE_PREFIX)),
                         None)
        if cognitive is None:
            raise PatternStructureError('No cognitive concept node found in hypergraph pattern')
        name = cognitive.name[len(COGNITIVE_PREFIX):]
        nodes = {node.id: node for node in pattern.nodes}

        primitive_type = PrimitiveType.REASONING
        known_types = {t.value for t in PrimitiveType}
        for link in pattern.links:
            if link.type == LinkType.INHERITANCE and len(link.outgoing) >= 2 \
                    and link.outgoing[0] == cognitive.id:
                type_node = nodes.get(link.outgoing[1])
                if type_node is not None and type_node.name.startswith(PRIMITIVE_TYPE_PREFIX):
                    suffix = type_node.name[len(PRIMITIVE_TYPE_PREFIX):]
                    if suffix in known_types:
                        primitive_type = PrimitiveType(suffix)
                        break

        ml_primitive = None
        for link in pattern.links:
            if link.type == LinkType.EVALUATION and len(link.outgoing) >= 3 \
                    and link.outgoing[1] == cognitive.id and link.outgoing[2] in nodes:
                ml_primitive = self.hypergraph_to_ml_primitive(pattern, anchor_id=link.outgoing[2])
                break
        if ml_primitive is None:
            ml_primitive = MLPrimitive(MLPrimitiveType.LINEAR_TRANSFORM, cognitive.tensor)

        return CognitivePrimitive(
            id=f"primitive_{name}_{int(self.clock() * 1000)}",
            name=name,
            type=primitive_type,
            tensor=cognitive.tensor,
            ml_primitive=ml_primitive,
            atomspace_pattern=pattern
        )

    # =========================================================================
    # Tensor encoding
    # =========================================================================

    def create_tensor_fragment_from_pattern(self, pattern: HypergraphPattern,
                                            store: Optional[TensorFragmentStore] = None
                                            ) -> TensorFragment:
        """
        Encode a pattern into a flat fragment with a codebook.

        The fragment signature is the average of every element signature.

        Args:
            pattern: Pattern to encode
            store: Store to create the fragment in (translator's store if None)

        Returns:
            TensorFragment: Fragment of ``8 * len(pattern)`` values

        Raises:
            ValueError: If the pattern has no elements
        """
        if len(pattern) == 0:
            raise ValueError("Cannot encode an empty pattern")
        store = store or self.store

        symbols = SymbolTable()
        rows = []
        for node in pattern.nodes:
            rows.append([ATOM_TYPE_CODES[node.type], symbols.intern(node.name),
                         *self._encode_common(node)])
        for link in pattern.links:
            rows.append([LINK_TYPE_CODES[link.type], len(link.outgoing),
                         *self._encode_common(link)])

        elements = list(pattern.elements())
        codebook = PatternCodebook(
            symbols=symbols,
            element_ids=tuple(el.id for el in elements),
            contexts=tuple(el.tensor.context for el in elements),
            outgoing=tuple(link.outgoing for link in pattern.links),
            node_count=len(pattern.nodes),
            link_count=len(pattern.links)
        )
        data = np.array(rows, dtype=np.float64).ravel()
        return store.create_fragment(
            average_signatures([el.tensor for el in elements]),
            data,
            [len(data)],
            'hypergraph_pattern',
            codebook=codebook
        )

    @staticmethod
    def _encode_common(element) -> List[float]:
        tv, tensor = element.truth_value, element.tensor
        return [tv.strength, tv.confidence, tensor.depth, tensor.salience,
                tensor.autonomy_index, MODALITY_CODES[tensor.modality]]

    def reconstruct_pattern_from_tensor(self, fragment: TensorFragment,
                                        node_count: Optional[int] = None,
                                        link_count: Optional[int] = None) -> HypergraphPattern:
        """
        Decode a fragment back into a pattern.

        The buffer is split into ``node_count + link_count`` equal slices.
        Slices shorter than eight values and links without outgoing nodes
        are dropped. When the fragment has a codebook for the same counts,
        ids, names, types, outgoing lists, truth values and signatures are
        restored exactly (attention values take defaults). Otherwise nodes
        get synthetic names and each link points at the first k nodes.

        Args:
            fragment: Fragment to decode
            node_count: Number of nodes (codebook count, or 5)
            link_count: Number of links (codebook count, or 5)

        Returns:
            HypergraphPattern
        """
        codebook = fragment.codebook
        if node_count is None:
            node_count = codebook.node_count if codebook is not None else DEFAULT_DECODE_COUNT
        if link_count is None:
            link_count = codebook.link_count if codebook is not None else DEFAULT_DECODE_COUNT

        total = node_count + link_count
        if total == 0:
            return HypergraphPattern()
        if codebook is not None and not codebook.matches(node_count, link_count):
            logger.debug("codebook counts differ from request, decoding %s without it", fragment.id)
            codebook = None

        data = fragment.data
        size = len(data) // total

        def row(index):
            return data[index * size:(index + 1) * size]

        nodes = []
        for i in range(node_count):
            values = row(i)
            if len(values) < ELEMENT_FIELDS:
                continue
            nodes.append(self._decode_node(values, i, fragment.signature, codebook))

        links = []
        for j in range(link_count):
            values = row(node_count + j)
            if len(values) < ELEMENT_FIELDS:
                continue
            link = self._decode_link(values, node_count + j, j, fragment.signature, nodes, codebook)
            if link.outgoing:
                links.append(link)

        return HypergraphPattern(nodes=nodes, links=links)

    def _decode_node(self, values: np.ndarray, index: int, signature: TensorSignature,
                     codebook: Optional[PatternCodebook]) -> AtomNode:
        atom_type = _ATOM_TYPES_BY_CODE.get(int(round(values[0])), AtomType.CONCEPT)
        symbol = int(round(values[1]))
        if codebook is not None:
            node_id = codebook.element_ids[index]
            name = codebook.symbols.get(symbol, f"decoded_node_{index}_{symbol}")
            context = codebook.context_of(index)
        else:
            node_id = self._next_id('atom')
            name = f"decoded_node_{index}_{symbol}"
            context = signature.context

        return AtomNode(
            id=node_id,
            type=atom_type,
            name=name,
            truth_value=TruthValue(float(values[2]), float(values[3])),
            attention_value=DEFAULT_NODE_ATTENTION,
            tensor=self._decode_signature(values, context)
        )

    def _decode_link(self, values: np.ndarray, index: int, link_index: int,
                     signature: TensorSignature, nodes: List[AtomNode],
                     codebook: Optional[PatternCodebook]) -> AtomLink:
        link_type = _LINK_TYPES_BY_CODE.get(int(round(values[0])), LinkType.LIST)
        truth = TruthValue(float(values[2]), float(values[3]))
        if codebook is not None:
            return AtomLink(
                id=codebook.element_ids[index],
                type=link_type,
                outgoing=codebook.outgoing[link_index],
                truth_value=truth,
                attention_value=DEFAULT_LINK_ATTENTION,
                tensor=self._decode_signature(values, codebook.context_of(index))
            )

        outgoing_count = max(0, int(round(values[1])))
        return AtomLink(
            id=self._next_id('link'),
            type=link_type,
            outgoing=[node.id for node in nodes[:outgoing_count]],
            truth_value=truth,
            attention_value=DEFAULT_LINK_ATTENTION,
            tensor=signature
        )

    @staticmethod
    def _decode_signature(values: np.ndarray, context) -> TensorSignature:
        return TensorSignature(
            modality=_MODALITIES_BY_CODE.get(int(round(values[7])), ModalityType.COGNITIVE),
            depth=int(round(values[4])),
            context=context,
            salience=float(values[5]),
            autonomy_index=float(values[6])
        )

    # =========================================================================
    # Validation
    # =========================================================================

    def validate_pattern(self, pattern: HypergraphPattern) -> ValidationResult:
        return validate_pattern(pattern)

    def __repr__(self):
        return f"HypergraphTranslator(store={self.store!r})"
