"""
Unit tests for the signature and value model.

Tests TensorSignature, signature averaging and similarity, dimensional flow,
tagged primitive parameters and hypergraph atoms.
"""

import numpy as np
import pytest
from cogniecan.primitives import (
    AtomNode,
    AtomType,
    ContextType,
    HypergraphPattern,
    MLPrimitive,
    MLPrimitiveType,
    ModalityType,
    ParamKind,
    ParamValue,
    TensorSignature,
    TensorSignatureFactory,
    TruthValue,
    average_signatures,
    infer_dimensional_flow,
    signature_similarity
)
from cogniecan.primitives.atoms import DEFAULT_NODE_ATTENTION


class TestTensorSignature:
    """Test signature construction and combination."""

    def test_clamped(self):
        """Test that clamping forces every field into range."""
        sig = TensorSignature(ModalityType.COGNITIVE, 12, ContextType.WORKING, 1.5, -0.2)
        clamped = sig.clamped()

        assert clamped.depth == 9
        assert clamped.salience == 1.0
        assert clamped.autonomy_index == 0.0
        assert sig.depth == 12

    def test_average_empty_raises(self):
        """Test that averaging no signatures is an error."""
        with pytest.raises(ValueError):
            average_signatures([])

    def test_average_signatures(self):
        """Test componentwise averaging with first-seen mode tie-break."""
        a = TensorSignature(ModalityType.COGNITIVE, 2, ContextType.WORKING, 0.2, 0.4)
        b = TensorSignature(ModalityType.MEMORY, 5, ContextType.LONG_TERM, 0.6, 0.8)

        avg = average_signatures([a, b])

        assert avg.modality == ModalityType.COGNITIVE
        assert avg.context == ContextType.WORKING
        assert avg.depth == 4
        assert avg.salience == pytest.approx(0.4)
        assert avg.autonomy_index == pytest.approx(0.6)

    def test_average_majority_modality(self):
        """Test that the most frequent categorical value wins."""
        sigs = [
            TensorSignature(ModalityType.SENSORY, 1, ContextType.IMMEDIATE, 0.5, 0.5),
            TensorSignature(ModalityType.MOTOR, 1, ContextType.IMMEDIATE, 0.5, 0.5),
            TensorSignature(ModalityType.MOTOR, 1, ContextType.IMMEDIATE, 0.5, 0.5),
        ]
        assert average_signatures(sigs).modality == ModalityType.MOTOR

    def test_similarity_of_identical_signatures(self):
        """Test that identical signatures reach the maximum similarity."""
        sig = TensorSignatureFactory.create_cognitive_signature()
        assert signature_similarity(sig, sig) == pytest.approx(0.2)

    def test_similarity_decreases_with_distance(self):
        """Test that differing signatures are less similar."""
        cognitive = TensorSignatureFactory.create_cognitive_signature()
        motor = TensorSignatureFactory.create_motor_signature()
        assert signature_similarity(cognitive, motor) < signature_similarity(cognitive, cognitive)

    def test_dimensional_flow(self):
        """Test the triad/dimension decision table."""
        flow = infer_dimensional_flow(TensorSignatureFactory.create_cognitive_signature())

        assert flow.triad == 'cerebral'
        assert flow.dimension == 'commitment'
        assert flow.flow_pattern == '[5-4]'
        assert flow.position == 'production'

        memory_flow = infer_dimensional_flow(TensorSignatureFactory.create_memory_signature())
        assert memory_flow.triad == 'autonomic'
        assert memory_flow.dimension == 'potential'
        assert memory_flow.position == 'treasury'


class TestParamValue:
    """Test tagged primitive parameters."""

    def test_kinds(self):
        """Test that plain values get the right kind."""
        assert ParamValue.of(True).kind == ParamKind.FLAG
        assert ParamValue.of(3).kind == ParamKind.NUMBER
        assert ParamValue.of(3).value == 3.0
        assert ParamValue.of('relu').kind == ParamKind.TEXT
        assert ParamValue.of(np.array([1, 2])).value == (1.0, 2.0)

    def test_unsupported_value(self):
        """Test that values without a kind are rejected."""
        with pytest.raises(TypeError):
            ParamValue.of({'a': 1})

    def test_primitive_wraps_parameters(self):
        """Test that MLPrimitive wraps plain parameters and defaults its output."""
        sig = TensorSignatureFactory.create_cognitive_signature()
        primitive = MLPrimitive('activation', sig, {'activation': 'relu', 'scale': [1, 2]})

        assert primitive.type == MLPrimitiveType.ACTIVATION
        assert primitive.parameters['activation'] == ParamValue(ParamKind.TEXT, 'relu')
        assert primitive.param('scale') == [1.0, 2.0]
        assert primitive.param('missing', 7) == 7
        assert primitive.output_tensor is sig


class TestAtoms:
    """Test hypergraph atoms and patterns."""

    def test_truth_value_range(self):
        """Test truth value range check."""
        assert TruthValue(0.5, 1.0).in_range()
        assert not TruthValue(1.2, 0.5).in_range()

    def test_pattern_accessors(self):
        """Test pattern length and node lookup."""
        sig = TensorSignatureFactory.create_cognitive_signature()
        node = AtomNode('n1', AtomType.CONCEPT, 'cat', TruthValue(0.8, 0.7),
                        DEFAULT_NODE_ATTENTION, sig)
        pattern = HypergraphPattern(nodes=[node])

        assert len(pattern) == 1
        assert pattern.find_node('n1') is node
        assert pattern.find_node('n2') is None
        assert pattern.node_ids() == {'n1'}


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
