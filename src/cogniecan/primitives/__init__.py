"""Signature and value model shared by every other component."""

from cogniecan.primitives.signature import (
    ModalityType,
    ContextType,
    TensorSignature,
    ECANTensorSignature,
    DimensionalFlow,
    TensorSignatureFactory,
    infer_dimensional_flow,
    average_signatures,
    signature_similarity
)
from cogniecan.primitives.atoms import (
    AtomType,
    LinkType,
    TruthValue,
    AttentionValue,
    AtomNode,
    AtomLink,
    PatternConstraint,
    VariableBinding,
    HypergraphPattern
)
from cogniecan.primitives.ml import (
    ParamKind,
    ParamValue,
    MLPrimitiveType,
    MLPrimitive,
    PrimitiveType,
    CognitivePrimitive
)

__all__ = [
    "ModalityType",
    "ContextType",
    "TensorSignature",
    "ECANTensorSignature",
    "DimensionalFlow",
    "TensorSignatureFactory",
    "infer_dimensional_flow",
    "average_signatures",
    "signature_similarity",
    "AtomType",
    "LinkType",
    "TruthValue",
    "AttentionValue",
    "AtomNode",
    "AtomLink",
    "PatternConstraint",
    "VariableBinding",
    "HypergraphPattern",
    "ParamKind",
    "ParamValue",
    "MLPrimitiveType",
    "MLPrimitive",
    "PrimitiveType",
    "CognitivePrimitive",
]
