"""
Interning tables carried alongside pattern-encoded tensor buffers.

Node names and element ids are not numeric, so the encoder stores a small
integer code in the buffer and keeps the strings in a ``SymbolTable``. The
``PatternCodebook`` bundles that table with the per-element data the
8-field layout has no room for, which makes decoding exact.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional

from cogniecan.primitives import ContextType


class SymbolTable:
    """
    Bidirectional string <-> code table.

    Codes start at 1 and are assigned in first-seen order; interning the
    same string again returns its existing code.
    """

    def __init__(self, symbols: Iterable[str] = ()):
        self._symbols: List[str] = []
        self._codes: Dict[str, int] = {}
        for symbol in symbols:
            self.intern(symbol)

    def intern(self, symbol: str) -> int:
        code = self._codes.get(symbol)
        if code is None:
            self._symbols.append(symbol)
            code = len(self._symbols)
            self._codes[symbol] = code
        return code

    def lookup(self, code: int) -> str:
        """
        Get the string for ``code``.

        Raises:
            KeyError: If the code was never assigned
        """
        if not 1 <= code <= len(self._symbols):
            raise KeyError(f"Unknown symbol code: {code}")
        return self._symbols[code - 1]

    def get(self, code: int, default: Optional[str] = None) -> Optional[str]:
        if not 1 <= code <= len(self._symbols):
            return default
        return self._symbols[code - 1]

    def code_of(self, symbol: str) -> Optional[int]:
        return self._codes.get(symbol)

    def to_list(self) -> List[str]:
        return list(self._symbols)

    def __len__(self):
        return len(self._symbols)

    def __contains__(self, symbol):
        return symbol in self._codes

    def __iter__(self) -> Iterator[str]:
        return iter(self._symbols)

    def __repr__(self):
        return f"SymbolTable(size={len(self)})"


@dataclass(frozen=True)
class PatternCodebook:
    """
    Side table for decoding a pattern-encoded fragment exactly.

    Attributes:
        symbols: Interned node names (codes appear in the buffer)
        element_ids: Ids of every element, nodes then links
        contexts: Signature context of every element, nodes then links
        outgoing: Outgoing node ids of every link
        node_count: Number of encoded nodes
        link_count: Number of encoded links
    """
    symbols: SymbolTable
    element_ids: tuple
    contexts: tuple
    outgoing: tuple
    node_count: int
    link_count: int

    def matches(self, node_count: int, link_count: int) -> bool:
        """Whether a decode request uses the encoded element counts."""
        return node_count == self.node_count and link_count == self.link_count

    def context_of(self, index: int) -> ContextType:
        return self.contexts[index]
