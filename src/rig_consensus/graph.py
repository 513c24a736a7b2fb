"""Weighted residue-interaction graphs.

A :class:`WeightedGraph` is a set of residue nodes plus a set of unique
undirected :class:`Edge` objects.  Edges are stored canonically with
``i < j``, so ``(5, 2)`` and ``(2, 5)`` are the same contact.

Edge identity
-------------
An edge *is* its endpoint pair.  The weight is metadata: two edges with
the same ``(i, j)`` compare and hash equal whatever their weights.  To
keep that from silently dropping data, the graph uses an explicit-update
policy: :meth:`WeightedGraph.add_edge` refuses a pair that is already
present and :meth:`WeightedGraph.update_weight` is the only way to change
a weight.

Graph-level metadata (``identifier``, ``pdb_code``, ``chain_code``,
``contact_type``, ``cutoff``, ``sequence``) is carried unchanged through
every derived graph: MST reduction, range restriction, copies.
"""

from __future__ import annotations

import heapq
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Set, Tuple

from .config import DEFAULT_PARAMETERS
from .errors import ConstructionError

logger = logging.getLogger(__name__)

__all__ = [
    "Edge",
    "WeightedGraph",
    "DEFAULT_WEIGHT",
    "canonical_pair",
]

DEFAULT_WEIGHT: float = DEFAULT_PARAMETERS["graph.default_weight"]


def canonical_pair(i: int, j: int) -> Tuple[int, int]:
    """Return ``(min, max)`` of an undirected residue pair."""
    return (i, j) if i <= j else (j, i)


# ═══════════════════════════════════════════════════════════════════
# Edge
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True, order=True)
class Edge:
    """Undirected contact between residues ``i`` and ``j``.

    Equality, hashing and ordering use ``(i, j)`` only.
    """

    i: int
    j: int
    weight: float = field(default=DEFAULT_WEIGHT, compare=False)

    def __post_init__(self):
        if self.i < 0 or self.j < 0:
            raise ConstructionError(
                f"Edge endpoints must be non-negative, got ({self.i}, {self.j})")

    def get_range(self) -> int:
        """Sequence separation ``|i - j|``."""
        return abs(self.i - self.j)

    @property
    def pair(self) -> Tuple[int, int]:
        return (self.i, self.j)

    def with_weight(self, weight: float) -> "Edge":
        return Edge(self.i, self.j, weight)


# ═══════════════════════════════════════════════════════════════════
# WeightedGraph
# ═══════════════════════════════════════════════════════════════════

class WeightedGraph:
    """Residue-interaction graph with weighted, canonical edges.

    Parameters
    ----------
    sequence : str
        One-letter sequence.  When given, nodes ``1..len(sequence)`` are
        created with their residue types.
    identifier : str
        Free-form label (model name, file stem, ...).
    pdb_code, chain_code : str
        Source structure, if any.
    contact_type : str
        Atom-based contact definition, e.g. ``"Ca"`` or ``"Cb"``.
    cutoff : float
        Contact distance cutoff in Å.
    """

    def __init__(
        self,
        sequence: str = "",
        *,
        identifier: str = "",
        pdb_code: str = "",
        chain_code: str = "",
        contact_type: str = "Ca",
        cutoff: float = 0.0,
    ):
        self.sequence = sequence
        self.identifier = identifier
        self.pdb_code = pdb_code
        self.chain_code = chain_code
        self.contact_type = contact_type
        self.cutoff = float(cutoff)

        self._nodes: Dict[int, str] = {}
        self._edges: Dict[Tuple[int, int], Edge] = {}
        self._adjacency: Dict[int, Set[int]] = {}

        for serial, res in enumerate(sequence, start=1):
            self.add_node(serial, res)

    # ── metadata ────────────────────────────────────────────────

    @property
    def metadata(self) -> Dict[str, object]:
        return {
            "sequence": self.sequence,
            "identifier": self.identifier,
            "pdb_code": self.pdb_code,
            "chain_code": self.chain_code,
            "contact_type": self.contact_type,
            "cutoff": self.cutoff,
        }

    def _empty_like(self) -> "WeightedGraph":
        """New graph with this graph's metadata and nodes but no edges."""
        g = WeightedGraph(
            identifier=self.identifier,
            pdb_code=self.pdb_code,
            chain_code=self.chain_code,
            contact_type=self.contact_type,
            cutoff=self.cutoff,
        )
        g.sequence = self.sequence
        for serial, res in self._nodes.items():
            g.add_node(serial, res)
        return g

    # ── nodes ───────────────────────────────────────────────────

    def add_node(self, serial: int, residue_type: Optional[str] = None):
        """Add residue *serial*, or set its type if it already exists."""
        if serial < 0:
            raise ConstructionError(
                f"Residue serial must be non-negative, got {serial}")
        if serial not in self._nodes:
            self._nodes[serial] = residue_type or self._sequence_type(serial)
            self._adjacency[serial] = set()
        elif residue_type:
            self._nodes[serial] = residue_type

    def _sequence_type(self, serial: int) -> str:
        if 1 <= serial <= len(self.sequence):
            return self.sequence[serial - 1]
        return ""

    @property
    def nodes(self) -> List[int]:
        return sorted(self._nodes)

    def residue_type(self, serial: int) -> str:
        return self._nodes[serial]

    def has_node(self, serial: int) -> bool:
        return serial in self._nodes

    @property
    def vertex_count(self) -> int:
        return len(self._nodes)

    def get_vertex_count(self) -> int:
        return self.vertex_count

    def neighbours(self, serial: int) -> List[int]:
        return sorted(self._adjacency.get(serial, ()))

    # ── edges ───────────────────────────────────────────────────

    def add_edge(self, i: int, j: int, weight: float = DEFAULT_WEIGHT) -> Edge:
        """Insert the contact ``(i, j)``.

        Raises
        ------
        ConstructionError
            If the pair is already present (use :meth:`update_weight`)
            or is a self-loop.
        """
        if i == j:
            raise ConstructionError(f"Self-loop on residue {i} is not a contact")
        a, b = canonical_pair(i, j)
        if (a, b) in self._edges:
            raise ConstructionError(
                f"Edge ({a}, {b}) already present with weight "
                f"{self._edges[(a, b)].weight}; use update_weight()")
        edge = Edge(a, b, float(weight))
        self.add_node(a)
        self.add_node(b)
        self._edges[(a, b)] = edge
        self._adjacency[a].add(b)
        self._adjacency[b].add(a)
        return edge

    def update_weight(self, i: int, j: int, weight: float) -> Edge:
        """Change the weight of an existing contact.

        Raises
        ------
        KeyError
            If ``(i, j)`` is not in the graph.
        """
        key = canonical_pair(i, j)
        if key not in self._edges:
            raise KeyError(f"No edge {key} in graph {self.identifier!r}")
        edge = self._edges[key].with_weight(float(weight))
        self._edges[key] = edge
        return edge

    def remove_edge(self, i: int, j: int) -> Edge:
        a, b = canonical_pair(i, j)
        edge = self._edges.pop((a, b))
        self._adjacency[a].discard(b)
        self._adjacency[b].discard(a)
        return edge

    def has_edge(self, i: int, j: int) -> bool:
        return canonical_pair(i, j) in self._edges

    def get_edge(self, i: int, j: int) -> Edge:
        return self._edges[canonical_pair(i, j)]

    def __contains__(self, pair: Tuple[int, int]) -> bool:
        return self.has_edge(*pair)

    def __iter__(self) -> Iterator[Edge]:
        return iter(self.edges)

    @property
    def edges(self) -> List[Edge]:
        """All edges, sorted by ``(i, j)``."""
        return [self._edges[k] for k in sorted(self._edges)]

    def get_edges(self) -> Set[Edge]:
        return set(self._edges.values())

    @property
    def edge_count(self) -> int:
        return len(self._edges)

    def get_edge_count(self) -> int:
        return self.edge_count

    @property
    def total_weight(self) -> float:
        return sum(e.weight for e in self._edges.values())

    # ── derived graphs ──────────────────────────────────────────

    def copy(self) -> "WeightedGraph":
        g = self._empty_like()
        for edge in self.edges:
            g.add_edge(edge.i, edge.j, edge.weight)
        return g

    def restrict_to_min_range(self, min_range: int) -> "WeightedGraph":
        """Copy keeping only contacts with ``|i - j| >= min_range``."""
        g = self._empty_like()
        for edge in self.edges:
            if edge.get_range() >= min_range:
                g.add_edge(edge.i, edge.j, edge.weight)
        return g

    def restrict_to_max_range(self, max_range: int) -> "WeightedGraph":
        """Copy keeping only contacts with ``|i - j| <= max_range``."""
        g = self._empty_like()
        for edge in self.edges:
            if edge.get_range() <= max_range:
                g.add_edge(edge.i, edge.j, edge.weight)
        return g

    def minimum_spanning_tree(self) -> "WeightedGraph":
        """Reduce to the minimum spanning tree (forest, if disconnected).

        Prim's algorithm keyed on edge weight, grown from the lowest
        unvisited residue of each connected component.  Equal-weight
        candidates are ordered by ``(i, j)`` with the larger pair taken
        first, so repeated runs return the same tree.  The reduced graph
        keeps every node and all metadata of this graph.
        """
        tree = self._empty_like()
        visited: Set[int] = set()

        for root in sorted(self._nodes):
            if root in visited:
                continue
            visited.add(root)
            heap: List[Tuple[float, int, int, int, int]] = []
            self._push_frontier(heap, root, visited)
            while heap:
                weight, _, _, i, j = heapq.heappop(heap)
                if i in visited and j in visited:
                    continue
                new = j if i in visited else i
                visited.add(new)
                tree.add_edge(i, j, weight)
                self._push_frontier(heap, new, visited)

        logger.debug(
            f"MST of {self.identifier or 'graph'}: "
            f"{self.edge_count} -> {tree.edge_count} edges")
        return tree

    def _push_frontier(self, heap, serial: int, visited: Set[int]):
        for nb in self._adjacency[serial]:
            if nb in visited:
                continue
            edge = self._edges[canonical_pair(serial, nb)]
            heapq.heappush(heap, (edge.weight, -edge.i, -edge.j, edge.i, edge.j))

    def __repr__(self) -> str:
        label = self.identifier or self.pdb_code or "graph"
        return (f"WeightedGraph({label!r}, {self.vertex_count} nodes, "
                f"{self.edge_count} edges, cutoff={self.cutoff})")
