"""Tests for Edge and WeightedGraph.

Covers:
1. Edge — canonical identity, weight as metadata
2. WeightedGraph — nodes, edges, explicit-update policy
3. Derived graphs — range restriction, copies, metadata carry-over
4. Minimum spanning tree — tie-breaking, forests, determinism
"""

import pytest

from rig_consensus.errors import ConstructionError
from rig_consensus.graph import Edge, WeightedGraph, canonical_pair


# ── Fixtures ────────────────────────────────────────────────────

@pytest.fixture
def triangle():
    g = WeightedGraph("ACD", identifier="tri", pdb_code="1ABC",
                      chain_code="A", contact_type="Ca", cutoff=8.0)
    g.add_edge(1, 2, 1.0)
    g.add_edge(2, 3, 1.0)
    g.add_edge(1, 3, 0.5)
    return g


@pytest.fixture
def chain_graph():
    """Residues 1..6 with short- and long-range contacts."""
    g = WeightedGraph("MKTAYI", identifier="chain", cutoff=8.0)
    for i, j, w in [(1, 2, 3.8), (2, 3, 3.8), (1, 4, 6.0),
                    (2, 6, 7.5), (3, 6, 5.0), (4, 5, 3.8)]:
        g.add_edge(i, j, w)
    return g


# ═══════════════════════════════════════════════════════════════════
# 1. Edge
# ═══════════════════════════════════════════════════════════════════

class TestEdge:

    def test_equality_ignores_weight(self):
        assert Edge(1, 2, 0.5) == Edge(1, 2, 9.0)
        assert hash(Edge(1, 2, 0.5)) == hash(Edge(1, 2, 9.0))

    def test_ordering_by_pair(self):
        assert sorted([Edge(2, 3), Edge(1, 5), Edge(1, 2)]) == [
            Edge(1, 2), Edge(1, 5), Edge(2, 3)]

    def test_range(self):
        assert Edge(3, 10).get_range() == 7

    def test_negative_endpoint_rejected(self):
        with pytest.raises(ConstructionError):
            Edge(-1, 2)

    def test_default_weight(self):
        assert Edge(1, 2).weight == 1.0

    def test_canonical_pair(self):
        assert canonical_pair(5, 2) == (2, 5)
        assert canonical_pair(2, 5) == (2, 5)


# ═══════════════════════════════════════════════════════════════════
# 2. WeightedGraph
# ═══════════════════════════════════════════════════════════════════

class TestWeightedGraphBasics:

    def test_nodes_from_sequence(self):
        g = WeightedGraph("ACD")
        assert g.nodes == [1, 2, 3]
        assert g.residue_type(2) == "C"
        assert g.vertex_count == 3
        assert g.get_vertex_count() == 3

    def test_add_edge_canonicalises(self):
        g = WeightedGraph("ACDEF")
        edge = g.add_edge(5, 2, 0.7)
        assert edge.pair == (2, 5)
        assert g.has_edge(2, 5) and g.has_edge(5, 2)
        assert (5, 2) in g
        assert g.get_edge(5, 2).weight == 0.7

    def test_duplicate_edge_rejected(self):
        g = WeightedGraph("ACD")
        g.add_edge(1, 3, 0.5)
        with pytest.raises(ConstructionError, match="update_weight"):
            g.add_edge(3, 1, 0.9)
        assert g.get_edge(1, 3).weight == 0.5

    def test_self_loop_rejected(self):
        with pytest.raises(ConstructionError):
            WeightedGraph("ACD").add_edge(2, 2)

    def test_update_weight(self):
        g = WeightedGraph("ACD")
        g.add_edge(1, 3, 0.5)
        g.update_weight(3, 1, 2.0)
        assert g.get_edge(1, 3).weight == 2.0
        assert g.edge_count == 1

    def test_update_missing_edge_raises(self):
        with pytest.raises(KeyError):
            WeightedGraph("ACD").update_weight(1, 2, 1.0)

    def test_add_edge_creates_nodes(self):
        g = WeightedGraph()
        g.add_edge(10, 20)
        assert g.nodes == [10, 20]
        assert g.residue_type(10) == ""

    def test_remove_edge(self, triangle):
        triangle.remove_edge(3, 1)
        assert not triangle.has_edge(1, 3)
        assert triangle.neighbours(1) == [2]
        assert triangle.edge_count == 2

    def test_edges_sorted(self, triangle):
        assert [e.pair for e in triangle.edges] == [(1, 2), (1, 3), (2, 3)]
        assert [e.pair for e in triangle] == [(1, 2), (1, 3), (2, 3)]
        assert triangle.get_edges() == {Edge(1, 2), Edge(1, 3), Edge(2, 3)}

    def test_counts_and_weight(self, triangle):
        assert triangle.edge_count == 3
        assert triangle.get_edge_count() == 3
        assert triangle.total_weight == pytest.approx(2.5)

    def test_neighbours(self, triangle):
        assert triangle.neighbours(2) == [1, 3]

    def test_repr(self, triangle):
        assert "tri" in repr(triangle)
        assert "3 edges" in repr(triangle)


# ═══════════════════════════════════════════════════════════════════
# 3. Derived graphs
# ═══════════════════════════════════════════════════════════════════

class TestDerivedGraphs:

    def test_min_range(self, chain_graph):
        g = chain_graph.restrict_to_min_range(3)
        assert [e.pair for e in g.edges] == [(1, 4), (2, 6), (3, 6)]

    def test_max_range(self, chain_graph):
        g = chain_graph.restrict_to_max_range(1)
        assert [e.pair for e in g.edges] == [(1, 2), (2, 3), (4, 5)]

    def test_restriction_keeps_nodes(self, chain_graph):
        g = chain_graph.restrict_to_min_range(10)
        assert g.edge_count == 0
        assert g.nodes == chain_graph.nodes

    def test_copy_is_independent(self, triangle):
        g = triangle.copy()
        g.update_weight(1, 2, 9.0)
        assert triangle.get_edge(1, 2).weight == 1.0
        assert g.metadata == triangle.metadata

    def test_metadata_carried(self, triangle):
        for derived in (triangle.copy(),
                        triangle.restrict_to_min_range(1),
                        triangle.restrict_to_max_range(5),
                        triangle.minimum_spanning_tree()):
            assert derived.metadata == triangle.metadata
            assert derived.pdb_code == "1ABC"
            assert derived.chain_code == "A"
            assert derived.cutoff == 8.0


# ═══════════════════════════════════════════════════════════════════
# 4. Minimum spanning tree
# ═══════════════════════════════════════════════════════════════════

class TestMinimumSpanningTree:

    def test_worked_example(self, triangle):
        tree = triangle.minimum_spanning_tree()
        assert {e.pair for e in tree.edges} == {(1, 3), (2, 3)}
        assert tree.total_weight == pytest.approx(1.5)

    def test_deterministic(self, triangle):
        first = [e.pair for e in triangle.minimum_spanning_tree().edges]
        for _ in range(5):
            assert [e.pair for e in triangle.minimum_spanning_tree().edges] == first

    def test_insertion_order_irrelevant(self):
        g = WeightedGraph("ACD")
        g.add_edge(1, 3, 0.5)
        g.add_edge(2, 3, 1.0)
        g.add_edge(1, 2, 1.0)
        assert {e.pair for e in g.minimum_spanning_tree().edges} == {(1, 3), (2, 3)}

    def test_edge_count_is_n_minus_one(self, chain_graph):
        tree = chain_graph.minimum_spanning_tree()
        assert tree.edge_count == chain_graph.vertex_count - 1
        assert tree.vertex_count == chain_graph.vertex_count

    def test_minimal_weight(self, chain_graph):
        tree = chain_graph.minimum_spanning_tree()
        # 3.8 * 3 + 5.0 (3-6) + 6.0 (1-4)
        assert tree.total_weight == pytest.approx(22.4)

    def test_disconnected_gives_forest(self):
        g = WeightedGraph("ACDEF")
        g.add_edge(1, 2, 1.0)
        g.add_edge(4, 5, 2.0)
        tree = g.minimum_spanning_tree()
        assert {e.pair for e in tree.edges} == {(1, 2), (4, 5)}
        assert tree.nodes == [1, 2, 3, 4, 5]

    def test_empty_graph(self):
        tree = WeightedGraph("AC").minimum_spanning_tree()
        assert tree.edge_count == 0

    def test_source_graph_unchanged(self, triangle):
        triangle.minimum_spanning_tree()
        assert triangle.edge_count == 3
